"""Default stage list used by the command line and embedders."""

from ..catalog.catalog import MetadataStore
from ..drivers.registry import DriverRegistry
from ..timezone import TimezoneResolver
from .native_compilation import NativeCompilation
from .pipeline import QueryPipeline
from .remapping import DimensionRemapping
from .timezone_info import TimezoneAnnotation


def build_default_pipeline(
    drivers: DriverRegistry,
    store: MetadataStore,
    timezone_resolver: TimezoneResolver,
) -> QueryPipeline:
    """Timezone annotation, then dimension remapping, then native compilation.

    Remapping runs before compilation so the extra foreign key columns are
    part of the compiled query.
    """
    stages = [
        TimezoneAnnotation(timezone_resolver),
        DimensionRemapping(store),
        NativeCompilation(),
    ]
    return QueryPipeline(stages, drivers)
