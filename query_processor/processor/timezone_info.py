"""Pipeline stage annotating result metadata with timezone ids."""

from ..catalog.schema import ResultMetadata
from ..timezone import TimezoneResolver
from .context import ExecutionContext, RowTransform


class TimezoneAnnotation:
    """Adds ``results_timezone`` and, when known, ``requested_timezone``.

    Rows are never inspected.
    """

    def __init__(self, resolver: TimezoneResolver):
        self.resolver = resolver

    def process(self, query, row_transform: RowTransform, context: ExecutionContext, next_step):
        return next_step(query, row_transform, context.wrap_metadata(self.annotate))

    def annotate(self, metadata: ResultMetadata) -> ResultMetadata:
        annotations = {"results_timezone": self.resolver.results_timezone_id()}
        requested = self.resolver.requested_timezone_id()
        if requested is not None:
            annotations["requested_timezone"] = requested
        return metadata.with_extra(**annotations)
