"""Query processing pipeline: execution context, stages and runtime."""

from .context import ExecutionContext, RowTransform, identity_row_transform
from .pipeline import (
    ExecutionResult,
    ExecutionStep,
    QueryPipeline,
    Stage,
    execute_native,
    run_pipeline,
)
from .remapping import (
    DimensionRemapping,
    RemapTuple,
    ResultRemapper,
    add_foreign_key_remaps,
    create_remap_col_tuples,
    remap_results,
)
from .native_compilation import NativeCompilation
from .timezone_info import TimezoneAnnotation
from .defaults import build_default_pipeline

__all__ = [
    "ExecutionContext",
    "RowTransform",
    "identity_row_transform",
    "ExecutionResult",
    "ExecutionStep",
    "QueryPipeline",
    "Stage",
    "execute_native",
    "run_pipeline",
    "DimensionRemapping",
    "RemapTuple",
    "ResultRemapper",
    "add_foreign_key_remaps",
    "create_remap_col_tuples",
    "remap_results",
    "NativeCompilation",
    "TimezoneAnnotation",
    "build_default_pipeline",
]
