"""Pipeline stage compiling abstract queries into native queries."""

import logging
from pprint import pformat

from ..query import NativeQuery, Query
from .context import ExecutionContext, RowTransform

logger = logging.getLogger(__name__)


class NativeCompilation:
    """Turns the preprocessed query into its native form.

    Native queries keep their own payload; abstract queries are compiled by
    the context's driver. Compilation errors propagate unchanged.
    """

    def process(self, query: Query, row_transform: RowTransform, context: ExecutionContext, next_step):
        preprocessed = context.preprocessed(query)
        logger.debug(f"Preprocessed:\n{pformat(preprocessed.to_dict())}")

        native = context.native(self.native_form(preprocessed, context))
        logger.debug(f"Native form:\n{native.query}")

        if preprocessed.is_native:
            return next_step(preprocessed, row_transform, context)
        return next_step(preprocessed.with_native(native), row_transform, context)

    def native_form(self, query: Query, context: ExecutionContext) -> NativeQuery:
        if query.is_native:
            return query.native
        return context.driver.compile(query.body)
