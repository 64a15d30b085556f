"""Query processing pipeline with dimension remapping and streaming results."""

__version__ = "0.1.0"
