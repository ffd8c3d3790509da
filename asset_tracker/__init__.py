"""IT asset tracker: inventory, borrowing, disposal and reporting service."""

__version__ = "1.0.0"
