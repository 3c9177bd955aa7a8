"""Cross-exchange mid-price index built from venue top-of-book streams."""

__version__ = "0.1.0"
