"""Local mirror of LumifyHub pages and databases with hash-based sync."""

__version__ = "0.4.0"
