"""reqq - HTTP requests stored as plain text files."""

__version__ = "1.0.0"
