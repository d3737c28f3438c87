"""Background job orchestration for the sources service."""

__version__ = "1.0.0"
