from .health import JobFailure, DetailedHealth

__all__ = [
    "JobFailure",
    "DetailedHealth",
]
