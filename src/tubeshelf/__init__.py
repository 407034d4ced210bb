"""tubeshelf: optimistic YouTube playlist editing with a consistent local cache."""

__version__ = "0.1.0"
