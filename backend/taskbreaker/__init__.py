"""TaskBreaker: goal decomposition and optimistic task tracking."""

__version__ = "0.1.0"
