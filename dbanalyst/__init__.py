"""dbanalyst - analytics tools (aggregate, compare, rank) over PostgreSQL with a resilient executor."""

__version__ = "0.1.0"
