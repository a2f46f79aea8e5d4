"""Assignment cache synchronization and status precedence for staffing data."""

__version__ = "0.1.0"
