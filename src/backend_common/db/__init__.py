"""Database helpers shared between services."""
