"""Base settings shared between services."""
