"""Shared aiohttp middlewares."""
