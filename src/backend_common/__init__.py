"""Shared aiohttp service plumbing."""
