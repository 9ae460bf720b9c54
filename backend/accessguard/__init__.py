"""Platform access guard: background validation of platform dashboard routes."""

__version__ = "0.1.0"
