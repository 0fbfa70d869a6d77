"""Sliding window, per-client-IP rate limiting middleware for WSGI applications."""

__version__ = "0.1.0"
__all__ = ["clientip", "limiter", "middleware"]