"""
Middleware package for the Code Reveal API.
"""

from app.middleware.cache_control import CacheControlMiddleware

__all__ = ["CacheControlMiddleware"]
