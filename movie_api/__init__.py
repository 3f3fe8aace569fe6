"""
Movie API - caching and throttling core of a movie catalog backend.

This package provides a cache-aside layer over Redis that stays consistent
with writes through a declarative invalidation rule table, a Redis-backed
sliding-window rate limiter, and the read-path services built on both.
"""

__version__ = "1.0.0"
