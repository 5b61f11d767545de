"""Catalog, feed and review backend for the cineclub movie-review platform."""

__version__ = "0.1.0"
