"""static-boiler: build, serve and offline-cache a static site."""

__version__ = "0.1.0"
