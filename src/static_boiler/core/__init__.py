"""Core infrastructure: configuration, paths, file I/O and exceptions."""
