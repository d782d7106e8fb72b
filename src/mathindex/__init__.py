"""Reference resolution and definition dependency graphs for exported math theories."""

__version__ = "0.1.0"
