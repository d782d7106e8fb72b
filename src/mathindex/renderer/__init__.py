"""HTML rendering package."""
