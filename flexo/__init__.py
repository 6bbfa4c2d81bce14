"""flexo — recipe-driven post-install configuration for project packages."""

__version__ = "0.3.0"
