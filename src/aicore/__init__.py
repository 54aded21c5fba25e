"""Request pipeline and browser tool bridge for AI chat clients."""

__version__ = "0.3.0"
