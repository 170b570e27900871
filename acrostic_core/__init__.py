"""Local caching and multi-store sync layer behind the Acrostic Notion widgets."""

__version__ = "0.1.0"
