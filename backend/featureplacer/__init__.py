"""Feature layer query, parsing and scene placement."""

__version__ = "1.0.0"
