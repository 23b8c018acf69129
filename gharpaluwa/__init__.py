"""GharPaluwa pet shop and vaccination booking client core."""

__version__ = "0.1.0"
