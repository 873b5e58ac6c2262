"""Input parsing and display formatting helpers."""
