"""Domain ports."""
