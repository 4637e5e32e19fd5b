"""Small helpers shared across somnus."""
