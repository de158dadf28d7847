"""Game simulation engines."""
