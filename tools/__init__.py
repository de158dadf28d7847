"""Command line driver and Monte Carlo validation for the limbo engine."""
