"""Command line entry points for the standings engine."""
