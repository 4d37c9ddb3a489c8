"""Persisted state for chaba review environments."""
