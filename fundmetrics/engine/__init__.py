"""Windowed performance-metric engine: transforms, metric catalog, windows."""
