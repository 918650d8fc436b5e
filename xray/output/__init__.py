"""Renderers for inspection results."""
