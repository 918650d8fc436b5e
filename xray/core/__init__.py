"""Xray core: data model, error taxonomy and inspection engine."""
