"""Shared I/O seams, error taxonomy and session helpers."""
