"""Packaged builtin prompt catalog."""
