"""Packaged flash profiles."""
