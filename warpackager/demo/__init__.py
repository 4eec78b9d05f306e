"""Bundled demo configuration."""
