"""Deployment tooling for the ephemeral TLS scanner Job."""

__version__ = "0.1.0"
