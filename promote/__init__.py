"""Promote pre-release build artifacts into a release when a version tag is pushed."""

__version__ = "0.1.0"
