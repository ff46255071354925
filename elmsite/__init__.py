"""Incremental static-site builder for Markdown content and Elm layouts."""

__version__ = "0.4.0"
