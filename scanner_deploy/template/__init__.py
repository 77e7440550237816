"""Textual rendering of resource templates."""

from .renderer import load_template, placeholders, render, render_file, validate_placeholders

__all__ = ["load_template", "placeholders", "render", "render_file", "validate_placeholders"]
