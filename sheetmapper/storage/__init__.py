"""Persistence for loaded files and templates."""

from .file_store import FileStore
from .template_store import Template, TemplateStore

__all__ = ["FileStore", "Template", "TemplateStore"]
