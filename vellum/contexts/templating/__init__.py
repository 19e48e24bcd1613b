"""
Templating Context

Responsibilities:
- Stores LaTeX document templates (skeleton + optional class file) by identifier
- Ships the bundled templates (classic, modern, letter)

Owns: Template persistence and lookup
Never: Generates content or compiles documents
"""

from vellum.contexts.templating.template_store import (
    DocumentTemplate,
    FileTemplateStore,
    InMemoryTemplateStore,
    TemplateStore,
)

__all__ = [
    "DocumentTemplate",
    "FileTemplateStore",
    "InMemoryTemplateStore",
    "TemplateStore",
]
