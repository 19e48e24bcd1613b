"""
Template Store

Document templates keyed by identifier. Each template is a directory:

    <templates_path>/<template_id>/
        template.yaml    # name, description, category, skeleton, auxiliary
        main.tex         # LaTeX skeleton handed to the content collaborator
        resume.cls       # optional auxiliary file compiled alongside

Templates are loaded with OmegaConf on first access and cached.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from omegaconf import OmegaConf

from vellum.contexts.rendering.errors import TemplateNotFoundError
from vellum.contexts.rendering.workspace import AuxiliaryFile
from vellum.contexts.templating.logger import _log_debug, _log_warning

BUNDLED_TEMPLATES_PATH = Path(__file__).parent / "templates"
METADATA_FILE = "template.yaml"
DEFAULT_SKELETON = "main.tex"

_TEMPLATE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class DocumentTemplate:
    """
    A LaTeX document template.

    Attributes:
        template_id: Store key (directory name)
        name: Display name
        description: One-line description
        category: "resume" or "cover_letter"
        skeleton_source: LaTeX skeleton with placeholder content
        auxiliary_file: Optional file needed to compile the skeleton (e.g., resume.cls)
    """

    template_id: str
    name: str
    skeleton_source: str
    description: str = ""
    category: str = "resume"
    auxiliary_file: Optional[AuxiliaryFile] = None

    def summary(self) -> Dict[str, str]:
        """Listing entry without the skeleton text."""
        return {
            "template_id": self.template_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
        }


class TemplateStore(ABC):
    """Key-value access to document templates."""

    @abstractmethod
    def get_template(self, template_id: str) -> DocumentTemplate:
        """
        Look up a template.

        Raises:
            TemplateNotFoundError: If no template is stored under template_id
        """

    @abstractmethod
    def list_templates(self) -> List[DocumentTemplate]:
        """All stored templates, sorted by id."""


class FileTemplateStore(TemplateStore):
    """
    Template store backed by a directory tree.

    Args:
        base_path: Directory holding one sub-directory per template
            (default: templates bundled with the package)
    """

    def __init__(self, base_path: Optional[Path] = None):
        self.base_path = Path(base_path) if base_path is not None else BUNDLED_TEMPLATES_PATH
        self._cache: Dict[str, DocumentTemplate] = {}

    def get_template_path(self, template_id: str) -> Path:
        return self.base_path / template_id

    def get_template(self, template_id: str) -> DocumentTemplate:
        if template_id in self._cache:
            return self._cache[template_id]

        if not template_id or not _TEMPLATE_ID_PATTERN.match(template_id):
            raise TemplateNotFoundError(template_id, f"Invalid template id: {template_id!r}")

        template_dir = self.get_template_path(template_id)
        metadata_path = template_dir / METADATA_FILE
        if not metadata_path.is_file():
            raise TemplateNotFoundError(template_id)

        template = self._load(template_id, template_dir, metadata_path)
        self._cache[template_id] = template
        _log_debug(f"Loaded template '{template_id}' from {template_dir}")
        return template

    def _load(self, template_id: str, template_dir: Path, metadata_path: Path) -> DocumentTemplate:
        metadata = OmegaConf.to_container(OmegaConf.load(metadata_path), resolve=True) or {}

        skeleton_path = template_dir / metadata.get("skeleton", DEFAULT_SKELETON)
        if not skeleton_path.is_file():
            raise TemplateNotFoundError(
                template_id, f"Template '{template_id}' has no skeleton file: {skeleton_path.name}"
            )

        auxiliary_file = None
        auxiliary_name = metadata.get("auxiliary")
        if auxiliary_name:
            auxiliary_path = template_dir / auxiliary_name
            if not auxiliary_path.is_file():
                raise TemplateNotFoundError(
                    template_id, f"Template '{template_id}' is missing {auxiliary_name}"
                )
            auxiliary_file = AuxiliaryFile(
                name=auxiliary_path.name, content=auxiliary_path.read_text(encoding="utf-8")
            )

        return DocumentTemplate(
            template_id=template_id,
            name=str(metadata.get("name", template_id)),
            description=str(metadata.get("description", "")),
            category=str(metadata.get("category", "resume")),
            skeleton_source=skeleton_path.read_text(encoding="utf-8"),
            auxiliary_file=auxiliary_file,
        )

    def list_templates(self) -> List[DocumentTemplate]:
        if not self.base_path.is_dir():
            return []

        templates = []
        for entry in sorted(self.base_path.iterdir()):
            if not (entry / METADATA_FILE).is_file():
                continue
            try:
                templates.append(self.get_template(entry.name))
            except TemplateNotFoundError as e:
                _log_warning(f"Skipping broken template {entry.name}: {e}")
        return templates

    def clear_cache(self):
        """Clear the template cache."""
        self._cache.clear()

    def is_cached(self, template_id: str) -> bool:
        return template_id in self._cache


class InMemoryTemplateStore(TemplateStore):
    """Dictionary-backed store (tests, embedding callers)."""

    def __init__(self, templates: Iterable[DocumentTemplate] = ()):
        self._templates = {template.template_id: template for template in templates}

    def add(self, template: DocumentTemplate) -> None:
        self._templates[template.template_id] = template

    def get_template(self, template_id: str) -> DocumentTemplate:
        try:
            return self._templates[template_id]
        except KeyError:
            raise TemplateNotFoundError(template_id) from None

    def list_templates(self) -> List[DocumentTemplate]:
        return [self._templates[key] for key in sorted(self._templates)]
