"""
Clarifying question normalization.

LLM output drifts between field spellings (question/text/label,
input_type/inputType/type, can_add_more/canAddMore) and sometimes uses input
types the client does not render. normalize_questions() turns whatever came
back into a clean list of Question objects.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from vellum.contexts.generation.logger import _log_debug

INPUT_TYPES = ("text", "textarea", "multiselect", "checkbox")
OPTION_INPUT_TYPES = ("multiselect", "checkbox")
PRIORITIES = ("low", "medium", "high")
DEFAULT_CATEGORY = "general"


@dataclass
class Question:
    """
    A clarifying question shown to the user before generation.

    Attributes:
        text: Question text
        input_type: One of INPUT_TYPES
        required: Whether an answer is required
        category: summary, experience, skills, ... (free-form)
        options: Choices (multiselect/checkbox only)
        can_add_more: User may add choices beyond options
        priority: low, medium, or high
    """

    text: str
    input_type: str = "text"
    required: bool = False
    category: str = DEFAULT_CATEGORY
    options: List[str] = field(default_factory=list)
    can_add_more: bool = False
    priority: Optional[str] = None

    def __post_init__(self):
        if self.input_type not in INPUT_TYPES:
            raise ValueError(f"Unknown input type: {self.input_type}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _first(raw: Dict[str, Any], *keys: str):
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def normalize_question(raw: Dict[str, Any]) -> Optional[Question]:
    """
    Normalize one raw question dict.

    Rules:
        - Text from "question", "text", or "label"; no text -> None
        - "select" becomes "multiselect" when options are present, else "text"
        - Unknown input types become "text"
        - Options are kept only for multiselect/checkbox

    Args:
        raw: Question as parsed from the LLM response

    Returns:
        Question, or None if the entry has no usable text
    """
    if not isinstance(raw, dict):
        return None

    text = _first(raw, "question", "text", "label")
    if not isinstance(text, str) or not text.strip():
        return None

    options = raw.get("options") or []
    if isinstance(options, str):
        options = [options]
    options = [str(option).strip() for option in options if str(option).strip()]

    input_type = str(_first(raw, "input_type", "inputType", "type") or "text").strip().lower()
    if input_type == "select":
        input_type = "multiselect" if options else "text"
    elif input_type not in INPUT_TYPES:
        input_type = "text"

    if input_type not in OPTION_INPUT_TYPES:
        options = []

    priority = raw.get("priority")
    priority = priority.lower() if isinstance(priority, str) and priority.lower() in PRIORITIES else None

    return Question(
        text=text.strip(),
        input_type=input_type,
        required=_as_bool(raw.get("required", False)),
        category=str(raw.get("category") or DEFAULT_CATEGORY),
        options=options,
        can_add_more=_as_bool(_first(raw, "can_add_more", "canAddMore") or False),
        priority=priority,
    )


def normalize_questions(raw_questions: Iterable[Any]) -> List[Question]:
    """Normalize a list of raw question dicts, dropping unusable entries."""
    questions = []
    for raw in raw_questions:
        question = normalize_question(raw)
        if question is None:
            _log_debug(f"Dropped question without text: {raw!r}")
            continue
        questions.append(question)
    return questions
