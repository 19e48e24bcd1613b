"""
Profile and job description data structures for the Generation context.

Both accept the camelCase payloads produced by the web client (startDate,
fieldOfStudy, ...) as well as snake_case YAML files written by hand.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


def _get(data: Dict[str, Any], snake: str, camel: Optional[str] = None, default=None):
    """Look up a key in snake_case first, then camelCase."""
    if snake in data and data[snake] is not None:
        return data[snake]
    if camel and camel in data and data[camel] is not None:
        return data[camel]
    return default


def _string_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


@dataclass
class Experience:
    company: str
    position: str
    start_date: str
    end_date: Optional[str] = None
    description: str = ""
    achievements: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Experience":
        return cls(
            company=str(data.get("company", "")),
            position=str(_get(data, "position", default=data.get("title", ""))),
            start_date=str(_get(data, "start_date", "startDate", "")),
            end_date=_get(data, "end_date", "endDate"),
            description=str(data.get("description", "")),
            achievements=_string_list(data.get("achievements")),
        )


@dataclass
class Education:
    institution: str
    degree: str
    field_of_study: str = ""
    start_date: str = ""
    end_date: Optional[str] = None
    gpa: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Education":
        gpa = data.get("gpa")
        return cls(
            institution=str(data.get("institution", "")),
            degree=str(data.get("degree", "")),
            field_of_study=str(_get(data, "field_of_study", "fieldOfStudy", "")),
            start_date=str(_get(data, "start_date", "startDate", "")),
            end_date=_get(data, "end_date", "endDate"),
            gpa=float(gpa) if gpa not in (None, "") else None,
        )


@dataclass
class Profile:
    """
    A user's career profile, the raw material for every generated document.

    Factory methods:
        from_dict(data) - Build from an API payload or parsed YAML
    """

    name: str
    email: str
    title: Optional[str] = None
    summary: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    links: List[str] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    experience: List[Experience] = field(default_factory=list)
    education: List[Education] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        if not data.get("name"):
            raise ValueError("Profile requires a name")
        return cls(
            name=str(data["name"]),
            email=str(data.get("email", "")),
            title=data.get("title"),
            summary=data.get("summary"),
            phone=data.get("phone"),
            location=data.get("location"),
            links=_string_list(data.get("links")),
            skills=_string_list(data.get("skills")),
            experience=[Experience.from_dict(item) for item in data.get("experience") or []],
            education=[Education.from_dict(item) for item in data.get("education") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class JobDescription:
    """
    The job a document is tailored to.

    Factory methods:
        from_dict(data) - Build from an API payload or parsed YAML
    """

    title: str
    company: str
    description: str = ""
    requirements: List[str] = field(default_factory=list)
    responsibilities: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobDescription":
        if not data.get("title"):
            raise ValueError("Job description requires a title")
        return cls(
            title=str(data["title"]),
            company=str(data.get("company", "")),
            description=str(data.get("description", "")),
            requirements=_string_list(data.get("requirements")),
            responsibilities=_string_list(data.get("responsibilities")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
