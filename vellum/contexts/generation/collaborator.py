"""
AI content collaborator.

Turns a profile and job description into LaTeX source, clarifying questions,
ATS analyses, and section edits through an LLMProvider (vellum.utils.llm).

The collaborator only talks to the provider. It does not validate generated
LaTeX; the orchestrator does that (see rendering.pipeline.extract_document_source).
Every provider failure surfaces as UpstreamUnavailable.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from vellum.contexts.generation.logger import _log_debug, _log_error, log_llm_response
from vellum.contexts.generation.profile_data_structure import JobDescription, Profile
from vellum.contexts.generation.prompts import (
    ATS_SYSTEM_PROMPT,
    EDIT_SYSTEM_PROMPT,
    LATEX_SYSTEM_PROMPT,
    QUESTIONS_SYSTEM_PROMPT,
    build_ats_prompt,
    build_cover_letter_prompt,
    build_edit_prompt,
    build_questions_prompt,
    build_resume_prompt,
)
from vellum.contexts.rendering.errors import UpstreamUnavailable
from vellum.utils.llm import (
    LLMProvider,
    get_provider,
    parse_array_response,
    parse_dict_response,
)


@dataclass
class AtsAnalysis:
    """
    ATS compatibility report for a resume against a job description.

    Attributes:
        score: 0-100, keyword match and content relevance
        keywords: Job keywords found in the resume
        missing_keywords: Job keywords absent from the resume
        suggestions: Improvement suggestions
    """

    score: int
    keywords: List[str] = field(default_factory=list)
    missing_keywords: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AtsAnalysis":
        try:
            score = int(round(float(data.get("score", 0))))
        except (TypeError, ValueError):
            score = 0
        missing = data.get("missing_keywords", data.get("missingKeywords"))
        return cls(
            score=max(0, min(100, score)),
            keywords=[str(k) for k in data.get("keywords") or []],
            missing_keywords=[str(k) for k in missing or []],
            suggestions=[str(s) for s in data.get("suggestions") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ContentCollaborator:
    """
    LLM-backed content generation.

    Args:
        provider: LLM provider (default: get_provider(), created on first use so
            that a missing API key only fails the calls that need it)
    """

    def __init__(self, provider: Optional[LLMProvider] = None):
        self._provider = provider

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            try:
                self._provider = get_provider()
            except (ImportError, ValueError) as e:
                raise UpstreamUnavailable(f"LLM provider not configured: {e}") from e
        return self._provider

    def _ask(self, task: str, system_prompt: str, user_prompt: str) -> str:
        provider = self.provider
        _log_debug(f"{task}: prompt of {len(user_prompt)} chars to {provider.name}")
        try:
            response = provider.generate(system_prompt=system_prompt, user_prompt=user_prompt)
        except Exception as e:
            _log_error(f"{task} failed: {e}")
            raise UpstreamUnavailable(f"AI provider request failed ({task}): {e}") from e

        log_llm_response(task, response)
        if not response.content or not response.content.strip():
            raise UpstreamUnavailable(f"AI provider returned an empty response ({task})")
        return response.content

    def generate_source(
        self,
        profile: Profile,
        job: JobDescription,
        answers: Optional[Dict[str, Any]],
        skeleton: str,
    ) -> str:
        """
        Generate a tailored LaTeX resume from a template skeleton.

        Returns:
            Raw model output (validated by the caller)

        Raises:
            UpstreamUnavailable: On provider failure
        """
        prompt = build_resume_prompt(profile, job, answers, skeleton)
        return self._ask("resume", LATEX_SYSTEM_PROMPT, prompt)

    def generate_cover_letter_source(
        self,
        profile: Profile,
        job: JobDescription,
        resume_summary: Optional[str] = None,
        tone: str = "professional",
        skeleton: Optional[str] = None,
    ) -> str:
        """Generate a LaTeX cover letter (raw model output, validated by the caller)."""
        prompt = build_cover_letter_prompt(profile, job, resume_summary, tone, skeleton)
        return self._ask("cover_letter", LATEX_SYSTEM_PROMPT, prompt)

    def generate_questions(self, profile: Profile, job: JobDescription) -> List[Dict[str, Any]]:
        """
        Generate clarifying questions as raw dicts.

        Field names vary between responses; see questions.normalize_questions().

        Raises:
            UpstreamUnavailable: On provider failure or a response without a JSON array
        """
        text = self._ask("questions", QUESTIONS_SYSTEM_PROMPT, build_questions_prompt(profile, job))
        questions = parse_array_response(text)
        if not questions:
            raise UpstreamUnavailable("AI provider returned no question list", diagnostic_log=text)
        return [question for question in questions if isinstance(question, dict)]

    def analyze_ats(self, resume_text: str, job: JobDescription) -> AtsAnalysis:
        """
        Score a resume's text against a job description.

        Raises:
            UpstreamUnavailable: On provider failure or a response without a JSON object
        """
        text = self._ask("ats", ATS_SYSTEM_PROMPT, build_ats_prompt(resume_text, job))
        data = parse_dict_response(text)
        if not data:
            raise UpstreamUnavailable("AI provider returned no ATS analysis", diagnostic_log=text)
        return AtsAnalysis.from_dict(data)

    def edit_section(self, section_text: str, instruction: str, context: str = "") -> str:
        """Rewrite one resume section following an instruction."""
        prompt = build_edit_prompt(section_text, instruction, context)
        return self._ask("edit", EDIT_SYSTEM_PROMPT, prompt).strip()
