"""
Document Pipeline

Turns a profile, a job description, and a template into PDF bytes:

    START -> OBTAIN_SOURCE -> COMPILE -> DONE
                                 |
                                 +-> FALLBACK -> DONE
                                         |
                                         +-> FATAL

OBTAIN_SOURCE is skipped when the caller supplies LaTeX directly. FALLBACK
runs only when compilation fails and is attempted exactly once, on the same
source text. Every transition is logged ([render]) and recorded as a pipeline
event (Tier 2).

Callers get either complete PDF bytes or exactly one PipelineError.
"""

import re
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from vellum.config import PipelineConfig
from vellum.contexts.generation.collaborator import ContentCollaborator
from vellum.contexts.generation.profile_data_structure import JobDescription, Profile
from vellum.contexts.generation.prompts import COVER_LETTER_TONES
from vellum.contexts.generation.questions import Question, normalize_questions
from vellum.contexts.rendering.compiler import CompilationRequest, LatexCompiler
from vellum.contexts.rendering.errors import (
    DocumentGenerationError,
    InvalidGeneratedSource,
    InvalidRequestError,
    PipelineError,
    PipelineTimeout,
    RendererUnavailable,
)
from vellum.contexts.rendering.fallback import FallbackRenderer
from vellum.contexts.rendering.hypertext import BEGIN_DOCUMENT, END_DOCUMENT
from vellum.contexts.rendering.logger import _log_info, _log_success, _log_warning, log_stage
from vellum.contexts.rendering.workspace import AuxiliaryFile, Workspace, validate_job_id
from vellum.contexts.templating.template_store import FileTemplateStore, TemplateStore
from vellum.utils.event_logging import log_pipeline_event
from vellum.utils.llm import api_key_configured, default_provider_name
from vellum.utils.timestamp import now_exact

EVENT_SOURCE = "rendering"

_FENCE_PATTERN = re.compile(r"^\s*```[A-Za-z]*\s*$", re.MULTILINE)
_DOCUMENTCLASS_PATTERN = re.compile(r"\\documentclass\b")


class PipelineStage(Enum):
    START = "start"
    OBTAIN_SOURCE = "obtain_source"
    COMPILE = "compile"
    FALLBACK = "fallback"
    DONE = "done"
    FATAL = "fatal"


class Deadline:
    """
    Request-level time budget shared by compilation and fallback.

    Args:
        timeout: Seconds from now (None = unbounded)
        clock: Monotonic clock (injectable for tests)
    """

    def __init__(self, timeout: Optional[float], clock: Callable[[], float] = time.monotonic):
        self.timeout = timeout
        self._clock = clock
        self._start = clock()

    def remaining(self) -> Optional[float]:
        """Seconds left (may be negative), or None when unbounded."""
        if self.timeout is None:
            return None
        return self.timeout - (self._clock() - self._start)

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def bound(self, limit: float, stage: str = "next stage", diagnostic_log: str = "") -> float:
        """
        Clamp a component timeout to the time left.

        Raises:
            PipelineTimeout: If the deadline has already expired
        """
        remaining = self.remaining()
        if remaining is None:
            return limit
        if remaining <= 0:
            raise PipelineTimeout(
                f"Request deadline of {self.timeout:.1f}s expired before {stage}",
                diagnostic_log=diagnostic_log,
            )
        return min(limit, remaining)


def new_job_id(document_type: str) -> str:
    """Unique job id, e.g. "resume_9f1c0b...". Rejects document types unsafe as filenames."""
    return validate_job_id(f"{document_type}_{uuid4().hex}")


def extract_document_source(raw_text: str) -> str:
    """
    Cut a complete LaTeX document out of collaborator output.

    Markdown code fences and chatter around the document are removed. The
    document starts at \\documentclass (or \\begin{document} when there is no
    preamble) and ends at the last \\end{document}.

    Args:
        raw_text: Raw collaborator output

    Returns:
        LaTeX document text

    Raises:
        InvalidGeneratedSource: If either document marker is missing
    """
    text = _FENCE_PATTERN.sub("", raw_text or "")

    begin = text.find(BEGIN_DOCUMENT)
    end = text.rfind(END_DOCUMENT)
    if begin == -1 or end == -1 or end < begin:
        missing = [marker for marker, index in ((BEGIN_DOCUMENT, begin), (END_DOCUMENT, end)) if index == -1]
        reason = f"missing {' and '.join(missing)}" if missing else f"{END_DOCUMENT} before {BEGIN_DOCUMENT}"
        raise InvalidGeneratedSource(
            f"Generated text is not a complete LaTeX document ({reason})", raw_text=raw_text or ""
        )

    preamble = _DOCUMENTCLASS_PATTERN.search(text, 0, begin)
    start = preamble.start() if preamble else begin
    return text[start : end + len(END_DOCUMENT)].strip() + "\n"


class DocumentPipeline:
    """
    Pipeline orchestrator: source generation, compilation, and HTML fallback.

    All collaborators are injected; see build_pipeline() for the default wiring.

    Args:
        collaborator: AI content collaborator (generate_source, generate_questions, ...)
        template_store: Template lookup by id
        compiler: LaTeX compiler (primary rendering path)
        renderer: Fallback renderer (secondary rendering path)
        workspace: Scratch directory shared with the compiler
        config: Pipeline settings
    """

    def __init__(
        self,
        collaborator: ContentCollaborator,
        template_store: TemplateStore,
        compiler: LatexCompiler,
        renderer: FallbackRenderer,
        workspace: Workspace,
        config: Optional[PipelineConfig] = None,
    ):
        self.collaborator = collaborator
        self.template_store = template_store
        self.compiler = compiler
        self.renderer = renderer
        self.workspace = workspace
        self.config = config or PipelineConfig()

    def _enter(self, job_id: str, stage: PipelineStage, **fields) -> None:
        log_stage(job_id, stage.value)
        log_pipeline_event(
            "stage_entered",
            job_id,
            EVENT_SOURCE,
            events_file=self.config.events_file,
            stage=stage.value,
            **fields,
        )

    def _event(self, event_type: str, job_id: str, **fields) -> None:
        log_pipeline_event(event_type, job_id, EVENT_SOURCE, events_file=self.config.events_file, **fields)

    def produce_document(
        self,
        profile: Profile,
        job_description: JobDescription,
        template_id: str,
        answers: Optional[Dict[str, Any]] = None,
        source_override: Optional[str] = None,
        timeout: Optional[float] = None,
        document_type: str = "resume",
    ) -> bytes:
        """
        Produce a tailored document as PDF bytes.

        Args:
            profile: User profile
            job_description: Target job
            template_id: Template store key
            answers: Answers to clarifying questions (question text -> answer)
            source_override: LaTeX to render as-is (skips the AI collaborator)
            timeout: Request deadline in seconds (default: config.request_timeout_s)
            document_type: Job id prefix ("resume", "cover_letter", ...)

        Returns:
            PDF bytes (from LaTeX or from the HTML fallback)

        Raises:
            TemplateNotFoundError: Unknown template id
            UpstreamUnavailable: AI collaborator failed
            InvalidGeneratedSource: Collaborator output is not a LaTeX document
            InvalidRequestError: Empty source
            DocumentGenerationError: Compilation and fallback both failed
            PipelineTimeout: Request deadline expired
            WorkspaceError: Scratch directory unusable
        """
        template = self.template_store.get_template(template_id)

        def obtain_source() -> str:
            raw = self.collaborator.generate_source(
                profile, job_description, answers, template.skeleton_source
            )
            return extract_document_source(raw)

        return self._run(
            document_type=document_type,
            obtain_source=obtain_source,
            source_override=source_override,
            auxiliary_file=template.auxiliary_file,
            timeout=timeout,
            template_id=template_id,
        )

    def produce_cover_letter(
        self,
        profile: Profile,
        job_description: JobDescription,
        resume_summary: Optional[str] = None,
        tone: str = "professional",
        template_id: Optional[str] = None,
        source_override: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> bytes:
        """
        Produce a cover letter as PDF bytes.

        Same state machine as produce_document(); the template is optional and
        only guides the collaborator's layout.

        Raises:
            InvalidRequestError: Unknown tone
            (otherwise as produce_document)
        """
        if tone not in COVER_LETTER_TONES:
            raise InvalidRequestError(f"Unknown tone: {tone}. Use one of {', '.join(COVER_LETTER_TONES)}")

        template = self.template_store.get_template(template_id) if template_id else None
        skeleton = template.skeleton_source if template else None

        def obtain_source() -> str:
            raw = self.collaborator.generate_cover_letter_source(
                profile, job_description, resume_summary, tone, skeleton
            )
            return extract_document_source(raw)

        return self._run(
            document_type="cover_letter",
            obtain_source=obtain_source,
            source_override=source_override,
            auxiliary_file=template.auxiliary_file if template else None,
            timeout=timeout,
            template_id=template_id,
        )

    def _run(
        self,
        document_type: str,
        obtain_source: Callable[[], str],
        source_override: Optional[str],
        auxiliary_file: Optional[AuxiliaryFile],
        timeout: Optional[float],
        template_id: Optional[str],
    ) -> bytes:
        job_id = new_job_id(document_type)
        deadline = Deadline(timeout if timeout is not None else self.config.request_timeout_s)
        start_time = time.monotonic()

        self._enter(job_id, PipelineStage.START, template_id=template_id, document_type=document_type)

        try:
            if source_override is None:
                self._enter(job_id, PipelineStage.OBTAIN_SOURCE)
                source_text = obtain_source()
            else:
                source_text = source_override

            pdf_bytes, path = self._render(job_id, source_text, auxiliary_file, deadline)
        except PipelineError as e:
            self._enter(job_id, PipelineStage.FATAL, error_kind=e.kind, error_message=e.message)
            raise

        elapsed = time.monotonic() - start_time
        _log_success(f"{job_id}: {len(pdf_bytes)} bytes via {path} ({elapsed:.2f}s)")
        self._enter(job_id, PipelineStage.DONE, path=path, size_bytes=len(pdf_bytes), elapsed_s=round(elapsed, 3))
        return pdf_bytes

    def _render(
        self,
        job_id: str,
        source_text: str,
        auxiliary_file: Optional[AuxiliaryFile],
        deadline: Deadline,
    ) -> tuple[bytes, str]:
        """COMPILE, then FALLBACK on failure. Returns (pdf_bytes, path taken)."""
        request = CompilationRequest(source_text=source_text, job_id=job_id, auxiliary_file=auxiliary_file)

        self._enter(job_id, PipelineStage.COMPILE)
        result = self.compiler.compile(
            request, timeout=deadline.bound(self.config.compile_timeout_s, stage="compilation")
        )

        if result.success:
            try:
                if deadline.expired:
                    raise PipelineTimeout(
                        f"Request deadline of {deadline.timeout:.1f}s expired during compilation",
                        diagnostic_log=result.diagnostic_log,
                    )
                pdf_bytes = self.workspace.read_artifact(result.artifact_path)
            finally:
                if not self.config.retain_artifacts or deadline.expired:
                    self.workspace.purge(job_id)
            return pdf_bytes, "latex"

        compile_error = result.to_error()
        self._event(
            "compile_failed",
            job_id,
            error_kind=result.error_kind,
            error_message=result.error_message,
        )
        _log_warning(f"{job_id}: {result.error_kind}, falling back to HTML rendering")

        render_timeout = deadline.bound(
            self.config.render_timeout_s, stage="fallback rendering", diagnostic_log=result.diagnostic_log
        )
        self._enter(job_id, PipelineStage.FALLBACK, reason=result.error_kind)
        try:
            pdf_bytes = self.renderer.render(source_text, timeout=render_timeout)
        except RendererUnavailable as e:
            self._event("fallback_failed", job_id, error_message=e.message)
            raise DocumentGenerationError([compile_error, e]) from e

        if deadline.expired:
            raise PipelineTimeout(
                f"Request deadline of {deadline.timeout:.1f}s expired during fallback rendering",
                diagnostic_log=result.diagnostic_log,
            )
        return pdf_bytes, "html"

    def prepare_questions(self, profile: Profile, job_description: JobDescription) -> List[Question]:
        """
        Clarifying questions for a profile and job, normalized for display.

        Raises:
            UpstreamUnavailable: AI collaborator failed
        """
        raw_questions = self.collaborator.generate_questions(profile, job_description)
        questions = normalize_questions(raw_questions)
        _log_info(f"Prepared {len(questions)} of {len(raw_questions)} generated questions")
        return questions

    def check_status(self) -> Dict[str, Any]:
        """
        Report which parts of the pipeline can run on this machine.

        Returns:
            Dict with latex, fallback, llm, and templates sections
        """
        version = self.compiler.toolchain_version()
        browser = self.renderer.browser_executable()
        provider = default_provider_name()

        return {
            "timestamp": now_exact(),
            "latex": {
                "installed": version is not None,
                "compiler": self.compiler.binary,
                "version": version,
            },
            "fallback": {
                "available": browser is not None,
                "browser": str(browser) if browser else None,
            },
            "llm": {
                "provider": provider,
                "api_key_configured": api_key_configured(provider),
            },
            "templates": {
                "count": len(self.template_store.list_templates()),
            },
            "scratch_root": str(self.workspace.root),
        }


def build_pipeline(config: Optional[PipelineConfig] = None) -> DocumentPipeline:
    """
    Wire a DocumentPipeline from configuration.

    Args:
        config: Pipeline settings (default: PipelineConfig.load())

    Returns:
        DocumentPipeline with file templates, the configured LLM provider,
        a subprocess-backed compiler, and the Playwright fallback
    """
    config = config or PipelineConfig.load()
    workspace = Workspace(config.scratch_root)
    return DocumentPipeline(
        collaborator=ContentCollaborator(),
        template_store=FileTemplateStore(config.templates_path),
        compiler=LatexCompiler(workspace, config=config),
        renderer=FallbackRenderer(config=config),
        workspace=workspace,
        config=config,
    )
