"""
Error taxonomy for the document pipeline.

Every error carries a machine-readable ``kind``, a human-readable ``message``,
and best-effort ``diagnostic_log`` text (compiler log, raw LLM output, ...).
The orchestrator surfaces exactly one of these to its caller; ``to_dict()`` is
the structured error shape handed to HTTP handlers and the CLI.
"""

from typing import Optional, Sequence


class PipelineError(Exception):
    """
    Base class for all document pipeline errors.

    Attributes:
        message: Error description
        diagnostic_log: Raw diagnostic text (may be empty)
    """

    kind = "pipeline_error"

    def __init__(self, message: str, diagnostic_log: str = ""):
        self.message = message
        self.diagnostic_log = diagnostic_log or ""
        super().__init__(message)

    def to_dict(self) -> dict:
        """Structured error for callers: {kind, message, diagnostic_log}."""
        return {
            "kind": self.kind,
            "message": self.message,
            "diagnostic_log": self.diagnostic_log,
        }


class InvalidRequestError(PipelineError, ValueError):
    """Request rejected before any external process was started (e.g., empty source)."""

    kind = "invalid_request"


class ToolchainUnavailable(PipelineError):
    """External LaTeX compiler binary is missing or not invocable. Triggers fallback."""

    kind = "toolchain_unavailable"


class CompileFailure(PipelineError):
    """Compiler ran but produced no PDF. Triggers fallback."""

    kind = "compile_failure"


class CompileTimeout(CompileFailure):
    """Compiler exceeded its time bound. Handled like CompileFailure, tagged separately."""

    kind = "compile_timeout"


class RendererUnavailable(PipelineError):
    """Headless browser renderer could not produce a PDF. No further fallback exists."""

    kind = "renderer_unavailable"


class UpstreamUnavailable(PipelineError):
    """AI content collaborator failed (network, quota, provider error)."""

    kind = "upstream_unavailable"


class InvalidGeneratedSource(PipelineError):
    """
    AI collaborator returned text that is not a complete LaTeX document.

    Attributes:
        raw_text: The unmodified collaborator output, kept for diagnostics
    """

    kind = "invalid_generated_source"

    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message, diagnostic_log=raw_text)


class WorkspaceError(PipelineError):
    """Scratch directory filesystem failure. Fatal for the pipeline."""

    kind = "io_error"


class ArtifactNotFoundError(WorkspaceError):
    """Expected artifact file does not exist."""

    kind = "not_found"


class TemplateNotFoundError(PipelineError, LookupError):
    """No template stored under the requested identifier."""

    kind = "template_not_found"

    def __init__(self, template_id: str, message: Optional[str] = None):
        self.template_id = template_id
        super().__init__(message or f"Template not found: {template_id}")


class PipelineTimeout(PipelineError):
    """Request-level deadline expired before a complete artifact was produced."""

    kind = "timeout"


class DocumentGenerationError(PipelineError):
    """
    Both rendering paths failed.

    Takes its kind from the last failure (the fallback) while keeping the
    compiler's log as diagnostic text, since it is usually the more useful one.

    Attributes:
        causes: Component errors in the order they occurred
    """

    def __init__(self, causes: Sequence[PipelineError]):
        self.causes = list(causes)
        last = self.causes[-1]
        self.kind = last.kind

        message = "Document generation failed: " + "; ".join(
            f"{cause.kind}: {cause.message}" for cause in self.causes
        )
        diagnostic_log = next(
            (cause.diagnostic_log for cause in self.causes if cause.diagnostic_log), ""
        )
        super().__init__(message, diagnostic_log=diagnostic_log)
