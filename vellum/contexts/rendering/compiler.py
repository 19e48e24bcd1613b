"""
LaTeX Compilation Module

Compiles a LaTeX source document to PDF with an external TeX engine
(pdflatex by default) inside a per-job workspace directory.

Success is decided by artifact existence, not by exit code: TeX engines exit
non-zero on recoverable errors while still writing a usable PDF.
"""

import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from vellum.config import PipelineConfig
from vellum.contexts.rendering.errors import (
    CompileFailure,
    CompileTimeout,
    InvalidRequestError,
    PipelineError,
    ToolchainUnavailable,
)
from vellum.contexts.rendering.logger import (
    _log_debug,
    _log_warning,
    log_compilation_result,
    log_compilation_start,
)
from vellum.contexts.rendering.process import (
    ProcessResult,
    ProcessRunner,
    ProcessTimeout,
    SubprocessRunner,
)
from vellum.contexts.rendering.workspace import (
    ARTIFACT_EXTENSION,
    AuxiliaryFile,
    Workspace,
    validate_job_id,
)
from vellum.utils.pdf_processing import page_count

ERROR_KINDS = {
    ToolchainUnavailable.kind: ToolchainUnavailable,
    CompileFailure.kind: CompileFailure,
    CompileTimeout.kind: CompileTimeout,
}


@dataclass(frozen=True)
class CompilationRequest:
    """
    One compilation job.

    Attributes:
        source_text: Complete LaTeX document
        job_id: Unique token naming the job's files (e.g., "resume_<uuid hex>")
        auxiliary_file: Optional file compiled alongside the source (e.g., resume.cls)

    Raises:
        InvalidRequestError: On empty source or unsafe job id
    """

    source_text: str
    job_id: str
    auxiliary_file: Optional[AuxiliaryFile] = None

    def __post_init__(self):
        if not self.source_text or not self.source_text.strip():
            raise InvalidRequestError("LaTeX source is empty")
        validate_job_id(self.job_id)


@dataclass
class CompilationResult:
    """
    Result of LaTeX compilation: Success{artifact_path} or Failure{error_kind, error_message}.

    Attributes:
        success: Variant tag
        artifact_path: Path to generated PDF (Success only)
        error_kind: Failure kind, one of ERROR_KINDS (Failure only)
        error_message: Failure description (Failure only)
        diagnostic_log: Best-effort compiler output (may be empty)
        errors: Parsed LaTeX errors
        warnings: Parsed LaTeX warnings
        page_count: Number of pages in generated PDF (None if not available)
    """

    success: bool
    artifact_path: Optional[Path] = None
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    diagnostic_log: str = ""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    page_count: Optional[int] = None

    def __post_init__(self):
        if self.success:
            if self.artifact_path is None or self.error_kind is not None:
                raise ValueError("Successful compilation needs an artifact path and no error")
        else:
            if self.artifact_path is not None or self.error_kind not in ERROR_KINDS:
                raise ValueError(f"Failed compilation needs a known error kind, got: {self.error_kind}")
            if not self.error_message:
                raise ValueError("Failed compilation needs an error message")

    @classmethod
    def succeeded(cls, artifact_path: Path, diagnostic_log: str = "", **details) -> "CompilationResult":
        return cls(success=True, artifact_path=artifact_path, diagnostic_log=diagnostic_log, **details)

    @classmethod
    def failed(
        cls, error_kind: str, error_message: str, diagnostic_log: str = "", **details
    ) -> "CompilationResult":
        return cls(
            success=False,
            error_kind=error_kind,
            error_message=error_message,
            diagnostic_log=diagnostic_log,
            **details,
        )

    def to_error(self) -> PipelineError:
        """Exception matching a Failure (ToolchainUnavailable, CompileFailure, CompileTimeout)."""
        if self.success:
            raise ValueError("Successful compilation has no error")
        return ERROR_KINDS[self.error_kind](self.error_message, diagnostic_log=self.diagnostic_log)


def _parse_latex_log(log_content: str) -> tuple[List[str], List[str]]:
    """
    Parse LaTeX log output for errors and warnings.

    Args:
        log_content: Content of the .log file (or compiler stdout)

    Returns:
        Tuple of (errors, warnings)
    """
    errors = []
    warnings = []

    # LaTeX error pattern: "! Error message"
    error_pattern = re.compile(r"^! (.+)$", re.MULTILINE)
    for match in error_pattern.finditer(log_content):
        errors.append(match.group(1).strip())

    # -file-line-error style: "./resume.tex:12: Undefined control sequence."
    file_line_pattern = re.compile(r"^\S+\.(?:tex|cls|sty):\d+: (.+)$", re.MULTILINE)
    for match in file_line_pattern.finditer(log_content):
        message = match.group(1).strip()
        if message not in errors:
            errors.append(message)

    # Additional error patterns that don't start with "!"
    additional_error_patterns = [
        r"Undefined control sequence",
        r"File ended while scanning use of",
        r"Emergency stop",
    ]
    for pattern in additional_error_patterns:
        match = re.search(rf"({pattern}.*?)$", log_content, re.MULTILINE)
        if match and not any(match.group(1) in error for error in errors):
            errors.append(match.group(1))

    warning_patterns = [
        r"LaTeX Warning: (.+)",
        r"Package \w+ Warning: (.+)",
        r"Overfull \\hbox \((.+)\)",
        r"Underfull \\hbox \((.+)\)",
    ]
    for pattern in warning_patterns:
        for match in re.finditer(pattern, log_content, re.MULTILINE):
            warnings.append(match.group(1).strip())

    return errors, warnings


def _combine_output(outputs: List[ProcessResult], log_content: str = "") -> str:
    """Concatenate stderr and stdout of all passes, then the .log file, skipping empties."""
    parts = []
    for output in outputs:
        parts.extend(part for part in (output.stderr, output.stdout) if part.strip())
    if log_content.strip():
        parts.append(log_content)
    return "\n".join(parts)


class LatexCompiler:
    """
    Compiles LaTeX sources with an external TeX engine.

    Args:
        workspace: Scratch directory owner
        runner: Process capability (default: SubprocessRunner)
        config: Pipeline settings (binary, timeouts, passes)
    """

    def __init__(
        self,
        workspace: Workspace,
        runner: Optional[ProcessRunner] = None,
        config: Optional[PipelineConfig] = None,
    ):
        self.workspace = workspace
        self.runner = runner or SubprocessRunner()
        self.config = config or PipelineConfig()
        self._toolchain_version: Optional[str] = None

    @property
    def binary(self) -> str:
        return self.config.latex_compiler

    def toolchain_version(self) -> Optional[str]:
        """
        Probe the compiler with "--version".

        Positive results are cached; a missing toolchain is re-probed on the
        next call so that installing TeX does not require a restart.

        Returns:
            First line of the version banner, or None if the binary is not invocable
        """
        try:
            return self._probe(self.config.probe_timeout_s)
        except ProcessTimeout as e:
            _log_debug(f"Toolchain probe timed out for {self.binary}: {e}")
            return None

    def _probe(self, timeout: float) -> Optional[str]:
        """Run "<binary> --version" within timeout. Raises ProcessTimeout if it hangs."""
        if self._toolchain_version is not None:
            return self._toolchain_version

        try:
            probe = self.runner.run([self.binary, "--version"], timeout=timeout)
        except OSError as e:
            _log_debug(f"Toolchain probe failed for {self.binary}: {e}")
            return None

        if probe.exit_code != 0:
            _log_debug(f"Toolchain probe for {self.binary} exited with {probe.exit_code}")
            return None

        banner = (probe.stdout or probe.stderr).strip()
        self._toolchain_version = banner.splitlines()[0] if banner else self.binary
        return self._toolchain_version

    def _command(self, request: CompilationRequest, job_dir: Path) -> List[str]:
        return [
            self.binary,
            "-interaction=nonstopmode",
            "-halt-on-error",
            "-file-line-error",
            f"-output-directory={job_dir.resolve()}",
            f"{request.job_id}.tex",
        ]

    def compile(self, request: CompilationRequest, timeout: Optional[float] = None) -> CompilationResult:
        """
        Compile a request to PDF.

        Intermediate files are removed after every invocation; the PDF is kept.

        Args:
            request: Source, job id, optional auxiliary file
            timeout: Bound for all passes together (default: config.compile_timeout_s)

        Returns:
            CompilationResult (Success or Failure; never raises for compiler problems)

        Raises:
            WorkspaceError: If the scratch directory cannot be written
        """
        timeout = self.config.compile_timeout_s if timeout is None else timeout
        job_id = request.job_id

        # The probe counts against the compile budget
        start_time = time.monotonic()
        probe_timeout = min(self.config.probe_timeout_s, timeout)
        try:
            version = self._probe(probe_timeout)
        except ProcessTimeout:
            if probe_timeout >= timeout:
                result = CompilationResult.failed(
                    CompileTimeout.kind,
                    f"LaTeX compilation timed out after {timeout:.1f}s ('{self.binary} --version' did not answer)",
                )
            else:
                result = CompilationResult.failed(
                    ToolchainUnavailable.kind,
                    f"LaTeX toolchain not responding: '{self.binary} --version' hung for {probe_timeout:.1f}s",
                )
            log_compilation_result(job_id, result, elapsed_time=time.monotonic() - start_time)
            return result

        if version is None:
            result = CompilationResult.failed(
                ToolchainUnavailable.kind,
                f"LaTeX toolchain not installed: '{self.binary}' is not invocable",
            )
            log_compilation_result(job_id, result, elapsed_time=time.monotonic() - start_time)
            return result

        self.workspace.create()
        source_path = self.workspace.write_input(job_id, request.source_text, request.auxiliary_file)
        job_dir = source_path.parent
        artifact_path = self.workspace.artifact_path(job_id)
        log_path = job_dir / f"{job_id}.log"

        log_compilation_start(job_id, source_path, self.config.num_passes, timeout)

        try:
            result = self._run_passes(request, job_dir, artifact_path, log_path, timeout, start_time)
        finally:
            self.workspace.cleanup(job_id, keep_extensions=(ARTIFACT_EXTENSION,))

        log_compilation_result(job_id, result, elapsed_time=time.monotonic() - start_time)
        return result

    def _run_passes(
        self,
        request: CompilationRequest,
        job_dir: Path,
        artifact_path: Path,
        log_path: Path,
        timeout: float,
        start_time: float,
    ) -> CompilationResult:
        outputs: List[ProcessResult] = []
        command = self._command(request, job_dir)

        # Multiple passes resolve cross-references; all share one timeout budget
        for pass_number in range(1, self.config.num_passes + 1):
            remaining = timeout - (time.monotonic() - start_time)
            try:
                if remaining <= 0:
                    raise ProcessTimeout(command, timeout)
                output = self.runner.run(command, timeout=remaining, cwd=job_dir)
            except ProcessTimeout as e:
                outputs.append(ProcessResult(exit_code=-1, stdout=e.stdout, stderr=e.stderr))
                return CompilationResult.failed(
                    CompileTimeout.kind,
                    f"LaTeX compilation timed out after {timeout:.1f}s (pass {pass_number})",
                    diagnostic_log=_combine_output(outputs, _read_log(log_path)),
                )
            except OSError as e:
                # Binary vanished or lost its execute bit after the probe
                self._toolchain_version = None
                return CompilationResult.failed(
                    ToolchainUnavailable.kind,
                    f"LaTeX toolchain not invocable: {e}",
                    diagnostic_log=_combine_output(outputs),
                )

            outputs.append(output)
            if output.exit_code != 0:
                _log_debug(f"Pass {pass_number} exited with {output.exit_code}")
                if not artifact_path.exists():
                    break

        log_content = _read_log(log_path)
        errors, warnings = _parse_latex_log(log_content or "\n".join(o.stdout for o in outputs))

        if artifact_path.exists():
            if outputs[-1].exit_code != 0:
                _log_warning(
                    f"{request.job_id}: compiler exited with {outputs[-1].exit_code} but wrote a PDF"
                )
            return CompilationResult.succeeded(
                artifact_path,
                diagnostic_log=log_content or _combine_output(outputs),
                errors=errors,
                warnings=warnings,
                page_count=page_count(artifact_path),
            )

        return CompilationResult.failed(
            CompileFailure.kind,
            errors[0] if errors else "PDF file was not generated",
            diagnostic_log=_combine_output(outputs, log_content),
            errors=errors,
            warnings=warnings,
        )


def _read_log(log_path: Path) -> str:
    """Read the TeX .log file (latin-1: font metadata is not valid UTF-8)."""
    if not log_path.exists():
        return ""
    try:
        return log_path.read_text(encoding="latin-1")
    except OSError:
        return ""
