"""
Temporary workspace management for compilation jobs.

One scratch root is shared by all jobs; each job gets its own directory named
after its job id:

    <scratch_root>/
        resume_3f2a.../
            resume_3f2a....tex      # source
            resume.cls              # optional auxiliary file
            resume_3f2a....pdf      # final artifact (kept)
            resume_3f2a....log/aux  # intermediates (removed by cleanup)

No locking is used: job ids are unique per invocation, so jobs never share a
directory.
"""

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from vellum.contexts.rendering.errors import (
    ArtifactNotFoundError,
    InvalidRequestError,
    WorkspaceError,
)
from vellum.contexts.rendering.logger import _log_debug, _log_warning

JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
SOURCE_EXTENSION = "tex"
ARTIFACT_EXTENSION = "pdf"


@dataclass(frozen=True)
class AuxiliaryFile:
    """
    Extra file compiled alongside the source (e.g., a document class file).

    Attributes:
        name: Plain filename, written next to the source (e.g., "resume.cls")
        content: File content
    """

    name: str
    content: str

    def __post_init__(self):
        if not self.name or Path(self.name).name != self.name or self.name in (".", ".."):
            raise InvalidRequestError(f"Auxiliary file name must be a plain filename: {self.name!r}")


def validate_job_id(job_id: str) -> str:
    """Reject job ids that are empty or unsafe to use as a filename."""
    if not job_id or not JOB_ID_PATTERN.match(job_id):
        raise InvalidRequestError(f"Invalid job id: {job_id!r} (allowed: letters, digits, '_', '-')")
    return job_id


def _normalize_extension(extension: str) -> str:
    return extension.lower().lstrip(".")


class Workspace:
    """
    Scratch directory owner for compilation jobs.

    Args:
        root: Scratch root shared by all jobs (injected configuration)
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def create(self) -> Path:
        """
        Ensure the scratch root exists (idempotent).

        Returns:
            The scratch root

        Raises:
            WorkspaceError: If the directory cannot be created
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(f"Cannot create scratch directory {self.root}: {e}") from e
        return self.root

    def job_dir(self, job_id: str) -> Path:
        return self.root / validate_job_id(job_id)

    def source_path(self, job_id: str) -> Path:
        return self.job_dir(job_id) / f"{job_id}.{SOURCE_EXTENSION}"

    def artifact_path(self, job_id: str) -> Path:
        return self.job_dir(job_id) / f"{job_id}.{ARTIFACT_EXTENSION}"

    def write_input(
        self,
        job_id: str,
        source_text: str,
        auxiliary_file: Optional[AuxiliaryFile] = None,
    ) -> Path:
        """
        Write the job's source (and auxiliary file) into its job directory.

        Args:
            job_id: Unique job identifier
            source_text: LaTeX source
            auxiliary_file: Optional file placed next to the source under its own name

        Returns:
            Path to the written source file

        Raises:
            WorkspaceError: On any filesystem failure
        """
        job_dir = self.job_dir(job_id)
        source_path = self.source_path(job_id)

        try:
            job_dir.mkdir(parents=True, exist_ok=True)
            source_path.write_text(source_text, encoding="utf-8")
            if auxiliary_file is not None:
                (job_dir / auxiliary_file.name).write_text(auxiliary_file.content, encoding="utf-8")
        except OSError as e:
            raise WorkspaceError(f"Cannot write input files for job {job_id}: {e}") from e

        _log_debug(f"Wrote {source_path.name} ({len(source_text)} chars) to {job_dir}")
        return source_path

    def read_artifact(self, path: Path) -> bytes:
        """
        Read a finished artifact into memory.

        Raises:
            ArtifactNotFoundError: If the file does not exist
            WorkspaceError: If it exists but cannot be read
        """
        path = Path(path)
        if not path.is_file():
            raise ArtifactNotFoundError(f"Artifact not found: {path}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise WorkspaceError(f"Cannot read artifact {path}: {e}") from e

    def cleanup(self, job_id: str, keep_extensions: Iterable[str] = (ARTIFACT_EXTENSION,)) -> List[Path]:
        """
        Best-effort removal of a job's intermediate files.

        Every entry in the job directory whose extension is not in
        keep_extensions is deleted. Failures are logged and skipped. The job
        directory is removed once empty. Safe to call repeatedly.

        Args:
            job_id: Job identifier
            keep_extensions: Extensions to preserve, with or without a leading dot

        Returns:
            Paths that were removed
        """
        job_dir = self.job_dir(job_id)
        if not job_dir.is_dir():
            return []

        keep = {_normalize_extension(ext) for ext in keep_extensions}
        removed = []

        for entry in sorted(job_dir.iterdir()):
            if _normalize_extension(entry.suffix) in keep and entry.is_file():
                continue
            try:
                if entry.is_dir() and not entry.is_symlink():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
                removed.append(entry)
            except OSError as e:
                _log_warning(f"Could not remove {entry}: {e}")

        try:
            job_dir.rmdir()
        except OSError:
            # Not empty: the kept artifact is still there
            pass

        if removed:
            _log_debug(f"Cleaned up {len(removed)} files for {job_id}")
        return removed

    def purge(self, job_id: str) -> List[Path]:
        """Remove everything a job left behind, final artifact included."""
        return self.cleanup(job_id, keep_extensions=())
