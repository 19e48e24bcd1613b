"""
Rendering context logger.

Every rendering module logs through the [render] wrappers below; only the CLI
installs sinks (setup_rendering_logger).
"""

from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger

from vellum.utils.logger import setup_logger as _setup_logger

CONTEXT_PREFIX = "[render]"


def setup_rendering_logger(log_dir: Path, latex_compiler: Optional[str] = None) -> Path:
    """
    Install file and console sinks for a rendering session.

    Args:
        log_dir: Directory for this session's log file
        latex_compiler: Compiler binary recorded in the provenance header

    Returns:
        Path to log file
    """
    return _setup_logger(
        context_name="render",
        log_dir=log_dir,
        extra_provenance={"LaTeX compiler": latex_compiler or "unset"},
    )


def _log_info(message: str) -> None:
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def _log_numbered(log: Callable[[str], None], label: str, items: List[str], limit: int) -> None:
    """Log up to limit items as "Label i: item", then a count of the rest."""
    for i, item in enumerate(items[:limit], 1):
        log(f"  {label} {i}: {item}")
    if len(items) > limit:
        log(f"  ... and {len(items) - limit} more {label.lower()}s")


def log_compilation_start(job_id: str, source_path: Path, num_passes: int, timeout: float) -> None:
    _log_info(f"Compiling {job_id} ({num_passes} pass(es), timeout {timeout:.1f}s)")
    _log_debug(f"  Source: {source_path}")


def log_compilation_result(job_id: str, result, elapsed_time: float, verbose: bool = False) -> None:
    """
    Summarize a CompilationResult: outcome, parsed errors and warnings, and on
    failure the raw compiler output.

    Args:
        job_id: Job identifier
        result: CompilationResult from LatexCompiler.compile()
        elapsed_time: Seconds spent, toolchain probe included
        verbose: Raise the error/warning limits and always dump raw output
    """
    if result.success:
        _log_success(f"{job_id}: compiled with {len(result.warnings)} warnings ({elapsed_time:.2f}s)")
        _log_debug(f"  PDF: {result.artifact_path}")
    else:
        _log_error(f"{job_id}: {result.error_kind} after {elapsed_time:.2f}s: {result.error_message}")
        _log_numbered(_log_error, "Error", result.errors, 10 if verbose else 5)

    _log_numbered(_log_debug, "Warning", result.warnings, 10 if verbose else 3)

    # raw=True keeps loguru from prefixing every line of the TeX log
    if (verbose or not result.success) and result.diagnostic_log:
        logger.opt(raw=True).debug(
            f"\n{'=' * 80}\nCOMPILER OUTPUT ({job_id}):\n{'=' * 80}\n{result.diagnostic_log}\n"
        )


def log_stage(job_id: str, stage: str) -> None:
    """Log a pipeline state machine transition."""
    _log_debug(f"{job_id}: -> {stage}")
