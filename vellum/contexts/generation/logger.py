"""
Generation context logger.

Provides logging interface for generation context with automatic [generate] prefix.
"""

from pathlib import Path

from loguru import logger

from vellum.utils.llm import default_provider_name
from vellum.utils.logger import setup_logger as _setup_logger

CONTEXT_PREFIX = "[generate]"


def setup_generation_logger(log_dir: Path) -> Path:
    """Setup logger for generation context (records the LLM provider in the provenance header)."""
    return _setup_logger(
        context_name="generate",
        log_dir=log_dir,
        extra_provenance={"LLM provider": default_provider_name()},
    )


def _log_info(message: str) -> None:
    """Log info message with [generate] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [generate] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [generate] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [generate] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_llm_response(task: str, response) -> None:
    """Log token usage of an LLM call (response: LLMResponse)."""
    _log_info(
        f"{task}: {response.model} ({response.input_tokens} in / {response.output_tokens} out tokens)"
    )
