"""
Pipeline event logging utilities for VELLUM (Tier 2 logging).

Provides uniform interfaces for logging document pipeline events to a JSON Lines
file (one JSON object per line). This is the coarse, machine-readable trail of
each job: which stage it reached, which rendering path produced the artifact,
and why a job failed.

For detailed within-context logging (Tier 1), use vellum.utils.logger instead.

Usage:
    from vellum.utils.event_logging import log_pipeline_event

    log_pipeline_event(
        event_type="compile_failed",
        job_id="resume_0f3c...",
        source="rendering",
        events_file=Path("outs/logs/pipeline_events.log"),
        error_kind="compile_timeout",
    )
"""

import json
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from vellum.utils.timestamp import now_exact

load_dotenv()

_DEFAULT_EVENTS_FILE = os.getenv("PIPELINE_EVENTS_FILE")
PIPELINE_EVENTS_FILE = Path(_DEFAULT_EVENTS_FILE) if _DEFAULT_EVENTS_FILE else None


def _resolve_events_file(events_file: Optional[Path]) -> Optional[Path]:
    if events_file is not None:
        return Path(events_file)
    return PIPELINE_EVENTS_FILE


def log_pipeline_event(
    event_type: str,
    job_id: str,
    source: str,
    events_file: Optional[Path] = None,
    **extra_fields,
) -> None:
    """
    Append an event to the pipeline event log.

    Does nothing when no events file is configured (neither passed in nor set
    through PIPELINE_EVENTS_FILE).

    Args:
        event_type: Type of event (e.g., "stage_entered", "compile_failed", "document_completed")
        job_id: Job identifier the event belongs to
        source: Event source (e.g., "rendering", "generation", "cli")
        events_file: Events file path (default: PIPELINE_EVENTS_FILE env variable)
        **extra_fields: Additional event-specific fields (must be JSON serializable)
    """
    path = _resolve_events_file(events_file)
    if path is None:
        return

    path.parent.mkdir(parents=True, exist_ok=True)

    event = {
        "timestamp": now_exact(),
        "event_type": event_type,
        "job_id": job_id,
        "source": source,
        **extra_fields,
    }

    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(event, default=str) + "\n")


def get_recent_events(
    n: int = 10,
    job_id: Optional[str] = None,
    event_type: Optional[str] = None,
    events_file: Optional[Path] = None,
) -> list[dict]:
    """
    Get the last n events from the pipeline log, optionally filtered.

    Args:
        n: Number of recent events to return (default: 10)
        job_id: Filter to only events for this job (optional)
        event_type: Filter to only events of this type (optional)
        events_file: Events file path (default: PIPELINE_EVENTS_FILE env variable)

    Returns:
        List of event dicts (most recent last)

    Example:
        # Last 20 fallback renders
        events = get_recent_events(20, event_type="fallback_succeeded")
    """
    path = _resolve_events_file(events_file)
    if path is None or not path.exists():
        return []

    events = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            try:
                events.append(json.loads(line.strip()))
            except json.JSONDecodeError:
                # Skip malformed lines
                continue

    if job_id:
        events = [e for e in events if e.get("job_id") == job_id]

    if event_type:
        events = [e for e in events if e.get("event_type") == event_type]

    return events[-n:] if len(events) > n else events
