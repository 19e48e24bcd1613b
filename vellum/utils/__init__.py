"""
Shared utilities for VELLUM.

Common functionality used across contexts:
- Logging (Tier 1 loguru sinks, Tier 2 pipeline events)
- LLM provider access
- PDF inspection
- Timestamps
"""

from vellum.utils.timestamp import format_timestamp, now, now_exact

__all__ = ["format_timestamp", "now", "now_exact"]
