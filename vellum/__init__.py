"""
VELLUM - resume and cover letter builder with an AI-assisted document pipeline

Turns a user profile and a job description into a compiled PDF. LaTeX source is
written by an LLM (or supplied directly), compiled with an external TeX engine,
and rendered through headless Chromium when the TeX toolchain fails.

Architecture:
- Generation Context: LLM-backed content (LaTeX source, clarifying questions, ATS analysis)
- Templating Context: Document template storage and lookup
- Rendering Context: Workspace management, LaTeX compilation, HTML fallback, orchestration
"""

__version__ = "0.1.0"
