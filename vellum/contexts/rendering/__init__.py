"""
Rendering Context

Responsibilities:
- Owns the scratch workspace for compilation jobs
- Compiles LaTeX to PDF with an external TeX engine
- Falls back to LaTeX -> HTML -> headless Chromium PDF when compilation fails
- Orchestrates source generation, compilation, and fallback per request
- Reports failures as typed errors with diagnostic text

Owns: Document pipeline, PDF generation, scratch file lifecycle
Never: Writes document content (generation context) or stores templates (templating context)
"""
