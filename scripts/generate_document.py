#!/usr/bin/env python3
"""
Document Generation CLI

Generates tailored resumes and cover letters through the document pipeline
(AI source generation -> LaTeX compilation -> HTML fallback).

Commands:
    generate     - Generate a resume PDF for a profile and job
    cover-letter - Generate a cover letter PDF
    compile      - Compile a LaTeX file (with optional HTML fallback)
    questions    - Generate clarifying questions as JSON
    ats          - Score a resume PDF against a job description
    status       - Report toolchain, fallback, LLM, and template availability
    templates    - List available document templates
    events       - Show recent pipeline events

Profiles, job descriptions, and answers are YAML or JSON files.

Examples:\n

    generate_document.py generate profile.yaml job.yaml -t modern -o resume.pdf

    generate_document.py cover-letter profile.yaml job.yaml --tone enthusiastic

    generate_document.py compile draft.tex --fallback

    generate_document.py status
"""

import json
import os
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from omegaconf import OmegaConf
from typing_extensions import Annotated

from vellum.config import PipelineConfig
from vellum.contexts.generation.logger import setup_generation_logger
from vellum.contexts.generation.profile_data_structure import JobDescription, Profile
from vellum.contexts.rendering.compiler import CompilationRequest
from vellum.contexts.rendering.errors import PipelineError
from vellum.contexts.rendering.logger import setup_rendering_logger
from vellum.contexts.rendering.pipeline import build_pipeline, new_job_id
from vellum.contexts.rendering.workspace import AuxiliaryFile
from vellum.contexts.templating.logger import setup_templating_logger
from vellum.utils.event_logging import get_recent_events
from vellum.utils.pdf_processing import extract_text
from vellum.utils.timestamp import format_timestamp, now

load_dotenv()
LOGS_DIR = Path(os.getenv("LOGS_DIR", "outs/logs"))

app = typer.Typer(
    help="Generate resumes and cover letters with LaTeX and an HTML fallback",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def load_data(path: Path) -> dict:
    """Load a YAML or JSON file into a plain dict."""
    if not path.is_file():
        typer.secho(f"Error: file not found: {path}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return OmegaConf.to_container(OmegaConf.load(path), resolve=True) or {}


def load_inputs(profile_path: Path, job_path: Path) -> tuple[Profile, JobDescription]:
    try:
        return Profile.from_dict(load_data(profile_path)), JobDescription.from_dict(load_data(job_path))
    except ValueError as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def fail(error: PipelineError, verbose: bool = False) -> None:
    """Print a pipeline error as JSON on stdout and exit 1."""
    payload = error.to_dict()
    if not verbose:
        payload["diagnostic_log"] = payload["diagnostic_log"][-2000:]
    typer.secho(f"✗ {error.kind}: {error.message}", fg=typer.colors.RED, bold=True, err=True)
    typer.echo(json.dumps(payload, indent=2))
    raise typer.Exit(code=1)


def write_pdf(pdf_bytes: bytes, output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(pdf_bytes)
    typer.secho(f"✓ Wrote {output} ({len(pdf_bytes)} bytes)", fg=typer.colors.GREEN, bold=True, err=True)


def start_session(config: PipelineConfig, context: str = "render") -> Path:
    log_dir = LOGS_DIR / f"{context}_{now()}"
    if context == "generate":
        return setup_generation_logger(log_dir)
    if context == "template":
        return setup_templating_logger(log_dir, templates_path=config.templates_path)
    return setup_rendering_logger(log_dir, latex_compiler=config.latex_compiler)


ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="YAML file overriding vellum/config/pipeline.yaml"),
]
TimeoutOption = Annotated[
    Optional[float],
    typer.Option("--timeout", help="Request deadline in seconds (default: from config)"),
]


@app.command("generate")
def generate_command(
    profile_path: Annotated[Path, typer.Argument(help="Profile YAML/JSON")],
    job_path: Annotated[Path, typer.Argument(help="Job description YAML/JSON")],
    template_id: Annotated[str, typer.Option("--template", "-t", help="Template id")] = "classic",
    answers_path: Annotated[
        Optional[Path], typer.Option("--answers", "-a", help="Answers to clarifying questions (YAML/JSON)")
    ] = None,
    source_path: Annotated[
        Optional[Path], typer.Option("--source", "-s", help="Render this LaTeX file instead of generating one")
    ] = None,
    output: Annotated[Path, typer.Option("--output", "-o", help="Output PDF path")] = Path("resume.pdf"),
    timeout: TimeoutOption = None,
    config_path: ConfigOption = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Include the full diagnostic log on failure")] = False,
):
    """
    Generate a tailored resume PDF.

    Examples:\n

        $ generate_document.py generate profile.yaml job.yaml                  # Classic template

        $ generate_document.py generate profile.yaml job.yaml -t modern -a answers.yaml

        $ generate_document.py generate profile.yaml job.yaml -s draft.tex     # Skip the AI step
    """
    config = PipelineConfig.load(config_path)
    start_session(config)
    profile, job = load_inputs(profile_path, job_path)
    answers = load_data(answers_path) if answers_path else None
    source = source_path.read_text(encoding="utf-8") if source_path else None

    typer.secho(f"\nGenerating resume: {profile.name} -> {job.title} ({template_id})", fg=typer.colors.BLUE, bold=True, err=True)

    try:
        pdf_bytes = build_pipeline(config).produce_document(
            profile, job, template_id, answers=answers, source_override=source, timeout=timeout
        )
    except PipelineError as e:
        fail(e, verbose)

    write_pdf(pdf_bytes, output)


@app.command("cover-letter")
def cover_letter_command(
    profile_path: Annotated[Path, typer.Argument(help="Profile YAML/JSON")],
    job_path: Annotated[Path, typer.Argument(help="Job description YAML/JSON")],
    tone: Annotated[str, typer.Option("--tone", help="professional, formal, or enthusiastic")] = "professional",
    resume_summary: Annotated[Optional[str], typer.Option("--summary", help="Resume summary to draw on")] = None,
    template_id: Annotated[Optional[str], typer.Option("--template", "-t", help="Layout template id")] = "letter",
    output: Annotated[Path, typer.Option("--output", "-o", help="Output PDF path")] = Path("cover_letter.pdf"),
    timeout: TimeoutOption = None,
    config_path: ConfigOption = None,
):
    """
    Generate a cover letter PDF.

    Examples:\n

        $ generate_document.py cover-letter profile.yaml job.yaml --tone formal
    """
    config = PipelineConfig.load(config_path)
    start_session(config)
    profile, job = load_inputs(profile_path, job_path)

    try:
        pdf_bytes = build_pipeline(config).produce_cover_letter(
            profile, job, resume_summary=resume_summary, tone=tone, template_id=template_id, timeout=timeout
        )
    except PipelineError as e:
        fail(e)

    write_pdf(pdf_bytes, output)


@app.command("compile")
def compile_command(
    source_path: Annotated[Path, typer.Argument(help="LaTeX source file")],
    auxiliary_path: Annotated[
        Optional[Path], typer.Option("--aux", help="File compiled alongside the source (e.g., resume.cls)")
    ] = None,
    fallback: Annotated[bool, typer.Option("--fallback", "-f", help="Render through HTML if compilation fails")] = False,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Output PDF path")] = None,
    config_path: ConfigOption = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show compiler errors and warnings")] = False,
):
    """
    Compile a LaTeX file to PDF.

    Examples:\n

        $ generate_document.py compile draft.tex                       # LaTeX only

        $ generate_document.py compile draft.tex --aux resume.cls -f   # With class file and fallback
    """
    config = PipelineConfig.load(config_path)
    start_session(config)
    pipeline = build_pipeline(config)

    source = source_path.read_text(encoding="utf-8")
    auxiliary = (
        AuxiliaryFile(auxiliary_path.name, auxiliary_path.read_text(encoding="utf-8"))
        if auxiliary_path
        else None
    )
    output = output or source_path.with_suffix(".pdf")

    try:
        request = CompilationRequest(source_text=source, job_id=new_job_id("compile"), auxiliary_file=auxiliary)
        result = pipeline.compiler.compile(request)
    except PipelineError as e:
        fail(e, verbose)

    if result.success:
        typer.secho("✓ Compilation succeeded", fg=typer.colors.GREEN, bold=True, err=True)
        typer.echo(f"  Warnings: {len(result.warnings)}", err=True)
        if verbose:
            for warning in result.warnings[:10]:
                typer.echo(f"  - {warning}", err=True)
        write_pdf(pipeline.workspace.read_artifact(result.artifact_path), output)
        if not config.retain_artifacts:
            pipeline.workspace.purge(request.job_id)
        return

    typer.secho(f"✗ Compilation failed: {result.error_kind}", fg=typer.colors.RED, bold=True, err=True)
    for error in result.errors[:10]:
        typer.secho(f"  - {error}", fg=typer.colors.RED, err=True)

    if not fallback:
        fail(result.to_error(), verbose)

    try:
        pdf_bytes = pipeline.renderer.render(source)
    except PipelineError as e:
        fail(e, verbose)
    write_pdf(pdf_bytes, output)


@app.command("questions")
def questions_command(
    profile_path: Annotated[Path, typer.Argument(help="Profile YAML/JSON")],
    job_path: Annotated[Path, typer.Argument(help="Job description YAML/JSON")],
    config_path: ConfigOption = None,
):
    """
    Print clarifying questions for a profile and job as JSON.

    Examples:\n

        $ generate_document.py questions profile.yaml job.yaml > questions.json
    """
    config = PipelineConfig.load(config_path)
    start_session(config, context="generate")
    profile, job = load_inputs(profile_path, job_path)

    try:
        questions = build_pipeline(config).prepare_questions(profile, job)
    except PipelineError as e:
        fail(e)

    typer.echo(json.dumps([question.to_dict() for question in questions], indent=2))


@app.command("ats")
def ats_command(
    resume_pdf: Annotated[Path, typer.Argument(help="Resume PDF")],
    job_path: Annotated[Path, typer.Argument(help="Job description YAML/JSON")],
    config_path: ConfigOption = None,
):
    """
    Score a resume PDF against a job description (ATS keyword analysis).

    Examples:\n

        $ generate_document.py ats resume.pdf job.yaml
    """
    config = PipelineConfig.load(config_path)
    start_session(config, context="generate")
    try:
        job = JobDescription.from_dict(load_data(job_path))
    except ValueError as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    resume_text = extract_text(resume_pdf)
    if not resume_text.strip():
        typer.secho(f"Error: no text found in {resume_pdf}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        analysis = build_pipeline(config).collaborator.analyze_ats(resume_text, job)
    except PipelineError as e:
        fail(e)

    typer.echo(json.dumps(analysis.to_dict(), indent=2))


@app.command("status")
def status_command(config_path: ConfigOption = None):
    """
    Report which rendering paths and services are available.

    Exits 1 when neither LaTeX nor the HTML fallback can produce documents.
    """
    config = PipelineConfig.load(config_path)
    status = build_pipeline(config).check_status()
    typer.echo(json.dumps(status, indent=2))

    if not status["latex"]["installed"]:
        typer.secho("⚠ LaTeX not installed (HTML fallback only)", fg=typer.colors.YELLOW, err=True)
    raise typer.Exit(code=0 if status["latex"]["installed"] or status["fallback"]["available"] else 1)


@app.command("templates")
def templates_command(config_path: ConfigOption = None):
    """
    List available document templates.

    Examples:\n

        $ generate_document.py templates
    """
    config = PipelineConfig.load(config_path)
    start_session(config, context="template")
    templates = build_pipeline(config).template_store.list_templates()

    if not templates:
        typer.secho("No templates found", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    for template in templates:
        typer.echo(f"{template.template_id:<12} {template.category:<14} {template.description}")


@app.command("events")
def events_command(
    n: Annotated[int, typer.Option("--num", "-n", help="Number of recent events to show")] = 10,
    job_id: Annotated[Optional[str], typer.Option("--job", "-j", help="Filter to events for this job")] = None,
    event_type: Annotated[Optional[str], typer.Option("--event-type", "-e", help="Filter to events of this type")] = None,
    relative: Annotated[bool, typer.Option("--relative", "-r", help="Show relative timestamps")] = False,
    config_path: ConfigOption = None,
):
    """
    Show the last n pipeline events.

    Examples:\n

        $ generate_document.py events -n 20

        $ generate_document.py events -e compile_failed
    """
    config = PipelineConfig.load(config_path)
    if config.events_file is None:
        typer.secho("No events file configured (set PIPELINE_EVENTS_FILE)", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    events = get_recent_events(n=n, job_id=job_id, event_type=event_type, events_file=config.events_file)
    if not events:
        typer.secho("No events found", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    for event in events:
        event["timestamp"] = format_timestamp(event["timestamp"], relative=relative)
        typer.echo(json.dumps(event))


if __name__ == "__main__":
    app()
