"""Unit tests for the document pipeline orchestrator (all collaborators are doubles)."""

import json

import pytest
from conftest import (
    FAKE_PDF,
    MINIMAL_DOCUMENT,
    FakeCollaborator,
    FakeCompiler,
    FakeRenderer,
)

from vellum.contexts.rendering.compiler import CompilationResult
from vellum.contexts.rendering.errors import (
    DocumentGenerationError,
    InvalidGeneratedSource,
    InvalidRequestError,
    PipelineTimeout,
    TemplateNotFoundError,
    UpstreamUnavailable,
)
from vellum.contexts.rendering.pipeline import (
    Deadline,
    DocumentPipeline,
    PipelineStage,
    extract_document_source,
    new_job_id,
)
from vellum.contexts.rendering.workspace import AuxiliaryFile
from vellum.contexts.templating.template_store import DocumentTemplate
from vellum.utils.event_logging import get_recent_events

HTML_PDF = b"%PDF-1.4\nfrom the html fallback\n%%EOF"


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def build(workspace, template_store, make_config):
    """Factory for a pipeline wired with doubles."""

    def make(collaborator=None, compiler=None, renderer=None, **config_overrides):
        config = make_config(**config_overrides)
        return DocumentPipeline(
            collaborator=collaborator or FakeCollaborator(),
            template_store=template_store,
            compiler=compiler or FakeCompiler(workspace),
            renderer=renderer or FakeRenderer(HTML_PDF),
            workspace=workspace,
            config=config,
        )

    return make


# --- Source extraction ---


@pytest.mark.unit
def test_extract_document_source_strips_fences_and_chatter():
    raw = "Here is your resume:\n```latex\n" + MINIMAL_DOCUMENT + "```\nGood luck!"

    source = extract_document_source(raw)

    assert source.startswith(r"\documentclass{article}")
    assert source.rstrip().endswith(r"\end{document}")
    assert "```" not in source
    assert "Good luck" not in source


@pytest.mark.unit
def test_extract_document_source_without_preamble():
    source = extract_document_source("intro \\begin{document}Hi\\end{document} outro")

    assert source == "\\begin{document}Hi\\end{document}\n"


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw",
    [
        "\\documentclass{article}\\begin{document}Hi",
        "Hi\\end{document}",
        "\\end{document} then \\begin{document}",
        "",
    ],
)
def test_extract_document_source_requires_both_markers(raw):
    with pytest.raises(InvalidGeneratedSource) as exc_info:
        extract_document_source(raw)

    assert exc_info.value.raw_text == raw
    assert exc_info.value.kind == "invalid_generated_source"


# --- Deadline ---


@pytest.mark.unit
def test_unbounded_deadline():
    deadline = Deadline(None)

    assert deadline.remaining() is None
    assert not deadline.expired
    assert deadline.bound(60.0) == 60.0


@pytest.mark.unit
def test_deadline_clamps_and_expires():
    clock = FakeClock()
    deadline = Deadline(10.0, clock=clock)

    assert deadline.bound(60.0) == 10.0
    assert deadline.bound(5.0) == 5.0

    clock.advance(7.5)
    assert deadline.bound(60.0) == pytest.approx(2.5)

    clock.advance(5.0)
    assert deadline.expired
    with pytest.raises(PipelineTimeout):
        deadline.bound(60.0, stage="compilation")


@pytest.mark.unit
def test_job_ids_are_unique_and_prefixed():
    first, second = new_job_id("resume"), new_job_id("resume")

    assert first != second
    assert first.startswith("resume_")
    with pytest.raises(InvalidRequestError):
        new_job_id("../resume")


# --- State machine ---


@pytest.mark.unit
def test_compile_success_returns_compiled_bytes(build, profile, job, workspace):
    renderer = FakeRenderer(HTML_PDF)
    compiler = FakeCompiler(workspace)
    pipeline = build(compiler=compiler, renderer=renderer)

    pdf_bytes = pipeline.produce_document(profile, job, "classic")

    assert pdf_bytes == FAKE_PDF
    assert renderer.calls == []
    request, _ = compiler.requests[0]
    assert request.job_id.startswith("resume_")
    assert workspace.artifact_path(request.job_id).exists()


@pytest.mark.unit
def test_collaborator_receives_answers_and_skeleton(build, profile, job):
    collaborator = FakeCollaborator()
    pipeline = build(collaborator=collaborator)

    pipeline.produce_document(profile, job, "classic", answers={"Years of piloting?": "5"})

    name, answers, skeleton = collaborator.calls[0]
    assert name == "generate_source"
    assert answers == {"Years of piloting?": "5"}
    assert skeleton == MINIMAL_DOCUMENT


@pytest.mark.unit
def test_fallback_runs_once_on_compile_failure(build, profile, job, workspace, failed_compilation):
    renderer = FakeRenderer(HTML_PDF)
    pipeline = build(compiler=FakeCompiler(workspace, result=failed_compilation), renderer=renderer)

    pdf_bytes = pipeline.produce_document(profile, job, "classic")

    assert pdf_bytes == HTML_PDF
    assert len(renderer.calls) == 1


@pytest.mark.unit
def test_fallback_receives_same_source(build, profile, job, workspace, failed_compilation):
    wrapped = "```latex\n" + MINIMAL_DOCUMENT + "```"
    compiler = FakeCompiler(workspace, result=failed_compilation)
    renderer = FakeRenderer(HTML_PDF)
    pipeline = build(collaborator=FakeCollaborator(wrapped), compiler=compiler, renderer=renderer)

    pipeline.produce_document(profile, job, "classic")

    compiled_source = compiler.requests[0][0].source_text
    assert renderer.calls[0][0] == compiled_source
    assert compiled_source == extract_document_source(wrapped)


@pytest.mark.unit
def test_both_paths_failing_is_one_composite_error(
    build, profile, job, workspace, failed_compilation, unavailable_renderer
):
    pipeline = build(compiler=FakeCompiler(workspace, result=failed_compilation), renderer=unavailable_renderer)

    with pytest.raises(DocumentGenerationError) as exc_info:
        pipeline.produce_document(profile, job, "classic")

    error = exc_info.value
    assert error.kind == "renderer_unavailable"
    assert "Undefined control sequence." in error.message
    assert "Headless browser failed to start" in error.message
    assert error.diagnostic_log == failed_compilation.diagnostic_log
    assert [cause.kind for cause in error.causes] == ["compile_failure", "renderer_unavailable"]


@pytest.mark.unit
def test_invalid_generated_source_never_compiles(build, profile, job, workspace):
    compiler = FakeCompiler(workspace)
    renderer = FakeRenderer(HTML_PDF)
    raw = "\\documentclass{article}\\begin{document}cut off mid-sen"
    pipeline = build(collaborator=FakeCollaborator(raw), compiler=compiler, renderer=renderer)

    with pytest.raises(InvalidGeneratedSource) as exc_info:
        pipeline.produce_document(profile, job, "classic")

    assert exc_info.value.raw_text == raw
    assert compiler.requests == []
    assert renderer.calls == []


@pytest.mark.unit
def test_upstream_failure_is_surfaced(build, profile, job, workspace):
    compiler = FakeCompiler(workspace)
    pipeline = build(collaborator=FakeCollaborator(error=UpstreamUnavailable("quota exceeded")), compiler=compiler)

    with pytest.raises(UpstreamUnavailable):
        pipeline.produce_document(profile, job, "classic")

    assert compiler.requests == []


@pytest.mark.unit
def test_unknown_template(build, profile, job):
    with pytest.raises(TemplateNotFoundError):
        build().produce_document(profile, job, "no-such-template")


@pytest.mark.unit
def test_source_override_skips_collaborator(build, profile, job, workspace):
    collaborator = FakeCollaborator()
    compiler = FakeCompiler(workspace)
    pipeline = build(collaborator=collaborator, compiler=compiler)

    pipeline.produce_document(profile, job, "classic", source_override="\\documentclass{article}")

    assert collaborator.calls == []
    assert compiler.requests[0][0].source_text == "\\documentclass{article}"


@pytest.mark.unit
def test_empty_source_override_is_invalid_request(build, profile, job, workspace):
    compiler = FakeCompiler(workspace)
    pipeline = build(compiler=compiler)

    with pytest.raises(InvalidRequestError):
        pipeline.produce_document(profile, job, "classic", source_override="   ")

    assert compiler.requests == []


@pytest.mark.unit
def test_template_auxiliary_file_is_compiled_alongside(build, profile, job, workspace, template_store):
    template_store.add(
        DocumentTemplate(
            template_id="modern",
            name="Modern",
            skeleton_source=MINIMAL_DOCUMENT,
            auxiliary_file=AuxiliaryFile("resume.cls", "\\ProvidesClass{resume}"),
        )
    )
    compiler = FakeCompiler(workspace)

    build(compiler=compiler).produce_document(profile, job, "modern")

    assert compiler.requests[0][0].auxiliary_file.name == "resume.cls"


@pytest.mark.unit
def test_artifacts_purged_when_not_retained(build, profile, job, workspace):
    compiler = FakeCompiler(workspace)
    pipeline = build(compiler=compiler, retain_artifacts=False)

    assert pipeline.produce_document(profile, job, "classic") == FAKE_PDF

    job_id = compiler.requests[0][0].job_id
    assert not workspace.job_dir(job_id).exists()


@pytest.mark.unit
def test_compile_timeout_bounded_by_request_deadline(build, profile, job, workspace):
    compiler = FakeCompiler(workspace)
    pipeline = build(compiler=compiler, compile_timeout_s=60.0)

    pipeline.produce_document(profile, job, "classic", timeout=5.0)

    _, timeout = compiler.requests[0]
    assert 0 < timeout <= 5.0


@pytest.mark.unit
def test_deadline_expiring_during_compile_skips_fallback(build, profile, job, workspace, failed_compilation):
    renderer = FakeRenderer(HTML_PDF)
    compiler = FakeCompiler(workspace, result=failed_compilation, on_compile=lambda: _sleep(0.2))
    pipeline = build(compiler=compiler, renderer=renderer)

    with pytest.raises(PipelineTimeout) as exc_info:
        pipeline.produce_document(profile, job, "classic", timeout=0.1)

    assert renderer.calls == []
    assert exc_info.value.kind == "timeout"
    assert exc_info.value.diagnostic_log == failed_compilation.diagnostic_log


@pytest.mark.unit
def test_deadline_expiring_during_fallback(build, profile, job, workspace, failed_compilation):
    renderer = FakeRenderer(HTML_PDF, on_render=lambda: _sleep(0.3))
    pipeline = build(compiler=FakeCompiler(workspace, result=failed_compilation), renderer=renderer)

    with pytest.raises(PipelineTimeout):
        pipeline.produce_document(profile, job, "classic", timeout=0.2)

    assert len(renderer.calls) == 1


@pytest.mark.unit
def test_deadline_expiring_after_compile_leaves_no_artifact(build, profile, job, workspace):
    compiler = FakeCompiler(workspace, on_compile=lambda: _sleep(0.2))
    pipeline = build(compiler=compiler)

    with pytest.raises(PipelineTimeout):
        pipeline.produce_document(profile, job, "classic", timeout=0.1)

    job_id = compiler.requests[0][0].job_id
    assert not workspace.job_dir(job_id).exists()


def _sleep(seconds):
    import time

    time.sleep(seconds)


# --- Events ---


@pytest.mark.unit
def test_stage_events_for_fallback_path(build, profile, job, workspace, failed_compilation, tmp_path):
    pipeline = build(compiler=FakeCompiler(workspace, result=failed_compilation))

    pipeline.produce_document(profile, job, "classic")

    events = get_recent_events(n=50, events_file=tmp_path / "events.log")
    stages = [e["stage"] for e in events if e["event_type"] == "stage_entered"]
    assert stages == [
        PipelineStage.START.value,
        PipelineStage.OBTAIN_SOURCE.value,
        PipelineStage.COMPILE.value,
        PipelineStage.FALLBACK.value,
        PipelineStage.DONE.value,
    ]
    done = events[-1]
    assert done["path"] == "html"
    assert done["size_bytes"] == len(HTML_PDF)
    assert len({e["job_id"] for e in events}) == 1
    assert any(e["event_type"] == "compile_failed" and e["error_kind"] == "compile_failure" for e in events)


@pytest.mark.unit
def test_fatal_stage_event(build, profile, job, tmp_path):
    pipeline = build(collaborator=FakeCollaborator("no document here"))

    with pytest.raises(InvalidGeneratedSource):
        pipeline.produce_document(profile, job, "classic")

    last = get_recent_events(n=1, events_file=tmp_path / "events.log")[0]
    assert last["stage"] == "fatal"
    assert last["error_kind"] == "invalid_generated_source"
    json.dumps(last)


# --- Cover letters, questions, status ---


@pytest.mark.unit
def test_cover_letter(build, profile, job, workspace):
    collaborator = FakeCollaborator()
    compiler = FakeCompiler(workspace)
    pipeline = build(collaborator=collaborator, compiler=compiler)

    pdf_bytes = pipeline.produce_cover_letter(profile, job, tone="enthusiastic")

    assert pdf_bytes == FAKE_PDF
    assert collaborator.calls[0] == ("generate_cover_letter_source", "enthusiastic", None)
    assert compiler.requests[0][0].job_id.startswith("cover_letter_")


@pytest.mark.unit
def test_cover_letter_with_template(build, profile, job):
    collaborator = FakeCollaborator()

    build(collaborator=collaborator).produce_cover_letter(profile, job, template_id="classic")

    assert collaborator.calls[0][2] == MINIMAL_DOCUMENT


@pytest.mark.unit
def test_cover_letter_rejects_unknown_tone(build, profile, job):
    collaborator = FakeCollaborator()

    with pytest.raises(InvalidRequestError):
        build(collaborator=collaborator).produce_cover_letter(profile, job, tone="sarcastic")

    assert collaborator.calls == []


@pytest.mark.unit
def test_prepare_questions_normalizes(build, profile, job):
    raw = [
        {"question": "Which tools?", "input_type": "select", "options": ["Git", "Docker"]},
        {"text": "Biggest win?", "inputType": "textarea", "required": True},
        {"label": "", "type": "text"},
    ]
    pipeline = build(collaborator=FakeCollaborator(questions=raw))

    questions = pipeline.prepare_questions(profile, job)

    assert [q.text for q in questions] == ["Which tools?", "Biggest win?"]
    assert questions[0].input_type == "multiselect"
    assert questions[1].required is True


@pytest.mark.unit
def test_check_status(build, workspace):
    status = build().check_status()

    assert status["latex"] == {"installed": True, "compiler": "fake-latex", "version": "FakeTeX 1.0"}
    assert status["fallback"]["available"] is True
    assert status["templates"]["count"] == 1
    assert status["llm"]["provider"] in ("openai", "anthropic")
    assert isinstance(status["llm"]["api_key_configured"], bool)
    assert status["scratch_root"] == str(workspace.root)
