"""Shared fixtures: fake compiler binaries, fake pipeline collaborators, sample inputs."""

import stat
from pathlib import Path

import pytest

from vellum.config import PipelineConfig
from vellum.contexts.generation.profile_data_structure import JobDescription, Profile
from vellum.contexts.rendering.compiler import CompilationResult
from vellum.contexts.rendering.errors import RendererUnavailable
from vellum.contexts.rendering.workspace import Workspace
from vellum.contexts.templating.template_store import DocumentTemplate, InMemoryTemplateStore

FAKE_PDF = b"%PDF-1.4\n% fake document\n%%EOF\n"

MINIMAL_DOCUMENT = r"""\documentclass{article}
\begin{document}
\section*{Experience}
\textbf{Engineer} at Planet Express
\end{document}
"""

# Shell prologue shared by fake compilers: answers the toolchain probe and
# parses "-output-directory=<dir>" and "<job>.tex" from the arguments.
_PROLOGUE = r"""#!/bin/sh
if [ "$1" = "--version" ]; then
    echo "FakeTeX 3.141592653 (fake distribution)"
    exit 0
fi
outdir=.
for arg in "$@"; do
    case "$arg" in
        -output-directory=*) outdir="${arg#-output-directory=}" ;;
        *.tex) source="$arg" ;;
    esac
done
name=$(basename "$source" .tex)
"""

# Scripts used as-is, without the prologue
FAKE_COMPILER_SCRIPTS = {
    # Hangs on every invocation, the "--version" probe included
    "hangs_on_probe": "#!/bin/sh\nsleep 120\n",
}

FAKE_COMPILER_BODIES = {
    # Exits non-zero but still writes a PDF (recoverable LaTeX errors)
    "writes_pdf_exit_1": r"""
printf '%%PDF-1.4\n%% fake\n%%%%EOF\n' > "$outdir/$name.pdf"
echo "LaTeX Warning: Reference undefined." > "$outdir/$name.log"
echo "aux" > "$outdir/$name.aux"
echo "out" > "$outdir/$name.out"
exit 1
""",
    # Clean run
    "writes_pdf": r"""
printf '%%PDF-1.4\n%% fake\n%%%%EOF\n' > "$outdir/$name.pdf"
echo "Output written on $name.pdf" > "$outdir/$name.log"
echo "aux" > "$outdir/$name.aux"
exit 0
""",
    # Fails without output
    "fails": r"""
echo "./$name.tex:3: Undefined control sequence." > "$outdir/$name.log"
echo "! Emergency stop." >> "$outdir/$name.log"
echo "aux" > "$outdir/$name.aux"
echo "compilation aborted" >&2
exit 1
""",
    # Never finishes
    "hangs": r"""
sleep 120
""",
}


@pytest.fixture
def fake_compiler(tmp_path):
    """Factory: write a fake TeX engine script and return its path."""

    def make(behavior: str) -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        script = bin_dir / f"fake-latex-{behavior}"
        if behavior in FAKE_COMPILER_SCRIPTS:
            script.write_text(FAKE_COMPILER_SCRIPTS[behavior])
        else:
            script.write_text(_PROLOGUE + FAKE_COMPILER_BODIES[behavior])
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return make


@pytest.fixture
def make_config(tmp_path):
    """Factory: PipelineConfig rooted in tmp_path, with keyword overrides."""

    def make(**overrides) -> PipelineConfig:
        settings = {
            "scratch_root": tmp_path / "scratch",
            "latex_compiler": str(tmp_path / "bin" / "no-such-latex"),
            "compile_timeout_s": 10.0,
            "probe_timeout_s": 5.0,
            "render_timeout_s": 10.0,
            "events_file": tmp_path / "events.log",
        }
        settings.update(overrides)
        return PipelineConfig(**settings)

    return make


@pytest.fixture
def workspace(tmp_path):
    return Workspace(tmp_path / "scratch")


@pytest.fixture
def profile():
    return Profile.from_dict(
        {
            "name": "Philip J. Fry",
            "email": "fry@planetexpress.com",
            "title": "Delivery Boy",
            "skills": ["Piloting", "Pizza delivery"],
            "experience": [
                {
                    "company": "Planet Express",
                    "position": "Delivery Boy",
                    "startDate": "3000-01-01",
                    "description": "Interplanetary deliveries",
                    "achievements": ["Delivered to the Moon"],
                }
            ],
            "education": [],
        }
    )


@pytest.fixture
def job():
    return JobDescription.from_dict(
        {
            "title": "Senior Delivery Engineer",
            "company": "MomCorp",
            "description": "Deliver packages across the galaxy",
            "requirements": ["Piloting"],
            "responsibilities": ["Deliveries"],
        }
    )


@pytest.fixture
def template_store():
    return InMemoryTemplateStore(
        [
            DocumentTemplate(
                template_id="classic",
                name="Classic",
                skeleton_source=MINIMAL_DOCUMENT,
            )
        ]
    )


class FakeCollaborator:
    """Returns canned responses and records calls."""

    def __init__(self, source_text=MINIMAL_DOCUMENT, questions=None, error=None):
        self.source_text = source_text
        self.questions = questions or []
        self.error = error
        self.calls = []

    def generate_source(self, profile, job, answers, skeleton):
        self.calls.append(("generate_source", answers, skeleton))
        if self.error:
            raise self.error
        return self.source_text

    def generate_cover_letter_source(self, profile, job, resume_summary=None, tone="professional", skeleton=None):
        self.calls.append(("generate_cover_letter_source", tone, skeleton))
        if self.error:
            raise self.error
        return self.source_text

    def generate_questions(self, profile, job):
        self.calls.append(("generate_questions",))
        if self.error:
            raise self.error
        return self.questions


class FakeRenderer:
    """Fallback renderer double: returns fixed bytes or raises, counting calls."""

    def __init__(self, pdf_bytes=FAKE_PDF, error=None, on_render=None):
        self.pdf_bytes = pdf_bytes
        self.error = error
        self.on_render = on_render
        self.calls = []

    def render(self, source_text, timeout=None):
        self.calls.append((source_text, timeout))
        if self.on_render:
            self.on_render()
        if self.error:
            raise self.error
        return self.pdf_bytes

    def browser_executable(self):
        return None if self.error else Path("/fake/chromium")


class FakeCompiler:
    """Compiler double returning a fixed CompilationResult."""

    binary = "fake-latex"

    def __init__(self, workspace, result=None, on_compile=None):
        self.workspace = workspace
        self.result = result
        self.on_compile = on_compile
        self.requests = []

    def compile(self, request, timeout=None):
        self.requests.append((request, timeout))
        if self.on_compile:
            self.on_compile()
        if self.result is not None:
            return self.result
        self.workspace.create()
        self.workspace.write_input(request.job_id, request.source_text, request.auxiliary_file)
        artifact = self.workspace.artifact_path(request.job_id)
        artifact.write_bytes(FAKE_PDF)
        return CompilationResult.succeeded(artifact, diagnostic_log="fake log")

    def toolchain_version(self):
        return None if self.result is not None and not self.result.success else "FakeTeX 1.0"


@pytest.fixture
def failed_compilation():
    return CompilationResult.failed(
        "compile_failure",
        "Undefined control sequence.",
        diagnostic_log="! Undefined control sequence.\nl.3 \\badmacro",
    )


@pytest.fixture
def unavailable_renderer():
    return FakeRenderer(error=RendererUnavailable("Headless browser failed to start"))
