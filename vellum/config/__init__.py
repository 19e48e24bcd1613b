"""
Pipeline configuration.

Defaults live in vellum/config/pipeline.yaml. PipelineConfig.load() merges, in
order of increasing precedence:

1. Packaged defaults (pipeline.yaml)
2. An optional user YAML file with the same layout
3. Environment variables (read from .env via python-dotenv)

Environment variables:
    VELLUM_SCRATCH_ROOT, VELLUM_RETAIN_ARTIFACTS, LATEX_COMPILER,
    LATEX_COMPILE_TIMEOUT, LATEX_NUM_PASSES, RENDER_TIMEOUT, REQUEST_TIMEOUT,
    TEMPLATES_PATH, PIPELINE_EVENTS_FILE
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from omegaconf import OmegaConf

load_dotenv()

DEFAULTS_PATH = Path(__file__).parent / "pipeline.yaml"

# env variable -> dotted key in pipeline.yaml
ENV_OVERRIDES = {
    "VELLUM_SCRATCH_ROOT": "workspace.scratch_root",
    "VELLUM_RETAIN_ARTIFACTS": "workspace.retain_artifacts",
    "LATEX_COMPILER": "compiler.binary",
    "LATEX_COMPILE_TIMEOUT": "compiler.compile_timeout_s",
    "LATEX_NUM_PASSES": "compiler.num_passes",
    "RENDER_TIMEOUT": "renderer.render_timeout_s",
    "REQUEST_TIMEOUT": "pipeline.request_timeout_s",
    "TEMPLATES_PATH": "pipeline.templates_path",
    "PIPELINE_EVENTS_FILE": "pipeline.events_file",
}

DEFAULT_MARGINS = {"top": "0.5in", "right": "0.5in", "bottom": "0.5in", "left": "0.5in"}


@dataclass
class PipelineConfig:
    """
    Settings shared by the workspace, compiler, fallback renderer, and orchestrator.

    Attributes:
        scratch_root: Directory holding per-job working directories
        latex_compiler: TeX engine binary (name on PATH or absolute path)
        compile_timeout_s: Upper bound for one compile() call, all passes included
        probe_timeout_s: Upper bound for the "<binary> --version" toolchain probe
        num_passes: Compiler passes per job (2 resolves cross-references)
        render_timeout_s: Upper bound for the headless browser export
        request_timeout_s: Deadline for a whole pipeline invocation (None = unbounded)
        page_format: Page format for the fallback export (e.g. "A4", "Letter")
        margins: Page margins for the fallback export
        retain_artifacts: Keep the final PDF in the workspace after returning its bytes
        templates_path: Template store directory (None = bundled templates)
        events_file: JSON Lines file for pipeline events (None = disabled)
    """

    scratch_root: Path = Path("outs/scratch")
    latex_compiler: str = "pdflatex"
    compile_timeout_s: float = 60.0
    probe_timeout_s: float = 10.0
    num_passes: int = 1
    render_timeout_s: float = 30.0
    request_timeout_s: Optional[float] = None
    page_format: str = "A4"
    margins: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MARGINS))
    retain_artifacts: bool = True
    templates_path: Optional[Path] = None
    events_file: Optional[Path] = None

    def __post_init__(self):
        self.scratch_root = Path(self.scratch_root)
        if self.templates_path is not None:
            self.templates_path = Path(self.templates_path)
        if self.events_file is not None:
            self.events_file = Path(self.events_file)
        if self.num_passes < 1:
            raise ValueError(f"num_passes must be at least 1, got: {self.num_passes}")
        if self.compile_timeout_s <= 0 or self.render_timeout_s <= 0:
            raise ValueError("Timeouts must be positive")

    @classmethod
    def load(cls, config_path: Optional[Path] = None, use_env: bool = True) -> "PipelineConfig":
        """
        Build a config from packaged defaults, an optional YAML file, and the environment.

        Args:
            config_path: YAML file overriding packaged defaults (same layout as pipeline.yaml)
            use_env: Apply environment variable overrides (default: True)

        Returns:
            PipelineConfig instance
        """
        merged = OmegaConf.load(DEFAULTS_PATH)

        if config_path is not None:
            merged = OmegaConf.merge(merged, OmegaConf.load(config_path))

        if use_env:
            for variable, key in ENV_OVERRIDES.items():
                value = os.getenv(variable)
                if value:
                    OmegaConf.update(merged, key, _coerce(value))

        settings = OmegaConf.to_container(merged, resolve=True)
        workspace = settings["workspace"]
        compiler = settings["compiler"]
        renderer = settings["renderer"]
        pipeline = settings["pipeline"]

        return cls(
            scratch_root=Path(workspace["scratch_root"]),
            retain_artifacts=bool(workspace["retain_artifacts"]),
            latex_compiler=str(compiler["binary"]),
            compile_timeout_s=float(compiler["compile_timeout_s"]),
            probe_timeout_s=float(compiler["probe_timeout_s"]),
            num_passes=int(compiler["num_passes"]),
            render_timeout_s=float(renderer["render_timeout_s"]),
            page_format=str(renderer["page_format"]),
            margins={side: str(value) for side, value in renderer["margins"].items()},
            request_timeout_s=(
                float(pipeline["request_timeout_s"])
                if pipeline["request_timeout_s"] is not None
                else None
            ),
            templates_path=pipeline["templates_path"],
            events_file=pipeline["events_file"],
        )


def _coerce(value: str):
    """Convert env strings to bool/number where they look like one."""
    lowered = value.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for number_type in (int, float):
        try:
            return number_type(value)
        except ValueError:
            continue
    return value
