"""
Outcome Renderer - turns an EvaluationOutcome into user-facing text
using Jinja2 templates.

Success renders the captured output untouched; failures render as
compiler-style diagnostics or a one-line cause.
"""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .models import (
    CompileFailure,
    EvaluationOutcome,
    ExecutionFailure,
    OutcomeStatus,
    Success,
)


class OutcomeRenderer:
    """Render evaluation outcomes for display."""

    TEMPLATE_MAP = {
        OutcomeStatus.SUCCESS: "success.txt.j2",
        OutcomeStatus.COMPILE_FAILURE: "compile_failure.txt.j2",
        OutcomeStatus.EXECUTION_FAILURE: "execution_failure.txt.j2",
    }

    def __init__(self, templates_dir: Path | str | None = None):
        if templates_dir is None:
            templates_dir = Path(__file__).parent / "templates"

        self.templates_dir = Path(templates_dir)
        self._env = None

    @property
    def env(self) -> Environment:
        """Lazy initialization of Jinja2 environment."""
        if self._env is None:
            self._env = Environment(
                loader=FileSystemLoader(self.templates_dir),
                autoescape=select_autoescape(['html', 'xml']),
                trim_blocks=True,
                lstrip_blocks=True,
            )
        return self._env

    def render(self, outcome: EvaluationOutcome) -> str:
        """
        Render an outcome to text.

        Args:
            outcome: Result of Evaluator.evaluate()

        Returns:
            The captured output for Success, otherwise error text
        """
        if not isinstance(outcome, (Success, CompileFailure, ExecutionFailure)):
            raise TypeError(f"Not an evaluation outcome: {outcome!r}")

        template = self.env.get_template(self.TEMPLATE_MAP[outcome.status])
        context = {"outcome": outcome}

        if isinstance(outcome, CompileFailure):
            source = outcome.report.source_path
            context["report"] = outcome.report
            context["source_name"] = source.name if source else "<source>"

        return template.render(**context)
