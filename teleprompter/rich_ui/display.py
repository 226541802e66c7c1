"""
Console output for teleprompter, built on Rich.
"""
import json
from typing import Any, Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..history import TestRun
from ..llm import ModelInfo
from ..service.models import Prompt
from ..template import VariableDeclaration
from ..utils import format_timestamp, truncate_string


PRIMARY = "#00d7d7"
SUCCESS = "#00ff00"
ERROR = "#ff0000"
MUTED = "#666666"

PREVIEW_LENGTH = 50


def _field(label: str, value: Any, style: str = "") -> Text:
    """Build a 'label: value' line; the value is never read as markup."""
    return Text.assemble((f"{label}:", style), f" {value}")


class Display:
    """Renders prompts, variables, models and run history to a console."""

    def __init__(self, console: Optional[Console] = None) -> None:
        """
        Initialize display.

        Args:
            console: Rich console to print to
        """
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """The Rich console."""
        return self._console

    def _table(self, title: str, *columns: str) -> Table:
        table = Table(title=title, border_style=PRIMARY, header_style="bold")
        for column in columns:
            table.add_column(column)
        return table

    def info(self, message: str) -> None:
        """Print an informational line."""
        self._console.print(Text(message))

    def success(self, message: str) -> None:
        """Print a success line."""
        self._console.print(Text(message, style=SUCCESS))

    def error(self, message: str) -> None:
        """Print an error line."""
        self._console.print(Text(f"Error: {message}", style=f"bold {ERROR}"))

    def muted(self, message: str) -> None:
        """Print a de-emphasized line."""
        self._console.print(Text(message, style=MUTED))

    def json(self, data: Any) -> None:
        """Print data as indented JSON without markup processing."""
        self._console.print_json(json.dumps(data))

    def prompts(self, prompts: list[Prompt]) -> None:
        """Render the prompt list."""
        if not prompts:
            self.muted("No active prompts found.")
            return

        table = self._table("Prompts", "ID", "Namespace", "Version", "Preview")
        for prompt in prompts:
            preview = truncate_string((prompt.prompt or "").replace("\n", " "), PREVIEW_LENGTH)
            table.add_row(Text(prompt.id), Text(prompt.namespace), str(prompt.version), Text(preview))
        self._console.print(table)

    def prompt(self, prompt: Prompt) -> None:
        """Render one prompt with its text."""
        self._console.print(_field("id", prompt.id, "bold"))
        self._console.print(_field("version", prompt.version, "bold"))
        self._console.print(_field("namespace", prompt.namespace, "bold"))
        self._console.print(Panel(
            Text((prompt.prompt or "").strip()),
            border_style=MUTED
        ))

    def versions(self, versions: list[Prompt]) -> None:
        """Render the versions of a prompt."""
        if not versions:
            self.muted("No versions found for this prompt.")
            return

        table = self._table("Versions", "Version", "Created", "Preview")
        for version in versions:
            created = format_timestamp(version.created_at) if version.created_at else ""
            preview = truncate_string((version.prompt or "").replace("\n", " "), PREVIEW_LENGTH)
            table.add_row(f"v{version.version}", created, Text(preview))
        self._console.print(table)

    def variables(self, declarations: list[VariableDeclaration]) -> None:
        """Render the variables a template needs."""
        if not declarations:
            self.muted("No variables in this template")
            return

        table = self._table("Variables", "Name", "Kind")
        for declaration in declarations:
            table.add_row(Text(declaration.name), declaration.kind.value)
        self._console.print(table)

    def models(self, models: Iterable[ModelInfo]) -> None:
        """Render available models."""
        models = list(models)
        if not models:
            self.muted("No models available. Configure a provider API key first.")
            return

        table = self._table("Models", "Model", "Provider")
        for model in models:
            table.add_row(Text(model.display_name), Text(model.provider))
        self._console.print(table)

    def history(self, runs: list[TestRun]) -> None:
        """Render a list of stored runs, newest first."""
        if not runs:
            self.muted("No test runs yet.")
            return

        table = self._table("Test History", "ID", "Date", "Prompt", "Model", "Output")
        for run in runs:
            table.add_row(
                Text(run.id[:8]),
                format_timestamp(run.timestamp),
                Text(f"{run.prompt_id} v{run.prompt_version}"),
                Text(run.model),
                Text(truncate_string(run.output.replace("\n", " "), 40)),
            )
        self._console.print(table)

    def run(self, run: TestRun) -> None:
        """Render one stored run in full."""
        self._console.print("[bold]Run Details[/bold]")
        self._console.print(_field("ID", run.id))
        self._console.print(_field("Prompt", f"{run.prompt_id} v{run.prompt_version}"))
        self._console.print(_field("Model", run.model))
        self._console.print(_field("Date", format_timestamp(run.timestamp, '%Y-%m-%d %H:%M:%S')))
        if run.variables:
            self._console.print("[bold]Variables:[/bold]")
            self._console.print_json(json.dumps(run.variables))
        self._console.print(Panel(Text(run.output), title="Output", border_style=MUTED))

    def output(self, title: str, content: str, failed: bool = False) -> None:
        """Render the output of one model."""
        self._console.print(Panel(
            Text(content),
            title=Text(title),
            border_style=ERROR if failed else PRIMARY
        ))

    def stream(self, content: str) -> None:
        """Write streamed text as it arrives."""
        self._console.print(Text(content), end="")
