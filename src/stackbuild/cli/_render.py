"""Terminal rendering of scheduler progress."""

from __future__ import annotations

import typer

from stackbuild.exceptions import AggregateTaskError, TaskError
from stackbuild.scheduler import NodeState

_STATE_STYLES: dict[NodeState, tuple[str, str]] = {
    NodeState.RUNNING: ("…", typer.colors.CYAN),
    NodeState.SUCCEEDED: ("✓", typer.colors.GREEN),
    NodeState.FAILED: ("✗", typer.colors.RED),
    NodeState.SKIPPED: ("↷", typer.colors.YELLOW),
}


class TyperProgressSink:
    """Renders task states and progress lines with `typer.echo`.

    In CI mode output is plain, every line prefixed with its task title and no
    colors. Otherwise states are colored and progress lines indented beneath
    their task. Lines of collapsed nodes are held back while the node runs and
    only printed if it fails.
    """

    def __init__(self, ci: bool = False) -> None:
        self.ci = ci
        self._held: dict[str, list[str]] = {}

    def on_update(self, title: str, line: str) -> None:
        if self.ci:
            typer.echo(f"[{title}] {line}")
        elif title in self._held:
            self._held[title].append(line)
        else:
            typer.secho(f"    {line}", dim=True)

    def on_error(self, title: str, error: BaseException) -> None:
        # rendered once, after the run, by report_failure()
        pass

    def on_state(self, title: str, state: NodeState, collapse: bool = True) -> None:
        if state == NodeState.PLANNED:
            return
        if self.ci:
            typer.echo(f"[{title}] {state}")
            return
        if state == NodeState.RUNNING and collapse:
            self._held[title] = []
        held = self._held.pop(title, []) if state.terminal else []
        if state == NodeState.FAILED:
            for line in held:
                typer.secho(f"    {line}", dim=True)
        symbol, color = _STATE_STYLES[state]
        typer.secho(f"{symbol} {title}", fg=color)

def failure_lines(error: BaseException, title: str | None = None) -> list[str]:
    """Flatten a (possibly nested) run failure into one line per failed branch."""
    if isinstance(error, TaskError):
        return failure_lines(error.cause, title or error.title)
    if isinstance(error, AggregateTaskError):
        lines: list[str] = []
        for branch, branch_error in error.failures:
            lines.extend(failure_lines(branch_error, branch))
        return lines
    message = str(error) or type(error).__name__
    return [f"{title}: {message}" if title else message]


def report_failure(error: BaseException) -> None:
    lines = failure_lines(error)
    typer.secho(f"Failed ({len(lines)} error(s)):", fg=typer.colors.RED, err=True)
    for line in lines:
        typer.echo(f"  - {line}", err=True)
