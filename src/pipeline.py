"""Scaffold engine and CLI.

Runs one scaffold invocation end to end:

1. PRECONDITIONS -- project name, target directory, required tools.
2. STEPS         -- the blueprint's steps, strictly in declaration order.
3. REPORT        -- a ``RunReport`` plus a printed summary.

The first failing step aborts the run.  Nothing is rolled back: external
tools such as ``npm install`` cannot be undone safely, so the partial project
directory is left for the user to inspect or delete before retrying.

Usage::

    python -m src.pipeline my-api
    python -m src.pipeline my-api --dir ~/code --no-factory
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from src.config import ScaffoldConfig
from src.preconditions import PreconditionChecker, PreconditionError, ProjectRequest
from src.scaffolder.generator import ProjectBlueprint
from src.scaffolder.steps import (
    CommandRunner,
    Step,
    StepContext,
    StepResult,
    WriteFileStep,
    run_step,
)
from src.scaffolder.templates import TemplateStore
from src.utils import (
    console,
    format_duration,
    print_error,
    print_section_header,
    print_success,
    print_summary_table,
    run_command,
    tail_lines,
)

PRECONDITIONS = "preconditions"

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PipelineError(Exception):
    """Raised when a step list is malformed (duplicate ids, unknown templates)."""


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


class RunStatus(str, Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class RunReport:
    """Outcome of one invocation.

    ``step_results`` holds every executed step in order, including the one
    that failed; ``aborted_at`` is that step's id, or ``"preconditions"`` when
    the run never started.
    """

    project_name: str
    project_path: Path | None = None
    step_results: list[StepResult] = field(default_factory=list)
    status: RunStatus | None = None
    aborted_at: str | None = None
    reason: str = ""
    error: Exception | None = field(default=None, repr=False)
    duration_seconds: float = 0.0

    @property
    def completed(self) -> bool:
        return self.status is RunStatus.COMPLETED

    @property
    def completed_steps(self) -> list[StepResult]:
        """Successful step results, in execution order."""
        return [r for r in self.step_results if r.succeeded]

    @property
    def exit_code(self) -> int:
        # Precondition failures and step aborts share one code.
        return 0 if self.completed else 1

    def abort(self, step_id: str, reason: str, error: Exception | None = None) -> None:
        self.status = RunStatus.ABORTED
        self.aborted_at = step_id
        self.reason = reason
        self.error = error


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ScaffoldEngine:
    """Runs preconditions and then every step, stopping at the first failure.

    Attributes:
        config: Scaffold configuration.
        templates: Store every ``WriteFile`` step renders from.
        checker: Pre-flight validator.
        steps: Ordered steps, fixed at construction.
        runner: Coroutine used to launch external processes.
    """

    def __init__(
        self,
        config: ScaffoldConfig,
        *,
        steps: Iterable[Step] | None = None,
        templates: TemplateStore | None = None,
        checker: PreconditionChecker | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self.config = config
        self.templates = templates if templates is not None else TemplateStore()
        self.checker = checker or PreconditionChecker(config.base_dir, config.required_tools)
        self.steps: list[Step] = (
            list(steps) if steps is not None else ProjectBlueprint(config).build()
        )
        self.runner: CommandRunner = runner or run_command
        _check_unique_ids(self.steps)
        _check_templates(self.steps, self.templates)

    def plan(self) -> list[Step]:
        """Return the declared steps in execution order."""
        return list(self.steps)

    async def run(self, request: ProjectRequest | None) -> RunReport:
        """Scaffold the project named by *request*.

        Returns:
            The run report.  Failures are reported, never raised.
        """
        run_start = time.monotonic()
        report = RunReport(project_name=request.name if request else "")

        try:
            self.checker.check(request)
        except PreconditionError as exc:
            report.abort(PRECONDITIONS, str(exc), exc)
            report.duration_seconds = time.monotonic() - run_start
            print_error(f"Error: {escape(str(exc))}")
            return report

        assert request is not None  # guaranteed by check()
        project_root = self.config.project_path(request.name)
        report.project_path = project_root

        if not self.config.quiet:
            console.print(
                Panel(
                    f"[bold bright_cyan]Express Scaffold[/bold bright_cyan]\n"
                    f"Project : {escape(request.name)}\n"
                    f"Path    : {escape(str(project_root.resolve()))}\n"
                    f"Steps   : {len(self.steps)}",
                    title="[bold]Scaffold Start[/bold]",
                    border_style="bright_cyan",
                )
            )

        ctx = StepContext(
            project_root=project_root,
            templates=self.templates,
            params=self.config.template_context(request.name),
            runner=self.runner,
            timeout=self.config.step_timeout,
        )

        total = len(self.steps)
        for index, step in enumerate(self.steps, start=1):
            if not self.config.quiet:
                console.print(
                    f"  [dim]{index:>2}/{total}[/dim] {escape(step.id)} "
                    f"[dim]{escape(step.describe())}[/dim]"
                )
            result = await run_step(step, ctx)
            report.step_results.append(result)
            if not result.succeeded:
                report.abort(step.id, result.reason, result.error)
                self._print_failure(step, result)
                break
        else:
            report.status = RunStatus.COMPLETED

        report.duration_seconds = time.monotonic() - run_start
        self._print_final_summary(report)
        return report

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _print_failure(self, step: Step, result: StepResult) -> None:
        """Print the diagnostic for a failed step, with process output if any."""
        print_error(f"Step '{escape(step.id)}' failed: {escape(result.reason)}")
        if result.output:
            console.print(
                Panel(
                    Text(tail_lines(result.output)),
                    title=f"[bold red]{escape(step.id)} output[/bold red]",
                    border_style="red",
                )
            )

    def _print_final_summary(self, report: RunReport) -> None:
        """Print the final run summary panel."""
        if report.completed:
            print_section_header("Scaffold complete", color="bright_green")
            print_summary_table(
                {
                    "Project": report.project_name,
                    "Path": str(report.project_path),
                    "Steps": str(len(report.completed_steps)),
                    "Duration": format_duration(report.duration_seconds),
                },
                title="Run Summary",
            )
            print_success(f"Project '{escape(report.project_name)}' is ready.")
            console.print(
                f"  cd {escape(str(report.project_path))} && npm run dev"
            )
            return

        detail_lines = [
            "[bold red]SCAFFOLD ABORTED[/bold red]",
            "",
            f"Failed step : {escape(report.aborted_at or '?')}",
            f"Completed   : {len(report.completed_steps)}/{len(self.steps)} steps",
            f"Duration    : {format_duration(report.duration_seconds)}",
        ]
        if report.project_path is not None and report.project_path.exists():
            detail_lines.append(
                f"Partial project left at {escape(str(report.project_path))}; "
                "remove it before retrying."
            )
        console.print(Panel("\n".join(detail_lines), border_style="bold red"))


def _check_unique_ids(steps: list[Step]) -> None:
    counts = Counter(step.id for step in steps)
    duplicates = sorted(step_id for step_id, n in counts.items() if n > 1)
    if duplicates:
        raise PipelineError(f"Duplicate step id(s): {', '.join(duplicates)}")


def _check_templates(steps: list[Step], templates: TemplateStore) -> None:
    unknown = sorted(
        {
            step.template_id
            for step in steps
            if isinstance(step, WriteFileStep) and not templates.has(step.template_id)
        }
    )
    if unknown:
        raise PipelineError(f"Step(s) reference unknown template(s): {', '.join(unknown)}")


def print_plan(steps: list[Step]) -> None:
    """Print the ordered step list as a table."""
    table = Table(title="Scaffold Plan", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Step", no_wrap=True)
    table.add_column("Kind", style="dim")
    table.add_column("Action")
    for index, step in enumerate(steps, start=1):
        table.add_row(str(index), step.id, step.kind.value, escape(step.describe()))
    console.print(table)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_config(args: argparse.Namespace) -> ScaffoldConfig:
    """Merge the config file (or environment) with command-line overrides."""
    config = ScaffoldConfig.load(Path(args.config)) if args.config else ScaffoldConfig.from_env()

    updates: dict[str, object] = {}
    if args.dir is not None:
        updates["base_dir"] = Path(args.dir)
    if args.no_factory:
        updates["include_factory"] = False
    if args.timeout is not None:
        updates["step_timeout"] = args.timeout
    if args.quiet:
        updates["quiet"] = True
    if not updates:
        return config
    return ScaffoldConfig.model_validate({**config.model_dump(), **updates})


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``express-scaffold`` / ``python -m src.pipeline``."""
    parser = argparse.ArgumentParser(
        prog="express-scaffold",
        description="Generate an Express + TypeScript API project skeleton",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  express-scaffold my-api\n"
            "  express-scaffold my-api --dir ~/code --no-factory\n"
            "  express-scaffold my-api --dry-run\n"
        ),
    )
    parser.add_argument("name", nargs="?", default=None, help="Project (directory) name")
    parser.add_argument(
        "--dir", "-C",
        default=None,
        help="Directory to create the project in (default: current directory)",
    )
    parser.add_argument("--config", default=None, help="JSON configuration file")
    parser.add_argument(
        "--no-factory",
        action="store_true",
        help="Skip the src/factory module",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-step timeout in seconds for external tools (default: none)",
    )
    parser.add_argument("--dry-run", action="store_true", help="List the steps and exit")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only print the outcome")

    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except (OSError, ValueError, ValidationError) as exc:
        console.print(f"[bold red]Error:[/bold red] Invalid configuration: {escape(str(exc))}")
        sys.exit(1)

    engine = ScaffoldEngine(config)

    if args.dry_run:
        print_plan(engine.plan())
        return

    report = asyncio.run(engine.run(ProjectRequest(args.name or "")))
    if report.exit_code != 0:
        sys.exit(report.exit_code)


if __name__ == "__main__":
    main()
