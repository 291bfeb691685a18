"""Pipeline steps: the unit of work the scaffold engine executes.

A step is an immutable description of one action, declared once when the
engine is built and never changed while it runs:

* ``MakeDirsStep``   -- create directories under the project root.
* ``WriteFileStep``  -- render a template and create the target file.
* ``RunProcessStep`` -- invoke an external tool and check its exit status.

All paths are relative to the project root.  The root itself travels in the
``StepContext`` handed to :meth:`execute`; nothing here changes the process
working directory.  A step either returns normally (success) or raises a
``StepError`` subclass; ``run_step`` turns either into a ``StepResult``.
"""

from __future__ import annotations

import stat
import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Protocol

from .templates import RenderError, TemplateStore

CommandRunner = Callable[..., Awaitable[tuple[int, str, str]]]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class StepError(Exception):
    """Raised by a step that could not complete.

    ``side_effects_applied`` records whether the step changed the disk before
    it failed.
    """

    def __init__(self, step_id: str, message: str, *, side_effects_applied: bool = False) -> None:
        self.step_id = step_id
        self.side_effects_applied = side_effects_applied
        super().__init__(message)


class RenderFailure(StepError):
    """The step's template could not be rendered.  Nothing was written."""


class WriteFailure(StepError):
    """The filesystem refused a write (permissions, existing file, disk full...)."""


class ProcessFailure(StepError):
    """An external tool exited with a non-zero status or could not be started."""

    def __init__(
        self,
        step_id: str,
        command: list[str],
        exit_code: int,
        output: str,
        *,
        side_effects_applied: bool = True,
    ) -> None:
        self.command = list(command)
        self.exit_code = exit_code
        self.output = output
        super().__init__(
            step_id,
            f"'{' '.join(command)}' exited with status {exit_code}",
            side_effects_applied=side_effects_applied,
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class StepKind(str, Enum):
    MAKE_DIRS = "make_dirs"
    WRITE_FILE = "write_file"
    RUN_PROCESS = "run_process"


class StepOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class StepResult:
    """Structured result of executing one step."""

    step_id: str
    outcome: StepOutcome
    reason: str = ""
    side_effects_applied: bool = False
    exit_code: int | None = None
    output: str = ""
    duration_seconds: float = 0.0
    error: Exception | None = field(default=None, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.outcome is StepOutcome.SUCCESS


@dataclass
class StepContext:
    """Run-time collaborators shared by every step of one run."""

    project_root: Path
    templates: TemplateStore
    params: Mapping[str, Any]
    runner: CommandRunner
    timeout: float | None = None


class Step(Protocol):
    id: str

    @property
    def kind(self) -> StepKind: ...

    def describe(self) -> str: ...

    async def execute(self, ctx: StepContext) -> StepResult: ...


# ---------------------------------------------------------------------------
# Step types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MakeDirsStep:
    """Create one or more directories below the project root.

    ``"."`` names the project root itself.  With ``exist_ok=False`` an
    existing directory is a ``WriteFailure``.
    """

    id: str
    paths: tuple[str, ...]
    exist_ok: bool = True

    @property
    def kind(self) -> StepKind:
        return StepKind.MAKE_DIRS

    def describe(self) -> str:
        return "mkdir " + " ".join(self.paths)

    async def execute(self, ctx: StepContext) -> StepResult:
        created = False
        for rel in self.paths:
            target = ctx.project_root / rel
            try:
                target.mkdir(parents=rel != ".", exist_ok=self.exist_ok)
            except OSError as exc:
                raise WriteFailure(
                    self.id,
                    f"Cannot create directory {target}: {exc}",
                    side_effects_applied=created,
                ) from exc
            created = True
        return StepResult(self.id, StepOutcome.SUCCESS, side_effects_applied=created)


@dataclass(frozen=True)
class WriteFileStep:
    """Render ``template_id`` and create ``target`` with the result.

    The file is created exclusively; an existing file is a ``WriteFailure``
    unless ``overwrite`` is set.  ``params`` are layered over the run's base
    parameters.
    """

    id: str
    target: str
    template_id: str
    params: Mapping[str, Any] = field(default_factory=dict)
    executable: bool = False
    overwrite: bool = False

    @property
    def kind(self) -> StepKind:
        return StepKind.WRITE_FILE

    def describe(self) -> str:
        return f"write {self.target} <- {self.template_id}"

    async def execute(self, ctx: StepContext) -> StepResult:
        try:
            content = ctx.templates.render(self.template_id, {**ctx.params, **self.params})
        except RenderError as exc:
            raise RenderFailure(self.id, str(exc)) from exc

        path = ctx.project_root / self.target
        touched = False
        try:
            if not path.parent.is_dir():
                path.parent.mkdir(parents=True, exist_ok=True)
                touched = True
            with path.open("w" if self.overwrite else "x", encoding="utf-8") as fh:
                touched = True
                fh.write(content)
            if self.executable:
                _make_executable(path)
        except OSError as exc:
            raise WriteFailure(
                self.id, f"Cannot write {path}: {exc}", side_effects_applied=touched
            ) from exc
        return StepResult(self.id, StepOutcome.SUCCESS, side_effects_applied=True)


@dataclass(frozen=True)
class RunProcessStep:
    """Run ``command`` in ``project_root / cwd`` and require exit status 0."""

    id: str
    command: tuple[str, ...]
    cwd: str = "."

    @property
    def kind(self) -> StepKind:
        return StepKind.RUN_PROCESS

    def describe(self) -> str:
        return " ".join(self.command)

    async def execute(self, ctx: StepContext) -> StepResult:
        command = list(self.command)
        try:
            returncode, stdout, stderr = await ctx.runner(
                command, cwd=ctx.project_root / self.cwd, timeout=ctx.timeout
            )
        except OSError as exc:
            # never started, so nothing ran
            raise ProcessFailure(
                self.id, command, 127, str(exc), side_effects_applied=False
            ) from exc

        output = "\n".join(part for part in (stdout, stderr) if part)
        if returncode != 0:
            raise ProcessFailure(self.id, command, returncode, output)
        return StepResult(
            self.id,
            StepOutcome.SUCCESS,
            side_effects_applied=True,
            exit_code=returncode,
            output=output,
        )


# ---------------------------------------------------------------------------
# Driver helper
# ---------------------------------------------------------------------------


async def run_step(step: Step, ctx: StepContext) -> StepResult:
    """Execute *step* and convert any failure into a ``StepResult``.

    ``KeyboardInterrupt`` and other ``BaseException`` subclasses propagate so
    an interrupted run stops immediately.
    """
    start = time.monotonic()
    try:
        result = await step.execute(ctx)
    except ProcessFailure as exc:
        result = StepResult(
            step.id,
            StepOutcome.FAILURE,
            reason=str(exc),
            side_effects_applied=exc.side_effects_applied,
            exit_code=exc.exit_code,
            output=exc.output,
            error=exc,
        )
    except RenderFailure as exc:
        result = StepResult(step.id, StepOutcome.FAILURE, reason=str(exc), error=exc)
    except StepError as exc:
        result = StepResult(
            step.id,
            StepOutcome.FAILURE,
            reason=str(exc),
            side_effects_applied=exc.side_effects_applied,
            error=exc,
        )
    except Exception as exc:
        result = StepResult(
            step.id,
            StepOutcome.FAILURE,
            reason=f"Unexpected error: {exc}",
            output=traceback.format_exc(),
            error=exc,
        )
    result.duration_seconds = time.monotonic() - start
    return result


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _make_executable(path: Path) -> None:
    """Set the executable bit on a file."""
    current = path.stat().st_mode
    path.chmod(current | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
