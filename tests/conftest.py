"""Shared pytest fixtures for the express-scaffold test suite.

Provides reusable fixtures for:
- Scaffold configurations rooted in a temporary directory
- A fake npm/npx/git toolchain standing in for real subprocesses
- Controlling which tools ``shutil.which`` can resolve
- A template context covering every template parameter
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from src.config import ScaffoldConfig
from src.scaffolder.generator import MANIFEST_SCRIPTS


# ---------------------------------------------------------------------------
# Fake toolchain
# ---------------------------------------------------------------------------


class FakeToolchain:
    """Async stand-in for ``run_command`` that mimics npm, npx, and git.

    Records every call.  Commands that touch the manifest or hook directory
    produce the same files the real tools would, so later steps and assertions
    see a realistic tree.  ``fail_on`` is a command prefix that returns
    ``exit_code`` instead of succeeding.
    """

    def __init__(self, fail_on: list[str] | None = None, exit_code: int = 1) -> None:
        self.fail_on = fail_on
        self.exit_code = exit_code
        self.calls: list[list[str]] = []
        self.cwds: list[Path] = []
        self.timeouts: list[float | None] = []

    async def __call__(
        self,
        cmd: list[str],
        cwd: str | Path | None = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> tuple[int, str, str]:
        cmd = list(cmd)
        workdir = Path(cwd) if cwd is not None else Path.cwd()
        self.calls.append(cmd)
        self.cwds.append(workdir)
        self.timeouts.append(timeout)

        if self.fail_on is not None and cmd[: len(self.fail_on)] == self.fail_on:
            return (self.exit_code, "partial output", "simulated failure")

        if cmd[:2] == ["npm", "init"]:
            manifest = {
                "name": workdir.name,
                "version": "1.0.0",
                "scripts": {"test": 'echo "Error: no test specified" && exit 1'},
            }
            _write_manifest(workdir, manifest)
        elif cmd[:3] == ["npm", "pkg", "set"]:
            manifest = json.loads((workdir / "package.json").read_text(encoding="utf-8"))
            for assignment in cmd[3:]:
                key, value = assignment.split("=", 1)
                section, name = key.split(".", 1)
                manifest.setdefault(section, {})[name] = value
            _write_manifest(workdir, manifest)
        elif cmd[:3] == ["npx", "tsc", "--init"]:
            (workdir / "tsconfig.json").write_text("{}\n", encoding="utf-8")
        elif cmd[:2] == ["npx", "husky-init"]:
            hook_dir = workdir / ".husky"
            hook_dir.mkdir(exist_ok=True)
            (hook_dir / "pre-commit").write_text("#!/bin/sh\nnpm test\n", encoding="utf-8")
        elif cmd[:2] == ["git", "init"]:
            (workdir / ".git").mkdir(exist_ok=True)

        return (0, f"ok: {' '.join(cmd)}", "")

    def commands(self) -> list[str]:
        """Every recorded command joined into a single string."""
        return [" ".join(c) for c in self.calls]


def _write_manifest(workdir: Path, manifest: dict[str, Any]) -> None:
    (workdir / "package.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_toolchain() -> FakeToolchain:
    """A toolchain where every command succeeds."""
    return FakeToolchain()


@pytest.fixture
def failing_toolchain():
    """Factory: a toolchain that fails on the given command prefix."""

    def _make(*prefix: str, exit_code: int = 1) -> FakeToolchain:
        return FakeToolchain(fail_on=list(prefix), exit_code=exit_code)

    return _make


@pytest.fixture
def scaffold_config(tmp_path: Path) -> ScaffoldConfig:
    """A quiet ScaffoldConfig that generates projects under ``tmp_path``."""
    return ScaffoldConfig(base_dir=tmp_path, quiet=True)


@pytest.fixture
def all_tools_present(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make every tool resolve on the search path."""
    monkeypatch.setattr(
        "src.preconditions.shutil.which",
        lambda tool, path=None: f"/usr/bin/{tool}",
    )


@pytest.fixture
def tools_missing(monkeypatch: pytest.MonkeyPatch):
    """Factory: make the named tools unresolvable and everything else present."""

    def _apply(*missing: str) -> None:
        monkeypatch.setattr(
            "src.preconditions.shutil.which",
            lambda tool, path=None: None if tool in missing else f"/usr/bin/{tool}",
        )

    return _apply


@pytest.fixture
def full_template_params() -> dict[str, Any]:
    """Parameters sufficient to render every bundled template."""
    return {
        **ScaffoldConfig().template_context("demo"),
        "scripts": dict(MANIFEST_SCRIPTS),
    }


@pytest.fixture
def snapshot_tree():
    """Function returning the relative paths of everything below a directory."""

    def _snapshot(root: Path) -> set[str]:
        return {p.relative_to(root).as_posix() for p in root.rglob("*")}

    return _snapshot
