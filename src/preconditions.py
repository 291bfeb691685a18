"""Pre-flight validation of a scaffold request.

Everything here is read-only: the checker inspects the requested name, the
target directory, and the command search path, and raises a
``PreconditionError`` subclass describing the first class of problem it finds.
No step of the pipeline may run until ``PreconditionChecker.check`` returns.
"""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from pathlib import Path

# Characters rejected by at least one of the common filesystems (NTFS is the
# strictest).  Control characters are handled separately.
_ILLEGAL_CHARS = set('<>:"/\\|?*')

_RESERVED_NAMES = {
    "con", "prn", "aux", "nul",
    *(f"com{i}" for i in range(1, 10)),
    *(f"lpt{i}" for i in range(1, 10)),
}

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PreconditionError(Exception):
    """Raised when a scaffold request cannot start.  Nothing has been written."""


class MissingArgumentError(PreconditionError):
    """No project name was supplied."""

    def __init__(self) -> None:
        super().__init__("No project name given. Usage: express-scaffold <project-name>")


class InvalidProjectNameError(PreconditionError):
    """The project name cannot be used as a single directory name."""

    def __init__(self, name: str, problem: str) -> None:
        self.name = name
        self.problem = problem
        super().__init__(f"Invalid project name '{name}': {problem}")


class DirectoryExistsError(PreconditionError):
    """The target directory already exists and must never be overwritten."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"The directory '{path}' already exists.")


class MissingToolError(PreconditionError):
    """One or more required external tools are not on the search path."""

    def __init__(self, tools: list[str]) -> None:
        self.tools = list(tools)
        names = ", ".join(f"'{t}'" for t in self.tools)
        super().__init__(f"Required tool(s) not installed: {names}. Install and try again.")


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProjectRequest:
    """A single scaffold invocation: the name of the project to create."""

    name: str


def validate_project_name(name: str) -> None:
    """Raise ``InvalidProjectNameError`` unless *name* is a plain directory name."""
    if name in (".", ".."):
        raise InvalidProjectNameError(name, "relative path components are not allowed")
    bad = sorted({c for c in name if c in _ILLEGAL_CHARS})
    if bad:
        raise InvalidProjectNameError(
            name, f"contains illegal character(s) {' '.join(bad)}"
        )
    if _CONTROL_CHARS.search(name):
        raise InvalidProjectNameError(name, "contains control characters")
    if name != name.strip() or name.endswith("."):
        raise InvalidProjectNameError(name, "must not start or end with whitespace or a dot")
    if name.split(".")[0].lower() in _RESERVED_NAMES:
        raise InvalidProjectNameError(name, "is a reserved device name")


# ---------------------------------------------------------------------------
# Checker
# ---------------------------------------------------------------------------


class PreconditionChecker:
    """Validates a ``ProjectRequest`` and its environment.

    Args:
        base_dir: Directory the project would be created in.
        required_tools: Executables that must resolve on the search path.
        search_path: Optional override for ``PATH`` (``os.pathsep``-separated).
    """

    def __init__(
        self,
        base_dir: str | Path,
        required_tools: list[str],
        search_path: str | None = None,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.required_tools = list(required_tools)
        self.search_path = search_path

    def check(self, request: ProjectRequest | None) -> None:
        """Run every precondition in order: argument, name, directory, tools.

        Raises:
            MissingArgumentError, InvalidProjectNameError,
            DirectoryExistsError, MissingToolError.
        """
        if request is None or not request.name or not request.name.strip():
            raise MissingArgumentError()

        validate_project_name(request.name)

        target = self.base_dir / request.name
        # A dangling symlink of the same name also counts as taken.
        if target.exists() or target.is_symlink():
            raise DirectoryExistsError(target)

        missing = self.missing_tools()
        if missing:
            raise MissingToolError(missing)

    def missing_tools(self) -> list[str]:
        """Return every required tool that does not resolve, in declared order."""
        return [
            tool for tool in self.required_tools
            if shutil.which(tool, path=self.search_path) is None
        ]
