"""Express scaffold configuration.

Centralised, typed configuration for the scaffolding engine. All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

DEFAULT_DEPENDENCIES: list[str] = ["express", "cors", "dotenv"]

DEFAULT_DEV_DEPENDENCIES: list[str] = [
    "typescript",
    "ts-node",
    "nodemon",
    "@types/node",
    "@types/express",
    "@types/cors",
    "@typescript-eslint/parser",
    "@typescript-eslint/eslint-plugin",
    "eslint",
    "eslint-config-prettier",
    "eslint-plugin-prettier",
    "eslint-plugin-jest",
    "prettier",
    "husky",
    "jest",
    "ts-jest",
    "@types/jest",
    "supertest",
    "@types/supertest",
]

DEFAULT_REQUIRED_TOOLS: list[str] = ["npm", "npx", "git", "docker"]


class PackageConfig(BaseModel):
    """npm packages installed into the generated project."""

    dependencies: list[str] = Field(default_factory=lambda: list(DEFAULT_DEPENDENCIES))
    dev_dependencies: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DEV_DEPENDENCIES)
    )


class RuntimeConfig(BaseModel):
    """Values baked into the generated container and server files."""

    node_version: str = Field(default="20.18.0", min_length=1)
    port: int = Field(default=3000, ge=1, le=65535)


class HookConfig(BaseModel):
    """Commit-hook manager invocation and the pre-commit gate it runs."""

    init_command: list[str] = Field(default_factory=lambda: ["npx", "husky-init"])
    install_command: list[str] = Field(default_factory=lambda: ["npm", "install"])
    pre_commit_command: str = Field(default="npx eslint . && npm test", min_length=1)

    @field_validator("init_command", "install_command")
    @classmethod
    def _non_empty_command(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("command must contain at least the executable name")
        return value


class ScaffoldConfig(BaseModel):
    """Global scaffold configuration.

    Instances are typically created once by the CLI entry point and then
    passed to ``ScaffoldEngine``, which builds its step list from them.
    """

    base_dir: Path = Field(default=Path("."))
    required_tools: list[str] = Field(default_factory=lambda: list(DEFAULT_REQUIRED_TOOLS))
    include_factory: bool = Field(default=True)
    commit_message: str = Field(default="Initial commit", min_length=1)
    step_timeout: float | None = Field(
        default=None, gt=0, description="Per-step timeout in seconds (None waits forever)"
    )
    quiet: bool = Field(default=False)
    packages: PackageConfig = Field(default_factory=PackageConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    hooks: HookConfig = Field(default_factory=HookConfig)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def project_path(self, name: str) -> Path:
        """Directory the project called *name* is generated into."""
        return self.base_dir / name

    def template_context(self, name: str) -> dict[str, Any]:
        """Base parameters every template is rendered with."""
        return {
            "project_name": name,
            "node_version": self.runtime.node_version,
            "port": self.runtime.port,
            "include_factory": self.include_factory,
            "pre_commit_command": self.hooks.pre_commit_command,
        }

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "ScaffoldConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "ScaffoldConfig":
        """Build a ``ScaffoldConfig`` from environment variables.

        Recognised variables (all optional):
            SCAFFOLD_BASE_DIR, SCAFFOLD_REQUIRED_TOOLS, SCAFFOLD_NO_FACTORY,
            SCAFFOLD_COMMIT_MESSAGE, SCAFFOLD_STEP_TIMEOUT,
            SCAFFOLD_NODE_VERSION, SCAFFOLD_PORT.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("SCAFFOLD_BASE_DIR"):
            kwargs["base_dir"] = Path(os.environ["SCAFFOLD_BASE_DIR"])
        if os.environ.get("SCAFFOLD_REQUIRED_TOOLS"):
            tools_str = os.environ["SCAFFOLD_REQUIRED_TOOLS"]
            kwargs["required_tools"] = [t.strip() for t in tools_str.split(",") if t.strip()]
        if os.environ.get("SCAFFOLD_NO_FACTORY", "").lower() in ("1", "true", "yes"):
            kwargs["include_factory"] = False
        if os.environ.get("SCAFFOLD_COMMIT_MESSAGE"):
            kwargs["commit_message"] = os.environ["SCAFFOLD_COMMIT_MESSAGE"]
        if os.environ.get("SCAFFOLD_STEP_TIMEOUT"):
            kwargs["step_timeout"] = float(os.environ["SCAFFOLD_STEP_TIMEOUT"])

        runtime_kwargs: dict[str, Any] = {}
        if os.environ.get("SCAFFOLD_NODE_VERSION"):
            runtime_kwargs["node_version"] = os.environ["SCAFFOLD_NODE_VERSION"]
        if os.environ.get("SCAFFOLD_PORT"):
            runtime_kwargs["port"] = int(os.environ["SCAFFOLD_PORT"])

        return cls(runtime=RuntimeConfig(**runtime_kwargs), **kwargs)
