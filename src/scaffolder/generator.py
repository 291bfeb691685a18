"""Step declarations for the Express + TypeScript service skeleton.

``ProjectBlueprint`` turns a ``ScaffoldConfig`` into the ordered list of
steps the engine executes.  Order matters and is never changed at run time:
later steps rely on what earlier ones left on disk (the hook manager needs the
git repository, ``npm pkg set`` needs the manifest ``npm init`` wrote, and so
on).
"""

from __future__ import annotations

from src.config import ScaffoldConfig

from .docker_gen import DockerGenerator
from .steps import MakeDirsStep, RunProcessStep, Step, WriteFileStep

# Script entries written into package.json.  The generated README documents
# these names, so they are fixed.  A real `npx husky-init` run later adds a
# `prepare` script of its own, so the finished manifest holds eight entries.
MANIFEST_SCRIPTS: dict[str, str] = {
    "dev": "nodemon",
    "build": "tsc",
    "start": "tsc && node dist/server.js",
    "lint": "eslint .",
    "lint:fix": "eslint . --fix",
    "format": 'prettier --write "src/**/*.{ts,tsx}"',
    "test": "jest",
}

SOURCE_DIRS: tuple[str, ...] = ("src/routes", "src/controllers", "src/middlewares")

FACTORY_DIR = "src/factory"

TSC_INIT_ARGS: tuple[str, ...] = (
    "--rootDir", "src",
    "--outDir", "dist",
    "--esModuleInterop", "true",
    "--resolveJsonModule", "true",
    "--strict", "true",
)


class ProjectBlueprint:
    """Declares every scaffold step for one configuration.

    Given a ``ScaffoldConfig``, produces steps that:
    - create the project directory and initialise the npm manifest
    - install runtime and dev dependencies
    - lay out ``src/`` and write lint, format, test, and TypeScript config
    - write Docker, nodemon, README and env files plus the source stubs
    - set the manifest scripts, create the git repo and first commit
    - install the husky pre-commit gate
    """

    def __init__(self, config: ScaffoldConfig) -> None:
        self.config = config
        self.docker_gen = DockerGenerator()

    # -- Public API --------------------------------------------------------

    def build(self) -> list[Step]:
        """Return all steps in execution order."""
        return [
            *self._manifest_steps(),
            *self._tooling_steps(),
            *self.docker_gen.steps(),
            WriteFileStep("write-nodemon-config", "nodemon.json", "config/nodemon.json"),
            *self._source_steps(),
            *self._docs_steps(),
            self._scripts_step(),
            *self._vcs_steps(),
            *self._hook_steps(),
        ]

    # -- Groups ------------------------------------------------------------

    def _manifest_steps(self) -> list[Step]:
        packages = self.config.packages
        steps: list[Step] = [
            MakeDirsStep("create-project-dir", (".",), exist_ok=False),
            RunProcessStep("npm-init", ("npm", "init", "-y")),
        ]
        if packages.dependencies:
            steps.append(
                RunProcessStep(
                    "install-dependencies",
                    ("npm", "install", *packages.dependencies),
                )
            )
        if packages.dev_dependencies:
            steps.append(
                RunProcessStep(
                    "install-dev-dependencies",
                    ("npm", "install", "--save-dev", *packages.dev_dependencies),
                )
            )
        return steps

    def _tooling_steps(self) -> list[Step]:
        dirs = SOURCE_DIRS + ((FACTORY_DIR,) if self.config.include_factory else ())
        return [
            MakeDirsStep("create-source-tree", dirs),
            # .gitignore goes in before anything can be staged
            WriteFileStep("write-gitignore", ".gitignore", "project/gitignore"),
            RunProcessStep("tsc-init", ("npx", "tsc", "--init", *TSC_INIT_ARGS)),
            WriteFileStep("write-eslint-config", "eslint.config.mjs", "config/eslint.config.mjs"),
            WriteFileStep("write-prettier-config", ".prettierrc", "config/prettierrc"),
            WriteFileStep("write-jest-config", "jest.config.mjs", "config/jest.config.mjs"),
        ]

    def _source_steps(self) -> list[Step]:
        stubs = [
            ("write-error-handler", "src/middlewares/errorHandler.ts"),
            ("write-home-controller", "src/controllers/home.controller.ts"),
            ("write-home-controller-test", "src/controllers/home.controller.test.ts"),
            ("write-home-routes", "src/routes/home.routes.ts"),
            ("write-routes-index", "src/routes/index.ts"),
            ("write-app", "src/app.ts"),
        ]
        if self.config.include_factory:
            stubs.append(("write-generic-factory", "src/factory/genericFactory.ts"))
        stubs.append(("write-server", "src/server.ts"))
        # Source stub template ids mirror their output paths.
        return [WriteFileStep(step_id, path, path) for step_id, path in stubs]

    def _docs_steps(self) -> list[Step]:
        return [
            WriteFileStep(
                "write-readme",
                "README.md",
                "project/README.md",
                params={"scripts": dict(MANIFEST_SCRIPTS)},
            ),
            WriteFileStep("write-env-example", ".env.example", "project/env.example"),
        ]

    def _scripts_step(self) -> Step:
        assignments = tuple(f"scripts.{name}={cmd}" for name, cmd in MANIFEST_SCRIPTS.items())
        return RunProcessStep("set-manifest-scripts", ("npm", "pkg", "set", *assignments))

    def _vcs_steps(self) -> list[Step]:
        return [
            RunProcessStep("git-init", ("git", "init")),
            RunProcessStep("git-add", ("git", "add", ".")),
            RunProcessStep("git-commit", ("git", "commit", "-m", self.config.commit_message)),
        ]

    def _hook_steps(self) -> list[Step]:
        hooks = self.config.hooks
        return [
            RunProcessStep("hooks-init", tuple(hooks.init_command)),
            RunProcessStep("hooks-install", tuple(hooks.install_command)),
            # The hook manager writes a default pre-commit; replace it.
            WriteFileStep(
                "write-pre-commit-hook",
                ".husky/pre-commit",
                "hooks/pre-commit",
                executable=True,
                overwrite=True,
            ),
        ]
