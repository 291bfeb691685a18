"""Scaffolder -- templates, steps, and the blueprint for an Express service.

This package holds everything the engine in ``src.pipeline`` executes: the
Jinja2 ``TemplateStore``, the step types, and ``ProjectBlueprint`` which
declares the ordered steps for a Node.js + TypeScript + Express skeleton.

Quick usage::

    from src.config import ScaffoldConfig
    from src.scaffolder import ProjectBlueprint, TemplateStore

    steps = ProjectBlueprint(ScaffoldConfig()).build()
    store = TemplateStore()
    print(store.render("docker/Dockerfile", {"node_version": "20", "port": 3000}))
"""

from src.scaffolder.generator import MANIFEST_SCRIPTS, ProjectBlueprint
from src.scaffolder.steps import (
    MakeDirsStep,
    ProcessFailure,
    RenderFailure,
    RunProcessStep,
    Step,
    StepError,
    StepKind,
    StepOutcome,
    StepResult,
    WriteFailure,
    WriteFileStep,
)
from src.scaffolder.templates import (
    MissingParamError,
    RenderError,
    Template,
    TemplateStore,
    UnknownTemplateError,
)

__all__ = [
    "MANIFEST_SCRIPTS",
    "MakeDirsStep",
    "MissingParamError",
    "ProcessFailure",
    "ProjectBlueprint",
    "RenderError",
    "RenderFailure",
    "RunProcessStep",
    "Step",
    "StepError",
    "StepKind",
    "StepOutcome",
    "StepResult",
    "Template",
    "TemplateStore",
    "UnknownTemplateError",
    "WriteFailure",
    "WriteFileStep",
]
