"""Jinja2 template store for project scaffolding.

Provides the ``TemplateStore`` class which loads Jinja2 templates from the
``src/scaffolder/templates/`` directory once, records the parameters each one
requires, and renders them against a parameter mapping.  Rendering is pure
text substitution: the store never writes files, so the same
``(template_id, params)`` always produces the same string.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

from jinja2 import Environment, StrictUndefined, UndefinedError, meta, select_autoescape


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"

_TEMPLATE_SUFFIX = ".j2"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RenderError(Exception):
    """Raised when a template cannot be rendered."""

    def __init__(self, template_id: str, message: str) -> None:
        self.template_id = template_id
        super().__init__(message)


class UnknownTemplateError(RenderError):
    """The requested template id is not registered."""

    def __init__(self, template_id: str) -> None:
        super().__init__(template_id, f"Unknown template: {template_id}")


class MissingParamError(RenderError):
    """A required template parameter was not supplied."""

    def __init__(self, template_id: str, missing: Iterable[str]) -> None:
        self.missing = sorted(missing)
        super().__init__(
            template_id,
            f"Template '{template_id}' is missing required parameter(s): "
            f"{', '.join(self.missing)}",
        )

    @property
    def param(self) -> str:
        """The first missing parameter name."""
        return self.missing[0]


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Template:
    """A named, parameterised text blueprint."""

    id: str
    body: str
    required_params: frozenset[str]


# ---------------------------------------------------------------------------
# TemplateStore
# ---------------------------------------------------------------------------


class TemplateStore:
    """Holds named Jinja2 templates and renders them.

    The store discovers ``.j2`` files under a template directory at
    construction.  A template's id is its path relative to that directory with
    the ``.j2`` suffix removed (``src/app.ts.j2`` -> ``src/app.ts``).  Its
    required parameters are every variable the body references, plus any
    names declared explicitly through :meth:`register`.
    """

    def __init__(self, template_dir: str | Path | None = None, *, load: bool = True) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            autoescape=select_autoescape([], default_for_string=False),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        # Register custom filters
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["js_string"] = _js_string_filter

        self._templates: dict[str, Template] = {}
        if load:
            self._load_directory()

    # -- Registration ------------------------------------------------------

    def register(
        self,
        template_id: str,
        body: str,
        required_params: Iterable[str] = (),
    ) -> Template:
        """Register *body* under *template_id*, replacing any previous entry.

        Args:
            template_id: Name the template is rendered by.
            body: Jinja2 source text.
            required_params: Extra parameter names to require on top of those
                the body references.
        """
        referenced = meta.find_undeclared_variables(self.env.parse(body))
        template = Template(
            id=template_id,
            body=body,
            required_params=frozenset(referenced) | frozenset(required_params),
        )
        self._templates[template_id] = template
        return template

    def _load_directory(self) -> None:
        if not self.template_dir.is_dir():
            return
        for path in sorted(self.template_dir.rglob(f"*{_TEMPLATE_SUFFIX}")):
            rel = path.relative_to(self.template_dir).as_posix()
            self.register(rel[: -len(_TEMPLATE_SUFFIX)], path.read_text(encoding="utf-8"))

    # -- Lookup ------------------------------------------------------------

    def get(self, template_id: str) -> Template:
        """Return the registered template or raise ``UnknownTemplateError``."""
        try:
            return self._templates[template_id]
        except KeyError:
            raise UnknownTemplateError(template_id) from None

    def has(self, template_id: str) -> bool:
        return template_id in self._templates

    def list_templates(self, prefix: str = "") -> list[str]:
        """Return a sorted list of registered template ids starting with *prefix*."""
        return sorted(tid for tid in self._templates if tid.startswith(prefix))

    # -- Rendering ---------------------------------------------------------

    def render(self, template_id: str, params: Mapping[str, Any]) -> str:
        """Render a template with the provided parameters.

        Args:
            template_id: Registered template id (e.g. ``"docker/Dockerfile"``).
            params: Values for the template's variables.  Extra keys are
                ignored.

        Returns:
            The rendered text.

        Raises:
            UnknownTemplateError: *template_id* is not registered.
            MissingParamError: A required parameter is absent from *params*.
        """
        template = self.get(template_id)
        missing = template.required_params - params.keys()
        if missing:
            raise MissingParamError(template_id, missing)
        try:
            return self.env.from_string(template.body).render(**params)
        except UndefinedError as exc:
            # Attribute/item access on a supplied value that does not exist.
            raise RenderError(template_id, f"Template '{template_id}': {exc}") from exc


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


def _js_string_filter(value: str) -> str:
    """Quote *value* as a single-quoted JavaScript string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"
