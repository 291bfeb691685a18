"""Tests for the Jinja2 template store.

Covers:
- Loading bundled templates and deriving their required parameters
- Deterministic rendering
- UnknownTemplateError and MissingParamError
- Inline registration with explicitly declared parameters
- Content of the payload templates that depend on parameters
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from src.scaffolder.generator import MANIFEST_SCRIPTS
from src.scaffolder.templates import (
    MissingParamError,
    RenderError,
    TemplateStore,
    UnknownTemplateError,
    _js_string_filter,
    _slugify_filter,
)

pytestmark = pytest.mark.unit


@pytest.fixture(scope="module")
def store() -> TemplateStore:
    return TemplateStore()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoading:
    def test_bundled_templates_registered(self, store):
        ids = store.list_templates()
        assert "docker/Dockerfile" in ids
        assert "docker/docker-compose.yml" in ids
        assert "hooks/pre-commit" in ids
        assert "project/gitignore" in ids
        assert "src/app.ts" in ids
        assert "src/server.ts" in ids

    def test_list_templates_prefix(self, store):
        assert store.list_templates("docker/") == [
            "docker/Dockerfile",
            "docker/docker-compose.yml",
        ]

    def test_required_params_from_body(self, store):
        assert store.get("docker/Dockerfile").required_params == {"node_version", "port"}
        assert store.get("src/server.ts").required_params == {"include_factory"}
        assert store.get("config/jest.config.mjs").required_params == frozenset()

    def test_missing_directory_gives_empty_store(self, tmp_path: Path):
        empty = TemplateStore(tmp_path / "does-not-exist")
        assert empty.list_templates() == []

    def test_custom_directory(self, tmp_path: Path):
        (tmp_path / "nested").mkdir()
        (tmp_path / "nested" / "hello.txt.j2").write_text("hi {{ who }}\n", encoding="utf-8")
        custom = TemplateStore(tmp_path)
        assert custom.list_templates() == ["nested/hello.txt"]
        assert custom.render("nested/hello.txt", {"who": "there"}) == "hi there\n"

    def test_load_false_skips_directory(self):
        assert TemplateStore(load=False).list_templates() == []


# ---------------------------------------------------------------------------
# Rendering contract
# ---------------------------------------------------------------------------


class TestRender:
    def test_render_is_deterministic(self, store, full_template_params):
        for template_id in store.list_templates():
            first = store.render(template_id, full_template_params)
            second = store.render(template_id, full_template_params)
            assert first == second, template_id

    def test_unknown_template(self, store):
        with pytest.raises(UnknownTemplateError) as exc_info:
            store.render("nope/missing", {})
        assert exc_info.value.template_id == "nope/missing"
        assert isinstance(exc_info.value, RenderError)

    def test_every_required_param_is_enforced(self, store, full_template_params):
        for template_id in store.list_templates():
            for name in store.get(template_id).required_params:
                params = {k: v for k, v in full_template_params.items() if k != name}
                with pytest.raises(MissingParamError) as exc_info:
                    store.render(template_id, params)
                assert exc_info.value.missing == [name]
                assert exc_info.value.param == name

    def test_missing_param_lists_all_names(self, store):
        with pytest.raises(MissingParamError) as exc_info:
            store.render("docker/Dockerfile", {})
        assert exc_info.value.missing == ["node_version", "port"]
        assert "node_version, port" in str(exc_info.value)

    def test_extra_params_ignored(self, store):
        out = store.render("docker/Dockerfile", {"node_version": "20", "port": 1, "extra": True})
        assert out.startswith("FROM node:20\n")

    def test_render_keeps_trailing_newline(self, store, full_template_params):
        assert store.render("project/gitignore", full_template_params).endswith("coverage\n")

    def test_attribute_error_becomes_render_error(self):
        inline = TemplateStore(load=False)
        inline.register("t", "{{ thing.missing_attr }}")
        with pytest.raises(RenderError):
            inline.render("t", {"thing": object()})


class TestRegister:
    def test_register_inline(self):
        inline = TemplateStore(load=False)
        template = inline.register("greeting", "Hello {{ name }}!")
        assert template.required_params == {"name"}
        assert inline.has("greeting")
        assert inline.render("greeting", {"name": "demo"}) == "Hello demo!"

    def test_declared_params_are_required(self):
        inline = TemplateStore(load=False)
        inline.register("static", "no variables", required_params=["project_name"])
        with pytest.raises(MissingParamError):
            inline.render("static", {})
        assert inline.render("static", {"project_name": "x"}) == "no variables"

    def test_loop_variables_not_required(self):
        inline = TemplateStore(load=False)
        template = inline.register("loop", "{% for k in items %}{{ k }}{% endfor %}")
        assert template.required_params == {"items"}

    def test_register_replaces(self):
        inline = TemplateStore(load=False)
        inline.register("t", "one")
        inline.register("t", "two")
        assert inline.render("t", {}) == "two"


# ---------------------------------------------------------------------------
# Payload templates
# ---------------------------------------------------------------------------


class TestPayloads:
    def test_server_with_factory(self, store, full_template_params):
        out = store.render("src/server.ts", {**full_template_params, "include_factory": True})
        assert "GenericFactory.createInstance(App)" in out
        assert out.rstrip().endswith("appInstance.execute();")

    def test_server_without_factory(self, store, full_template_params):
        out = store.render("src/server.ts", {**full_template_params, "include_factory": False})
        assert "GenericFactory" not in out
        assert "new App()" in out

    def test_readme_documents_all_scripts(self, store, full_template_params):
        out = store.render("project/README.md", full_template_params)
        assert "# demo" in out
        for name in MANIFEST_SCRIPTS:
            assert f"`npm run {name}`" in out

    def test_output_is_not_html_escaped(self, store, full_template_params):
        out = store.render("project/README.md", full_template_params)
        assert 'prettier --write "src/**/*.{ts,tsx}"' in out
        assert "npx eslint . && npm test" in out

    def test_pre_commit_hook(self, store, full_template_params):
        out = store.render("hooks/pre-commit", full_template_params)
        assert out.startswith("#!/bin/sh\n")
        assert "npx eslint . && npm test" in out

    def test_app_uses_port(self, store, full_template_params):
        out = store.render("src/app.ts", {**full_template_params, "port": 4321})
        assert "process.env.PORT || 4321" in out

    def test_app_quotes_project_name(self, store, full_template_params):
        out = store.render("src/app.ts", {**full_template_params, "project_name": "bob's-api"})
        assert "console.log('bob\\'s-api', 'is running on port', this.port);" in out

    def test_compose_name_falls_back_when_slug_is_empty(self, store, full_template_params):
        out = store.render("docker/docker-compose.yml", {**full_template_params, "project_name": "\u65e5\u672c\u8a9e"})
        assert yaml.safe_load(out)["name"] == "app"

    def test_compose_name_uses_slug(self, store, full_template_params):
        out = store.render("docker/docker-compose.yml", {**full_template_params, "project_name": "My API"})
        assert yaml.safe_load(out)["name"] == "my-api"


class TestSlugifyFilter:
    def test_slug(self):
        assert _slugify_filter("My Cool API") == "my-cool-api"

    def test_strips_edges(self):
        assert _slugify_filter("--Demo--") == "demo"

    def test_non_ascii_gives_empty_slug(self):
        assert _slugify_filter("\u65e5\u672c\u8a9e") == ""


class TestJsStringFilter:
    def test_plain(self):
        assert _js_string_filter("demo") == "'demo'"

    def test_escapes_quote(self):
        assert _js_string_filter("bob's-api") == "'bob\\'s-api'"
