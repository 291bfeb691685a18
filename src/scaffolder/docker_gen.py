"""Container file steps.

Declares the ``WriteFile`` steps that render ``Dockerfile`` and
``docker-compose.yml`` for the generated project.  Docker itself is only
checked for presence before the run; it is never invoked while scaffolding.
"""

from __future__ import annotations

from .steps import WriteFileStep


class DockerGenerator:
    """Produces the container build and compose steps."""

    # Template id -> (step id, output file name)
    _CONTAINER_FILES: dict[str, tuple[str, str]] = {
        "docker/Dockerfile": ("write-dockerfile", "Dockerfile"),
        "docker/docker-compose.yml": ("write-docker-compose", "docker-compose.yml"),
    }

    def steps(self) -> list[WriteFileStep]:
        """Return the container steps in declaration order.

        Both templates take ``node_version``/``port``/``project_name`` from
        the run's base parameters, so the steps carry no params of their own.
        """
        return [
            WriteFileStep(id=step_id, target=output_name, template_id=template_id)
            for template_id, (step_id, output_name) in self._CONTAINER_FILES.items()
        ]
