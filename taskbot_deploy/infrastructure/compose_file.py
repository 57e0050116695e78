"""
Compose File Serializer

Architectural Intent:
- Turns the StackDefinition built in the domain into docker-compose.yml
- YAML is emitted by PyYAML's safe dumper, never by string templates
- Contains no secret values: credentials reach containers through env_file
"""

from typing import Any
import yaml
from taskbot_deploy.domain.services.stack_definition import (
    COMPOSE_FILE,
    StackDefinition,
)
from taskbot_deploy.domain.value_objects.rendered_artifact import RenderedArtifact

HEADER = (
    "# Taskbot stack (generated by taskbot-deploy, do not edit)\n"
    "# Re-run `taskbot-deploy update` to apply changes.\n"
)


class _ComposeDumper(yaml.SafeDumper):
    # shared sub-dicts (logging options) must be written out, not aliased
    def ignore_aliases(self, data: Any) -> bool:
        return True


def dump_compose(data: dict[str, Any]) -> str:
    return yaml.dump(
        data,
        Dumper=_ComposeDumper,
        sort_keys=False,
        default_flow_style=False,
        width=120,
    )


def render_compose_file(stack: StackDefinition) -> RenderedArtifact:
    return RenderedArtifact(
        COMPOSE_FILE, HEADER + dump_compose(stack.to_compose()), 0o644
    )
