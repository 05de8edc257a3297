# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""
Rewrites a pod spec into a dormant placeholder and saves each container's
original command line as a generated shell script.
"""
import copy
import logging
import shlex
from dataclasses import dataclass, field
from typing import Dict, List

from jinja2 import Template
from kubernetes import client

from ..MODELS.devpod_config import DEFAULT_IMAGE_TRANSPORT
from ..MODELS.image_metadata import ImageMetadata
from ..RUNNERS.entrypoint_executor import EntrypointExecutor
from ..UTILS.naming import (
    INIT_MOUNT_PATH,
    INIT_VOLUME_NAME,
    MARKER_KEY,
    MARKER_LABEL_VALUE,
    init_config_map_name,
    script_filename,
)
from ..errors import ImageInspectionError

logger = logging.getLogger(__name__)

SCRIPT_TEMPLATE = Template(
    "#!/bin/sh\n"
    "\n"
    "{% if cd_line %}{{ echo_line }};\n{{ cd_line }};\n\n{% endif %}"
    "{% for comment in comments %}# {{ comment | replace('\n', '\n# ') }}\n{% endfor %}"
    "\n"
    "{{ command_line }}\n",
    keep_trailing_newline=True,
)

BANNER_TEMPLATE = Template(
    """echo "Welcome to DEVPOD"
echo "This is a copy of the {{ kind }} {{ namespace }}/{{ name }}"
echo "All it does is just sleep forever and ever"
echo ""
echo "The original command was saved to {{ script_path }}"
echo "Run it with: sh {{ script_path }}"

sleep infinity"""
)

PLACEHOLDER_COMMAND = ["sh", "-c"]
SCRIPT_MODE = 0o755


@dataclass
class TransformResult:
    """A rewritten pod spec together with the scripts saved from it."""

    pod_spec: client.V1PodSpec
    config_map: client.V1ConfigMap
    errors: List[ImageInspectionError] = field(default_factory=list)

    @property
    def scripts(self) -> Dict[str, str]:
        return self.config_map.data


class PodSpecTransformer:
    """
    Replaces every container's command with a sleeping placeholder.

    The input pod spec is never modified; a new spec with a newly built
    container list is returned alongside the ConfigMap of saved scripts.
    """

    def __init__(self, registry, transport: str = DEFAULT_IMAGE_TRANSPORT, strict: bool = False):
        """
        :param registry: Anything with an ``inspect(image_name) -> ImageMetadata`` method.
        :param transport: Prefix prepended to each container image before inspection.
        :param strict: Raise on the first image that cannot be inspected instead
            of continuing with empty image metadata.
        """
        self.registry = registry
        self.transport = transport
        self.strict = strict
        self.executor = EntrypointExecutor()

    def inspect_image(self, image: str, errors: List[ImageInspectionError]) -> ImageMetadata:
        """
        Reads image metadata, degrading to empty metadata unless strict.
        """
        try:
            return self.registry.inspect(f"{self.transport}{image}")
        except ImageInspectionError as e:
            if self.strict:
                raise
            logger.warning("Continuing without image metadata: %s", e)
            errors.append(e)
            return ImageMetadata()

    def render_script(self, container: client.V1Container, metadata: ImageMetadata) -> str:
        """
        Builds the shell script that re-runs the container's original command.
        """
        derived = self.executor.derive(
            container.command, container.args, metadata.entrypoint, metadata.cmd
        )

        working_dir = container.working_dir or metadata.working_dir
        cd_line = echo_line = ""
        if working_dir:
            cd_line = f"cd {shlex.quote(working_dir)}"
            echo_line = f"echo {shlex.quote(f'Setting WorkingDir via: {cd_line}')}"

        return SCRIPT_TEMPLATE.render(
            echo_line=echo_line,
            cd_line=cd_line,
            comments=derived.comments,
            command_line=shlex.join(derived.line),
        )

    def build_placeholder(
        self, container: client.V1Container, script_path: str, kind: str, namespace: str, name: str
    ) -> client.V1Container:
        """
        Returns a copy of ``container`` that sleeps instead of running.
        """
        placeholder = copy.deepcopy(container)
        placeholder.command = list(PLACEHOLDER_COMMAND)
        placeholder.args = [
            BANNER_TEMPLATE.render(kind=kind, namespace=namespace, name=name, script_path=script_path)
        ]

        mounts = [m for m in (placeholder.volume_mounts or []) if m.name != INIT_VOLUME_NAME]
        mounts.append(
            client.V1VolumeMount(name=INIT_VOLUME_NAME, mount_path=INIT_MOUNT_PATH, read_only=True)
        )
        placeholder.volume_mounts = mounts
        return placeholder

    def transform(
        self, pod_spec: client.V1PodSpec, kind: str, namespace: str, name: str
    ) -> TransformResult:
        """
        Rewrites ``pod_spec`` into a dormant copy.

        :param pod_spec: The pod spec of the workload being cloned.
        :param kind: Resource kind, used in the placeholder banner.
        :param namespace: Namespace of the workload and of the generated ConfigMap.
        :param name: Name of the original workload.
        :return: The new pod spec, the generated ConfigMap and any inspection errors.
        """
        config_map_name = init_config_map_name(name)
        errors: List[ImageInspectionError] = []
        scripts: Dict[str, str] = {}
        containers = []

        for idx, container in enumerate(pod_spec.containers or []):
            metadata = self.inspect_image(container.image, errors)
            filename = script_filename(idx, container.name)
            scripts[filename] = self.render_script(container, metadata)
            containers.append(
                self.build_placeholder(
                    container, f"{INIT_MOUNT_PATH}/{filename}", kind, namespace, name
                )
            )
            logger.debug("Saved command of container %s to %s", container.name, filename)

        new_spec = copy.deepcopy(pod_spec)
        new_spec.containers = containers
        volumes = [v for v in (new_spec.volumes or []) if v.name != INIT_VOLUME_NAME]
        volumes.append(
            client.V1Volume(
                name=INIT_VOLUME_NAME,
                config_map=client.V1ConfigMapVolumeSource(
                    name=config_map_name, default_mode=SCRIPT_MODE
                ),
            )
        )
        new_spec.volumes = volumes

        config_map = client.V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=client.V1ObjectMeta(
                name=config_map_name,
                namespace=namespace,
                labels={MARKER_KEY: MARKER_LABEL_VALUE},
            ),
            data=scripts,
        )
        return TransformResult(pod_spec=new_spec, config_map=config_map, errors=errors)
