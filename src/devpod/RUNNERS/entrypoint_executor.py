"""
Utilities for resolving the full execution command for a container.
"""
from typing import List, Optional
from ..MODELS.image_metadata import DerivedCommand


class EntrypointExecutor:
    """
    Handles the merging of pod-level command/args with image ENTRYPOINT/CMD
    according to Kubernetes rules.
    """
    def derive(
        self,
        container_command: Optional[List[str]],
        container_args: Optional[List[str]],
        image_entrypoint: Optional[List[str]],
        image_cmd: Optional[List[str]],
    ) -> DerivedCommand:
        """
        Combines container overrides and image defaults into a single command line.

        :param container_command: The container's ``command`` (overrides ENTRYPOINT).
        :param container_args: The container's ``args`` (overrides CMD).
        :param image_entrypoint: The image's ENTRYPOINT.
        :param image_cmd: The image's CMD.
        :return: The effective line and one provenance comment per non-empty source.
        """
        container_command = container_command or []
        container_args = container_args or []
        image_entrypoint = image_entrypoint or []
        image_cmd = image_cmd or []

        # Kubernetes rules:
        # command replaces ENTRYPOINT, args replace CMD, each independently.
        entrypoint = container_command if container_command else image_entrypoint
        args = container_args if container_args else image_cmd

        comments = []
        for label, source in (
            ("Command (ENTRYPOINT) from container", container_command),
            ("Command (ENTRYPOINT) from image", image_entrypoint),
            ("Args (CMD) from container", container_args),
            ("Args (CMD) from image", image_cmd),
        ):
            if source:
                comments.append(f"{label}: {' '.join(source)}")

        return DerivedCommand(line=list(entrypoint) + list(args), comments=comments)
