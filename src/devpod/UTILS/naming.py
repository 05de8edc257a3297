"""
Names and markers shared by every object devpod writes to the cluster.
"""

DEVPOD_SUFFIX = "-devpod"
INIT_SUFFIX = "-devpod-init"

MARKER_KEY = "devpod"
MARKER_LABEL_VALUE = "devpod"
MARKER_ANNOTATION_VALUE = "Created by devpod"

INIT_VOLUME_NAME = "devpod-init"
INIT_MOUNT_PATH = "/devpod-init"


def devpod_name(name: str) -> str:
    """Name of the devpod copy of ``name``."""
    return f"{name}{DEVPOD_SUFFIX}"


def init_config_map_name(name: str) -> str:
    """Name of the ConfigMap holding the saved scripts for ``name``."""
    return f"{name}{INIT_SUFFIX}"


def script_filename(index: int, container_name: str) -> str:
    """File name of the saved script for the container at ``index``."""
    return f"{index}_{container_name}.sh"
