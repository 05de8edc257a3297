"""
Kubeconfig loading and namespace resolution for the CLI.
"""
import os
from typing import Optional

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from ..errors import KubeconfigError, NamespaceResolutionError


def default_kubeconfig() -> str:
    """~/.kube/config, used when neither --kubeconfig nor KUBECONFIG is set."""
    return os.path.join(os.path.expanduser("~"), ".kube", "config")


def load_api_client(kubeconfig: Optional[str] = None, context: Optional[str] = None) -> client.ApiClient:
    """
    Builds an API client from a kubeconfig file without touching the global configuration.

    :param kubeconfig: Path to the kubeconfig file.
    :param context: Context to use instead of the file's current context.
    :raises KubeconfigError: if the file is missing or invalid.
    """
    kubeconfig = kubeconfig or default_kubeconfig()
    try:
        return config.new_client_from_config(config_file=kubeconfig, context=context)
    except (ConfigException, OSError) as e:
        raise KubeconfigError(f"Unable to load kubeconfig {kubeconfig!r}: {e}") from e


def resolve_namespace(
    namespace: Optional[str], kubeconfig: Optional[str] = None, context: Optional[str] = None
) -> str:
    """
    Returns ``namespace`` if given, otherwise the namespace of the kubeconfig context.

    :raises NamespaceResolutionError: if neither yields a namespace.
    """
    if namespace:
        return namespace

    kubeconfig = kubeconfig or default_kubeconfig()
    try:
        contexts, active = config.list_kube_config_contexts(config_file=kubeconfig)
    except (ConfigException, OSError) as e:
        raise NamespaceResolutionError(f"Unable to read contexts from kubeconfig {kubeconfig!r}: {e}") from e

    if context:
        active = next((c for c in contexts if c.get("name") == context), None)
        if active is None:
            raise NamespaceResolutionError(f"context {context!r} not found in kubeconfig {kubeconfig!r}")

    current = (active or {}).get("context") or {}
    if not current.get("namespace"):
        raise NamespaceResolutionError(
            f"no namespace given and context {(active or {}).get('name')!r} in kubeconfig "
            f"{kubeconfig!r} does not set one, use --namespace"
        )
    return current["namespace"]
