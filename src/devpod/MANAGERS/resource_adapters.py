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
Resource adapters: one class per workload kind that devpod can clone.

An adapter knows how to read its kind from the API, how to turn a source
object into its devpod replica, and how to write that replica back.
Adding a kind means adding an adapter and registering it in ADAPTERS.
"""
import copy
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple, Type

import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException

from ..MODELS.devpod_result import ApplyAction
from ..UTILS.naming import (
    DEVPOD_SUFFIX,
    MARKER_ANNOTATION_VALUE,
    MARKER_KEY,
    MARKER_LABEL_VALUE,
    devpod_name,
)
from ..errors import (
    ConflictError,
    DevpodError,
    FatalAPIError,
    MissingSelectorError,
    UnsupportedResourceError,
)

logger = logging.getLogger(__name__)

DEVPOD_REPLICAS = 1
DEVPOD_GRACE_PERIOD_SECONDS = 1


# Failures of an API call: error responses and transport errors.
API_ERRORS = (ApiException, urllib3.exceptions.HTTPError)


def describe_api_error(error) -> str:
    """Short human-readable form of an API error."""
    if isinstance(error, ApiException):
        return f"({error.status}) {error.reason}"
    return f"(unreachable) {error}"


def disambiguation_key(match_labels: Optional[Dict[str, str]]) -> str:
    """
    Picks the selector label to rename: the lexicographically smallest key,
    so repeated runs always pick the same one.
    """
    if not match_labels:
        raise MissingSelectorError("workload has no selector match labels, cannot separate the devpod from it")
    return sorted(match_labels)[0]


def reset_identity(obj, existing) -> None:
    """
    Renames ``obj`` to its devpod name and strips server-owned metadata.
    The uid of an existing devpod is kept so the write is an update.
    """
    meta = obj.metadata
    meta.name = devpod_name(meta.name)
    meta.resource_version = None
    meta.uid = existing.metadata.uid if existing is not None else None
    meta.creation_timestamp = None
    meta.generation = None
    meta.managed_fields = None
    obj.status = None


def mark_template(selector: client.V1LabelSelector, template: client.V1PodTemplateSpec) -> str:
    """
    Separates the devpod's pods from the original selector and stamps the
    devpod markers. Returns the label key that was renamed.
    """
    key = disambiguation_key(selector.match_labels)

    if template.metadata is None:
        template.metadata = client.V1ObjectMeta()
    if template.metadata.labels is None:
        template.metadata.labels = {}
    if template.metadata.annotations is None:
        template.metadata.annotations = {}

    value = f"{selector.match_labels[key]}{DEVPOD_SUFFIX}"
    selector.match_labels[key] = value
    template.metadata.labels[key] = value

    selector.match_labels[MARKER_KEY] = MARKER_LABEL_VALUE
    template.metadata.labels[MARKER_KEY] = MARKER_LABEL_VALUE
    template.metadata.annotations[MARKER_KEY] = MARKER_ANNOTATION_VALUE
    return key


class ResourceAdapter(ABC):
    """
    Read/build/write operations for one workload kind.
    """

    kind: str = ""
    aliases: Tuple[str, ...] = ()
    api_class = None

    def __init__(self, api):
        """
        :param api: The typed Kubernetes API object serving this kind.
        """
        self.api = api

    @classmethod
    def from_api_client(cls, api_client: client.ApiClient) -> "ResourceAdapter":
        return cls(cls.api_class(api_client))

    @abstractmethod
    def fetch(self, namespace: str, name: str):
        """
        Reads an object, returning None when it does not exist.

        :raises FatalAPIError: on any other API failure.
        """

    @abstractmethod
    def build_replica(self, source, existing):
        """
        Returns the devpod replica of ``source``; ``source`` is left untouched.
        """

    @abstractmethod
    def pod_template(self, obj) -> client.V1PodTemplateSpec:
        """The pod template of ``obj``."""

    @abstractmethod
    def reconcile(self, replica, existing, force: bool = False) -> ApplyAction:
        """
        Writes ``replica`` to the cluster, creating or updating it.

        :raises ConflictError: the write failed and ``force`` is not set.
        :raises FatalAPIError: the forced delete-and-create failed.
        """


class DeploymentAdapter(ResourceAdapter):
    """
    Clones apps/v1 Deployments.
    """

    kind = "deployment"
    aliases = ("deployment", "deployments", "deploy", "dp")
    api_class = client.AppsV1Api

    def fetch(self, namespace: str, name: str) -> Optional[client.V1Deployment]:
        try:
            return self.api.read_namespaced_deployment(name, namespace)
        except API_ERRORS as e:
            if getattr(e, "status", None) == 404:
                return None
            raise FatalAPIError(
                f"Unable to read {self.kind} {name!r} in namespace {namespace!r}: {describe_api_error(e)}",
                status=getattr(e, "status", None),
            ) from e

    def build_replica(self, source: client.V1Deployment, existing: Optional[client.V1Deployment]) -> client.V1Deployment:
        replica = copy.deepcopy(source)
        replica.api_version = "apps/v1"
        replica.kind = "Deployment"
        reset_identity(replica, existing)

        spec = replica.spec
        key = mark_template(spec.selector, spec.template)
        logger.debug("Renamed selector label %r to keep %s apart from its source", key, replica.metadata.name)

        spec.replicas = DEVPOD_REPLICAS
        spec.template.spec.termination_grace_period_seconds = DEVPOD_GRACE_PERIOD_SECONDS
        return replica

    def pod_template(self, obj: client.V1Deployment) -> client.V1PodTemplateSpec:
        return obj.spec.template

    def _recreate(self, replica: client.V1Deployment) -> None:
        namespace, name = replica.metadata.namespace, replica.metadata.name
        replica.metadata.uid = None
        logger.warning(
            "Devpod %s/%s already exists, removing and re-creating since --force was set", namespace, name
        )
        try:
            self.api.delete_namespaced_deployment(name, namespace)
        except API_ERRORS as e:
            raise FatalAPIError(
                f"Failed to delete and re-create devpod named {name!r} in namespace {namespace!r}: {describe_api_error(e)}",
                status=getattr(e, "status", None),
            ) from e
        try:
            self.api.create_namespaced_deployment(namespace, replica)
        except API_ERRORS as e:
            raise FatalAPIError(
                f"Failed to re-create devpod named {name!r} in namespace {namespace!r}: {describe_api_error(e)}",
                status=getattr(e, "status", None),
            ) from e

    def reconcile(self, replica: client.V1Deployment, existing, force: bool = False) -> ApplyAction:
        namespace, name = replica.metadata.namespace, replica.metadata.name
        verb = "create" if existing is None else "update"
        try:
            if existing is None:
                self.api.create_namespaced_deployment(namespace, replica)
                return ApplyAction.CREATED
            self.api.replace_namespaced_deployment(name, namespace, replica)
            return ApplyAction.UPDATED
        except urllib3.exceptions.HTTPError as e:
            raise FatalAPIError(
                f"Failed to {verb} devpod {name!r} in namespace {namespace!r}: {describe_api_error(e)}"
            ) from e
        except ApiException as e:
            if not force:
                raise ConflictError(
                    f"Failed to {verb} devpod {name!r} in namespace {namespace!r}: {describe_api_error(e)}\n"
                    "You can use --force to delete it and re-create"
                ) from e
            logger.debug("Failed to %s devpod %s/%s: %s", verb, namespace, name, describe_api_error(e))

        self._recreate(replica)
        return ApplyAction.RECREATED


ADAPTERS: Dict[str, Type[ResourceAdapter]] = {
    alias: adapter for adapter in (DeploymentAdapter,) for alias in adapter.aliases
}

DEFAULT_KIND = DeploymentAdapter.kind


def resolve_adapter(kind: str) -> Type[ResourceAdapter]:
    """
    Finds the adapter serving ``kind`` (case-insensitive, plural and short forms accepted).
    """
    adapter = ADAPTERS.get(kind.lower())
    if adapter is None:
        raise UnsupportedResourceError(
            f"unrecognized resource type: {kind!r}, see --help for info. "
            f"Supported types: {', '.join(sorted(ADAPTERS))}"
        )
    return adapter


def parse_target(target: str) -> Tuple[Type[ResourceAdapter], str]:
    """
    Splits a ``[kind/]name`` argument into its adapter and resource name.
    """
    kind, sep, name = target.partition("/")
    if not sep:
        kind, name = DEFAULT_KIND, target
    if not name:
        raise DevpodError(f"missing resource name in {target!r}")
    return resolve_adapter(kind), name
