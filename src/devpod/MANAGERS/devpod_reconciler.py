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
Drives a workload and its generated ConfigMap to the applied devpod state.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from kubernetes import client

from .resource_adapters import API_ERRORS, ResourceAdapter, describe_api_error
from ..BUILDERS.pod_spec_transformer import PodSpecTransformer
from ..MODELS.devpod_result import ApplyAction, ApplyResult
from ..UTILS.naming import devpod_name
from ..errors import FatalAPIError, ImageInspectionError, SourceNotFoundError

logger = logging.getLogger(__name__)


class ReconcileState(str, Enum):
    """Steps of a devpod run, in order."""

    FETCH_SOURCE = "fetch_source"
    FETCH_EXISTING_DEVPOD = "fetch_existing_devpod"
    MUTATE = "mutate"
    RECONCILE_CONFIGMAP = "reconcile_configmap"
    RECONCILE_DEPLOYMENT = "reconcile_deployment"
    DONE = "done"
    FAILED = "failed"


@dataclass
class DevpodPlan:
    """Everything that will be written, computed without touching the cluster."""

    namespace: str
    name: str
    replica: Any
    config_map: client.V1ConfigMap
    existing: Optional[Any] = None
    inspection_errors: List[ImageInspectionError] = field(default_factory=list)

    @property
    def objects(self) -> List[Any]:
        """The objects in the order they are applied."""
        return [self.config_map, self.replica]


class DevpodReconciler:
    """
    Fetches a workload, builds its devpod and applies it.

    No step is retried and nothing is rolled back: a ConfigMap written before
    a failed workload write stays and is overwritten by the next run.
    """

    def __init__(
        self,
        adapter: ResourceAdapter,
        core_api: client.CoreV1Api,
        transformer: PodSpecTransformer,
        force: bool = False,
    ):
        """
        :param adapter: Adapter for the kind being cloned.
        :param core_api: API used for the generated ConfigMap.
        :param transformer: Rewrites the pod template and renders the scripts.
        :param force: Delete and re-create the devpod when it cannot be updated.
        """
        self.adapter = adapter
        self.core_api = core_api
        self.transformer = transformer
        self.force = force
        self.state = ReconcileState.FETCH_SOURCE

    def _enter(self, state: ReconcileState) -> None:
        logger.debug("%s -> %s", self.state.value, state.value)
        self.state = state

    @contextmanager
    def _tracking(self):
        try:
            yield
        except Exception:
            self.state = ReconcileState.FAILED
            raise

    def plan(self, namespace: str, name: str) -> DevpodPlan:
        """
        Reads the source and any existing devpod and builds the replica.
        """
        with self._tracking():
            return self._plan(namespace, name)

    def _plan(self, namespace: str, name: str) -> DevpodPlan:
        kind = self.adapter.kind

        self._enter(ReconcileState.FETCH_SOURCE)
        source = self.adapter.fetch(namespace, name)
        if source is None:
            raise SourceNotFoundError(
                f"Unable to find {kind} {name!r} in namespace {namespace!r}, cannot create devpod",
                status=404,
            )

        self._enter(ReconcileState.FETCH_EXISTING_DEVPOD)
        existing = self.adapter.fetch(namespace, devpod_name(name))
        if existing is not None:
            logger.debug("Found existing devpod with uid %s", existing.metadata.uid)

        self._enter(ReconcileState.MUTATE)
        replica = self.adapter.build_replica(source, existing)
        template = self.adapter.pod_template(replica)
        result = self.transformer.transform(template.spec, kind, namespace, name)
        template.spec = result.pod_spec

        return DevpodPlan(
            namespace=namespace,
            name=name,
            replica=replica,
            config_map=result.config_map,
            existing=existing,
            inspection_errors=result.errors,
        )

    def reconcile_config_map(self, config_map: client.V1ConfigMap) -> ApplyAction:
        """
        Creates the ConfigMap, or replaces it keeping the stored uid.
        """
        namespace, name = config_map.metadata.namespace, config_map.metadata.name
        try:
            existing = self.core_api.read_namespaced_config_map(name, namespace)
        except API_ERRORS as e:
            if getattr(e, "status", None) != 404:
                raise FatalAPIError(
                    f"Failed to check for configmap {name!r} in namespace {namespace!r}: {describe_api_error(e)}",
                    status=getattr(e, "status", None),
                ) from e
            existing = None

        verb = "create" if existing is None else "update"
        try:
            if existing is None:
                self.core_api.create_namespaced_config_map(namespace, config_map)
                return ApplyAction.CREATED
            config_map.metadata.uid = existing.metadata.uid
            self.core_api.replace_namespaced_config_map(name, namespace, config_map)
            return ApplyAction.UPDATED
        except API_ERRORS as e:
            raise FatalAPIError(
                f"Failed to {verb} configmap {name!r} in namespace {namespace!r}: {describe_api_error(e)}",
                status=getattr(e, "status", None),
            ) from e

    def apply_plan(self, plan: DevpodPlan) -> ApplyResult:
        """
        Writes a plan: the ConfigMap first, since the replica mounts it.
        """
        with self._tracking():
            self._enter(ReconcileState.RECONCILE_CONFIGMAP)
            config_map_action = self.reconcile_config_map(plan.config_map)

            self._enter(ReconcileState.RECONCILE_DEPLOYMENT)
            action = self.adapter.reconcile(plan.replica, plan.existing, force=self.force)

            self._enter(ReconcileState.DONE)
            return ApplyResult(
                namespace=plan.namespace,
                kind=self.adapter.kind,
                name=plan.replica.metadata.name,
                action=action,
                config_map_name=plan.config_map.metadata.name,
                config_map_action=config_map_action,
                scripts=list(plan.config_map.data),
                inspection_errors=[str(e) for e in plan.inspection_errors],
            )

    def apply(self, namespace: str, name: str) -> ApplyResult:
        """
        Runs every step for ``namespace/name``.

        :raises DevpodError: on the first failing step; ``state`` is then FAILED.
        """
        return self.apply_plan(self.plan(namespace, name))
