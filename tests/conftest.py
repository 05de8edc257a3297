"""
In-memory stand-ins for the Kubernetes and registry APIs.
"""
import copy
import itertools

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from devpod.MODELS.image_metadata import ImageMetadata

_uids = itertools.count(1)


def not_found():
    return ApiException(status=404, reason="Not Found")


class _FakeStore:
    """Namespaced object store with per-call failure injection."""

    def __init__(self):
        self.objects = {}
        self.calls = []
        self.fail_on = {}

    def _record(self, method, namespace, name):
        self.calls.append((method, namespace, name))
        error = self.fail_on.get((method, name)) or self.fail_on.get(method)
        if error is not None:
            raise error

    def _read(self, method, name, namespace):
        self._record(method, namespace, name)
        try:
            return copy.deepcopy(self.objects[(namespace, name)])
        except KeyError:
            raise not_found()

    def _create(self, method, namespace, body):
        name = body.metadata.name
        self._record(method, namespace, name)
        if (namespace, name) in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        stored = copy.deepcopy(body)
        stored.metadata.uid = f"uid-{next(_uids)}"
        stored.metadata.resource_version = "1"
        self.objects[(namespace, name)] = stored
        return copy.deepcopy(stored)

    def _replace(self, method, name, namespace, body):
        self._record(method, namespace, name)
        current = self.objects.get((namespace, name))
        if current is None:
            raise not_found()
        if body.metadata.uid and body.metadata.uid != current.metadata.uid:
            raise ApiException(status=409, reason="Conflict")
        self._check_immutable(current, body)
        stored = copy.deepcopy(body)
        stored.metadata.uid = current.metadata.uid
        stored.metadata.resource_version = str(int(current.metadata.resource_version) + 1)
        self.objects[(namespace, name)] = stored
        return copy.deepcopy(stored)

    def _check_immutable(self, current, body):
        pass

    def _delete(self, method, name, namespace):
        self._record(method, namespace, name)
        if self.objects.pop((namespace, name), None) is None:
            raise not_found()

    def methods(self):
        return [call[0] for call in self.calls]


class FakeAppsV1Api(_FakeStore):
    def read_namespaced_deployment(self, name, namespace):
        return self._read("read", name, namespace)

    def create_namespaced_deployment(self, namespace, body):
        return self._create("create", namespace, body)

    def replace_namespaced_deployment(self, name, namespace, body):
        return self._replace("replace", name, namespace, body)

    def delete_namespaced_deployment(self, name, namespace):
        return self._delete("delete", name, namespace)

    def _check_immutable(self, current, body):
        if current.spec.selector.match_labels != body.spec.selector.match_labels:
            raise ApiException(status=422, reason="Invalid: spec.selector: field is immutable")


class FakeCoreV1Api(_FakeStore):
    def read_namespaced_config_map(self, name, namespace):
        return self._read("read", name, namespace)

    def create_namespaced_config_map(self, namespace, body):
        return self._create("create", namespace, body)

    def replace_namespaced_config_map(self, name, namespace, body):
        return self._replace("replace", name, namespace, body)


class FakeRegistry:
    """Serves ImageMetadata (or raises) per transport-prefixed image name."""

    def __init__(self, images=None):
        self.images = images or {}
        self.inspected = []

    def inspect(self, image_name):
        self.inspected.append(image_name)
        result = self.images.get(image_name, ImageMetadata())
        if isinstance(result, Exception):
            raise result
        return result


def make_deployment(
    name="web",
    namespace="ns1",
    containers=None,
    match_labels=None,
    replicas=3,
    uid="uid-source",
):
    match_labels = {"app": name} if match_labels is None else match_labels
    if containers is None:
        containers = [client.V1Container(name="app", image="registry/app:v1", working_dir="/srv")]
    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            uid=uid,
            resource_version="42",
            generation=7,
            labels={"app": name},
        ),
        spec=client.V1DeploymentSpec(
            replicas=replicas,
            selector=client.V1LabelSelector(match_labels=dict(match_labels)),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(labels=dict(match_labels)),
                spec=client.V1PodSpec(containers=containers, termination_grace_period_seconds=30),
            ),
        ),
    )


@pytest.fixture
def apps_api():
    return FakeAppsV1Api()


@pytest.fixture
def core_api():
    return FakeCoreV1Api()


@pytest.fixture
def registry():
    return FakeRegistry(
        {
            "docker://registry/app:v1": ImageMetadata(
                entrypoint=["/bin/app"], cmd=["--port", "8080"], working_dir="/app"
            ),
        }
    )


@pytest.fixture
def source_deployment(apps_api):
    dp = make_deployment()
    apps_api.objects[("ns1", "web")] = dp
    return dp


@pytest.fixture
def deployment_factory():
    return make_deployment


@pytest.fixture
def registry_factory():
    return FakeRegistry
