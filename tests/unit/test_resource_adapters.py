"""
Unit tests for resource adapters and target parsing.
"""
import pytest
from kubernetes.client.rest import ApiException
from urllib3.exceptions import MaxRetryError

from devpod.MANAGERS.resource_adapters import (
    DeploymentAdapter,
    disambiguation_key,
    parse_target,
    resolve_adapter,
)
from devpod.MODELS.devpod_result import ApplyAction
from devpod.errors import (
    ConflictError,
    DevpodError,
    FatalAPIError,
    MissingSelectorError,
    UnsupportedResourceError,
)


class TestTargetParsing:
    """Tests for [kind/]name parsing and kind dispatch."""

    def test_bare_name_defaults_to_deployment(self):
        adapter, name = parse_target("web")
        assert adapter is DeploymentAdapter
        assert name == "web"

    @pytest.mark.parametrize("kind", ["deployment", "deployments", "deploy", "dp", "Deployment"])
    def test_deployment_aliases(self, kind):
        adapter, name = parse_target(f"{kind}/web")
        assert adapter is DeploymentAdapter
        assert name == "web"

    @pytest.mark.parametrize("kind", ["pod", "statefulset", "sts", "service"])
    def test_other_kinds_rejected(self, kind):
        with pytest.raises(UnsupportedResourceError) as excinfo:
            parse_target(f"{kind}/web")
        assert "unrecognized resource type" in str(excinfo.value)

    def test_missing_name(self):
        with pytest.raises(DevpodError):
            parse_target("deployment/")

    def test_resolve_adapter(self):
        assert resolve_adapter("DP") is DeploymentAdapter


class TestDisambiguation:
    """Tests for selector key selection."""

    def test_smallest_key_wins(self):
        assert disambiguation_key({"z": "1", "a": "2"}) == "a"

    @pytest.mark.parametrize("labels", [None, {}])
    def test_no_match_labels(self, labels):
        with pytest.raises(MissingSelectorError):
            disambiguation_key(labels)


class TestDeploymentAdapter:
    """Tests for DeploymentAdapter."""

    def test_fetch_missing_returns_none(self, apps_api):
        assert DeploymentAdapter(apps_api).fetch("ns1", "nope") is None

    def test_fetch_other_error_is_fatal(self, apps_api):
        apps_api.fail_on["read"] = ApiException(status=403, reason="Forbidden")
        with pytest.raises(FatalAPIError) as excinfo:
            DeploymentAdapter(apps_api).fetch("ns1", "web")
        assert excinfo.value.status == 403

    def test_fetch_unreachable_cluster_is_fatal(self, apps_api):
        apps_api.fail_on["read"] = MaxRetryError(None, "/apis/apps/v1/namespaces/ns1/deployments/web")
        with pytest.raises(FatalAPIError) as excinfo:
            DeploymentAdapter(apps_api).fetch("ns1", "web")
        assert excinfo.value.status is None
        assert "unreachable" in str(excinfo.value)

    def test_reconcile_unreachable_cluster_is_fatal_even_with_force(self, apps_api, deployment_factory):
        adapter = DeploymentAdapter(apps_api)
        replica = adapter.build_replica(deployment_factory(), None)
        apps_api.fail_on["create"] = MaxRetryError(None, "/apis/apps/v1/namespaces/ns1/deployments")
        with pytest.raises(FatalAPIError):
            adapter.reconcile(replica, None, force=True)
        assert "delete" not in apps_api.methods()

    def test_build_replica_identity(self, apps_api, deployment_factory):
        source = deployment_factory()
        replica = DeploymentAdapter(apps_api).build_replica(source, None)

        assert replica.metadata.name == "web-devpod"
        assert replica.metadata.namespace == "ns1"
        assert replica.metadata.resource_version is None
        assert replica.metadata.uid is None
        assert replica.metadata.generation is None

    def test_build_replica_inherits_existing_uid(self, apps_api, deployment_factory):
        existing = deployment_factory(name="web-devpod", uid="uid-existing")
        replica = DeploymentAdapter(apps_api).build_replica(deployment_factory(), existing)
        assert replica.metadata.uid == "uid-existing"

    def test_build_replica_disambiguates_selector(self, apps_api, deployment_factory):
        source = deployment_factory(match_labels={"z": "1", "a": "2"})
        replica = DeploymentAdapter(apps_api).build_replica(source, None)

        assert replica.spec.selector.match_labels == {"z": "1", "a": "2-devpod", "devpod": "devpod"}
        assert replica.spec.template.metadata.labels["a"] == "2-devpod"
        assert replica.spec.template.metadata.labels["z"] == "1"

    def test_build_replica_suspends(self, apps_api, deployment_factory):
        replica = DeploymentAdapter(apps_api).build_replica(deployment_factory(replicas=5), None)

        assert replica.spec.replicas == 1
        assert replica.spec.template.spec.termination_grace_period_seconds == 1
        assert replica.spec.template.metadata.labels["devpod"] == "devpod"
        assert replica.spec.template.metadata.annotations == {"devpod": "Created by devpod"}

    def test_build_replica_leaves_source_alone(self, apps_api, deployment_factory):
        source = deployment_factory(replicas=5)
        DeploymentAdapter(apps_api).build_replica(source, None)

        assert source.metadata.name == "web"
        assert source.metadata.uid == "uid-source"
        assert source.spec.replicas == 5
        assert source.spec.selector.match_labels == {"app": "web"}

    def test_build_replica_requires_match_labels(self, apps_api, deployment_factory):
        with pytest.raises(MissingSelectorError):
            DeploymentAdapter(apps_api).build_replica(deployment_factory(match_labels={}), None)

    def test_reconcile_creates_when_absent(self, apps_api, deployment_factory):
        adapter = DeploymentAdapter(apps_api)
        replica = adapter.build_replica(deployment_factory(), None)

        assert adapter.reconcile(replica, None) == ApplyAction.CREATED
        assert ("ns1", "web-devpod") in apps_api.objects

    def test_reconcile_conflict_without_force(self, apps_api, deployment_factory):
        existing = deployment_factory(name="web-devpod", match_labels={"app": "other"})
        apps_api.objects[("ns1", "web-devpod")] = existing
        adapter = DeploymentAdapter(apps_api)
        replica = adapter.build_replica(deployment_factory(), existing)

        with pytest.raises(ConflictError) as excinfo:
            adapter.reconcile(replica, existing, force=False)

        assert "--force" in str(excinfo.value)
        assert "delete" not in apps_api.methods()
        assert apps_api.objects[("ns1", "web-devpod")].spec.selector.match_labels == {"app": "other"}

    def test_reconcile_force_recreates(self, apps_api, deployment_factory):
        existing = deployment_factory(name="web-devpod", match_labels={"app": "other"}, uid="uid-old")
        apps_api.objects[("ns1", "web-devpod")] = existing
        adapter = DeploymentAdapter(apps_api)
        replica = adapter.build_replica(deployment_factory(), existing)

        assert adapter.reconcile(replica, existing, force=True) == ApplyAction.RECREATED

        assert apps_api.methods() == ["replace", "delete", "create"]
        stored = apps_api.objects[("ns1", "web-devpod")]
        assert stored.metadata.uid != "uid-old"
        assert stored.spec.selector.match_labels["app"] == "web-devpod"

    def test_reconcile_force_second_failure_is_fatal(self, apps_api, deployment_factory):
        existing = deployment_factory(name="web-devpod", match_labels={"app": "other"})
        apps_api.objects[("ns1", "web-devpod")] = existing
        apps_api.fail_on["create"] = ApiException(status=500, reason="Internal Error")
        adapter = DeploymentAdapter(apps_api)
        replica = adapter.build_replica(deployment_factory(), existing)

        with pytest.raises(FatalAPIError) as excinfo:
            adapter.reconcile(replica, existing, force=True)
        assert "re-create" in str(excinfo.value)

    def test_reconcile_force_delete_failure_is_fatal(self, apps_api, deployment_factory):
        existing = deployment_factory(name="web-devpod", match_labels={"app": "other"})
        apps_api.objects[("ns1", "web-devpod")] = existing
        apps_api.fail_on["delete"] = ApiException(status=403, reason="Forbidden")
        adapter = DeploymentAdapter(apps_api)
        replica = adapter.build_replica(deployment_factory(), existing)

        with pytest.raises(FatalAPIError):
            adapter.reconcile(replica, existing, force=True)
        assert "create" not in apps_api.methods()
