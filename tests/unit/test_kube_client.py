"""Tests for the Kubernetes client implementations."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.exceptions import ApiException

from hypershift_agent_operator.constants import FIELD_MANAGER
from hypershift_agent_operator.services.kube import InMemoryKubeClient, LiveKubeClient, create_spoke_client
from hypershift_agent_operator.services.kube.client import BoundedApiClient, approved_csr, self_subject_access_review
from hypershift_agent_operator.services.kube.memory import matches_labels, parse_label_selector
from hypershift_agent_operator.utils.errors import ClientConstructionError


def role(name="reader", namespace="ns", labels=None):
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "Role",
        "metadata": {"name": name, "namespace": namespace, "labels": labels or {}},
        "rules": [],
    }


class TestInMemoryKubeClient:
    """Test cases for InMemoryKubeClient."""

    def test_create_assigns_metadata(self):
        """Test that create fills in server-side metadata."""
        client = InMemoryKubeClient()
        created = client.create(role())

        assert created["metadata"]["uid"]
        assert created["metadata"]["resourceVersion"]
        assert created["metadata"]["generation"] == 1

    def test_create_duplicate(self):
        """Test that creating an existing object conflicts."""
        client = InMemoryKubeClient([role()])

        with pytest.raises(ApiException) as exc_info:
            client.create(role())
        assert exc_info.value.status == 409

    def test_get_missing(self):
        """Test that a missing object yields 404."""
        with pytest.raises(ApiException) as exc_info:
            InMemoryKubeClient().get("v1", "Secret", "missing", "ns")
        assert exc_info.value.status == 404

    def test_returned_objects_are_copies(self):
        """Test that callers cannot mutate stored objects."""
        client = InMemoryKubeClient([role()])
        obj = client.get("rbac.authorization.k8s.io/v1", "Role", "reader", "ns")
        obj["rules"].append({"verbs": ["*"]})

        assert client.get("rbac.authorization.k8s.io/v1", "Role", "reader", "ns")["rules"] == []

    def test_update_stale_resource_version(self):
        """Test optimistic concurrency on update."""
        client = InMemoryKubeClient([role()])
        stale = client.get("rbac.authorization.k8s.io/v1", "Role", "reader", "ns")
        client.update(stale)

        with pytest.raises(ApiException) as exc_info:
            client.update(stale)
        assert exc_info.value.status == 409

    def test_update_ignores_status(self):
        """Test that a regular update does not touch status."""
        client = InMemoryKubeClient([role()])
        obj = client.get("rbac.authorization.k8s.io/v1", "Role", "reader", "ns")
        obj["status"] = {"phase": "x"}
        client.update_status(obj)

        obj = client.get("rbac.authorization.k8s.io/v1", "Role", "reader", "ns")
        obj["status"] = {"phase": "y"}
        obj["rules"] = [{"verbs": ["get"]}]
        client.update(obj)

        stored = client.get("rbac.authorization.k8s.io/v1", "Role", "reader", "ns")
        assert stored["status"] == {"phase": "x"}
        assert stored["rules"] == [{"verbs": ["get"]}]

    def test_spec_change_bumps_generation(self):
        """Test that generation tracks spec changes only."""
        client = InMemoryKubeClient([{"apiVersion": "v1", "kind": "Thing", "metadata": {"name": "t"}, "spec": {"a": 1}}])
        obj = client.get("v1", "Thing", "t")
        obj["metadata"]["labels"] = {"x": "y"}
        obj = client.update(obj)
        assert obj["metadata"]["generation"] == 1

        obj["spec"] = {"a": 2}
        assert client.update(obj)["metadata"]["generation"] == 2

    def test_delete_with_finalizer(self):
        """Test that finalizers hold deletion until removed."""
        obj = role()
        obj["metadata"]["finalizers"] = ["example.com/hold"]
        client = InMemoryKubeClient([obj])

        client.delete("rbac.authorization.k8s.io/v1", "Role", "reader", "ns")
        held = client.get("rbac.authorization.k8s.io/v1", "Role", "reader", "ns")
        assert held["metadata"]["deletionTimestamp"]

        held["metadata"]["finalizers"] = []
        client.update(held)
        with pytest.raises(ApiException):
            client.get("rbac.authorization.k8s.io/v1", "Role", "reader", "ns")

    def test_list_by_selector_and_namespace(self):
        """Test list filtering."""
        client = InMemoryKubeClient([
            role("a", labels={"team": "edge"}),
            role("b", labels={"team": "core"}),
            role("c", namespace="other", labels={"team": "edge"}),
        ])

        names = [o["metadata"]["name"] for o in client.list("rbac.authorization.k8s.io/v1", "Role", "ns", "team=edge")]
        assert names == ["a"]
        assert len(client.list("rbac.authorization.k8s.io/v1", "Role", label_selector="team")) == 3

    def test_fail_on(self):
        """Test error injection."""
        client = InMemoryKubeClient()
        client.fail_on["create"] = ApiException(status=500)

        with pytest.raises(ApiException):
            client.create(role())
        assert client.calls == [("create", "Role", "reader")]

    def test_spoke_operations(self):
        """Test the spoke-only helpers."""
        csr = {
            "apiVersion": "certificates.k8s.io/v1",
            "kind": "CertificateSigningRequest",
            "metadata": {"name": "csr-1"},
        }
        client = InMemoryKubeClient([csr, {"apiVersion": "v1", "kind": "Node", "metadata": {"name": "worker-0"}}])

        assert client.is_action_permitted("list", "nodes") is True
        assert client.get_node("worker-0")["metadata"]["name"] == "worker-0"
        client.approve_csr(client.list_csrs()[0])
        approved = client.get("certificates.k8s.io/v1", "CertificateSigningRequest", "csr-1")
        assert approved["status"]["conditions"][0]["type"] == "Approved"
        assert InMemoryKubeClient(permitted=False).is_action_permitted("list", "nodes") is False


class TestLabelSelector:
    """Test cases for label selector parsing."""

    def test_parse(self):
        """Test the supported selector forms."""
        assert parse_label_selector("a=1, b==2,c") == [("a", "1"), ("b", "2"), ("c", None)]
        assert parse_label_selector(None) == []

    def test_matches(self):
        """Test matching labels against requirements."""
        assert matches_labels({"a": "1", "c": ""}, [("a", "1"), ("c", None)])
        assert not matches_labels({"a": "2"}, [("a", "1")])
        assert not matches_labels({}, [("c", None)])


class TestLiveKubeClient:
    """Test cases for LiveKubeClient."""

    @patch("hypershift_agent_operator.services.kube.client.DynamicClient")
    def test_get_passes_timeout(self, mock_dynamic):
        """Test that reads carry the request timeout."""
        resource = MagicMock()
        resource.get.return_value.to_dict.return_value = {"metadata": {"name": "x"}}
        mock_dynamic.return_value.resources.get.return_value = resource

        client = LiveKubeClient(MagicMock(), request_timeout=10)
        assert client.get("v1", "Secret", "x", "ns") == {"metadata": {"name": "x"}}

        mock_dynamic.return_value.resources.get.assert_called_with(api_version="v1", kind="Secret")
        resource.get.assert_called_once_with(name="x", namespace="ns", _request_timeout=10)

    @patch("hypershift_agent_operator.services.kube.client.DynamicClient")
    def test_create_uses_field_manager(self, mock_dynamic):
        """Test that writes are attributed to the operator."""
        resource = MagicMock()
        mock_dynamic.return_value.resources.get.return_value = resource

        LiveKubeClient(MagicMock()).create(role())

        assert resource.create.call_args.kwargs["field_manager"] == FIELD_MANAGER
        assert resource.create.call_args.kwargs["namespace"] == "ns"

    @patch("hypershift_agent_operator.services.kube.client.DynamicClient")
    def test_list_returns_items(self, mock_dynamic):
        """Test that list unwraps the items."""
        resource = MagicMock()
        resource.get.return_value.to_dict.return_value = {"items": [{"metadata": {"name": "a"}}]}
        mock_dynamic.return_value.resources.get.return_value = resource

        items = LiveKubeClient(MagicMock()).list("v1", "ServiceAccount", "ns", "app=x")

        assert items == [{"metadata": {"name": "a"}}]
        resource.get.assert_called_once_with(namespace="ns", label_selector="app=x")

    @patch("hypershift_agent_operator.services.kube.client.DynamicClient")
    def test_errors_propagate(self, mock_dynamic):
        """Test that API errors are raised unchanged."""
        resource = MagicMock()
        resource.get.side_effect = ApiException(status=404)
        mock_dynamic.return_value.resources.get.return_value = resource

        with pytest.raises(ApiException):
            LiveKubeClient(MagicMock()).get("v1", "Secret", "x", "ns")

    def test_review_and_csr_helpers(self):
        """Test the SSAR and CSR manifest helpers."""
        review = self_subject_access_review("get", "nodes")
        assert review["spec"]["resourceAttributes"] == {"verb": "get", "resource": "nodes"}

        csr = {"metadata": {"name": "c"}, "status": {"conditions": [{"type": "Approved"}]}}
        approved = approved_csr(csr)
        assert len(approved["status"]["conditions"]) == 1
        assert approved["status"]["conditions"][0]["status"] == "True"
        assert csr["status"]["conditions"] == [{"type": "Approved"}]


class TestCreateSpokeClient:
    """Test cases for create_spoke_client."""

    def test_malformed_yaml(self):
        """Test that unparseable kubeconfig is rejected."""
        with pytest.raises(ClientConstructionError, match="Failed to parse kubeconfig"):
            create_spoke_client(b"apiVersion: [unterminated")

    def test_not_a_mapping(self):
        """Test that a non-mapping document is rejected."""
        with pytest.raises(ClientConstructionError, match="expected a mapping"):
            create_spoke_client(b"- just\n- a list\n")

    @patch("hypershift_agent_operator.services.kube.client.config.load_kube_config_from_dict")
    def test_invalid_kubeconfig(self, mock_load):
        """Test that a kubeconfig the library rejects is wrapped."""
        mock_load.side_effect = ValueError("no current context")

        with pytest.raises(ClientConstructionError, match="Invalid kubeconfig"):
            create_spoke_client(b"apiVersion: v1\nkind: Config\n")

    @patch("hypershift_agent_operator.services.kube.client.DynamicClient")
    @patch("hypershift_agent_operator.services.kube.client.config.load_kube_config_from_dict")
    def test_unreachable_server(self, mock_load, mock_dynamic):
        """Test that discovery failures are wrapped."""
        mock_dynamic.side_effect = ConnectionError("connection refused")

        with pytest.raises(ClientConstructionError, match="Failed to reach spoke API server"):
            create_spoke_client(b"apiVersion: v1\nkind: Config\n")

    @patch("hypershift_agent_operator.services.kube.client.DynamicClient")
    @patch("hypershift_agent_operator.services.kube.client.config.load_kube_config_from_dict")
    def test_success(self, mock_load, mock_dynamic):
        """Test building a client from a valid kubeconfig."""
        client = create_spoke_client(b"apiVersion: v1\nkind: Config\n", request_timeout=5)

        assert isinstance(client, LiveKubeClient)
        assert client.request_timeout == 5
        assert mock_load.call_args.args == ({"apiVersion": "v1", "kind": "Config"},)
        assert mock_load.call_args.kwargs["persist_config"] is False

    @patch("hypershift_agent_operator.services.kube.client.DynamicClient")
    @patch("hypershift_agent_operator.services.kube.client.config.load_kube_config_from_dict")
    def test_discovery_is_bounded(self, mock_load, mock_dynamic):
        """Test that the client used for discovery carries the request timeout."""
        create_spoke_client(b"apiVersion: v1\nkind: Config\n", request_timeout=5)

        api_client = mock_dynamic.call_args.args[0]
        assert isinstance(api_client, BoundedApiClient)
        assert api_client.request_timeout == 5
        assert mock_load.call_args.kwargs["client_configuration"] is api_client.configuration


class TestBoundedApiClient:
    """Test cases for BoundedApiClient."""

    @patch("hypershift_agent_operator.services.kube.client.client.ApiClient.call_api")
    def test_applies_default_timeout(self, mock_call_api):
        """Test that requests without a timeout get the default one."""
        api_client = BoundedApiClient(request_timeout=7)

        api_client.call_api("/version", "GET", _request_timeout=None)

        assert mock_call_api.call_args.kwargs["_request_timeout"] == 7

    @patch("hypershift_agent_operator.services.kube.client.client.ApiClient.call_api")
    def test_keeps_explicit_timeout(self, mock_call_api):
        """Test that an explicit per-call timeout wins."""
        api_client = BoundedApiClient(request_timeout=7)

        api_client.call_api("/version", "GET", _request_timeout=2)

        assert mock_call_api.call_args.kwargs["_request_timeout"] == 2
