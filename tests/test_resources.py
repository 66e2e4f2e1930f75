"""Unit tests for resources.py - Desired resource shapes."""

import pytest

from models import Agent
from resources import (
    BASELINE_IMAGE,
    CREDENTIAL_KEYS,
    credential_data,
    desired_configuration,
    desired_credential,
    desired_workload,
    ensure_image,
    labels_for_agent,
    owner_reference,
)


@pytest.fixture
def agent(sample_agent_resource):
    return Agent.from_resource(sample_agent_resource)


class TestLabels:
    """Tests for label derivation."""

    def test_labels_for_agent(self):
        assert labels_for_agent("build-agents") == {
            "component": "agent",
            "owner": "build-agents",
        }

    def test_labels_are_fresh_dicts(self):
        labels = labels_for_agent("a")
        labels["extra"] = "x"
        assert "extra" not in labels_for_agent("a")


class TestOwnerReference:
    """Tests for owner reference construction."""

    def test_owner_reference(self, agent):
        ref = owner_reference(agent)
        assert ref == {
            "apiVersion": "azdevops.gofound.nl/v1alpha1",
            "kind": "Agent",
            "name": "build-agents",
            "uid": "0c1d2e3f-1111-2222-3333-444455556666",
            "controller": True,
            "blockOwnerDeletion": True,
        }


class TestEnsureImage:
    """Tests for default image substitution."""

    def test_empty_image_defaulted(self, agent):
        assert ensure_image(agent) == BASELINE_IMAGE
        assert agent.spec.image == BASELINE_IMAGE

    def test_idempotent(self, agent):
        first = ensure_image(agent)
        second = ensure_image(agent, default_image="other/image:1")
        assert first == second == BASELINE_IMAGE

    def test_explicit_image_kept(self, agent):
        agent.spec.image = "contoso/agent:2.0"
        assert ensure_image(agent) == "contoso/agent:2.0"

    def test_custom_default(self, agent):
        assert ensure_image(agent, default_image="mirror/agent:latest") == (
            "mirror/agent:latest"
        )


class TestDesiredWorkload:
    """Tests for the Deployment shape."""

    def test_metadata(self, agent):
        dep = desired_workload(agent)
        assert dep["apiVersion"] == "apps/v1"
        assert dep["kind"] == "Deployment"
        assert dep["metadata"]["name"] == "build-agents"
        assert dep["metadata"]["namespace"] == "ci"
        assert dep["metadata"]["labels"] == labels_for_agent("build-agents")
        assert dep["metadata"]["ownerReferences"] == [owner_reference(agent)]

    def test_replicas_and_selector(self, agent):
        dep = desired_workload(agent)
        assert dep["spec"]["replicas"] == 2
        assert dep["spec"]["selector"]["matchLabels"] == labels_for_agent("build-agents")
        assert dep["spec"]["template"]["metadata"]["labels"] == labels_for_agent(
            "build-agents"
        )

    def test_default_image_used_and_persisted(self, agent):
        dep = desired_workload(agent)
        container = dep["spec"]["template"]["spec"]["containers"][0]
        assert container["image"] == BASELINE_IMAGE
        assert agent.spec.image == BASELINE_IMAGE

    def test_env_sourced_from_secret(self, agent):
        dep = desired_workload(agent)
        env = dep["spec"]["template"]["spec"]["containers"][0]["env"]
        assert [e["name"] for e in env] == CREDENTIAL_KEYS
        for entry in env:
            assert "value" not in entry
            assert entry["valueFrom"]["secretKeyRef"] == {
                "name": "build-agents",
                "key": entry["name"],
            }

    def test_token_never_inlined(self, agent):
        dep = desired_workload(agent)
        assert "pat-token" not in repr(dep)


class TestDesiredCredential:
    """Tests for the Secret shape."""

    def test_fixed_keys(self, agent):
        secret = desired_credential(agent)
        assert secret["kind"] == "Secret"
        assert secret["type"] == "Opaque"
        assert sorted(secret["stringData"]) == sorted(CREDENTIAL_KEYS)

    def test_values_mirror_spec(self, agent):
        data = credential_data(agent)
        assert data == {
            "AZP_URL": "https://dev.azure.com/contoso",
            "AZP_TOKEN": "pat-token",
            "AZP_POOL": "linux-pool",
            "AZP_WORK": "/azp/_work",
            "AZP_AGENT_NAME": "k8s-agent",
            "HTTP_PROXY": "http://proxy:3128",
            "HTTPS_PROXY": "http://proxy:3128",
            "FTP_PROXY": "",
            "NO_PROXY": "localhost,.svc",
            "AGENT_MTU_VALUE": "1400",
        }

    def test_labels_and_owner(self, agent):
        secret = desired_credential(agent)
        assert secret["metadata"]["labels"] == labels_for_agent("build-agents")
        assert secret["metadata"]["ownerReferences"][0]["uid"] == agent.metadata.uid


class TestDesiredConfiguration:
    """Tests for the ConfigMap shape."""

    def test_payload_copied(self, agent):
        cm = desired_configuration(agent)
        assert cm["kind"] == "ConfigMap"
        assert cm["data"] == {"agent.conf": "capabilities=docker"}
        assert cm["binaryData"] == {"ca.crt": "Y2VydA=="}
        assert "immutable" not in cm

    def test_immutable_flag(self, agent):
        agent.spec.config_map.immutable = True
        cm = desired_configuration(agent)
        assert cm["immutable"] is True

    def test_copy_is_detached(self, agent):
        cm = desired_configuration(agent)
        cm["data"]["agent.conf"] = "changed"
        assert agent.spec.config_map.data["agent.conf"] == "capabilities=docker"
