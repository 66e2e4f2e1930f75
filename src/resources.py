"""
Desired resource shapes for an Agent.

Pure functions that build the Deployment, Secret and ConfigMap manifests an
Agent owns. No I/O happens here; the reconciler compares these shapes with
what the store reports.
"""

from typing import Any, Dict, List

from models import Agent

BASELINE_IMAGE = "bartvanbenthem/agent:latest"
CONTAINER_NAME = "agent"

# Secret keys, in the order they are exposed to the agent container
CREDENTIAL_KEYS = [
    "AZP_URL",
    "AZP_TOKEN",
    "AZP_POOL",
    "AZP_WORK",
    "AZP_AGENT_NAME",
    "HTTP_PROXY",
    "HTTPS_PROXY",
    "FTP_PROXY",
    "NO_PROXY",
    "AGENT_MTU_VALUE",
]


def labels_for_agent(name: str) -> Dict[str, str]:
    """Labels carried by every dependent resource and used to select its pods."""
    return {"component": "agent", "owner": name}


def owner_reference(agent: Agent) -> Dict[str, Any]:
    """Controller owner reference so dependents are garbage collected with the Agent."""
    return {
        "apiVersion": agent.api_version,
        "kind": agent.kind,
        "name": agent.name,
        "uid": agent.metadata.uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }


def _object_meta(agent: Agent) -> Dict[str, Any]:
    return {
        "name": agent.name,
        "namespace": agent.namespace,
        "labels": labels_for_agent(agent.name),
        "ownerReferences": [owner_reference(agent)],
    }


def ensure_image(agent: Agent, default_image: str = BASELINE_IMAGE) -> str:
    """
    Fill in the baseline image when the Agent does not set one.

    The default is written onto ``agent.spec.image`` so later shapes built from
    the same descriptor agree. Only the in-memory descriptor changes; the
    stored spec is never updated. Calling this repeatedly is a no-op.
    """
    if not agent.spec.image:
        agent.spec.image = default_image
    return agent.spec.image


def _secret_env(agent: Agent) -> List[Dict[str, Any]]:
    return [
        {
            "name": key,
            "valueFrom": {"secretKeyRef": {"name": agent.name, "key": key}},
        }
        for key in CREDENTIAL_KEYS
    ]


def desired_workload(agent: Agent, default_image: str = BASELINE_IMAGE) -> Dict[str, Any]:
    """
    Build the Deployment running the Agent's pods.

    Args:
        agent: The Agent descriptor (its image may be defaulted in place)
        default_image: Image used when the Agent does not set one

    Returns:
        Deployment manifest dict
    """
    image = ensure_image(agent, default_image)
    labels = labels_for_agent(agent.name)

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _object_meta(agent),
        "spec": {
            "replicas": agent.spec.size,
            "selector": {"matchLabels": dict(labels)},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "containers": [
                        {
                            "name": CONTAINER_NAME,
                            "image": image,
                            "env": _secret_env(agent),
                        }
                    ]
                },
            },
        },
    }


def credential_data(agent: Agent) -> Dict[str, str]:
    """Map the Agent's pool, proxy and MTU settings onto the fixed Secret keys."""
    pool = agent.spec.pool
    proxy = agent.spec.proxy
    return {
        "AZP_URL": pool.url,
        "AZP_TOKEN": pool.token,
        "AZP_POOL": pool.pool_name,
        "AZP_WORK": pool.work_dir,
        "AZP_AGENT_NAME": pool.agent_name,
        "HTTP_PROXY": proxy.http_proxy,
        "HTTPS_PROXY": proxy.https_proxy,
        "FTP_PROXY": proxy.ftp_proxy,
        "NO_PROXY": proxy.no_proxy,
        "AGENT_MTU_VALUE": agent.spec.mtu_value,
    }


def desired_credential(agent: Agent) -> Dict[str, Any]:
    """Build the Secret holding the agent's connection settings."""
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": _object_meta(agent),
        "type": "Opaque",
        "stringData": credential_data(agent),
    }


def desired_configuration(agent: Agent) -> Dict[str, Any]:
    """Build the ConfigMap copied from the Agent's embedded configuration."""
    payload = agent.spec.config_map
    config_map: Dict[str, Any] = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": _object_meta(agent),
        "data": dict(payload.data),
        "binaryData": dict(payload.binary_data),
    }
    if payload.immutable is not None:
        config_map["immutable"] = payload.immutable
    return config_map
