"""Pytest configuration and fixtures."""

import copy
from typing import Any, Dict, List, Optional, Tuple

import pytest

from store import NotFoundError, ResourceKind, StoreGateway


class FakeStore(StoreGateway):
    """In-memory StoreGateway that records every call."""

    def __init__(self):
        self.objects: Dict[Tuple[str, str, str], Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str, str]] = []
        # (method, kind value) -> exception raised on that call
        self.errors: Dict[Tuple[str, str], Exception] = {}

    def put(self, resource: Dict[str, Any]) -> None:
        meta = resource["metadata"]
        key = (resource["kind"], meta.get("namespace", "default"), meta["name"])
        self.objects[key] = copy.deepcopy(resource)

    def find(self, kind: str, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        return self.objects.get((kind, namespace, name))

    @property
    def mutations(self) -> List[Tuple[str, str, str]]:
        return [c for c in self.calls if c[0] in ("create", "update", "update_status")]

    def _record(self, method: str, kind: str, target: str) -> None:
        self.calls.append((method, kind, target))
        error = self.errors.get((method, kind))
        if error is not None:
            raise error

    async def get(self, kind, namespace, name):
        self._record("get", kind.value, f"{namespace}/{name}")
        obj = self.find(kind.value, namespace, name)
        if obj is None:
            raise NotFoundError(f"{kind.value} {namespace}/{name} not found", status=404)
        return copy.deepcopy(obj)

    async def list(self, kind, namespace, labels=None):
        self._record("list", kind.value, namespace)
        items = []
        for (obj_kind, obj_ns, _), obj in self.objects.items():
            if obj_kind != kind.value or (namespace and obj_ns != namespace):
                continue
            obj_labels = obj["metadata"].get("labels") or {}
            if labels and any(obj_labels.get(k) != v for k, v in labels.items()):
                continue
            items.append(copy.deepcopy(obj))
        return items

    async def create(self, resource):
        meta = resource["metadata"]
        self._record("create", resource["kind"], f"{meta['namespace']}/{meta['name']}")
        self.put(resource)
        return copy.deepcopy(resource)

    async def update(self, resource):
        meta = resource["metadata"]
        self._record("update", resource["kind"], f"{meta['namespace']}/{meta['name']}")
        self.put(resource)
        return copy.deepcopy(resource)

    async def update_status(self, agent):
        meta = agent["metadata"]
        self._record(
            "update_status", ResourceKind.AGENT.value, f"{meta['namespace']}/{meta['name']}"
        )
        stored = self.find(ResourceKind.AGENT.value, meta["namespace"], meta["name"])
        stored["status"] = copy.deepcopy(agent.get("status") or {})
        return copy.deepcopy(stored)


@pytest.fixture
def fake_store():
    """An empty in-memory store."""
    return FakeStore()


@pytest.fixture
def sample_agent_resource():
    """Sample Agent custom resource as returned by the API."""
    return {
        "apiVersion": "azdevops.gofound.nl/v1alpha1",
        "kind": "Agent",
        "metadata": {
            "name": "build-agents",
            "namespace": "ci",
            "uid": "0c1d2e3f-1111-2222-3333-444455556666",
            "resourceVersion": "1001",
        },
        "spec": {
            "size": 2,
            "image": "",
            "pool": {
                "url": "https://dev.azure.com/contoso",
                "token": "pat-token",
                "poolName": "linux-pool",
                "agentName": "k8s-agent",
                "workDir": "/azp/_work",
            },
            "proxy": {
                "httpProxy": "http://proxy:3128",
                "httpsProxy": "http://proxy:3128",
                "ftpProxy": "",
                "noProxy": "localhost,.svc",
            },
            "mtuValue": "1400",
            "configMap": {
                "data": {"agent.conf": "capabilities=docker"},
                "binaryData": {"ca.crt": "Y2VydA=="},
            },
        },
    }


@pytest.fixture
def make_pod():
    """Factory for minimal pods owned by an Agent."""

    def _make_pod(name: str, agent_name: str = "build-agents", namespace: str = "ci"):
        return {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {
                "name": name,
                "namespace": namespace,
                "labels": {"component": "agent", "owner": agent_name},
            },
        }

    return _make_pod
