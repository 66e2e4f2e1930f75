"""
Store Gateway - Access to the managed-resource store.

Defines the store-agnostic interface the reconciler consumes, its error
taxonomy, and the Kubernetes implementation backed by the official client.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import urllib3
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException

from config import KubeConfig
from models import API_GROUP, API_VERSION, PLURAL

logger = logging.getLogger(__name__)


class ResourceKind(Enum):
    """Kinds of resources the operator reads or writes."""

    AGENT = "Agent"
    DEPLOYMENT = "Deployment"
    SECRET = "Secret"
    CONFIG_MAP = "ConfigMap"
    POD = "Pod"


class StoreError(Exception):
    """A store call failed. Retryable: the whole pass is run again."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotFoundError(StoreError):
    """The requested object does not exist."""


class ConflictError(StoreError):
    """The store rejected a write because the object changed underneath it."""


def label_selector(labels: Dict[str, str]) -> str:
    """Render a label dict as an equality-based selector string."""
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


class StoreGateway(ABC):
    """
    Abstract get/list/create/update access to the resource store.

    Resources are plain dicts in the Kubernetes manifest layout. Missing
    objects raise NotFoundError; other failures raise StoreError.
    """

    @abstractmethod
    async def get(self, kind: ResourceKind, namespace: str, name: str) -> Dict[str, Any]:
        """
        Fetch one object by identity.

        Raises:
            NotFoundError: If the object does not exist
            StoreError: On any other failure
        """
        pass

    @abstractmethod
    async def list(
        self,
        kind: ResourceKind,
        namespace: str,
        labels: Optional[Dict[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        List objects of a kind, optionally filtered by labels.

        An empty namespace lists across all namespaces.
        """
        pass

    @abstractmethod
    async def create(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        """Create an object; its kind and namespace are read from the manifest."""
        pass

    @abstractmethod
    async def update(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        """Replace an object's spec/data with the given manifest."""
        pass

    @abstractmethod
    async def update_status(self, agent: Dict[str, Any]) -> Dict[str, Any]:
        """Write an Agent's status subresource only."""
        pass


# kind -> (API class attribute, method suffix)
_NATIVE_KINDS = {
    ResourceKind.DEPLOYMENT: ("apps", "deployment"),
    ResourceKind.SECRET: ("core", "secret"),
    ResourceKind.CONFIG_MAP: ("core", "config_map"),
    ResourceKind.POD: ("core", "pod"),
}


class KubernetesStore(StoreGateway):
    """
    StoreGateway backed by the Kubernetes API.

    The official client is synchronous, so each call runs in a worker thread.
    Cancelling the awaiting task abandons the call; the pass is retried.
    """

    def __init__(self, api_client: Optional[k8s_client.ApiClient] = None):
        self.api_client = api_client or k8s_client.ApiClient()
        self.core = k8s_client.CoreV1Api(self.api_client)
        self.apps = k8s_client.AppsV1Api(self.api_client)
        self.custom = k8s_client.CustomObjectsApi(self.api_client)

    @classmethod
    def from_config(cls, kube: KubeConfig) -> "KubernetesStore":
        """Load cluster credentials and build a store."""
        if kube.in_cluster:
            k8s_config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes configuration")
        else:
            k8s_config.load_kube_config(config_file=kube.kubeconfig, context=kube.context)
            logger.info(f"Loaded kubeconfig (context: {kube.context or 'current'})")
        return cls()

    async def _call(self, description: str, fn: Callable, *args, **kwargs) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except ApiException as e:
            message = f"{description}: {e.status} {e.reason}"
            if e.status == 404:
                raise NotFoundError(message, status=e.status) from e
            if e.status == 409:
                raise ConflictError(message, status=e.status) from e
            raise StoreError(message, status=e.status) from e
        except urllib3.exceptions.HTTPError as e:
            raise StoreError(f"{description}: {e}") from e

    def _to_dict(self, obj: Any) -> Dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        return self.api_client.sanitize_for_serialization(obj)

    def _native(self, kind: ResourceKind, verb: str) -> Callable:
        api_name, suffix = _NATIVE_KINDS[kind]
        return getattr(getattr(self, api_name), f"{verb}_namespaced_{suffix}")

    async def get(self, kind: ResourceKind, namespace: str, name: str) -> Dict[str, Any]:
        description = f"get {kind.value} {namespace}/{name}"
        if kind is ResourceKind.AGENT:
            return await self._call(
                description,
                self.custom.get_namespaced_custom_object,
                API_GROUP,
                API_VERSION,
                namespace,
                PLURAL,
                name,
            )
        obj = await self._call(description, self._native(kind, "read"), name, namespace)
        return self._to_dict(obj)

    async def list(
        self,
        kind: ResourceKind,
        namespace: str,
        labels: Optional[Dict[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        selector = label_selector(labels) if labels else None
        description = f"list {kind.value} in {namespace or 'all namespaces'}"

        if kind is ResourceKind.AGENT:
            if namespace:
                result = await self._call(
                    description,
                    self.custom.list_namespaced_custom_object,
                    API_GROUP,
                    API_VERSION,
                    namespace,
                    PLURAL,
                    label_selector=selector,
                )
            else:
                result = await self._call(
                    description,
                    self.custom.list_cluster_custom_object,
                    API_GROUP,
                    API_VERSION,
                    PLURAL,
                    label_selector=selector,
                )
            return list(result.get("items") or [])

        if namespace:
            fn = self._native(kind, "list")
            result = await self._call(description, fn, namespace, label_selector=selector)
        else:
            api_name, suffix = _NATIVE_KINDS[kind]
            fn = getattr(getattr(self, api_name), f"list_{suffix}_for_all_namespaces")
            result = await self._call(description, fn, label_selector=selector)
        return [self._to_dict(item) for item in result.items or []]

    async def create(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        kind = ResourceKind(resource["kind"])
        namespace = resource["metadata"]["namespace"]
        description = f"create {kind.value} {namespace}/{resource['metadata']['name']}"
        if kind is ResourceKind.AGENT:
            return await self._call(
                description,
                self.custom.create_namespaced_custom_object,
                API_GROUP,
                API_VERSION,
                namespace,
                PLURAL,
                resource,
            )
        obj = await self._call(description, self._native(kind, "create"), namespace, resource)
        return self._to_dict(obj)

    async def update(self, resource: Dict[str, Any]) -> Dict[str, Any]:
        kind = ResourceKind(resource["kind"])
        namespace = resource["metadata"]["namespace"]
        name = resource["metadata"]["name"]
        description = f"update {kind.value} {namespace}/{name}"
        if kind is ResourceKind.AGENT:
            return await self._call(
                description,
                self.custom.replace_namespaced_custom_object,
                API_GROUP,
                API_VERSION,
                namespace,
                PLURAL,
                name,
                resource,
            )
        obj = await self._call(
            description, self._native(kind, "replace"), name, namespace, resource
        )
        return self._to_dict(obj)

    async def update_status(self, agent: Dict[str, Any]) -> Dict[str, Any]:
        namespace = agent["metadata"]["namespace"]
        name = agent["metadata"]["name"]
        return await self._call(
            f"update status of Agent {namespace}/{name}",
            self.custom.patch_namespaced_custom_object_status,
            API_GROUP,
            API_VERSION,
            namespace,
            PLURAL,
            name,
            {"status": agent.get("status") or {}},
        )
