"""
Drift detection between desired and observed resources.

Resources are compared on a per-kind projection of the fields the operator
owns, so server-populated metadata (resourceVersion, timestamps, defaults)
never counts as drift.
"""

import base64
import binascii
import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


def _labels(resource: Dict[str, Any]) -> Dict[str, str]:
    return dict((resource.get("metadata") or {}).get("labels") or {})


def decode_secret_data(secret: Dict[str, Any]) -> Dict[str, str]:
    """
    Return a Secret's effective string data.

    ``data`` values are base64-decoded; ``stringData`` entries, which the API
    server folds into ``data`` on write, take precedence when present.
    """
    decoded: Dict[str, str] = {}
    for key, value in (secret.get("data") or {}).items():
        try:
            decoded[key] = base64.b64decode(value or "").decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            logger.warning(f"Secret key {key} is not valid base64 text")
            decoded[key] = value
    decoded.update(secret.get("stringData") or {})
    return decoded


def _secret_fields(secret: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "labels": _labels(secret),
        "type": secret.get("type") or "Opaque",
        "data": decode_secret_data(secret),
    }


def _config_map_fields(config_map: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "labels": _labels(config_map),
        "data": dict(config_map.get("data") or {}),
        "binaryData": dict(config_map.get("binaryData") or {}),
        "immutable": bool(config_map.get("immutable")),
    }


def _container_fields(container: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": container.get("name"),
        "image": container.get("image"),
        "env": list(container.get("env") or []),
    }


def _deployment_fields(deployment: Dict[str, Any]) -> Dict[str, Any]:
    spec = deployment.get("spec") or {}
    template = spec.get("template") or {}
    pod_spec = template.get("spec") or {}
    return {
        "labels": _labels(deployment),
        "replicas": spec.get("replicas"),
        "selector": dict((spec.get("selector") or {}).get("matchLabels") or {}),
        "template_labels": _labels(template),
        "containers": [_container_fields(c) for c in pod_spec.get("containers") or []],
    }


_PROJECTIONS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "Secret": _secret_fields,
    "ConfigMap": _config_map_fields,
    "Deployment": _deployment_fields,
}


def relevant_fields(resource: Dict[str, Any]) -> Dict[str, Any]:
    """
    Project a resource onto the fields the operator manages.

    Raises:
        ValueError: If the resource kind has no projection
    """
    kind = resource.get("kind")
    projection = _PROJECTIONS.get(kind)
    if projection is None:
        raise ValueError(f"No drift projection for kind {kind!r}")
    return projection(resource)


def matches(desired: Dict[str, Any], observed: Optional[Dict[str, Any]]) -> bool:
    """
    Check whether an observed resource matches its desired shape.

    An absent resource never matches; the caller creates it instead.

    Args:
        desired: Shape built from the Agent
        observed: Resource read from the store, or None if it does not exist

    Returns:
        True if the managed fields are structurally equal
    """
    if observed is None:
        return False
    # The kind of the desired shape is authoritative; list/get results may omit it
    observed = {**observed, "kind": desired.get("kind")}
    return relevant_fields(desired) == relevant_fields(observed)
