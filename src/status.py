"""
Agent status reporting.

Keeps ``status.agents`` in line with the pods the store reports.
"""

import logging
from typing import Any, Dict, List

from models import Agent

logger = logging.getLogger(__name__)


def pod_names(pods: List[Dict[str, Any]]) -> List[str]:
    """Names of the given pods, in the order the store listed them."""
    return [pod["metadata"]["name"] for pod in pods]


def reconcile_status(agent: Agent, observed_names: List[str]) -> bool:
    """
    Record the observed pod names on the Agent's status.

    The comparison is order-sensitive; the list is stored as given.

    Returns:
        True if the status changed and must be written back
    """
    if agent.status.agents == list(observed_names):
        return False

    logger.info(
        f"Agent {agent.namespace}/{agent.name} pods changed: "
        f"{agent.status.agents} -> {observed_names}"
    )
    agent.status.agents = list(observed_names)
    return True
