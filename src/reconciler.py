"""
Agent Reconciler - One reconciliation pass for an Agent.

Reads the Agent and its dependent resources, decides what to create or update,
writes the changes and reports back whether the host runtime should requeue.
Every pass starts from freshly read state, so passes can be repeated or
resumed after a crash without any stored phase.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from drift import matches
from models import Agent
from resources import (
    BASELINE_IMAGE,
    desired_configuration,
    desired_credential,
    desired_workload,
    labels_for_agent,
)
from status import pod_names, reconcile_status
from store import NotFoundError, ResourceKind, StoreError, StoreGateway

logger = logging.getLogger(__name__)

DEFAULT_REQUEUE_AFTER = 60  # seconds


class ActionType(Enum):
    """Write operations a pass can issue."""

    CREATE = "create"
    UPDATE = "update"
    UPDATE_STATUS = "update_status"


@dataclass
class Action:
    """A single write decided during a pass."""

    type: ActionType
    resource: Dict[str, Any]

    @property
    def kind(self) -> str:
        return self.resource.get("kind", "")

    @property
    def name(self) -> str:
        return self.resource["metadata"]["name"]

    def describe(self) -> str:
        return f"{self.type.value} {self.kind} {self.name}"


@dataclass
class ReconcileResult:
    """Outcome of a pass: done, requeue after a delay, or failed."""

    success: bool = False
    message: str = ""
    requeue_after: Optional[int] = None
    error: Optional[Exception] = None
    actions: List[Action] = field(default_factory=list)

    @classmethod
    def done(cls, message: str = "") -> "ReconcileResult":
        return cls(success=True, message=message)

    @classmethod
    def requeue(cls, after: int, message: str = "") -> "ReconcileResult":
        return cls(success=True, message=message, requeue_after=after)

    @classmethod
    def failed(cls, error: Exception) -> "ReconcileResult":
        return cls(success=False, message=str(error), error=error)


def plan_dependent(
    desired: Dict[str, Any],
    observed: Optional[Dict[str, Any]],
    correct_drift: bool = True,
) -> Optional[Action]:
    """
    Decide what to do with one dependent resource.

    Args:
        desired: Shape built from the Agent
        observed: Current object, or None if it does not exist
        correct_drift: Update the object when its managed fields differ

    Returns:
        The Action to take, or None if the resource is already converged
    """
    if observed is None:
        return Action(ActionType.CREATE, desired)
    if correct_drift and not matches(desired, observed):
        return Action(ActionType.UPDATE, desired)
    return None


def plan_replicas(agent: Agent, workload: Dict[str, Any]) -> Optional[Action]:
    """Scale the observed Deployment to the Agent's size if they differ."""
    spec = workload.setdefault("spec", {})
    if spec.get("replicas") == agent.spec.size:
        return None
    spec["replicas"] = agent.spec.size
    workload.setdefault("kind", ResourceKind.DEPLOYMENT.value)
    return Action(ActionType.UPDATE, workload)


class AgentReconciler:
    """
    Converges an Agent's Deployment, Secret and ConfigMap.

    The reconciler holds no per-key state and no locks; the caller must not
    run two passes for the same Agent at once.
    """

    def __init__(
        self,
        store: StoreGateway,
        requeue_after: int = DEFAULT_REQUEUE_AFTER,
        default_image: str = BASELINE_IMAGE,
    ):
        self.store = store
        self.requeue_after = requeue_after
        self.default_image = default_image

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """
        Run one reconciliation pass for the Agent ``namespace/name``.

        Store errors end the pass early and are returned as a failed result.
        Cancellation propagates to the caller.
        """
        actions: List[Action] = []
        try:
            result = await self._reconcile(namespace, name, actions)
        except StoreError as e:
            logger.error(f"Failed to reconcile Agent {namespace}/{name}: {e}")
            result = ReconcileResult.failed(e)
        except ValidationError as e:
            logger.error(f"Agent {namespace}/{name} is malformed: {e}")
            result = ReconcileResult.failed(e)
        result.actions = actions
        return result

    async def _get_optional(
        self, kind: ResourceKind, namespace: str, name: str
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self.store.get(kind, namespace, name)
        except NotFoundError:
            return None

    async def _apply(self, action: Action, actions: List[Action]) -> None:
        namespace = action.resource["metadata"]["namespace"]
        logger.info(
            f"{action.type.value.capitalize()} {action.kind} {namespace}/{action.name}"
        )
        if action.type is ActionType.CREATE:
            await self.store.create(action.resource)
        elif action.type is ActionType.UPDATE:
            await self.store.update(action.resource)
        else:
            await self.store.update_status(action.resource)
        actions.append(action)

    async def _converge(
        self,
        kind: ResourceKind,
        agent: Agent,
        build: Callable[[Agent], Dict[str, Any]],
        actions: List[Action],
        correct_drift: bool,
    ) -> None:
        observed = await self._get_optional(kind, agent.namespace, agent.name)
        action = plan_dependent(build(agent), observed, correct_drift=correct_drift)
        if action is not None:
            await self._apply(action, actions)

    async def _reconcile(
        self, namespace: str, name: str, actions: List[Action]
    ) -> ReconcileResult:
        raw = await self._get_optional(ResourceKind.AGENT, namespace, name)
        if raw is None:
            logger.info(f"Agent {namespace}/{name} not found, assuming it was deleted")
            return ReconcileResult.done("Agent not found")
        agent = Agent.from_resource(raw)

        # Deployment: create and give the pods time to schedule
        workload = await self._get_optional(ResourceKind.DEPLOYMENT, namespace, name)
        if workload is None:
            desired = desired_workload(agent, self.default_image)
            await self._apply(Action(ActionType.CREATE, desired), actions)
            return ReconcileResult.requeue(self.requeue_after, "Deployment created")

        await self._converge(
            ResourceKind.SECRET, agent, desired_credential, actions, correct_drift=True
        )
        await self._converge(
            ResourceKind.CONFIG_MAP,
            agent,
            desired_configuration,
            actions,
            correct_drift=False,
        )

        # Scaling runs before the pod listing so a stale list never hides it
        scale = plan_replicas(agent, workload)
        if scale is not None:
            await self._apply(scale, actions)
            return ReconcileResult.requeue(
                self.requeue_after, f"Deployment scaled to {agent.spec.size}"
            )

        pods = await self.store.list(ResourceKind.POD, namespace, labels_for_agent(name))
        if reconcile_status(agent, pod_names(pods)):
            await self._apply(Action(ActionType.UPDATE_STATUS, agent.to_resource()), actions)
            return ReconcileResult.requeue(self.requeue_after, "Status updated")

        # Only a pass that wrote nothing counts as steady state
        if actions:
            return ReconcileResult.requeue(
                self.requeue_after, "Secret or ConfigMap written"
            )
        return ReconcileResult.done("Agent is up to date")
