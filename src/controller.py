"""
Operator Controller - Host loop for Agent reconciliation.

Periodically lists Agents and runs reconciliation passes, honouring the
requeue delay each pass asks for and backing off exponentially on failure.
Passes for different Agents run concurrently up to a limit; passes for the
same Agent never overlap.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from config import ControllerConfig
from reconciler import AgentReconciler, ReconcileResult
from store import ResourceKind, StoreGateway

logger = logging.getLogger(__name__)

Key = Tuple[str, str]  # (namespace, name)


@dataclass
class KeyState:
    """Scheduling state for one Agent."""

    next_run: float = 0.0
    retry_count: int = 0
    last_result: Optional[ReconcileResult] = None


@dataclass
class Schedule:
    """Due times and retry counters per Agent key."""

    states: Dict[Key, KeyState] = field(default_factory=dict)

    def due(self, now: float) -> List[Key]:
        return [key for key, state in self.states.items() if state.next_run <= now]

    def sync(self, keys: Set[Key], now: float) -> None:
        """Track newly listed keys and forget ones that disappeared."""
        for key in keys:
            self.states.setdefault(key, KeyState(next_run=now))
        for key in list(self.states):
            if key not in keys:
                del self.states[key]


class Controller:
    """
    Main controller that drives AgentReconciler passes.

    Lists Agents every ``reconcile_interval`` seconds and reconciles every key
    that is due. A ``done`` result waits for the next sweep, a requeue result
    becomes due after its delay, and a failure is retried with backoff.
    """

    def __init__(
        self,
        store: StoreGateway,
        reconciler: AgentReconciler,
        config: Optional[ControllerConfig] = None,
        namespace: str = "",
    ):
        self.store = store
        self.reconciler = reconciler
        self.config = config or ControllerConfig()
        self.namespace = namespace
        self.reconcile_interval = self.config.reconcile_interval
        self.max_concurrent_reconciles = self.config.max_concurrent_reconciles
        self.semaphore = asyncio.Semaphore(self.max_concurrent_reconciles)
        self.running = False

        self.schedule = Schedule()
        self._in_flight: Set[Key] = set()
        self._wakeup = asyncio.Event()

    async def start(self):
        """Start the reconciliation loop."""
        logger.info(
            f"Starting Operator Controller "
            f"(namespace: {self.namespace or 'all namespaces'})"
        )
        self.running = True
        last_sweep = 0.0

        while self.running:
            try:
                now = time.monotonic()
                if now - last_sweep >= self.reconcile_interval:
                    await self._sweep(now)
                    last_sweep = now
                await self.run_due()
            except Exception as e:
                logger.error(f"Error in reconciliation loop: {e}", exc_info=True)

            if not self.running:
                break
            await self._sleep(self._seconds_until_next(last_sweep))

    async def stop(self):
        """Stop the controller gracefully."""
        logger.info("Stopping Operator Controller")
        self.running = False
        self._wakeup.set()

    async def _sleep(self, seconds: float) -> None:
        self._wakeup.clear()
        if not self.running:
            return
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=max(seconds, 0.1))
        except asyncio.TimeoutError:
            pass

    def _seconds_until_next(self, last_sweep: float) -> float:
        now = time.monotonic()
        next_times = [last_sweep + self.reconcile_interval]
        next_times.extend(s.next_run for s in self.schedule.states.values())
        return min(next_times) - now

    async def _sweep(self, now: float) -> None:
        """List Agents and schedule every one of them for a pass."""
        agents = await self.store.list(ResourceKind.AGENT, self.namespace)
        keys = {
            (a["metadata"].get("namespace", "default"), a["metadata"]["name"])
            for a in agents
        }
        self.schedule.sync(keys, now)
        for key in keys:
            state = self.schedule.states[key]
            if state.retry_count == 0 and (
                state.last_result is None or state.last_result.requeue_after is None
            ):
                state.next_run = min(state.next_run, now)
        logger.debug(f"Sweep found {len(keys)} Agents")

    async def run_due(self) -> None:
        """Reconcile every key whose due time has passed."""
        now = time.monotonic()
        tasks = [
            self.reconcile_key(key)
            for key in self.schedule.due(now)
            if key not in self._in_flight
        ]
        if tasks:
            logger.info(f"Found {len(tasks)} Agents needing reconciliation")
            await asyncio.gather(*tasks, return_exceptions=True)

    def backoff_delay(self, retry_count: int) -> float:
        """Exponential backoff with jitter, capped at ``backoff_max_delay``."""
        delay = min(
            self.config.backoff_base_delay * (2 ** min(retry_count, 10)),
            self.config.backoff_max_delay,
        )
        jitter = self.config.backoff_jitter_factor
        return delay * (1 + random.uniform(-jitter, jitter))

    async def reconcile_key(self, key: Key) -> Optional[ReconcileResult]:
        """
        Run one pass for a key, unless a pass for it is already running.

        Returns:
            The pass result, or None if the key was already in flight
        """
        if key in self._in_flight:
            logger.debug(f"Agent {key[0]}/{key[1]} already reconciling, skipping")
            return None

        self._in_flight.add(key)
        try:
            async with self.semaphore:
                result = await self._run_pass(key)
        finally:
            self._in_flight.discard(key)

        self._record(key, result)
        return result

    async def _run_pass(self, key: Key) -> ReconcileResult:
        namespace, name = key
        start_time = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self.reconciler.reconcile(namespace, name),
                timeout=self.config.reconcile_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                f"Reconciliation of Agent {namespace}/{name} timed out "
                f"after {self.config.reconcile_timeout}s"
            )
            result = ReconcileResult.failed(e)

        duration = time.monotonic() - start_time
        logger.debug(f"Pass for Agent {namespace}/{name} took {duration:.2f}s")
        return result

    def _record(self, key: Key, result: ReconcileResult) -> None:
        now = time.monotonic()
        state = self.schedule.states.setdefault(key, KeyState())
        state.last_result = result
        namespace, name = key

        if not result.success:
            delay = self.backoff_delay(state.retry_count)
            state.retry_count += 1
            state.next_run = now + delay
            logger.warning(
                f"Agent {namespace}/{name} failed (attempt {state.retry_count}), "
                f"retrying in {delay:.0f}s: {result.message}"
            )
        elif result.requeue_after is not None:
            state.retry_count = 0
            state.next_run = now + result.requeue_after
            logger.info(
                f"Agent {namespace}/{name}: {result.message}, "
                f"requeue in {result.requeue_after}s"
            )
        else:
            state.retry_count = 0
            state.next_run = now + self.reconcile_interval
            logger.info(f"Successfully reconciled Agent {namespace}/{name}")
