"""
Main entry point for the Agent Operator.

Wires configuration, the Kubernetes store, the reconciler and the controller
loop together and runs them until SIGINT/SIGTERM.
"""

import asyncio
import logging
import signal
from typing import Optional

from config import Config, get_config
from controller import Controller
from reconciler import AgentReconciler
from store import KubernetesStore, StoreGateway

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the operator process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # The Kubernetes client logs every request at DEBUG
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class Application:
    """Main application that owns the store, reconciler and controller."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()
        self.store: Optional[StoreGateway] = None
        self.controller: Optional[Controller] = None

    def initialize(self, store: Optional[StoreGateway] = None) -> Controller:
        """Initialize all components."""
        logger.info("Initializing Agent Operator")

        self.store = store or KubernetesStore.from_config(self.config.kube)
        operator_config = self.config.operator
        reconciler = AgentReconciler(
            self.store,
            requeue_after=operator_config.requeue_after,
            default_image=operator_config.default_image,
        )
        self.controller = Controller(
            store=self.store,
            reconciler=reconciler,
            config=self.config.controller,
            namespace=operator_config.namespace,
        )
        logger.info("All components initialized")
        return self.controller

    async def start(self):
        """Start the application."""
        if not self.controller:
            self.initialize()
        await self.controller.start()

    async def stop(self):
        """Stop the application gracefully."""
        if self.controller:
            await self.controller.stop()
        logger.info("Agent Operator stopped")


async def main(config: Optional[Config] = None):
    """Main entry point."""
    config = config or get_config()
    setup_logging(config.log_level)
    app = Application(config)

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(app.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await app.start()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        await app.stop()


if __name__ == "__main__":
    asyncio.run(main())
