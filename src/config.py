"""
Configuration module for the Agent Operator.

Loads configuration from environment variables.
"""

import os
from dataclasses import dataclass
from typing import Optional

from resources import BASELINE_IMAGE


def _env_int(name: str, default: str) -> int:
    """Read an integer environment variable, naming it on failure."""
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: str) -> float:
    """Read a float environment variable, naming it on failure."""
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class KubeConfig:
    """Kubernetes API client configuration."""

    in_cluster: bool = False
    kubeconfig: Optional[str] = None
    context: Optional[str] = None

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            in_cluster=os.getenv("KUBE_IN_CLUSTER", "false").lower() == "true",
            kubeconfig=os.getenv("KUBECONFIG") or None,
            context=os.getenv("KUBE_CONTEXT") or None,
        )


@dataclass
class OperatorConfig:
    """Agent reconciliation settings."""

    namespace: str = ""  # empty = all namespaces
    default_image: str = BASELINE_IMAGE
    requeue_after: int = 60  # seconds

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            namespace=os.getenv("WATCH_NAMESPACE", ""),
            default_image=os.getenv("DEFAULT_AGENT_IMAGE") or BASELINE_IMAGE,
            requeue_after=_env_int("REQUEUE_AFTER", "60"),
        )


@dataclass
class ControllerConfig:
    """Host runtime loop configuration."""

    reconcile_interval: int = 60  # seconds
    max_concurrent_reconciles: int = 5
    reconcile_timeout: int = 30  # seconds per pass

    # Exponential backoff configuration
    backoff_base_delay: int = 5  # base delay in seconds
    backoff_max_delay: int = 300  # max delay in seconds
    backoff_jitter_factor: float = 0.1  # ±10% jitter

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            reconcile_interval=_env_int("RECONCILE_INTERVAL", "60"),
            max_concurrent_reconciles=_env_int("MAX_CONCURRENT_RECONCILES", "5"),
            reconcile_timeout=_env_int("RECONCILE_TIMEOUT", "30"),
            backoff_base_delay=_env_int("BACKOFF_BASE_DELAY", "5"),
            backoff_max_delay=_env_int("BACKOFF_MAX_DELAY", "300"),
            backoff_jitter_factor=_env_float("BACKOFF_JITTER_FACTOR", "0.1"),
        )


@dataclass
class Config:
    """Main configuration object."""

    kube: KubeConfig
    operator: OperatorConfig
    controller: ControllerConfig
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            kube=KubeConfig.from_env(),
            operator=OperatorConfig.from_env(),
            controller=ControllerConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            kube=KubeConfig(),
            operator=OperatorConfig(),
            controller=ControllerConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
