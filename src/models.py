"""
Agent custom resource models.

Pydantic models for the ``Agent`` descriptor as stored in the cluster.
Field aliases follow the camelCase names of the custom resource, so the
models round-trip with the raw dicts returned by the store.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

API_GROUP = "azdevops.gofound.nl"
API_VERSION = "v1alpha1"
KIND = "Agent"
PLURAL = "agents"


class _CRModel(BaseModel):
    """Base for custom resource models: accepts field names and aliases."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AgentPool(_CRModel):
    """Azure DevOps pool connection settings."""

    url: str = ""
    token: str = Field(default="", repr=False)
    pool_name: str = Field(default="", alias="poolName")
    agent_name: str = Field(default="", alias="agentName")
    work_dir: str = Field(default="", alias="workDir")


class ProxyConfig(_CRModel):
    """Proxy settings passed to the agent container."""

    http_proxy: str = Field(default="", alias="httpProxy")
    https_proxy: str = Field(default="", alias="httpsProxy")
    ftp_proxy: str = Field(default="", alias="ftpProxy")
    no_proxy: str = Field(default="", alias="noProxy")


class ConfigPayload(_CRModel):
    """Embedded configuration copied verbatim into the agent ConfigMap."""

    data: Dict[str, str] = Field(default_factory=dict)
    # base64-encoded values, as in the Kubernetes API
    binary_data: Dict[str, str] = Field(default_factory=dict, alias="binaryData")
    immutable: Optional[bool] = None


class AgentSpec(_CRModel):
    """Desired state of an Agent."""

    size: int = 0
    image: str = ""
    pool: AgentPool = Field(default_factory=AgentPool)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    mtu_value: str = Field(default="", alias="mtuValue")
    config_map: ConfigPayload = Field(default_factory=ConfigPayload, alias="configMap")


class AgentStatus(_CRModel):
    """Observed state of an Agent."""

    agents: List[str] = Field(default_factory=list)
    secret_available: str = Field(default="", alias="secretAvailable")


class ObjectMeta(_CRModel):
    """Subset of Kubernetes object metadata used by the operator."""

    name: str
    namespace: str = "default"
    uid: str = ""
    resource_version: Optional[str] = Field(default=None, alias="resourceVersion")
    generation: Optional[int] = None
    labels: Dict[str, str] = Field(default_factory=dict)


class Agent(_CRModel):
    """The Agent descriptor."""

    api_version: str = Field(default=f"{API_GROUP}/{API_VERSION}", alias="apiVersion")
    kind: str = KIND
    metadata: ObjectMeta
    spec: AgentSpec = Field(default_factory=AgentSpec)
    status: AgentStatus = Field(default_factory=AgentStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @classmethod
    def from_resource(cls, resource: Dict[str, Any]) -> "Agent":
        """
        Build an Agent from a raw custom resource dict.

        Args:
            resource: The object as returned by the store

        Returns:
            A validated Agent

        Raises:
            pydantic.ValidationError: If the object is malformed
        """
        return cls.model_validate(resource)

    def to_resource(self) -> Dict[str, Any]:
        """Serialize back to the custom resource dict layout."""
        return self.model_dump(by_alias=True, exclude_none=True)
