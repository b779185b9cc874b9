"""Controller configuration loaded from a YAML file and the environment."""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from paasplane.errors import ConfigError
from paasplane.labels import LabelCompiler

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "PAASPLANE_CONFIG"

POD_SECURITY_ENFORCE_LABEL = "pod-security.kubernetes.io/enforce"
POD_SECURITY_AUDIT_LABEL = "pod-security.kubernetes.io/audit"


class ControllerConfig(BaseModel):
    """Settings of the controllers and the awaiting clients."""

    rootNamespace: str = Field(default="cf", description="Namespace holding the orgs")
    containerRegistrySecretNames: List[str] = Field(
        default_factory=list,
        description="Secrets propagated from parent namespaces into child namespaces",
    )
    namespaceLabels: Dict[str, str] = Field(
        default_factory=dict, description="Extra labels set on every child namespace"
    )
    spaceFinalizerAppDeletionTimeout: int = Field(
        default=60, description="Seconds spent deleting a space's apps before giving up"
    )
    conditionTimeout: float = Field(
        default=120, description="Seconds an awaiting client waits for a condition"
    )
    workerLimit: int = 5
    postingEnabled: bool = False
    serverTimeout: int = 60

    class Config:
        extra = "forbid"

    def label_compiler(self):
        """ Compiler applying the pod security defaults and the configured labels.
        """
        return (
            LabelCompiler()
            .defaults(
                {
                    POD_SECURITY_ENFORCE_LABEL: "restricted",
                    POD_SECURITY_AUDIT_LABEL: "restricted",
                }
            )
            .defaults(self.namespaceLabels)
        )


def _env_overrides():
    overrides = {}
    if os.getenv("ROOT_NAMESPACE"):
        overrides["rootNamespace"] = os.getenv("ROOT_NAMESPACE")
    if os.getenv("CONTAINER_REGISTRY_SECRET_NAMES"):
        overrides["containerRegistrySecretNames"] = [
            name.strip()
            for name in os.getenv("CONTAINER_REGISTRY_SECRET_NAMES").split(",")
            if name.strip()
        ]
    if os.getenv("APP_DELETION_TIMEOUT"):
        overrides["spaceFinalizerAppDeletionTimeout"] = os.getenv("APP_DELETION_TIMEOUT")
    if os.getenv("CONDITION_TIMEOUT"):
        overrides["conditionTimeout"] = os.getenv("CONDITION_TIMEOUT")
    if os.getenv("WORKER_LIMIT"):
        overrides["workerLimit"] = os.getenv("WORKER_LIMIT")
    if os.getenv("POSTING_ENABLED"):
        overrides["postingEnabled"] = os.getenv("POSTING_ENABLED").lower() == "true"
    if os.getenv("SERVER_TIMEOUT"):
        overrides["serverTimeout"] = os.getenv("SERVER_TIMEOUT")
    return overrides


def load_config(path: Optional[str] = None) -> ControllerConfig:
    """ Load the controller config.

    Args:
        path: YAML file to read, defaults to $PAASPLANE_CONFIG. Without a file
            only defaults and environment overrides apply.
    """
    path = path or os.getenv(CONFIG_PATH_ENV)
    values = {}
    if path:
        try:
            values = yaml.safe_load(Path(path).read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read config file {path}: {e}") from e
        if not isinstance(values, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        logger.info(f"Loaded controller config from {path}")

    values.update(_env_overrides())
    try:
        return ControllerConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid controller config: {e}") from e
