"""GitHub package webhooks - payload model and package-name filter."""
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from autopilot.config import ProjectConfig
from autopilot.logger import get_logger

logger = get_logger(__name__)

FilterMode = Literal["allow", "deny"]


class RegistryPackage(BaseModel):
    model_config = ConfigDict(extra="ignore")
    name: str
    namespace: str | None = None


class Notification(BaseModel):
    """The parts of a `registry_package` event we look at."""

    model_config = ConfigDict(extra="ignore")
    action: str | None = None
    registry_package: RegistryPackage

    @property
    def package_name(self) -> str:
        return self.registry_package.name


def parse_notification(payload: Any) -> Notification | None:
    """Parse a decoded JSON body.

    None if it isn't an object or carries no registry_package with a name;
    such payloads never reach the filter.
    """
    if not isinstance(payload, dict):
        return None
    try:
        return Notification(**payload)
    except ValidationError:
        return None


class NotificationFilter:
    """Decides whether a notification may trigger a redeploy of a project.

    mode "allow": only package names listed in the project's package_names pass.
    mode "deny": listed names are rejected and everything else passes. This is
    how earlier releases behaved, kept for setups that rely on it.
    """

    def __init__(self, mode: FilterMode = "allow"):
        if mode not in ("allow", "deny"):
            raise ValueError(f"Unknown package filter mode: {mode}")
        self.mode = mode

    def accepts(self, project: ProjectConfig, notification: Notification) -> bool:
        name = notification.package_name
        if project.package_names is None:
            return True
        listed = name in project.package_names
        if listed != (self.mode == "allow"):
            logger.info("Ignoring package %s (filter mode %s)", name, self.mode)
            return False
        return True
