"""Dispatcher - token -> project -> filter -> gate -> background redeploy."""
import asyncio
from enum import Enum
from typing import Any

from autopilot.actuator import ComposeActuator
from autopilot.config import AppConfig
from autopilot.gate import DebounceGate
from autopilot.integrations.webhooks import NotificationFilter, parse_notification
from autopilot.logger import get_logger
from autopilot.registry import ProjectRegistry

logger = get_logger(__name__)


class DispatchOutcome(str, Enum):
    UNKNOWN_TOKEN = "unknown_token"
    MALFORMED = "malformed"
    FILTERED = "filtered"
    ALREADY_RUNNING = "already_running"
    ACCEPTED = "accepted"


class Dispatcher:
    """Shared by every request handler. Holds strong refs to running redeploys."""

    def __init__(
        self,
        registry: ProjectRegistry,
        gate: DebounceGate,
        notification_filter: NotificationFilter,
        actuator: ComposeActuator,
    ):
        self.registry = registry
        self.gate = gate
        self.filter = notification_filter
        self.actuator = actuator
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, token: str, payload: Any) -> DispatchOutcome:
        """Decide what to do with a notification and start the redeploy if accepted.

        Nothing here awaits, so the gate check cannot interleave with another
        request. The redeploy itself runs as a background task.
        """
        project = self.registry.resolve(token)
        if project is None:
            logger.debug("Received invalid token")
            return DispatchOutcome.UNKNOWN_TOKEN

        logger.debug("Received event for compose file at %s", project.compose_path)
        notification = parse_notification(payload)
        if notification is None:
            logger.info("Received malformed body from GitHub for %s", project.compose_path)
            return DispatchOutcome.MALFORMED

        if not self.filter.accepts(project, notification):
            return DispatchOutcome.FILTERED

        if not self.gate.try_acquire(token):
            logger.debug("Already running for %s, skipping", project.compose_path)
            return DispatchOutcome.ALREADY_RUNNING

        try:
            task = asyncio.get_running_loop().create_task(self._redeploy(token))
        except BaseException:
            self.gate.release(token)
            raise
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return DispatchOutcome.ACCEPTED

    async def _redeploy(self, token: str) -> None:
        project = self.registry.resolve(token)
        with self.gate.released_on_exit(token):
            try:
                await self.actuator.execute(project.compose_path)
            except Exception:
                logger.exception("Redeploy of %s failed", project.compose_path)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every running redeploy to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def build_dispatcher(config: AppConfig, actuator: ComposeActuator | None = None) -> Dispatcher:
    """Wire registry, gates, filter and actuator from config. Raises ConfigError on duplicate tokens."""
    registry = ProjectRegistry.from_projects(config.projects)
    return Dispatcher(
        registry,
        DebounceGate(registry),
        NotificationFilter(config.package_filter_mode),
        actuator or ComposeActuator(config.actuator),
    )
