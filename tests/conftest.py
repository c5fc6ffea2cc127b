import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from autopilot.actuator import CommandResult, ComposeActuator
from autopilot.config import ActuatorConfig, AppConfig, ProjectConfig


class RecordingActuator(ComposeActuator):
    """Records commands instead of running them. Exit codes come from `returncodes` by verb."""

    def __init__(self, settle_delay: float = 0.0, returncodes: dict | None = None, **kwargs):
        super().__init__(ActuatorConfig(settle_delay=settle_delay, **kwargs))
        self.returncodes = returncodes or {}
        self.calls: list[tuple[str, ...]] = []
        self.events: list[str] = []

    async def run_command(self, *args: str) -> CommandResult:
        self.calls.append(args)
        verb = args[-1]
        self.events.append(verb)
        code = self.returncodes.get(verb, 0)
        return CommandResult(args, code, f"{verb} stdout", f"{verb} stderr" if code else "")

    @property
    def sequences(self) -> int:
        return self.events.count("pull")


@pytest.fixture
def project():
    return ProjectConfig(token="abc", location="/srv/app")


@pytest.fixture
def filtered_project():
    return ProjectConfig(token="flt", location="/srv/filtered", compose_file="compose.yml", package_names=["web", "worker"])


@pytest.fixture
def app_config(project, filtered_project):
    return AppConfig(projects=[project, filtered_project])


@pytest.fixture
def actuator():
    return RecordingActuator()


def package_event(name: str = "web") -> dict:
    return {"action": "published", "registry_package": {"name": name, "namespace": "acme"}}
