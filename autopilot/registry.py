"""Project registry - token -> project, built once at startup, read-only afterwards."""
from typing import Iterable, Iterator

from autopilot.config import ConfigError, ProjectConfig


class DuplicateTokenError(ConfigError):
    """Two projects share a token."""


class ProjectRegistry:
    def __init__(self, projects: dict[str, ProjectConfig]):
        self._projects = dict(projects)

    @classmethod
    def from_projects(cls, projects: Iterable[ProjectConfig]) -> "ProjectRegistry":
        by_token: dict[str, ProjectConfig] = {}
        for project in projects:
            if project.token in by_token:
                raise DuplicateTokenError("Duplicate tokens found in config. Project tokens must be unique.")
            by_token[project.token] = project
        return cls(by_token)

    def resolve(self, token: str) -> ProjectConfig | None:
        return self._projects.get(token)

    def __contains__(self, token: object) -> bool:
        return token in self._projects

    def __iter__(self) -> Iterator[str]:
        return iter(self._projects)

    def __len__(self) -> int:
        return len(self._projects)
