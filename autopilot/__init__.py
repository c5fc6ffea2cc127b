"""autopilot - pull and restart docker compose projects when a new image is published."""

__version__ = "0.1.0"


def version_string() -> str:
    return f"autopilot v{__version__}"
