"""CLI - `autopilot run` serves webhooks, `autopilot check` validates the config."""
import argparse
import sys
from pathlib import Path

from autopilot import version_string
from autopilot.config import AppConfig, ConfigError, load_config
from autopilot.logger import configure_logging, get_logger
from autopilot.registry import ProjectRegistry

logger = get_logger(__name__)


def _load_or_exit(path: Path | None) -> AppConfig:
    try:
        config = load_config(path)
        ProjectRegistry.from_projects(config.projects)
    except ConfigError as e:
        logger.error("%s", e)
        sys.exit(1)
    return config


def cmd_run(path: Path | None) -> None:
    """Serve webhooks until interrupted."""
    config = _load_or_exit(path)
    import uvicorn
    from autopilot.server.app import create_app
    app = create_app(config)
    logger.info("listening on %s:%s", config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)


def cmd_check(path: Path | None) -> None:
    """Validate config and list the configured projects."""
    config = _load_or_exit(path)
    print(f"{len(config.projects)} project(s), package filter mode: {config.package_filter_mode}")
    for project in config.projects:
        names = ", ".join(sorted(project.package_names)) if project.package_names else "any package"
        print(f"  {project.compose_path} ({names})")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="autopilot", description="Redeploy compose projects on package publish")
    parser.add_argument("--config", "-c", type=Path, default=None, help="Config file (default: config/autopilot.yaml or $APP_CONFIG)")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("run", help="Serve the webhook endpoint")
    sub.add_parser("check", help="Validate the config and list projects")
    sub.add_parser("version", help="Print the version")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.cmd == "check":
        cmd_check(args.config)
    elif args.cmd == "version":
        print(version_string())
    else:
        cmd_run(args.config)


if __name__ == "__main__":
    main()
