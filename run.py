#!/usr/bin/env python3
"""
Application Entry Script.

Starts the CRM API, its export worker or the task scheduler. Also
checks that configuration loads and runs the test suite.

Usage:
    python run.py --help
    python run.py --action server --reload --verbose
    python run.py --action worker
    python run.py --action scheduler
    python run.py --action check --debug
    python run.py --action config
    python run.py --action test --test-type unit
"""

import subprocess
import sys
from pathlib import Path

import click

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from crm.backend.core.config import validate_project_root  # noqa: E402
from crm.backend.core.logging import get_logger, setup_logging  # noqa: E402


@click.command()
@click.option(
    "--action",
    type=click.Choice(["server", "worker", "scheduler", "check", "config", "test"]),
    default="check",
    help="Action to perform.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable INFO level logging.")
@click.option("--debug", "-d", is_flag=True, help="Enable DEBUG level logging.")
@click.option("--host", default=None, help="Server host (server action).")
@click.option("--port", default=None, type=int, help="Server port (server action).")
@click.option("--reload", is_flag=True, help="Enable auto-reload (server action).")
@click.option(
    "--test-type",
    type=click.Choice(["all", "unit", "integration"]),
    default="all",
    help="Test type to run (test action).",
)
@click.option("--coverage", is_flag=True, help="Run tests with coverage (test action).")
def main(
    action: str,
    verbose: bool,
    debug: bool,
    host: str | None,
    port: int | None,
    reload: bool,
    test_type: str,
    coverage: bool,
) -> None:
    """
    CRM application entry point.

    Examples:

        python run.py --action server --reload --verbose

        python run.py --action worker

        python run.py --action test --test-type unit --coverage
    """
    validate_project_root()

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = "WARNING"

    setup_logging(level=log_level, format_type="console")
    logger = get_logger(__name__)
    logger.debug("Starting", extra={"action": action, "log_level": log_level})

    if action == "server":
        run_server(logger, host, port, reload)
    elif action == "worker":
        run_worker(logger)
    elif action == "scheduler":
        run_scheduler(logger)
    elif action == "check":
        check_configuration(logger)
    elif action == "config":
        show_config()
    elif action == "test":
        run_tests(logger, test_type, coverage)


def _run(logger, cmd: list[str]) -> None:
    try:
        result = subprocess.run(cmd)
    except KeyboardInterrupt:
        logger.info("Stopped")
        return
    sys.exit(result.returncode)


def run_server(logger, host: str | None, port: int | None, reload: bool) -> None:
    """Start the FastAPI server with uvicorn."""
    from crm.backend.core.config import get_app_config

    server = get_app_config().application.server
    server_host = host or server.host
    server_port = port or server.port

    cmd = [
        sys.executable, "-m", "uvicorn",
        "crm.backend.main:app",
        "--host", server_host,
        "--port", str(server_port),
    ]
    if reload:
        cmd.append("--reload")

    logger.info("Starting server", extra={"host": server_host, "port": server_port, "reload": reload})
    click.echo(f"Starting server at http://{server_host}:{server_port}")
    _run(logger, cmd)


def run_worker(logger) -> None:
    """Start a taskiq worker that processes client exports."""
    cmd = [sys.executable, "-m", "taskiq", "worker", "crm.backend.tasks.broker:broker"]
    logger.info("Starting export worker")
    _run(logger, cmd)


def run_scheduler(logger) -> None:
    """Start the taskiq scheduler that purges expired exports."""
    cmd = [sys.executable, "-m", "taskiq", "scheduler", "crm.backend.tasks.scheduler:scheduler"]
    logger.info("Starting task scheduler")
    _run(logger, cmd)


def check_configuration(logger) -> None:
    """Load every configuration source and build the app without serving it."""
    checks: list[tuple[str, bool, str | None]] = []

    try:
        from crm.backend.core.config import get_app_config

        app_config = get_app_config()
        checks.append(("YAML configuration", True, app_config.application.name))
    except (ValueError, FileNotFoundError) as e:
        checks.append(("YAML configuration", False, str(e)))
        logger.error("Configuration failed", extra={"error": str(e)})

    try:
        from pydantic import ValidationError

        from crm.backend.core.config import get_settings

        get_settings()
        checks.append(("Secrets (config/.env)", True, None))
    except ValidationError as e:
        checks.append(("Secrets (config/.env)", False, f"{e.error_count()} missing value(s)"))

    try:
        from crm.backend.main import create_app

        app = create_app()
        checks.append(("FastAPI application", True, f"{len(app.routes)} routes"))
    except (ValueError, FileNotFoundError, ImportError) as e:
        checks.append(("FastAPI application", False, str(e)))
        logger.error("App creation failed", extra={"error": str(e)})

    click.echo("Configuration check:")
    click.echo("-" * 50)
    for name, passed, detail in checks:
        status = click.style("PASS", fg="green") if passed else click.style("FAIL", fg="red")
        detail_str = f" ({detail})" if detail else ""
        click.echo(f"  {status}  {name}{detail_str}")
    click.echo("-" * 50)

    if not all(passed for _, passed, _ in checks):
        sys.exit(1)


def show_config() -> None:
    """Print the validated YAML configuration."""
    import yaml

    from crm.backend.core.config import get_app_config

    app_config = get_app_config()
    sections = {
        "application": app_config.application,
        "database": app_config.database,
        "logging": app_config.logging,
        "features": app_config.features,
        "security": app_config.security,
        "crm": app_config.crm,
    }
    click.echo(yaml.safe_dump(
        {name: section.model_dump() for name, section in sections.items()},
        sort_keys=False,
    ))


def run_tests(logger, test_type: str, coverage: bool) -> None:
    """Run the pytest suite."""
    target = {"unit": "tests/unit", "integration": "tests/integration"}.get(test_type, "tests/")
    cmd = [sys.executable, "-m", "pytest", target, "-v"]
    if coverage:
        cmd.extend(["--cov=crm", "--cov-report=term-missing"])

    logger.info("Running tests", extra={"type": test_type, "coverage": coverage})
    click.echo(f"Running: {' '.join(cmd)}\n")
    _run(logger, cmd)


if __name__ == "__main__":
    main()
