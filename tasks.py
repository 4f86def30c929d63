"""Invoke tasks for StoreMigrator management."""

import sys
from pathlib import Path

from invoke import task
from invoke.context import Context

# Must match storemigrator/cli/server.py with the default data_dir
LOG_FILE = Path("data/storemigrator.log")


@task
def start(ctx: Context, host: str = "127.0.0.1", port: int = 8000, reload: bool = False) -> None:
    """Start the StoreMigrator API server with its embedded worker pool.

    Args:
        ctx: Invoke context
        host: Host to bind to (default: 127.0.0.1)
        port: Port to bind to (default: 8000)
        reload: Enable auto-reload for development
    """
    cmd = f"uv run storemigrator-server start --host {host} --port {port} --foreground"
    if reload:
        cmd += " --reload"

    try:
        ctx.run(cmd, pty=True)
    except KeyboardInterrupt:
        print("\nServer stopped")
        sys.exit(0)


@task(name="start-background")
def start_background(ctx: Context, host: str = "127.0.0.1", port: int = 8000) -> None:
    """Start the API server in the background."""
    ctx.run(f"uv run storemigrator-server start --host {host} --port {port}")


@task
def stop(ctx: Context) -> None:
    """Stop the API server."""
    ctx.run("uv run storemigrator-server stop")


@task
def status(ctx: Context) -> None:
    """Check the status of the API server."""
    ctx.run("uv run storemigrator-server status")


@task
def worker(ctx: Context, slots: int = 0, resource_key: str = "", once: bool = False) -> None:
    """Run a standalone migration worker.

    Args:
        ctx: Invoke context
        slots: Concurrent jobs (default: configured max_jobs_per_process)
        resource_key: Only claim jobs of this resource key
        once: Exit when no job is claimable
    """
    cmd = "uv run storemigrator-worker"
    if slots:
        cmd += f" --slots {slots}"
    if resource_key:
        cmd += f" --resource-key {resource_key}"
    if once:
        cmd += " --once"

    try:
        ctx.run(cmd, pty=True)
    except KeyboardInterrupt:
        print("\nWorker stopped")


@task
def logs(ctx: Context, follow: bool = False, lines: int = 50) -> None:
    """View the server logs.

    Args:
        ctx: Invoke context
        follow: Follow log output (like tail -f)
        lines: Number of lines to show (default: 50)
    """
    if not LOG_FILE.exists():
        print("No log file found. Server may not have been started in background mode.")
        return

    if follow:
        ctx.run(f"tail -f {LOG_FILE}", pty=True)
    else:
        ctx.run(f"tail -n {lines} {LOG_FILE}")


@task
def test(ctx: Context, verbose: bool = False, coverage: bool = False) -> None:
    """Run the test suite.

    Args:
        ctx: Invoke context
        verbose: Enable verbose output
        coverage: Run with coverage report
    """
    cmd = "uv run pytest"
    if verbose:
        cmd += " -v"
    if coverage:
        cmd += " --cov=storemigrator --cov-report=term-missing"
    ctx.run(cmd, pty=True)


@task
def clean(ctx: Context, all: bool = False) -> None:
    """Clean up temporary files.

    Args:
        ctx: Invoke context
        all: Also remove uploads and reports
    """
    for pattern in ["__pycache__", "*.pyc", "*.pyo", ".pytest_cache"]:
        ctx.run(f"find . -name '{pattern}' -exec rm -rf {{}} + 2>/dev/null || true", warn=True)

    for path in ["build", "dist", "*.egg-info", ".eggs"]:
        ctx.run(f"rm -rf {path} 2>/dev/null || true", warn=True)

    if all:
        print("Removing uploads and reports...")
        ctx.run("rm -rf data/uploads data/reports 2>/dev/null || true", warn=True)

    print("Cleanup complete")
