"""StoreMigrator server control script.

Usage:
    storemigrator-server start [--port PORT] [--reload] [--foreground]
    storemigrator-server stop
    storemigrator-server restart [--port PORT]
    storemigrator-server status
"""

import argparse
import json
import os
import signal
import subprocess
import sys
import time
import urllib.request
from pathlib import Path

from storemigrator.config import settings

APP_PATH = "storemigrator.main:app"


def _data_dir() -> Path:
    return Path(settings.data_dir)


def _pid_file() -> Path:
    return _data_dir() / "storemigrator.pid"


def _log_file() -> Path:
    return _data_dir() / "storemigrator.log"


def ensure_directories() -> None:
    """Ensure required directories exist."""
    _data_dir().mkdir(parents=True, exist_ok=True)
    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    settings.reports_dir.mkdir(parents=True, exist_ok=True)


def get_pid() -> int | None:
    """Get the PID of the running server, if any."""
    pid_file = _pid_file()
    if not pid_file.exists():
        return None

    try:
        pid = int(pid_file.read_text().strip())
        # Check if process is actually running
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        pid_file.unlink(missing_ok=True)
        return None


def find_running_server() -> int | None:
    """Find any running storemigrator uvicorn process."""
    try:
        result = subprocess.run(
            ["pgrep", "-f", f"uvicorn {APP_PATH}"],
            capture_output=True,
            text=True,
        )
    except OSError:
        return None
    if result.returncode == 0 and result.stdout.strip():
        return int(result.stdout.strip().split()[0])
    return None


def start_server(port: int, host: str, reload: bool = False, foreground: bool = False) -> bool:
    """Start the StoreMigrator server.

    Args:
        port: Port to bind to
        host: Host to bind to
        reload: Enable auto-reload for development
        foreground: Run in foreground (blocking)

    Returns:
        True if server started successfully
    """
    pid = get_pid() or find_running_server()
    if pid:
        print(f"Server is already running (PID: {pid})")
        return False

    ensure_directories()

    cmd = [
        sys.executable, "-m", "uvicorn",
        APP_PATH,
        "--host", host,
        "--port", str(port),
    ]
    if reload:
        cmd.append("--reload")

    print(f"Starting StoreMigrator server on http://{host}:{port}")

    if foreground:
        print("Press Ctrl+C to stop the server")
        try:
            subprocess.run(cmd)
        except KeyboardInterrupt:
            print("\nServer stopped")
        return True

    log_file = _log_file()
    with open(log_file, "w") as log:
        process = subprocess.Popen(
            cmd,
            stdout=log,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )

    time.sleep(1)
    if process.poll() is None:
        _pid_file().write_text(str(process.pid))
        print(f"Server started with PID: {process.pid}")
        print(f"Logs available at: {log_file}")
        return True

    print("Failed to start server. Check logs for details.")
    return False


def stop_server() -> bool:
    """Stop the StoreMigrator server.

    The embedded worker pool lets running jobs finish on SIGTERM; a job cut
    off by SIGKILL is reclaimed after its lock expires.

    Returns:
        True if server was stopped
    """
    pid = get_pid() or find_running_server()
    if not pid:
        print("Server is not running")
        return False

    print(f"Stopping server (PID: {pid})...")

    try:
        os.kill(pid, signal.SIGTERM)

        for _ in range(20):
            time.sleep(0.5)
            try:
                os.kill(pid, 0)
            except ProcessLookupError:
                break
        else:
            print("Server didn't stop gracefully, forcing...")
            os.kill(pid, signal.SIGKILL)

        print("Server stopped")
        _pid_file().unlink(missing_ok=True)
        return True

    except ProcessLookupError:
        print("Server was not running")
        _pid_file().unlink(missing_ok=True)
        return False
    except PermissionError:
        print(f"Permission denied to stop process {pid}")
        return False


def server_status(port: int) -> None:
    """Print the server status."""
    pid = get_pid() or find_running_server()

    if not pid:
        print("StoreMigrator server is not running")
        return

    print(f"StoreMigrator server is running (PID: {pid})")
    try:
        with urllib.request.urlopen(f"http://localhost:{port}/health", timeout=2) as response:
            data = json.loads(response.read().decode())
        print(f"  Status: {data.get('status', 'unknown')}")
        print(f"  Version: {data.get('version', 'unknown')}")
        print(f"  Worker pool: {'running' if data.get('worker_pool') else 'off'}")
    except (OSError, ValueError):
        print("  (Could not fetch health status)")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="StoreMigrator server control script",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s start                  Start server on the configured port
  %(prog)s start --port 8080      Start server on port 8080
  %(prog)s start --reload         Start with auto-reload for development
  %(prog)s stop                   Stop the server
  %(prog)s status                 Check server status
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    for name, help_text in (("start", "Start the server"), ("restart", "Restart the server")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--port", "-p", type=int, default=settings.port,
                         help=f"Port to bind to (default: {settings.port})")
        sub.add_argument("--host", default=settings.host,
                         help=f"Host to bind to (default: {settings.host})")
        if name == "start":
            sub.add_argument("--reload", "-r", action="store_true",
                             help="Enable auto-reload for development")
            sub.add_argument("--foreground", "-f", action="store_true",
                             help="Run in foreground (blocking)")

    subparsers.add_parser("stop", help="Stop the server")
    status_parser = subparsers.add_parser("status", help="Check server status")
    status_parser.add_argument("--port", "-p", type=int, default=settings.port)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "start":
            ok = start_server(args.port, args.host, reload=args.reload, foreground=args.foreground)
            return 0 if ok else 1
        if args.command == "stop":
            return 0 if stop_server() else 1
        if args.command == "restart":
            print("Restarting StoreMigrator server...")
            stop_server()
            time.sleep(1)
            return 0 if start_server(args.port, args.host) else 1
        if args.command == "status":
            server_status(args.port)
            return 0
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
