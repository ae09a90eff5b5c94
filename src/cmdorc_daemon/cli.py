"""CLI entry point for cmdorc-daemon: runs the build once or keeps rebuilding on change."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from cmdorc_daemon import __version__
from cmdorc_daemon.config import load_daemon_config
from cmdorc_daemon.controller import DaemonController
from cmdorc_daemon.notifier import ConsoleNotifier
from cmdorc_daemon.session import MissingCapabilityError

# Default config template for a LaTeX document build
DEFAULT_CONFIG_TEMPLATE = """\
# Auto-generated config.toml for cmdorc-daemon

[variables]
base_dir = "."

[[command]]
name = "Build"
command = "latexmk -pdf -interaction=nonstopmode main.tex"
triggers = []
max_concurrent = 1

[daemon]
enabled = false
listen-interval = 0.5
ignore = ["main.pdf", "main.log", "main.aux", "main.fls", "main.fdb_latexmk"]
"""


def create_default_config(config_path: Path) -> bool:
    """
    Create a default config.toml if it doesn't exist.

    Args:
        config_path: Path where config should be created

    Returns:
        True if config was created, False if it already exists
    """
    if config_path.exists():
        return False

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG_TEMPLATE)
    return True


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="cmdorc-daemon",
        description="Run a document build, optionally rebuilding whenever files change.",
        epilog="Examples:\n"
        "  cmdorc-daemon                      # Build once with config.toml\n"
        "  cmdorc-daemon -d                   # Rebuild on every change\n"
        "  cmdorc-daemon -d --job slides      # Second job in the same directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-c", "--config", default="config.toml", help="Path to config file (default: config.toml)")
    parser.add_argument(
        "-d",
        "--daemon",
        action="store_true",
        default=None,
        help="Re-run the build automatically when files change.",
    )
    parser.add_argument(
        "--listen-interval",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Time after which daemon mode checks for changes (default: 0.5)",
    )
    parser.add_argument("--job", default=None, help="Job id (default: config file name)")
    parser.add_argument(
        "--ignore",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Extra path or glob to ignore; may be repeated",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def build_controller(args: argparse.Namespace, config_path: Path) -> DaemonController:
    """Load the config file and apply command-line overrides."""
    config = load_daemon_config(config_path, job=args.job)
    if args.daemon is not None:
        config.daemon = args.daemon
    if args.listen_interval is not None:
        if args.listen_interval <= 0:
            raise ValueError(f"--listen-interval must be positive, got {args.listen_interval}")
        config.listen_interval = args.listen_interval
    config.ignore.extend(args.ignore)
    return DaemonController(config_path, config=config, notifier=ConsoleNotifier())


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for cmdorc-daemon CLI.

    Handles:
    - Argument parsing
    - Auto-creation of config.toml
    - Running the build loop
    - Error handling and exit codes
    """
    args = parse_args(argv)
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    if args.verbose:
        logging.getLogger("cmdorc_daemon").setLevel(logging.DEBUG)

    config_path = Path(args.config).resolve()

    try:
        if create_default_config(config_path):
            print(f"Created default config at: {config_path}")

        controller = build_controller(args, config_path)
        code = asyncio.run(controller.run())
    except KeyboardInterrupt:
        sys.exit(130)
    except MissingCapabilityError as e:
        print(f"Error: Daemon mode unavailable: {e}", file=sys.stderr)
        sys.exit(1)
    except (PermissionError, OSError) as e:
        print(f"Error: Failed to access files: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
