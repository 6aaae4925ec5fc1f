#!/usr/bin/env python3
"""
Umzug Watcher - Main Entry Point

Keeps a portal session alive, polls the "Meine Jobs" listing and accepts
new postings. Serves GET /health while running.

Usage:
    # Run the watcher and the health server
    python main.py run

    # Run with a YAML config overriding the environment
    python main.py run --config watcher.yaml

    # Check that the required settings are present
    python main.py check
"""

import sys
import signal
import asyncio
import argparse
import logging

from api.config import AppConfig, load_config
from api.logging_config import setup_logging

logger = logging.getLogger(__name__)


def check_environment(config: AppConfig) -> bool:
    """Check that the required settings are present."""
    missing = config.validate()

    if missing:
        print("❌ Missing required settings:")
        for var in missing:
            print(f"  - {var}")
        print("\nPlease set these in your .env file or environment.")
        return False

    print("✅ All required settings present")
    return True


def _log_signal(signum, frame):
    logger.warning(f"{signal.Signals(signum).name} received, shutting down...")


def install_signal_logging():
    """
    Log SIGINT/SIGTERM. uvicorn handles the actual graceful shutdown and
    hands the signal back to these handlers once it is done.
    """
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _log_signal)


def run_watcher(config: AppConfig, fresh_session: bool = False) -> int:
    """
    Run the watcher with its health server until a signal arrives.

    Returns:
        Process exit code: 0 on clean shutdown, 1 on fatal startup failure
    """
    import uvicorn
    from api.main import create_app
    from browser.storage import SessionStore
    from core.orchestrator import WatcherBot

    store = SessionStore(config.storage_state_path)
    if fresh_session:
        store.clear()

    bot = WatcherBot(config, store=store)
    app = create_app(bot)

    server = uvicorn.Server(uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        lifespan="on",
        log_level="info",
    ))

    install_signal_logging()
    logger.info(f"Health server on :{config.port} (GET /health)")
    asyncio.run(server.serve())

    if not server.started or getattr(app.state, "startup_error", None):
        logger.error("Watcher did not start")
        return 1

    logger.info("Shutdown complete")
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Umzug Watcher - accept new postings on the Meine Jobs listing"
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Run command
    run_parser = subparsers.add_parser('run', help='Run the watcher and health server')
    run_parser.add_argument('--config', help='Path to YAML config overriding the environment')
    run_parser.add_argument('--env-file', help='Path to .env file')
    run_parser.add_argument('--host', help='Health server host')
    run_parser.add_argument('--port', type=int, help='Health server port')
    run_parser.add_argument('--fresh-session', action='store_true',
                            help='Discard the stored session before starting')

    # Check command
    check_parser = subparsers.add_parser('check', help='Validate configuration')
    check_parser.add_argument('--config', help='Path to YAML config overriding the environment')
    check_parser.add_argument('--env-file', help='Path to .env file')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging()

    try:
        config = load_config(args.config, env_file=args.env_file)
    except (OSError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if args.command == 'check':
        return 0 if check_environment(config) else 1

    config = config.with_overrides({"host": args.host, "port": args.port})

    # Missing credentials are fatal before anything is launched
    if not check_environment(config):
        return 1

    logger.info("Starting Umzug watcher...")
    logger.info(f"Config: {config.public_dict()}")
    return run_watcher(config, fresh_session=args.fresh_session)


if __name__ == "__main__":
    sys.exit(main())
