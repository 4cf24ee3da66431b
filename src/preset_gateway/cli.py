"""
CLI entry point for Preset Gateway.

Usage:
    preset-gateway start --target https://open.bigmodel.cn/api/anthropic --port 5000
    preset-gateway start --in-memory
    preset-gateway keys
"""

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .config import GatewayConfig
from .errors import ConfigurationError


def main():
    parser = argparse.ArgumentParser(
        prog="preset-gateway",
        description="Preset Gateway — Forwarding gateway with client keys and preset replies",
    )
    parser.add_argument("--env-file", default=None, help="Read settings from this .env file")
    subparsers = parser.add_subparsers(dest="command")

    # start command
    start_parser = subparsers.add_parser("start", help="Start the gateway server")
    start_parser.add_argument(
        "--target", "-t",
        default=None,
        help="Upstream API URL (default: $TARGET_API)",
    )
    start_parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: $PORT or 5000)",
    )
    start_parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: $HOST or 127.0.0.1)",
    )
    start_parser.add_argument(
        "--data-dir",
        default=None,
        help="Directory for stats.json, presets.json and keys.json",
    )
    start_parser.add_argument(
        "--in-memory",
        action="store_true",
        help="Keep all state in memory, nothing is written to disk",
    )
    start_parser.add_argument(
        "--log-level", "-l",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: $LOG_LEVEL or INFO)",
    )

    # keys command
    subparsers.add_parser("keys", help="List stored client keys")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    _configure_logging(getattr(args, "log_level", None) or "INFO")

    try:
        config = GatewayConfig.from_env(args.env_file)
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        sys.exit(2)

    if args.command == "start":
        _run_server(args, config)
    elif args.command == "keys":
        _list_keys(config)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _run_server(args, config: GatewayConfig):
    """Start the gateway server."""
    import uvicorn
    from .persistence import MemoryStore
    from .server import Stores, create_app

    if args.target:
        config.target_url = args.target.rstrip("/")
    if args.port:
        config.port = args.port
    if args.host:
        config.host = args.host
    if args.data_dir:
        config.data_dir = Path(args.data_dir)
    if args.log_level:
        config.log_level = args.log_level

    logging.getLogger().setLevel(getattr(logging, config.log_level, logging.INFO))

    stores = None
    if args.in_memory:
        stores = Stores(
            stats=MemoryStore(name="stats"),
            presets=MemoryStore(name="presets"),
            keys=MemoryStore(name="keys"),
        )

    print(f"""
╔══════════════════════════════════════════════╗
║           Preset Gateway v{__version__}              ║
║   Client keys + preset replies for LLM APIs  ║
╚══════════════════════════════════════════════╝

  Target:      {config.target_url}
  Listening:   http://{config.host}:{config.port}
  Upstream key:{' set' if config.upstream_api_key else ' not set (client auth passes through)'}
  State:       {'in memory' if args.in_memory else config.data_dir}

  Point your client to: http://{config.host}:{config.port}
  Admin dashboard:      http://{config.host}:{config.port}/admin
""")

    app = create_app(config, stores=stores)

    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


def _list_keys(config: GatewayConfig):
    """Print the keys stored under the configured data directory."""
    from .keys import ApiKeyRecord, mask_secret
    from .persistence import JsonFileStore

    records = [ApiKeyRecord.from_dict(d) for d in JsonFileStore(config.keys_path).load() or []]
    if not records:
        print(f"No keys in {config.keys_path}")
        return
    for r in records:
        state = "enabled " if r.enabled else "disabled"
        print(f"{r.id:<28} {state} {mask_secret(r.secret)}  {r.name}")


if __name__ == "__main__":
    main()
