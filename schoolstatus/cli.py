"""
Command-line entry point.

Usage:
    schoolstatus check [--refresh]
    schoolstatus sources
    schoolstatus serve [--host 0.0.0.0] [--port 3000]
    schoolstatus --config other.yaml check
"""

import argparse
import json
import logging
import sys

from .config.errors import ConfigError
from .config.settings import load_config
from .ingest.sources import by_priority
from .logging_config import configure_logging
from .resolution.engine import StatusEngine

logger = logging.getLogger(__name__)

# Exit code for a resolution that is not OPEN / CLOSED / DELAYED
EXIT_NOT_DECISIVE = 2


def cmd_check(args, config) -> int:
    engine = StatusEngine.from_config(config)
    result = engine.get_status(bypass_cache=args.refresh)
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.is_decisive else EXIT_NOT_DECISIVE


def cmd_sources(args, config) -> int:
    print(f"Entity: {config.entity.name} (aliases: {', '.join(config.entity.aliases) or 'none'})")
    print(f"Dispatch: {config.dispatch_mode.value}, policy: {config.resolution_strategy}")
    for source in by_priority(list(config.sources)):
        detail = source.selector if source.selector else f"window={source.context_window or 'document'}"
        print(f"  [{source.priority}] {source.name} ({source.strategy.value}, {detail}, "
              f"timeout={source.timeout_seconds}s)")
        print(f"      {source.url}")
    return 0


def cmd_serve(args, config) -> int:
    import uvicorn

    from .api import server

    # Build before serving so a bad config fails at startup
    server.set_engine(StatusEngine.from_config(config))
    uvicorn.run(server.app, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resolve school open/closed/delayed status")
    parser.add_argument('--config', default=None,
                        help="Path to status YAML (default: $SCHOOLSTATUS_CONFIG or config/status.yaml)")
    parser.add_argument('-v', '--verbose', action='store_true', help="Debug logging")

    sub = parser.add_subparsers(dest='command', required=True)

    check = sub.add_parser('check', help="Run one resolution and print it as JSON")
    check.add_argument('--refresh', action='store_true', help="Bypass the result cache")
    check.set_defaults(func=cmd_check)

    sources = sub.add_parser('sources', help="List configured sources in priority order")
    sources.set_defaults(func=cmd_sources)

    serve = sub.add_parser('serve', help="Serve the HTTP API")
    serve.add_argument('--host', default='0.0.0.0')
    serve.add_argument('--port', type=int, default=3000)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    return args.func(args, config)


if __name__ == '__main__':
    sys.exit(main())
