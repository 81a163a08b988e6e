from __future__ import annotations

import argparse
import asyncio
import importlib
import inspect
from collections.abc import Sequence

from .logging import configure_logging, get_logger, log_event
from .provider import ProviderService
from .runtime import ServeOptions, serve_http, serve_with_options

LOGGER = get_logger("cli")

_UVICORN_LOG_LEVELS = {
    "DEBUG": "debug",
    "INFO": "info",
    "WARN": "warning",
    "ERROR": "error",
}


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a Hemmer provider")
    parser.add_argument(
        "--provider",
        required=True,
        help="Provider to serve as module:attribute (a ProviderService subclass, factory or instance)",
    )
    parser.add_argument("--host", default=None, help="Listen host (default 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Listen port (default: ephemeral)")
    parser.add_argument(
        "--shutdown-timeout",
        type=float,
        default=None,
        help="Seconds to wait for in-flight requests on shutdown (default 30)",
    )
    parser.add_argument("--config", default=None, help="YAML file with serve options")
    parser.add_argument("--http", action="store_true", help="Serve the HTTP transport instead of JSON-RPC")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARN", "ERROR"],
        default=None,
        help="Logging level (default from HEMMER_LOG, else INFO)",
    )
    return parser.parse_args(argv)


def load_provider(spec: str) -> ProviderService:
    """Resolve ``module:attribute`` into a provider instance."""

    module_name, sep, attribute = spec.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Provider must be given as module:attribute, got {spec!r}")
    target = importlib.import_module(module_name)
    for part in attribute.split("."):
        target = getattr(target, part)
    if inspect.isclass(target) or (callable(target) and not isinstance(target, ProviderService)):
        target = target()
    if not isinstance(target, ProviderService):
        raise TypeError(f"{spec} did not produce a ProviderService (got {type(target).__name__})")
    return target


def resolve_options(args: argparse.Namespace) -> ServeOptions:
    """Defaults, then environment, then config file, then command-line flags."""

    options = ServeOptions.from_env()
    if args.config:
        options = ServeOptions.from_file(args.config, base=options)
    return options.merged(host=args.host, port=args.port, shutdown_timeout=args.shutdown_timeout)


async def _run_server(args: argparse.Namespace) -> None:
    provider = load_provider(args.provider)
    options = resolve_options(args)
    log_event("starting provider", logger=LOGGER, provider=args.provider, http=args.http)
    if args.http:
        level = _UVICORN_LOG_LEVELS.get(args.log_level or "WARN", "warning")
        await serve_http(provider, options, log_level=level)
    else:
        await serve_with_options(provider, options)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        asyncio.run(_run_server(args))
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
