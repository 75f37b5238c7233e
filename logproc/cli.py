"""Command line entry point: ``logproc [--config PATH] consume|serve|init-index``."""

import argparse
import logging
import sys
from typing import List, Optional

from logproc.config import Runtime, configure, load_settings

logger = logging.getLogger(__name__)


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _init_index(runtime: Runtime) -> int:
    if runtime.index_store.init_index():
        return 0
    logger.error("Search index is not ready")
    return 1


def _consume(runtime: Runtime) -> int:
    from logproc.consumer import RabbitMQConsumer

    s = runtime.settings
    runtime.index_store.init_index()
    RabbitMQConsumer(
        runtime.consumer(),
        url=s.rabbitmq_url,
        queue_name=s.queue_name,
        prefetch_count=s.prefetch_count,
    ).run()
    return 0


def _serve(runtime: Runtime) -> int:
    from logproc.api import create_app

    s = runtime.settings
    runtime.index_store.init_index()
    create_app(runtime).run(host=s.api_host, port=s.api_port)
    return 0


_COMMANDS = {
    "consume": _consume,
    "serve": _serve,
    "init-index": _init_index,
}


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="logproc", description="Log ingestion and anomaly scoring pipeline.")
    p.add_argument("--config", default=None, help="YAML settings file (LOGPROC_* variables override it)")
    p.add_argument("--log-level", default=None, help="Override the configured log level")
    p.add_argument("command", choices=sorted(_COMMANDS), help="What to run")
    args = p.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ValueError as e:
        p.error(str(e))

    _configure_logging(args.log_level or settings.log_level)
    runtime = configure(settings)
    try:
        return _COMMANDS[args.command](runtime)
    finally:
        runtime.close()


if __name__ == "__main__":
    sys.exit(main())
