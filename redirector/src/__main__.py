from __future__ import annotations

import argparse
import logging
import os
from collections.abc import Sequence

import uvicorn

from redirector.src.config import (
    DEFAULT_JSON_FILE,
    DEFAULT_YAML_FILE,
    ConfigError,
    load_config,
)
from redirector.src.main import APP_VERSION, configure_logging, create_app
from redirector.src.metrics import METRICS
from redirector.src.pairs import DecodeError
from redirector.src.store import MappingStore, StoreError

logger = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="redirector",
        description="Serve 302 redirects for the path/url pairs in a YAML and a JSON file",
    )
    parser.add_argument(
        "-yamlFile",
        "--yamlFile",
        dest="yaml_file",
        help=f"a yaml file of '- path: ... url: ...' entries (default: {DEFAULT_YAML_FILE})",
    )
    parser.add_argument(
        "-jsonFile",
        "--jsonFile",
        dest="json_file",
        help=(
            'a json file of [{"path": ..., "url": ...}] entries, loaded after the '
            f"yaml file (default: {DEFAULT_JSON_FILE})"
        ),
    )
    parser.add_argument("--db", dest="db_path", help="mapping store file (default: url.db)")
    parser.add_argument(
        "--namespace", help="store namespace holding the mappings (default: UrlShortener)"
    )
    parser.add_argument("--host", help="address to bind (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="port to listen on (default: 8080)")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Redirector entrypoint: load both sources into the store, then serve until stopped.

    Any startup failure is logged once and reported as exit status 1 before
    the listener is bound.
    """
    args = _parse_args(argv)
    configure_logging()
    METRICS.build_info.info(
        {
            "version": os.getenv("APP_VERSION", APP_VERSION),
            "revision": os.getenv("GIT_SHA", "unknown"),
        }
    )

    try:
        config = load_config(overrides=vars(args))
        app = create_app(config)
    except (ConfigError, DecodeError, StoreError, OSError):
        logger.exception("Startup failed")
        return 1

    store: MappingStore = app.state.store
    try:
        logger.info("Starting the server on %s:%d", config.host, config.port)
        uvicorn.run(app, host=config.host, port=config.port, log_config=None)
    finally:
        store.close()
        logger.info("Redirector stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
