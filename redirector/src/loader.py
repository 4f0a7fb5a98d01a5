from __future__ import annotations

import logging
from pathlib import Path

from redirector.src.config import AppConfig
from redirector.src.metrics import METRICS
from redirector.src.pairs import parse_pairs
from redirector.src.store import MappingStore, StoreWriteError

logger = logging.getLogger(__name__)


def load_source(store: MappingStore, namespace: str, path: str | Path, fmt: str) -> int:
    """Read, decode and store one config file; return the number of paths written.

    ``OSError`` from reading, :class:`~redirector.src.pairs.DecodeError` and
    :class:`~redirector.src.store.StoreWriteError` propagate unchanged.
    """
    data = Path(path).read_bytes()
    pairs = parse_pairs(data, fmt)
    try:
        written = store.put(namespace, pairs)
    except StoreWriteError:
        METRICS.store_errors_total.labels(operation="put").inc()
        raise
    METRICS.mappings_loaded.labels(source=fmt).set(written)
    logger.info("Loaded %d mappings from %s into namespace %s", written, path, namespace)
    return written


def load_sources(store: MappingStore, config: AppConfig) -> dict[str, int]:
    """Load the YAML source, then the JSON source, into the configured namespace.

    Both land in the same namespace, so on a shared path the JSON url wins.
    """
    return {
        "yaml": load_source(store, config.namespace, config.yaml_file, "yaml"),
        "json": load_source(store, config.namespace, config.json_file, "json"),
    }
