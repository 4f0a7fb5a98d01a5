from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from types import MappingProxyType
from typing import NamedTuple, Protocol

from redirector.src.store import MappingStore

logger = logging.getLogger(__name__)


class Resolver(Protocol):
    """A lookup source consulted for a request path."""

    name: str

    def resolve(self, path: str) -> str | None: ...


class Resolution(NamedTuple):
    resolver: str
    url: str


class StoreResolver:
    """Looks paths up in one namespace of the mapping store."""

    def __init__(self, store: MappingStore, namespace: str, name: str = "store") -> None:
        self.name = name
        self._store = store
        self._namespace = namespace

    def resolve(self, path: str) -> str | None:
        return self._store.get(self._namespace, path)


class MapResolver:
    """Looks paths up in a fixed in-memory table."""

    def __init__(self, mapping: Mapping[str, str], name: str = "static") -> None:
        self.name = name
        self._mapping = MappingProxyType(dict(mapping))

    def resolve(self, path: str) -> str | None:
        return self._mapping.get(path)


class ResolverChain:
    """Ordered fallback over resolvers: the first non-empty url wins.

    ``None`` and ``""`` both mean "not here" and advance to the next
    resolver, so a blank stored target is never used as a redirect. Store
    errors are not caught here; the HTTP layer turns them into a 500.
    """

    def __init__(self, resolvers: Sequence[Resolver]) -> None:
        self.resolvers: tuple[Resolver, ...] = tuple(resolvers)

    def resolve(self, path: str) -> Resolution | None:
        for resolver in self.resolvers:
            url = resolver.resolve(path)
            if url:
                logger.debug("Resolved %s via %s", path, resolver.name)
                return Resolution(resolver.name, url)
        return None


def build_chain(
    store: MappingStore, namespace: str, static_paths: Mapping[str, str]
) -> ResolverChain:
    """Return the serving chain: the store namespace, then the static table.

    The YAML and JSON sources are both written into *namespace*, so a single
    store-backed link answers for either of them.
    """
    return ResolverChain([StoreResolver(store, namespace), MapResolver(static_paths)])
