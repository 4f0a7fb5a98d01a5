from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

import yaml

FORMATS = ("yaml", "json")


class DecodeError(ValueError):
    """Raised when mapping config bytes do not match the ``[{path, url}]`` schema."""


@dataclass(frozen=True)
class PathUrlPair:
    """One redirect rule: requests for ``path`` are sent to ``url``.

    Neither field is validated; an empty path or a non-URL target is kept as-is.
    """

    path: str
    url: str


def _load_document(data: bytes | str, fmt: str) -> object:
    if fmt == "yaml":
        try:
            document = yaml.safe_load(data)
        except yaml.YAMLError as exc:
            raise DecodeError(f"Invalid YAML: {exc}") from exc
    elif fmt == "json":
        try:
            document = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DecodeError(f"Invalid JSON: {exc}") from exc
    else:
        raise DecodeError(f"Unsupported config format {fmt!r}; expected one of {FORMATS}")
    # An empty YAML document or a JSON null is an empty rule list, not an error.
    return [] if document is None else document


def _yaml_scalar(value: object) -> str | None:
    # Plain YAML scalars decode to bool/int/float/date; keep their text form.
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, date)):
        return str(value)
    return None


def _to_pair(item: object, index: int, fmt: str) -> PathUrlPair:
    if not isinstance(item, dict):
        raise DecodeError(f"entry {index}: expected a mapping, got {type(item).__name__}")
    fields: dict[str, str] = {}
    for key in ("path", "url"):
        if key not in item:
            raise DecodeError(f"entry {index}: missing required key {key!r}")
        value = item[key]
        if not isinstance(value, str) and fmt == "yaml":
            value = _yaml_scalar(value)
        if not isinstance(value, str):
            raise DecodeError(
                f"entry {index}: {key!r} must be a string, got {type(item[key]).__name__}"
            )
        fields[key] = value
    return PathUrlPair(path=fields["path"], url=fields["url"])


def parse_pairs(data: bytes | str, fmt: str) -> list[PathUrlPair]:
    """Decode a YAML or JSON rule list into pairs, preserving document order.

    Both formats share one schema: a top-level sequence whose items are
    mappings with ``path`` and ``url`` keys. Extra keys are ignored. YAML
    scalars such as ``42`` or ``2020-01-01`` keep their text form; JSON
    values must already be strings.

    Raises:
        DecodeError: malformed syntax, wrong shape, or a missing or non-scalar field.
    """
    document = _load_document(data, fmt)
    if not isinstance(document, list):
        raise DecodeError(
            f"Expected a top-level list of path/url entries, got {type(document).__name__}"
        )
    return [_to_pair(item, index, fmt) for index, item in enumerate(document)]


def parse_yaml(data: bytes | str) -> list[PathUrlPair]:
    return parse_pairs(data, "yaml")


def parse_json(data: bytes | str) -> list[PathUrlPair]:
    return parse_pairs(data, "json")


def build_map(pairs: Iterable[PathUrlPair]) -> dict[str, str]:
    """Collapse pairs into a path -> url dict; a later duplicate path wins."""
    return {pair.path: pair.url for pair in pairs}
