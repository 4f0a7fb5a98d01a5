from __future__ import annotations

import pytest

from redirector.src.pairs import (
    DecodeError,
    PathUrlPair,
    build_map,
    parse_json,
    parse_pairs,
    parse_yaml,
)

YAML_RULES = b"""
- path: /urlshort
  url: https://github.com/gophercises/urlshort
- path: /urlshort-final
  url: https://github.com/gophercises/urlshort/tree/solution
"""


def test_parse_yaml_preserves_document_order() -> None:
    pairs = parse_yaml(YAML_RULES)

    assert pairs == [
        PathUrlPair("/urlshort", "https://github.com/gophercises/urlshort"),
        PathUrlPair("/urlshort-final", "https://github.com/gophercises/urlshort/tree/solution"),
    ]


def test_parse_json_accepts_array_of_objects() -> None:
    pairs = parse_json(b'[{"path": "/foo", "url": "https://example.com/foo"}]')

    assert pairs == [PathUrlPair("/foo", "https://example.com/foo")]


def test_parse_pairs_accepts_text_input() -> None:
    assert parse_pairs('[{"path": "/a", "url": "https://x.com"}]', "json") == [
        PathUrlPair("/a", "https://x.com")
    ]


def test_extra_keys_are_ignored() -> None:
    pairs = parse_json(b'[{"path": "/a", "url": "https://x.com", "note": "kept out"}]')

    assert pairs == [PathUrlPair("/a", "https://x.com")]


def test_contents_are_not_validated() -> None:
    pairs = parse_yaml(b"- path: ''\n  url: not a url\n")

    assert pairs == [PathUrlPair("", "not a url")]


def test_empty_yaml_document_is_empty_list() -> None:
    assert parse_yaml(b"") == []
    assert parse_yaml(b"# nothing configured yet\n") == []


def test_empty_json_array_is_empty_list() -> None:
    assert parse_json(b"[]") == []


@pytest.mark.parametrize(
    "payload",
    [
        b'[{"path": "/a", "url": "https://x.com"}',
        b"",
        b"{not json}",
        b"\x80\x81\x82\x83",
    ],
)
def test_malformed_json_raises_decode_error(payload: bytes) -> None:
    with pytest.raises(DecodeError, match="Invalid JSON"):
        parse_json(payload)


def test_malformed_yaml_raises_decode_error() -> None:
    with pytest.raises(DecodeError, match="Invalid YAML"):
        parse_yaml(b"- path: /a\n  url: [unclosed\n")


def test_top_level_mapping_is_rejected() -> None:
    with pytest.raises(DecodeError, match="top-level list"):
        parse_json(b'{"path": "/a", "url": "https://x.com"}')


def test_scalar_entry_is_rejected() -> None:
    with pytest.raises(DecodeError, match="entry 1: expected a mapping"):
        parse_yaml(b"- path: /a\n  url: https://x.com\n- just-a-string\n")


@pytest.mark.parametrize(
    ("payload", "missing"),
    [
        (b'[{"url": "https://x.com"}]', "path"),
        (b'[{"path": "/a"}]', "url"),
    ],
)
def test_missing_field_is_rejected(payload: bytes, missing: str) -> None:
    with pytest.raises(DecodeError, match=f"missing required key '{missing}'"):
        parse_json(payload)


def test_yaml_scalars_keep_their_text_form() -> None:
    pairs = parse_yaml(
        b"- path: 2020-01-01\n  url: 42\n"
        b"- path: /flag\n  url: true\n"
        b"- path: /ratio\n  url: 1.5\n"
        b"- path: /blank\n  url:\n"
    )

    assert pairs == [
        PathUrlPair("2020-01-01", "42"),
        PathUrlPair("/flag", "true"),
        PathUrlPair("/ratio", "1.5"),
        PathUrlPair("/blank", ""),
    ]


def test_yaml_collection_field_is_rejected() -> None:
    with pytest.raises(DecodeError, match="'url' must be a string, got list"):
        parse_yaml(b"- path: /a\n  url: [https://x.com]\n")


def test_json_non_string_field_is_rejected() -> None:
    with pytest.raises(DecodeError, match="'url' must be a string, got int"):
        parse_json(b'[{"path": "/a", "url": 42}]')


def test_json_null_document_is_empty_list() -> None:
    assert parse_json(b"null") == []


def test_unknown_format_is_rejected() -> None:
    with pytest.raises(DecodeError, match="Unsupported config format 'toml'"):
        parse_pairs(b"", "toml")


def test_decode_error_is_a_value_error() -> None:
    assert issubclass(DecodeError, ValueError)


def test_build_map_keeps_last_duplicate() -> None:
    pairs = [
        PathUrlPair("/a", "https://first.example"),
        PathUrlPair("/b", "https://b.example"),
        PathUrlPair("/a", "https://second.example"),
    ]

    assert build_map(pairs) == {"/a": "https://second.example", "/b": "https://b.example"}
