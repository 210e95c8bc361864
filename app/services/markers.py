"""Correlation markers embedded in ticket descriptions.

A remark ticket's description ends with a block like::

    {{collapse(Please do not edit the followings.)
    _discussion_id=1234,
    _type=DiffNote,
    _blocking_discussions_resolved=false,
    }}

Each ``_<key>=<value>,`` token is durable correlation state: the tracker is the
only place it is stored. Tokens are read and rewritten inside the block only,
one at a time, so reviewer text that happens to look like a token and the
other tokens stay byte-identical.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional, Tuple

MARKER_BLOCK_START = "{{collapse(Please do not edit the followings.)\n"
MARKER_BLOCK_END = "}} "

DISCUSSION_ID = "discussion_id"
NOTE_TYPE = "type"
BLOCKING_DISCUSSIONS_RESOLVED = "blocking_discussions_resolved"
MERGE_REQUEST_URL = "merge_request_url"

_TOKEN_RE = re.compile(r"(?<![A-Za-z0-9_])_(?P<key>[a-z][a-z0-9_]*)=(?P<value>[^,\n]*),")
_UNSAFE_VALUE_RE = re.compile(r"[,\r\n]")


def encode_value(value: Any) -> str:
    """Render a marker value: None -> null, bools -> true/false."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    # A comma or newline would terminate the token early.
    return _UNSAFE_VALUE_RE.sub(" ", str(value))


def decode_value(token: str) -> Any:
    if token == "null":
        return None
    if token == "true":
        return True
    if token == "false":
        return False
    return token


def marker_key(key: str) -> str:
    """Fragment matching any value of ``key`` (``_key=``)."""
    return f"_{key}="


def marker_token(key: str, value: Any) -> str:
    """Complete ``_key=value,`` token, suitable for substring search."""
    return f"{marker_key(key)}{encode_value(value)},"


def format_marker_block(markers: Mapping[str, Any]) -> str:
    lines = [MARKER_BLOCK_START]
    for key, value in markers.items():
        lines.append(marker_token(key, value) + "\n")
    lines.append(MARKER_BLOCK_END)
    return "".join(lines)


def _block_bounds(text: str) -> Optional[Tuple[int, int, int, int]]:
    """(block start, tokens start, tokens end, block end) of the first marker block."""
    start = text.find(MARKER_BLOCK_START)
    if start == -1:
        return None
    body = start + len(MARKER_BLOCK_START)
    close = MARKER_BLOCK_END.rstrip()
    end = text.find(close, body)
    if end == -1:
        return start, body, len(text), len(text)
    stop = end + len(close)
    if text.startswith(" ", stop):
        stop += 1
    return start, body, end, stop


def parse_markers(description: str | None) -> Dict[str, Any]:
    """Decode the tokens of the marker block.

    Inside the block the first occurrence of a key wins. A description without
    a block is scanned whole and the last occurrence wins.
    """
    text = description or ""
    markers: Dict[str, Any] = {}
    bounds = _block_bounds(text)
    if bounds is not None:
        for m in _TOKEN_RE.finditer(text[bounds[1]:bounds[2]]):
            markers.setdefault(m.group("key"), decode_value(m.group("value")))
        return markers
    for m in _TOKEN_RE.finditer(text):
        markers[m.group("key")] = decode_value(m.group("value"))
    return markers


def split_description(description: str | None) -> Tuple[str, Dict[str, Any]]:
    """Return (text without the marker block, markers)."""
    text = description or ""
    markers = parse_markers(text)
    bounds = _block_bounds(text)
    if bounds is None:
        return text, markers
    return text[:bounds[0]] + text[bounds[3]:], markers


def set_marker(description: str | None, key: str, value: Any) -> str:
    """Replace the value of an existing ``_key=...,`` token.

    Only the marker block is rewritten; text around it is returned
    byte-identical. Without a block the last token in the description is
    replaced. A missing key is never appended.
    """
    text = description or ""
    pattern = re.compile(rf"(?<![A-Za-z0-9_]){re.escape(marker_key(key))}[^,\n]*,")
    replacement = marker_token(key, value)

    bounds = _block_bounds(text)
    if bounds is not None:
        _, body, end, _ = bounds
        tokens = pattern.sub(lambda _m: replacement, text[body:end], count=1)
        return text[:body] + tokens + text[end:]

    matches = list(pattern.finditer(text))
    if not matches:
        return text
    last = matches[-1]
    return text[:last.start()] + replacement + text[last.end():]
