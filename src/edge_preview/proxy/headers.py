"""Header tunnelling between the local proxy and the preview service.

The preview service multiplexes the worker's real traffic with its own
control headers on a single HTTP channel. Real headers travel with a fixed
prefix in both directions:

- every header sent to the local proxy is prefixed before it goes upstream,
  so the service hands it to the worker instead of consuming it;
- every header the worker returns comes back prefixed, and headers without
  the prefix belong to the service itself and are dropped.

The response status is carried in its own header as ``"<code> <reason>"``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from edge_preview.exceptions import ProtocolViolation

HEADER_PREFIX = "cf-ew-raw-"
STATUS_HEADER = "cf-ew-status"
PREVIEW_ID_HEADER = "cf-ew-preview"

HeaderList = list[tuple[str, str]]


def header_items(headers: Any) -> HeaderList:
    """Flatten a header container into ordered ``(name, value)`` pairs.

    Repeated names are kept. Accepts httpx ``Headers`` (via ``multi_items``),
    Starlette ``Headers`` and plain mappings, or any iterable of pairs.
    """
    if hasattr(headers, "multi_items"):
        return list(headers.multi_items())
    if isinstance(headers, Mapping):
        return list(headers.items())
    return [(name, value) for name, value in headers]


def prepare_request(headers: Iterable[tuple[str, str]] | Mapping[str, str]) -> HeaderList:
    """Prefix every request header so the preview service forwards it to the worker."""
    return [(f"{HEADER_PREFIX}{name}", value) for name, value in header_items(headers)]


def structure_request(
    headers: Iterable[tuple[str, str]] | Mapping[str, str], preview_id: str
) -> HeaderList:
    """Build upstream request headers: prefixed worker headers plus the routing header."""
    prepared = prepare_request(headers)
    prepared.append((PREVIEW_ID_HEADER, preview_id))
    return prepared


def parse_status(headers: Iterable[tuple[str, str]] | Mapping[str, str]) -> int:
    """Extract the worker's status code from the synthetic status header.

    ``"404 not found"`` yields ``404``; the reason phrase is ignored.
    """
    value = None
    for name, header_value in header_items(headers):
        if name.lower() == STATUS_HEADER:
            value = header_value
            break
    if value is None:
        raise ProtocolViolation(f"missing {STATUS_HEADER} header in preview response")

    code = value.strip().split(" ", 1)[0]
    if len(code) != 3 or not code.isdigit() or not 100 <= int(code) <= 999:
        raise ProtocolViolation(f"invalid status in {STATUS_HEADER} header: {value!r}")
    return int(code)


def strip_response_headers(headers: Iterable[tuple[str, str]] | Mapping[str, str]) -> HeaderList:
    """Keep only the worker's own headers, with the prefix removed.

    Headers without the prefix (including the status header) are
    preview-service internals and are discarded.
    """
    stripped: HeaderList = []
    for name, value in header_items(headers):
        if name.lower().startswith(HEADER_PREFIX):
            stripped.append((name[len(HEADER_PREFIX) :], value))
    return stripped
