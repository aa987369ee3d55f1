"""
W3C Trace Context Codec

Parses and formats `traceparent` header values.
Reference: https://www.w3.org/TR/trace-context/

Format: version-traceId-parentSpanId-traceFlags
Example: 00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01

DESIGN RULES:
- Pure functions, no state
- Malformed input returns None, never raises
- Accepted values round-trip exactly (casing preserved)
"""

import re
import secrets
from dataclasses import dataclass
from typing import Optional


_HEX = re.compile(r"[0-9a-fA-F]+")

VERSION_LENGTH = 2
TRACE_ID_LENGTH = 32
PARENT_SPAN_ID_LENGTH = 16
FLAGS_LENGTH = 2

SAMPLED_FLAG = 0x01


@dataclass(frozen=True)
class TraceContext:
    """
    Parsed traceparent header.

    All fields keep the exact text received so that format() can
    reproduce the original header.
    """

    version: str
    trace_id: str
    parent_span_id: str
    flags: str
    sampled: bool


def _is_hex(value: str, length: int) -> bool:
    return len(value) == length and bool(_HEX.fullmatch(value))


def _is_all_zeros(value: str) -> bool:
    return value.strip("0") == ""


def parse(header: Optional[str]) -> Optional[TraceContext]:
    """
    Parse a traceparent header value.

    Args:
        header: Raw header value (may be None)

    Returns:
        TraceContext, or None when the header is absent or invalid.
        All-zero trace ids and parent span ids are reserved and rejected.
    """
    if not header or not isinstance(header, str):
        return None

    parts = header.strip().split("-")
    if len(parts) != 4:
        return None

    version, trace_id, parent_span_id, flags = parts

    if not _is_hex(version, VERSION_LENGTH):
        return None
    if not _is_hex(trace_id, TRACE_ID_LENGTH) or _is_all_zeros(trace_id):
        return None
    if not _is_hex(parent_span_id, PARENT_SPAN_ID_LENGTH) or _is_all_zeros(parent_span_id):
        return None
    if not _is_hex(flags, FLAGS_LENGTH):
        return None

    return TraceContext(
        version=version,
        trace_id=trace_id,
        parent_span_id=parent_span_id,
        flags=flags,
        sampled=(int(flags, 16) & SAMPLED_FLAG) == SAMPLED_FLAG,
    )


def format(ctx: TraceContext) -> str:
    """Format a TraceContext back into a traceparent header value."""
    return f"{ctx.version}-{ctx.trace_id}-{ctx.parent_span_id}-{ctx.flags}"


def generate_trace_id() -> str:
    """Generate a fresh random 16-byte trace id (32 lowercase hex chars)."""
    while True:
        trace_id = secrets.token_hex(16)
        if not _is_all_zeros(trace_id):
            return trace_id
