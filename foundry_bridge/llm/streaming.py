"""
Server-sent event helpers for streamed chat completions.

SSELineBuffer turns arbitrarily split text reads into complete lines.
ToolCallAccumulator merges tool-call fragments that arrive across chunks.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from google.genai import types

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class SSELineBuffer:
    """Carry-over buffer for lines split across read boundaries."""

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, text: str) -> list[str]:
        """Append a read and return every line it completed."""
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")
        return lines

    def flush(self) -> list[str]:
        """Return the trailing unterminated line, if any."""
        rest, self._buffer = self._buffer, ""
        return [rest] if rest.strip() else []


def data_payload(line: str) -> str | None:
    """Payload of a `data: ` event line, None for any other line."""
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):]


@dataclass(slots=True)
class _PendingCall:
    id: str = ""
    name: str = ""
    arguments: str = ""
    emitted: bool = False

    def resolve(self) -> dict[str, Any] | None:
        if not self.name or not self.arguments:
            return None
        try:
            args = json.loads(self.arguments)
        except json.JSONDecodeError:
            return None
        return args if isinstance(args, dict) else None


class ToolCallAccumulator:
    """
    Reassembles streamed tool calls.

    Fragments are keyed by their `index` (only the first fragment of a call
    carries the id), falling back to the id when no index is sent. A call
    is emitted exactly once, as soon as its name is known and its
    concatenated arguments parse as a JSON object.
    """

    def __init__(self) -> None:
        self._calls: dict[Any, _PendingCall] = {}

    @staticmethod
    def _key(fragment: dict[str, Any]) -> int | str:
        index = fragment.get("index")
        if isinstance(index, int) and not isinstance(index, bool):
            return index
        call_id = fragment.get("id")
        return call_id if isinstance(call_id, str) and call_id else 0

    def add(self, fragments: list[Any]) -> list[types.FunctionCall]:
        """Merge fragments; return the calls that became complete.

        Fragments that are not objects, and name or argument pieces that are
        not strings, are ignored.
        """
        touched: list[Any] = []
        for fragment in fragments:
            if not isinstance(fragment, dict):
                continue
            key = self._key(fragment)
            pending = self._calls.setdefault(key, _PendingCall())
            if pending.emitted:
                continue
            if isinstance(fragment.get("id"), str) and fragment["id"]:
                pending.id = fragment["id"]
            func = fragment.get("function")
            if not isinstance(func, dict):
                func = {}
            if isinstance(func.get("name"), str):
                pending.name += func["name"]
            if isinstance(func.get("arguments"), str):
                pending.arguments += func["arguments"]
            if key not in touched:
                touched.append(key)

        resolved: list[types.FunctionCall] = []
        for key in touched:
            pending = self._calls[key]
            args = pending.resolve()
            if args is None:
                continue
            pending.emitted = True
            resolved.append(
                types.FunctionCall(id=pending.id or None, name=pending.name, args=args)
            )
        return resolved

    def unresolved(self) -> list[str]:
        """Names (or ids) of calls that never completed."""
        return [
            p.name or p.id or "<unnamed>"
            for p in self._calls.values()
            if not p.emitted
        ]
