"""Records admitted into the sink and the default event encoder."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from webhdfs_sink.events.paths import PathTemplate

TIMESTAMP_FIELD = "@timestamp"


@dataclass(frozen=True)
class Record:
    """An admitted event: its fields (for path resolution) and encoded payload."""

    fields: Mapping[str, Any]
    payload: bytes
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.fields, MappingProxyType):
            object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))


@dataclass
class EventEncoder:
    """Turns event mappings into :class:`Record` instances.

    With a ``message_format`` the payload is that template rendered against
    the event; otherwise it is the event as compact JSON.
    """

    message_format: str | None = None
    remove_at_timestamp: bool = True
    _format: PathTemplate | None = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        if self.message_format is not None:
            self._format = PathTemplate(self.message_format)

    def encode(self, event: Mapping[str, Any]) -> Record:
        timestamp = parse_timestamp(event.get(TIMESTAMP_FIELD))
        if self._format is not None:
            text = self._format.resolve(event, timestamp or datetime.now(UTC))
        else:
            body = dict(event)
            if self.remove_at_timestamp:
                body.pop(TIMESTAMP_FIELD, None)
            text = json.dumps(body, separators=(",", ":"), default=str)
        return Record(fields=event, payload=text.encode("utf-8"), timestamp=timestamp)


def encode_event(
    event: Mapping[str, Any],
    *,
    message_format: str | None = None,
    remove_at_timestamp: bool = True,
) -> Record:
    """One-off convenience wrapper around :class:`EventEncoder`."""
    encoder = EventEncoder(
        message_format=message_format, remove_at_timestamp=remove_at_timestamp
    )
    return encoder.encode(event)


def parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return None
