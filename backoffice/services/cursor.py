import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from backoffice.core.exceptions.exceptions import InvalidCursorError
from backoffice.utils.dates import to_utc


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def toggled(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


def _encode_value(value: Any) -> Any:
    # datetimes are tagged so they come back as datetimes, not strings
    if isinstance(value, datetime):
        return {"$dt": to_utc(value).isoformat()}
    return value


def _decode_value(value: Any) -> Any:
    if isinstance(value, dict) and "$dt" in value:
        return to_utc(value["$dt"])
    return value


@dataclass(frozen=True)
class Cursor:
    """Position of one document inside a result set sorted by (sort_field, id).

    A cursor is only meaningful for the ordering it was taken from; the
    document store refuses it for any other sort field or direction.
    """

    doc_id: str
    sort_value: Any
    sort_field: str
    direction: SortDirection

    @classmethod
    def from_document(cls, document: Dict[str, Any], sort_field: str, direction: SortDirection) -> "Cursor":
        return cls(
            doc_id=str(document["id"]),
            sort_value=document.get(sort_field),
            sort_field=sort_field,
            direction=SortDirection(direction),
        )

    def matches(self, sort_field: str, direction: SortDirection) -> bool:
        return self.sort_field == sort_field and self.direction == SortDirection(direction)

    def encode(self) -> str:
        payload = {
            "id": self.doc_id,
            "v": _encode_value(self.sort_value),
            "f": self.sort_field,
            "d": self.direction.value,
        }
        raw = json.dumps(payload, separators=(",", ":")).encode()
        return base64.urlsafe_b64encode(raw).decode()

    @classmethod
    def decode(cls, token: str) -> "Cursor":
        try:
            payload = json.loads(base64.urlsafe_b64decode(token.encode()))
            return cls(
                doc_id=str(payload["id"]),
                sort_value=_decode_value(payload.get("v")),
                sort_field=payload["f"],
                direction=SortDirection(payload["d"]),
            )
        except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
            raise InvalidCursorError(type(e).__name__) from e
