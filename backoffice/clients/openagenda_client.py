from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from backoffice.clients.base_http_client import BaseHTTPClient
from backoffice.core.exceptions.exceptions import ExternalAPIError
from backoffice.schemas.events import EventsQuery, SearchValueType
from backoffice.utils.dates import add_months
from backoffice.utils.log import app_logger

# half side, in degrees, of the box searched around a point
GEO_BOX_DEGREES = 1.35

# only the fields the event formatter reads
EVENT_FIELDS = [
    "uid",
    "title",
    "longDescription",
    "description",
    "firstTiming",
    "image",
    "location",
    "links",
    "keywords",
    "lastTiming",
]


def build_event_params(query: EventsQuery, api_key: Optional[str], today: date) -> List[Tuple[str, str]]:
    """Translate an events query into OpenAgenda v2 query parameters."""
    params: List[Tuple[str, str]] = [
        ("key", api_key or ""),
        ("size", str(query.max_open_agenda_items)),
    ]

    horizon = add_months(today, 4 if query.is_calendar else 1)
    params.append(("timings[gte]", today.isoformat()))
    params.append(("timings[lte]", horizon.isoformat()))

    if query.search_value:
        if query.search_value_type == SearchValueType.KEYWORDS:
            for keyword in query.search_value.split(","):
                if keyword.strip():
                    params.append(("keyword[]", keyword.strip()))
        else:
            params.append(("search", query.search_value))

    if query.lat is not None and query.long is not None:
        params.extend([
            ("geo[northEast][lat]", str(query.lat + GEO_BOX_DEGREES)),
            ("geo[northEast][lng]", str(query.long + GEO_BOX_DEGREES)),
            ("geo[southWest][lat]", str(query.lat - GEO_BOX_DEGREES)),
            ("geo[southWest][lng]", str(query.long - GEO_BOX_DEGREES)),
        ])

    params.extend(("if[]", f) for f in EVENT_FIELDS)
    return params


class OpenAgendaClient(BaseHTTPClient):
    """OpenAgenda v2 events API.

    One attempt plus a single immediate retry, each bounded by `timeout`;
    the second failure is final and raised as `ExternalAPIError`.
    """

    def __init__(self, api_key: Optional[str], base_url: str = "https://api.openagenda.com", timeout: float = 10):
        super().__init__(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            max_retries=1,
            retry_delay=0,
            rate_limit_wait=0,
            service_name="openagenda",
        )

    def list_events(self, agenda_uid: str, params: List[Tuple[str, str]]) -> List[Dict[str, Any]]:
        """Return the raw event objects of one agenda."""
        if not agenda_uid:
            raise ExternalAPIError(self.service_name, "agenda uid is not configured")

        response = self.get(f"/v2/agendas/{agenda_uid}/events", params=params)
        events = response.get("events") if isinstance(response, dict) else None
        if events is None:
            app_logger.warning("openagenda.no_events_key", agenda=agenda_uid)
            return []
        if not isinstance(events, list):
            raise ExternalAPIError(self.service_name, f"unexpected events payload for agenda {agenda_uid}")
        return events
