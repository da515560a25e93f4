from typing import Any, Dict, List, Optional

from backoffice.models.event import Event
from backoffice.schemas.events import FormattedEvent
from backoffice.utils.dates import to_utc
from backoffice.utils.link_format import process_event_links, typed_links

# regional tag carried by every AgendaTrad event, useless as a keyword
IGNORED_KEYWORDS = {"nivernais"}
MAX_EXTERNAL_KEYWORDS = 2


def format_internal_event(event: Event) -> FormattedEvent:
    """Map a stored event to the common event shape."""
    return FormattedEvent(
        id=str(event.id),
        title=event.title,
        description=event.description or None,
        date=to_utc(event.start_date),
        end_date=to_utc(event.end_date),
        image=event.image or None,
        location_name=event.address,
        city=event.city or "",
        country=event.country or "",
        latitude=event.latitude,
        longitude=event.longitude,
        organizer=event.email,
        links=typed_links(event.social_links),
        keywords=[event.type] if event.type else [],
    )


def _fr(value: Any) -> Optional[str]:
    # OpenAgenda localizes text fields as {"fr": "..."}
    if isinstance(value, dict):
        return value.get("fr")
    return None


def _thumbnail(image: Any) -> Optional[str]:
    if not isinstance(image, dict):
        return None
    for variant in image.get("variants") or []:
        if variant.get("type") == "thumbnail" and variant.get("filename"):
            return f"{image.get('base', '')}{variant['filename']}"
    return None


def format_openagenda_event(raw: Dict[str, Any], prefix: str, keep_organizer: bool = True) -> FormattedEvent:
    """Map a raw OpenAgenda event to the common event shape.

    The short description is used as organizer line; agendas that misuse it
    pass ``keep_organizer=False``.
    """
    location = raw.get("location") or {}
    keywords = _fr(raw.get("keywords")) or []
    kws = [k for k in keywords if k not in IGNORED_KEYWORDS][:MAX_EXTERNAL_KEYWORDS]

    return FormattedEvent(
        id=f"{prefix}{raw.get('uid')}",
        title=_fr(raw.get("title")) or "Sans titre",
        description=_fr(raw.get("longDescription")) or None,
        organizer=(_fr(raw.get("description")) or "") if keep_organizer else "",
        date=to_utc((raw.get("firstTiming") or {}).get("begin")),
        end_date=to_utc((raw.get("lastTiming") or {}).get("end")),
        image=_thumbnail(raw.get("image")),
        location_name=location.get("name"),
        city=location.get("city") or "",
        country="",
        latitude=location.get("latitude"),
        longitude=location.get("longitude"),
        links=process_event_links(raw.get("links")),
        keywords=kws,
    )


def is_displayable(event: FormattedEvent) -> bool:
    """Events need a non-blank title and description to be listed."""
    return bool(event.title and event.title.strip() and event.description and event.description.strip())


def sort_by_date(events: List[FormattedEvent]) -> List[FormattedEvent]:
    """Ascending by start date; undated events go last."""
    return sorted(events, key=lambda e: (e.date is None, e.date.timestamp() if e.date else 0))
