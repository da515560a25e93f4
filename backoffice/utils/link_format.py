from typing import Any, Dict, Iterable, List, Optional

import tldextract
import validators

from backoffice.schemas.events import EventLink

# bundled public suffix snapshot only, never fetched over the network
_extract = tldextract.TLDExtract(suffix_list_urls=())

# registered domain -> link type
DOMAIN_TYPES: Dict[str, str] = {
    "youtube.com": "youtube",
    "youtu.be": "youtube",
    "twitch.tv": "twitch",
    "agendatrad.org": "agendatrad",
    "vimeo.com": "vimeo",
    "soundcloud.com": "soundcloud",
    "facebook.com": "facebook",
    "fb.me": "facebook",
    "instagram.com": "instagram",
    "twitter.com": "twitter",
    "t.co": "twitter",
    "x.com": "x",
    "dailymotion.com": "dailymotion",
    "flickr.com": "flickr",
    "calameo.com": "calameo",
    "prezi.com": "prezi",
    "forms.gle": "google-forms",
    "ina.fr": "ina",
    "arte.tv": "arte",
    "allocine.fr": "allocine",
    "pictoaccess.fr": "pictoaccess",
    "wemap.com": "wemap",
}


def get_link_type(url: str) -> str:
    """Classify an outbound link by the site it points to."""
    lowered = url.strip().lower()
    if lowered.startswith("mailto:"):
        return "mail"

    parts = _extract(lowered)
    if not parts.domain or not parts.suffix:
        return "other"
    registered = f"{parts.domain}.{parts.suffix}"

    if registered == "google.com" and (parts.subdomain == "forms" or "/forms" in lowered):
        return "google-forms"
    # eventbrite runs one site per country (eventbrite.fr, eventbrite.co.uk, ...)
    if parts.domain == "eventbrite":
        return "eventbrite"
    return DOMAIN_TYPES.get(registered, "other")


def is_valid_link(url: Any) -> bool:
    if not isinstance(url, str) or not url.strip():
        return False
    url = url.strip()
    if url.lower().startswith("mailto:"):
        return validators.email(url[len("mailto:"):]) is True
    return validators.url(url) is True


def process_event_links(links: Optional[Iterable[Dict[str, Any]]]) -> List[EventLink]:
    """Turn OpenAgenda link objects (``{"link": ...}``) into typed links, dropping malformed ones."""
    if not links:
        return []
    out = []
    for link_obj in links:
        url = link_obj.get("link") if isinstance(link_obj, dict) else None
        if is_valid_link(url):
            out.append(EventLink(url=url.strip(), type=get_link_type(url)))
    return out


def typed_links(urls: Optional[Iterable[str]]) -> List[EventLink]:
    """Same as `process_event_links` for plain URL lists (internal events)."""
    return process_event_links({"link": u} for u in (urls or []))
