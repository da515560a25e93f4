import os

# must be set before backoffice.config.settings is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from backoffice.config.settings import settings
from backoffice.core.exceptions.exceptions import (
    ExternalAPIError,
    FetchError,
    InvalidSortFieldError,
    UnknownCollectionError,
)
from backoffice.models.event import Event
from backoffice.models.song import Song
from backoffice.services.cursor import Cursor, SortDirection
from backoffice.services.document_store import DocumentStore
from backoffice.utils.normalize import normalize_string


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDocumentStore:
    """In-memory document store with the same ordering rules as DocumentStore."""

    def __init__(self, collections: Dict[str, List[dict]]):
        self.collections = {name: list(docs) for name, docs in collections.items()}
        self.fetch_calls = 0
        self.count_calls = 0
        self.fail = False
        self.upcoming: List[Event] = []
        self.upcoming_calls = 0

    def sort_column(self, collection: str, sort_field: str):
        if collection not in self.collections:
            raise UnknownCollectionError(collection)
        docs = self.collections[collection]
        if docs and sort_field not in docs[0]:
            raise InvalidSortFieldError(collection, sort_field)
        return sort_field

    def _ordered(self, collection: str, sort_field: str, direction: SortDirection) -> List[dict]:
        return sorted(
            self.collections[collection],
            key=lambda d: (d[sort_field], d["id"]),
            reverse=SortDirection(direction) is SortDirection.DESC,
        )

    def fetch_page(self, collection: str, sort_field: str, direction: SortDirection, limit: int,
                   start_after: Optional[Cursor] = None, end_before: Optional[Cursor] = None) -> List[dict]:
        self.fetch_calls += 1
        if self.fail:
            raise FetchError(collection, "database unavailable")
        ordered = self._ordered(collection, sort_field, direction)
        positions = [(d[sort_field], d["id"]) for d in ordered]
        if start_after is not None:
            idx = positions.index((start_after.sort_value, start_after.doc_id))
            return [dict(d) for d in ordered[idx + 1:idx + 1 + limit]]
        if end_before is not None:
            idx = positions.index((end_before.sort_value, end_before.doc_id))
            return [dict(d) for d in ordered[max(0, idx - limit):idx]]
        return [dict(d) for d in ordered[:limit]]

    def count(self, collection: str) -> int:
        self.count_calls += 1
        if self.fail:
            raise FetchError(collection, "database unavailable")
        return len(self.collections[collection])

    def list_upcoming_events(self, now=None) -> List[Event]:
        self.upcoming_calls += 1
        if self.fail:
            raise FetchError("events", "database unavailable")
        return list(self.upcoming)


class FakeOpenAgendaClient:
    """Stands in for OpenAgendaClient; records every agenda call.

    Like the real API, `search` matches title, description and city and
    `keyword[]` matches any of the event keywords.
    """

    def __init__(self, responses: Optional[Dict[str, List[dict]]] = None):
        self.api_key = "test-key"
        self.responses = responses or {}
        self.failing = set()
        self.calls: List[tuple] = []

    @staticmethod
    def _matches(event: dict, search: Optional[str], keywords: List[str]) -> bool:
        if search:
            text = " ".join([
                (event.get("title") or {}).get("fr", ""),
                (event.get("longDescription") or {}).get("fr", ""),
                (event.get("location") or {}).get("city", ""),
            ])
            if normalize_string(search) not in normalize_string(text):
                return False
        if keywords:
            own = {normalize_string(k) for k in (event.get("keywords") or {}).get("fr", [])}
            if not own & {normalize_string(k) for k in keywords}:
                return False
        return True

    def list_events(self, agenda_uid: str, params) -> List[dict]:
        self.calls.append((agenda_uid, params))
        if agenda_uid in self.failing:
            raise ExternalAPIError("openagenda", "read timed out")
        search = next((v for k, v in params if k == "search"), None)
        keywords = [v for k, v in params if k == "keyword[]"]
        return [e for e in self.responses.get(agenda_uid, []) if self._matches(e, search, keywords)]

    def close(self) -> None:
        pass


def raw_openagenda_event(uid, title, begin, description="Bal folk avec les musiciens du coin",
                         city="Nevers", latitude=46.99, longitude=3.16, keywords=None, links=None):
    begin_dt = datetime.fromisoformat(begin)
    end = (begin_dt + timedelta(hours=4)).isoformat()
    return {
        "uid": uid,
        "title": {"fr": title},
        "longDescription": {"fr": description} if description is not None else None,
        "description": {"fr": "Association Trad'Nièvre"},
        "firstTiming": {"begin": begin, "end": end},
        "lastTiming": {"begin": begin, "end": end},
        "location": {"name": "Salle des fêtes", "city": city, "latitude": latitude, "longitude": longitude,
                     "address": "1 place de la Mairie"},
        "keywords": {"fr": keywords if keywords is not None else ["bal", "nivernais", "bourrée", "danse"]},
        "links": links if links is not None else [{"link": "https://www.youtube.com/watch?v=abc"}],
        "image": {"base": "https://cdn.openagenda.com/main/", "filename": "full.jpg",
                  "variants": [{"type": "thumbnail", "filename": "thumb.jpg"}]},
    }


def stored_event(id, title, start, description="Veillée chantée", city="Moulins", country="France",
                 latitude=46.56, longitude=3.33, type="Veillée", days=1):
    return Event(
        id=id,
        title=title,
        description=description,
        start_date=start,
        end_date=start + timedelta(days=days),
        address="Maison des associations",
        city=city,
        country=country,
        latitude=latitude,
        longitude=longitude,
        type=type,
        email="contact@example.org",
        social_links=["https://www.facebook.com/tradmoulins"],
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def song_docs():
    # 23 songs, titles deliberately repeat so the id tie-break matters
    return [{"id": f"s{i:02d}", "title": f"Chanson {i // 2:02d}", "artist": f"Artiste {i % 3}"} for i in range(23)]


@pytest.fixture
def fake_store(song_docs):
    return FakeDocumentStore({"songs": song_docs, "events": [], "songbooks": []})


@pytest.fixture
def fake_client():
    return FakeOpenAgendaClient()


@pytest.fixture
def sql_engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine, tables=[Song.__table__, Event.__table__])
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sql_engine):
    return sessionmaker(bind=sql_engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def sql_store(session_factory):
    return DocumentStore(session_factory=session_factory)


@pytest.fixture
def seed(session_factory):
    def _seed(*rows):
        session = session_factory()
        try:
            session.add_all(rows)
            session.commit()
        finally:
            session.close()
    return _seed


@pytest.fixture
def make_token():
    def _make(role: Optional[str] = "admin", sub: str = "uid-1", expires_in: int = 3600, secret: Optional[str] = None):
        claims = {"sub": sub, "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in)}
        if role is not None:
            claims[settings.AUTH_ROLE_CLAIM] = role
        return jwt.encode(claims, secret or settings.AUTH_JWT_SECRET, algorithm="HS256")
    return _make


@pytest.fixture
def auth_header(make_token):
    def _header(role: Optional[str] = "admin"):
        return {"Authorization": f"Bearer {make_token(role)}"}
    return _header
