from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from backoffice.core.exceptions.exceptions import FetchError
from backoffice.main import app
from backoffice.models.song import Song
from backoffice.services.container import Services
from backoffice.services.events_aggregator import AgendaSource, EventsAggregator
from backoffice.services.pagination_cache import PaginationCache
from backoffice.services.paginator_registry import PaginatorRegistry
from backoffice.services.taxonomy import TaxonomyStore
from conftest import raw_openagenda_event, stored_event


@pytest.fixture
def services(sql_store, seed, fake_client):
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    seed(*[Song(id=f"s{i:02d}", title=f"Chanson {i // 2:02d}", artist=f"Artiste {i % 3}") for i in range(23)])
    seed(
        stored_event("upcoming", "Veillée de Noël", now + timedelta(days=5)),
        stored_event("ancient", "Bal d'antan", now - timedelta(days=120)),
    )
    fake_client.responses = {
        "trad": [raw_openagenda_event(1, "Bal à Nevers", (now + timedelta(days=2)).isoformat())],
    }
    cache = PaginationCache()
    return Services(
        store=sql_store,
        pagination_cache=cache,
        paginators=PaginatorRegistry(sql_store, cache),
        events=EventsAggregator(sql_store, fake_client, [AgendaSource("trad", "agendatrad_")],
                                today=lambda: date.today()),
        taxonomy=TaxonomyStore(),
    )


@pytest.fixture
def client(services):
    # the lifespan is not run; services are wired by hand
    app.state.services = services
    return TestClient(app)


def _open(client, headers, sort_field="title", page_size=10):
    return client.post("/collections/songs/sessions", json={"sort_field": sort_field, "page_size": page_size},
                       headers=headers)


class TestAuthentication:
    def test_missing_token(self, client):
        assert client.get("/events").status_code == 401

    def test_unknown_role(self, client, auth_header):
        assert client.get("/data/regions", headers=auth_header("superuser")).status_code == 403


class TestPaginationSessions:
    def test_open_and_walk(self, client, auth_header):
        headers = auth_header("user")

        opened = _open(client, headers)
        assert opened.status_code == 201
        body = opened.json()
        session_id = body["session_id"]
        assert body["pagination"]["total_items"] == 23
        assert body["pagination"]["page_count"] == 3
        assert [i["id"] for i in body["items"]][:2] == ["s00", "s01"]

        nxt = client.post(f"/sessions/{session_id}/next", headers=headers).json()
        assert nxt["pagination"]["current_page"] == 1
        assert nxt["items"][0]["id"] == "s10"

        prev = client.post(f"/sessions/{session_id}/prev", headers=headers).json()
        assert prev["pagination"]["current_page"] == 0
        assert prev["from_cache"] is True

        state = client.get(f"/sessions/{session_id}", headers=headers).json()
        assert state["pagination"]["current_page"] == 0

    def test_sort_and_page_events(self, client, auth_header):
        headers = auth_header("user")
        session_id = _open(client, headers).json()["session_id"]

        desc = client.post(f"/sessions/{session_id}/sort", json={"sort_field": "title"}, headers=headers).json()
        assert desc["pagination"]["sort_direction"] == "desc"
        assert desc["items"][0]["id"] == "s22"

        resized = client.post(f"/sessions/{session_id}/page", json={"page": 0, "rows": 5}, headers=headers).json()
        assert resized["pagination"]["page_size"] == 5
        assert resized["pagination"]["page_count"] == 5

        refreshed = client.post(f"/sessions/{session_id}/refresh", headers=headers).json()
        assert refreshed["from_cache"] is False

    def test_invalid_requests(self, client, auth_header):
        headers = auth_header("user")

        assert client.post("/collections/albums/sessions", json={"sort_field": "title"},
                           headers=headers).status_code == 404
        assert _open(client, headers, sort_field="tempo").status_code == 400
        assert _open(client, headers, page_size=0).status_code == 422

        session_id = _open(client, headers).json()["session_id"]
        assert client.post(f"/sessions/{session_id}/sort", json={"sort_field": "social_links"},
                           headers=headers).status_code == 400

    def test_close_session(self, client, auth_header):
        headers = auth_header("user")
        session_id = _open(client, headers).json()["session_id"]

        assert client.delete(f"/sessions/{session_id}", headers=headers).status_code == 204
        assert client.get(f"/sessions/{session_id}", headers=headers).status_code == 404
        assert client.delete(f"/sessions/{session_id}", headers=headers).status_code == 404

    def test_store_failure_keeps_the_page(self, client, auth_header, services, monkeypatch):
        headers = auth_header("user")
        session_id = _open(client, headers).json()["session_id"]

        def broken(*args, **kwargs):
            raise FetchError("songs", "connection reset")

        monkeypatch.setattr(services.store, "fetch_page", broken)

        assert client.post(f"/sessions/{session_id}/next", headers=headers).status_code == 502
        state = client.get(f"/sessions/{session_id}", headers=headers).json()
        assert state["pagination"]["current_page"] == 0
        assert state["items"][0]["id"] == "s00"


class TestEventsRoutes:
    def test_list_events(self, client, auth_header):
        response = client.get("/events", headers=auth_header("artist"))

        assert response.status_code == 200
        body = response.json()
        assert [e["id"] for e in body["events"]] == ["agendatrad_1", "upcoming"]
        assert body["cached"] is False

        assert client.get("/events", headers=auth_header("artist")).json()["cached"] is True

    @pytest.mark.parametrize("params", [
        {"search_value": "   "},
        {"lat": 91},
        {"long": -181},
        {"search_value_type": "colour"},
        {"max_open_agenda_items": 0},
    ])
    def test_query_validation(self, client, auth_header, params):
        assert client.get("/events", params=params, headers=auth_header("user")).status_code == 422

    def test_filtered_listing(self, client, auth_header):
        response = client.get("/events", params={"search_value": "noel"}, headers=auth_header("user"))

        assert [e["id"] for e in response.json()["events"]] == ["upcoming"]

    def test_clean_requires_admin(self, client, auth_header):
        assert client.post("/events/clean", headers=auth_header("organizer")).status_code == 403

    def test_clean(self, client, auth_header, services):
        response = client.post("/events/clean", headers=auth_header("admin"))

        assert response.status_code == 200
        assert response.json() == {"status": "success", "deleted": 1}
        assert services.store.count("events") == 1

    def test_clean_drops_cached_event_pages(self, client, auth_header, services):
        headers = auth_header("admin")
        opened = client.post("/collections/events/sessions", json={"sort_field": "start_date", "page_size": 10},
                             headers=headers)
        assert opened.json()["pagination"]["total_items"] == 2
        assert services.pagination_cache.has_collection("events")

        client.post("/events/clean", headers=headers)

        assert not services.pagination_cache.has_collection("events")
        reopened = client.post("/collections/events/sessions", json={"sort_field": "start_date", "page_size": 10},
                               headers=headers).json()
        assert [i["id"] for i in reopened["items"]] == ["upcoming"]
        assert reopened["pagination"]["total_items"] == 1


class TestCacheRoutes:
    def test_stats_and_invalidation(self, client, auth_header):
        _open(client, auth_header("user"))
        headers = auth_header("organizer")

        stats = client.get("/cache/stats", headers=headers).json()
        assert stats["pagination"]["collections"]["songs"]["pages"] == 1
        assert client.get("/cache/collections/songs", headers=headers).json()["cached"] is True

        invalidated = client.post("/cache/invalidate", json={"collections": ["songs", "events"]}, headers=headers)
        assert invalidated.json() == {"invalidated": {"songs": 1, "events": 0}}
        assert client.get("/cache/collections/songs", headers=headers).json()["cached"] is False

    def test_stats_forbidden_for_users(self, client, auth_header):
        assert client.get("/cache/stats", headers=auth_header("user")).status_code == 403

    def test_clear_all_is_admin_only(self, client, auth_header):
        assert client.delete("/cache", headers=auth_header("organizer")).status_code == 403
        assert client.delete("/cache", headers=auth_header("admin")).status_code == 204


class TestDataRoutes:
    def test_reference_list(self, client, auth_header):
        response = client.get("/data/countries", headers=auth_header("user"))

        assert response.status_code == 200
        assert response.json()[0] == {"id": 0, "nom": "France"}

    def test_unknown_list(self, client, auth_header):
        assert client.get("/data/instruments", headers=auth_header("user")).status_code == 422
