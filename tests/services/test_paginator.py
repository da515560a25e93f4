import pytest

from backoffice.core.exceptions.exceptions import FetchError
from backoffice.services.cursor import SortDirection
from backoffice.services.pagination_cache import PaginationCache
from backoffice.services.paginator import CollectionPaginator


def _ids(items):
    return [d["id"] for d in items]


def _expected(page, page_size=10, total=23):
    return [f"s{i:02d}" for i in range(page * page_size, min((page + 1) * page_size, total))]


@pytest.fixture
def cache(clock):
    return PaginationCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def paginator(fake_store, cache):
    return CollectionPaginator(fake_store, cache, "songs", "title", page_size=10)


class TestInitialLoad:
    def test_loads_first_page_and_counts(self, paginator, fake_store):
        snap = paginator.load_initial()

        assert _ids(snap.items) == _expected(0)
        assert snap.state.total_items == 23
        assert snap.state.page_count == 3
        assert snap.first_cursor.doc_id == "s00"
        assert snap.last_cursor.doc_id == "s09"
        assert not snap.from_cache
        assert fake_store.count_calls == 1

    def test_second_paginator_is_served_from_cache(self, fake_store, cache, paginator):
        paginator.load_initial()
        other = CollectionPaginator(fake_store, cache, "songs", "title", page_size=10)

        snap = other.load_initial()

        assert snap.from_cache
        assert _ids(snap.items) == _expected(0)
        assert fake_store.fetch_calls == 1

    def test_empty_collection(self, fake_store, cache):
        paginator = CollectionPaginator(fake_store, cache, "songbooks", "title")

        snap = paginator.load_initial()

        assert snap.items == []
        assert snap.state.total_items == 0
        assert snap.first_cursor is None and snap.last_cursor is None
        assert cache.get_cache_stats()["total_pages"] == 0

    def test_rejects_non_positive_page_size(self, fake_store, cache):
        with pytest.raises(ValueError):
            CollectionPaginator(fake_store, cache, "songs", "title", page_size=0)


class TestNavigation:
    def test_walks_forward_to_last_page(self, paginator):
        paginator.load_initial()

        assert _ids(paginator.load_next().items) == _expected(1)
        snap = paginator.load_next()

        assert snap.state.current_page == 2
        assert _ids(snap.items) == _expected(2)
        assert len(snap.items) == 3

    def test_next_on_last_page_is_a_no_op(self, paginator, fake_store):
        paginator.load_initial()
        paginator.load_next()
        paginator.load_next()
        calls = fake_store.fetch_calls

        snap = paginator.load_next()

        assert snap.state.current_page == 2
        assert fake_store.fetch_calls == calls

    def test_prev_on_first_page_is_a_no_op(self, paginator, fake_store):
        paginator.load_initial()

        snap = paginator.load_prev()

        assert snap.state.current_page == 0
        assert fake_store.fetch_calls == 1

    def test_next_without_cursor_is_a_no_op(self, paginator, fake_store):
        snap = paginator.load_next()

        assert snap.state.current_page == 0
        assert fake_store.fetch_calls == 0

    def test_prev_uses_cache(self, paginator, fake_store):
        paginator.load_initial()
        paginator.load_next()
        paginator.load_next()
        calls = fake_store.fetch_calls

        snap = paginator.load_prev()

        assert snap.from_cache
        assert _ids(snap.items) == _expected(1)
        assert fake_store.fetch_calls == calls

    def test_forced_prev_reads_the_page_before_the_first_cursor(self, paginator, fake_store):
        paginator.load_initial()
        paginator.load_next()
        paginator.load_next()

        snap = paginator.load_prev(force_refresh=True)

        assert not snap.from_cache
        assert _ids(snap.items) == _expected(1)
        assert snap.first_cursor.doc_id == "s10"
        assert snap.last_cursor.doc_id == "s19"

    @pytest.mark.parametrize("moves", [
        "nnpnn",
        "pnnnnpp",
        "nppnpn",
        "nnnnnnpppppp",
    ])
    def test_page_index_tracks_clamped_moves(self, paginator, moves):
        paginator.load_initial()
        expected = 0
        for move in moves:
            if move == "n":
                snap = paginator.load_next()
                expected = min(expected + 1, 2)
            else:
                snap = paginator.load_prev()
                expected = max(expected - 1, 0)
            assert snap.state.current_page == expected
            assert _ids(snap.items) == _expected(expected)

    def test_go_to_page_moves_one_step(self, paginator):
        paginator.load_initial()

        assert paginator.go_to_page(2).state.current_page == 1
        assert paginator.go_to_page(1).state.current_page == 1
        assert paginator.go_to_page(0).state.current_page == 0


class TestOrderingChanges:
    def test_sort_same_field_twice_round_trips(self, paginator):
        first = paginator.load_initial()

        desc = paginator.sort_changed("title")
        assert desc.state.sort_direction is SortDirection.DESC
        assert _ids(desc.items) == [f"s{i:02d}" for i in range(22, 12, -1)]

        back = paginator.sort_changed("title")
        assert back.state.sort_direction is SortDirection.ASC
        assert _ids(back.items) == _ids(first.items)
        assert back.state.current_page == 0

    def test_sort_new_field_starts_ascending(self, paginator):
        paginator.load_initial()
        paginator.sort_changed("title")

        snap = paginator.sort_changed("artist")

        assert snap.state.sort_field == "artist"
        assert snap.state.sort_direction is SortDirection.ASC
        assert _ids(snap.items)[:3] == ["s00", "s03", "s06"]

    def test_sort_change_drops_previous_partition(self, paginator, cache):
        paginator.load_initial()
        paginator.load_next()

        paginator.sort_changed("title")

        assert cache.get_page("songs", 0, "title", SortDirection.ASC, 10) is None
        assert cache.get_page("songs", 1, "title", SortDirection.ASC, 10) is None

    def test_page_size_change_mid_session(self, paginator, cache, fake_store):
        paginator.load_initial()
        paginator.load_next()
        paginator.load_next()

        snap = paginator.page_size_changed(25)

        assert snap.state.current_page == 0
        assert snap.state.page_size == 25
        assert _ids(snap.items) == _expected(0, page_size=25)
        assert cache.get_page("songs", 0, "title", SortDirection.ASC, 10) is None
        assert cache.get_page("songs", 0, "title", SortDirection.ASC, 25) is not None

    def test_page_event_with_new_rows_resizes(self, paginator):
        paginator.load_initial()

        snap = paginator.page_event(page=1, rows=5)

        assert snap.state.page_size == 5
        assert snap.state.current_page == 0
        assert snap.state.page_count == 5

    def test_page_event_with_same_rows_navigates(self, paginator):
        paginator.load_initial()

        assert paginator.page_event(page=1, rows=10).state.current_page == 1

    def test_force_refresh_bypasses_cache(self, paginator, fake_store, cache):
        paginator.load_initial()
        paginator.load_next()
        calls = fake_store.fetch_calls

        snap = paginator.force_refresh()

        assert fake_store.fetch_calls == calls + 1
        assert snap.state.current_page == 0
        assert not snap.from_cache
        assert cache.get_cache_stats()["collections"]["songs"]["pages"] == 1


class TestFailures:
    def test_failed_next_leaves_state_untouched(self, paginator, fake_store):
        before = paginator.load_initial()
        fake_store.fail = True

        with pytest.raises(FetchError):
            paginator.load_next()

        after = paginator.snapshot()
        assert after.state.current_page == 0
        assert _ids(after.items) == _ids(before.items)
        assert after.last_cursor == before.last_cursor
        assert after.error is not None
        assert not after.loading

    def test_failed_sort_change_keeps_previous_ordering(self, paginator, fake_store):
        paginator.load_initial()
        fake_store.fail = True

        with pytest.raises(FetchError):
            paginator.sort_changed("artist")

        assert paginator.state.sort_field == "title"
        assert paginator.state.sort_direction is SortDirection.ASC

    def test_failed_force_refresh_keeps_page_and_cursors(self, paginator, fake_store):
        paginator.load_initial()
        before = paginator.load_next()
        fake_store.fail = True

        with pytest.raises(FetchError):
            paginator.force_refresh()

        after = paginator.snapshot()
        assert after.state.current_page == 1
        assert after.first_cursor == before.first_cursor
        assert after.last_cursor == before.last_cursor
        assert _ids(after.items) == _ids(before.items)

        fake_store.fail = False
        assert paginator.load_next().state.current_page == 2

    def test_error_is_cleared_by_next_success(self, paginator, fake_store):
        paginator.load_initial()
        fake_store.fail = True
        with pytest.raises(FetchError):
            paginator.load_next()
        fake_store.fail = False

        snap = paginator.load_next()

        assert snap.error is None
        assert snap.state.current_page == 1


class TestListeners:
    def test_listener_sees_each_change_until_unsubscribed(self, paginator):
        seen = []
        unsubscribe = paginator.subscribe(lambda snap: seen.append(snap.state.current_page))

        paginator.load_initial()
        paginator.load_next()
        unsubscribe()
        paginator.load_next()

        assert seen == [0, 1]

    def test_failing_listener_does_not_break_navigation(self, paginator):
        def broken(_snap):
            raise RuntimeError("listener bug")

        paginator.subscribe(broken)

        assert paginator.load_initial().state.total_items == 23
