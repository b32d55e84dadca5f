"""Pagination: normalization of page/limit and paged reference listings."""

from datetime import datetime, timedelta, timezone

import pytest

from app.utils.helpers import MAX_LIMIT, Page, normalize_pagination


class TestNormalizePagination:

    @pytest.mark.parametrize("page, limit, expected", [
        (None, None, (1, 10)),
        (2, 5, (2, 5)),
        ("3", "20", (3, 20)),
        (0, 10, (1, 10)),
        (-4, 10, (1, 10)),
        (1, 0, (1, 1)),
        (1, 500, (1, MAX_LIMIT)),
        ("abc", "xyz", (1, 10)),
        ("", "", (1, 10)),
    ])
    def test_values_are_clamped(self, page, limit, expected):
        assert normalize_pagination(page, limit) == expected


class TestPage:

    @pytest.mark.parametrize("total, limit, pages", [
        (0, 10, 0),
        (1, 10, 1),
        (10, 10, 1),
        (25, 10, 3),
    ])
    def test_total_pages(self, total, limit, pages):
        assert Page(total=total, limit=limit).total_pages == pages

    def test_pagination_dict(self):
        assert Page(items=[1, 2], total=12, page=2, limit=10).pagination_dict() == {
            "page": 2, "limit": 10, "total": 12, "total_pages": 2,
        }


class TestPagedListing:

    @pytest.fixture()
    def twenty_five(self, services, cast):
        return [
            services.lifecycle.create(cast.p_alice, {"title": f"Certificate #{i}"})
            for i in range(25)
        ]

    def test_three_pages(self, services, cast, twenty_five):
        sizes = []
        for page_no in (1, 2, 3):
            page = services.lifecycle.list_for_principal(cast.p_alice, page=page_no, limit=10)
            assert page.total == 25
            assert page.total_pages == 3
            sizes.append(len(page.items))
        assert sizes == [10, 10, 5]

    def test_pages_do_not_overlap(self, services, cast, twenty_five):
        seen = set()
        for page_no in (1, 2, 3):
            page = services.lifecycle.list_for_principal(cast.p_alice, page=page_no, limit=10)
            ids = {ref.id for ref in page.items}
            assert not ids & seen
            seen |= ids
        assert seen == {ref.id for ref in twenty_five}

    def test_pages_are_newest_first(self, services, cast, monkeypatch):
        ticks = iter(datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc) + timedelta(minutes=i) for i in range(100))
        monkeypatch.setattr(services.lifecycle, "clock", lambda: next(ticks))
        created = [
            services.lifecycle.create(cast.p_alice, {"title": f"Seminar #{i}"}).id
            for i in range(25)
        ]

        listed = []
        for page_no in (1, 2, 3):
            page = services.lifecycle.list_for_principal(cast.p_alice, page=page_no, limit=10)
            listed.extend(ref.id for ref in page.items)
        assert listed == created[::-1]

    def test_page_past_the_end_is_empty(self, services, cast, twenty_five):
        page = services.lifecycle.list_for_principal(cast.p_alice, page=4, limit=10)
        assert page.items == []
        assert page.total == 25

    def test_deleted_are_not_listed(self, services, cast, twenty_five):
        services.lifecycle.delete(twenty_five[0].id, cast.p_alice)
        page = services.lifecycle.list_for_principal(cast.p_alice, limit=100)
        assert page.total == 24
        assert twenty_five[0].id not in {ref.id for ref in page.items}

    def test_status_filter(self, services, cast, twenty_five):
        for ref in twenty_five[:3]:
            services.lifecycle.submit(ref.id, cast.p_alice)
        page = services.lifecycle.list_for_principal(cast.p_advisor_a, status="submitted")
        assert page.total == 3

    def test_api_envelope(self, client, cast, auth_headers, twenty_five):
        resp = client.get("/api/v1/achievements?page=3&limit=10", headers=auth_headers(cast.alice))
        assert resp.status_code == 200
        body = resp.get_json()
        assert len(body["items"]) == 5
        assert body["pagination"] == {"page": 3, "limit": 10, "total": 25, "total_pages": 3}

    def test_api_clamps_limit(self, client, cast, auth_headers, twenty_five):
        resp = client.get("/api/v1/achievements?limit=1000", headers=auth_headers(cast.alice))
        assert resp.get_json()["pagination"]["limit"] == MAX_LIMIT
        assert len(resp.get_json()["items"]) == 25
