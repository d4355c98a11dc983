"""
Integration tests for session endpoints: pricing on create/update,
authorization, privacy and deletion.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import select, func

from pickleball_crew.db.models import RSVP
from conftest import auth_header, make_profile

SATURDAY_EVENING = "2030-01-05T19:00:00"
SATURDAY_MORNING = "2030-01-05T08:00:00"


def new_session(**overrides):
    body = {
        "title": "Saturday Smash",
        "date_time": SATURDAY_EVENING,
        "location": "Pick & Match Megabox",
        "max_players": 8,
        "duration_hours": 1.5,
    }
    body.update(overrides)
    return body


@pytest.mark.integration
@pytest.mark.asyncio
class TestCreateSession:

    async def test_megabox_peak_cost_is_computed(self, client: AsyncClient, test_member, published_events):
        response = await client.post("/api/v1/sessions/", headers=auth_header(test_member), json=new_session())

        assert response.status_code == 201
        data = response.json()
        assert data["is_peak_time"] is True
        assert data["total_cost"] == 585.0
        assert data["cost_per_person"] == 585.0
        assert data["yes_count"] == 0
        assert data["private_key"] is None
        assert published_events == [
            ("session.created", {"session_id": data["id"], "actor_id": str(test_member.id)})
        ]

    async def test_megabox_off_peak(self, client: AsyncClient, test_member):
        response = await client.post(
            "/api/v1/sessions/",
            headers=auth_header(test_member),
            json=new_session(date_time=SATURDAY_MORNING, duration_hours=2),
        )

        data = response.json()
        assert data["is_peak_time"] is False
        assert data["total_cost"] == 580.0

    async def test_client_cannot_set_cost(self, client: AsyncClient, test_member):
        response = await client.post(
            "/api/v1/sessions/",
            headers=auth_header(test_member),
            json=new_session(location="Victoria Park", total_cost=1, is_peak_time=False),
        )

        data = response.json()
        assert data["total_cost"] == 0
        assert data["is_peak_time"] is True

    @pytest.mark.parametrize("overrides", [
        {"duration_hours": 4},
        {"duration_hours": 0.75},
        {"max_players": 1},
        {"title": "   "},
        {"location": ""},
        {"date_time": None},
    ])
    async def test_validation_errors(self, client: AsyncClient, test_member, overrides, published_events):
        response = await client.post(
            "/api/v1/sessions/", headers=auth_header(test_member), json=new_session(**overrides)
        )

        assert response.status_code == 422
        assert published_events == []

    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.post("/api/v1/sessions/", json=new_session())
        assert response.status_code in (401, 403)

    async def test_publish_failure_does_not_fail_creation(self, client: AsyncClient, test_member, monkeypatch):
        async def broken_publish(routing_key, payload):
            raise ConnectionError("broker unreachable")

        from pickleball_crew.events import publisher
        monkeypatch.setattr(publisher, "publish_event", broken_publish)

        response = await client.post("/api/v1/sessions/", headers=auth_header(test_member), json=new_session())

        assert response.status_code == 201


@pytest.mark.integration
@pytest.mark.asyncio
class TestPrivateSessions:

    async def test_private_session_gets_key_visible_to_owner_only(
        self, client: AsyncClient, test_member, other_member, db_session
    ):
        stranger = await make_profile(db_session, "stranger@example.com", "Stranger")
        created = await client.post(
            "/api/v1/sessions/",
            headers=auth_header(test_member),
            json=new_session(is_private=True, invited_users=[str(other_member.id)]),
        )
        data = created.json()
        assert data["private_key"]
        assert data["invited_users"] == [str(other_member.id)]

        invited_view = await client.get(f"/api/v1/sessions/{data['id']}", headers=auth_header(other_member))
        assert invited_view.status_code == 200
        assert invited_view.json()["private_key"] is None

        stranger_view = await client.get(f"/api/v1/sessions/{data['id']}", headers=auth_header(stranger))
        assert stranger_view.status_code == 404

        anonymous = await client.get(f"/api/v1/sessions/{data['id']}")
        assert anonymous.status_code == 404

        listing = await client.get("/api/v1/sessions/")
        assert listing.json()["items"] == []

    async def test_lookup_by_private_key(self, client: AsyncClient, test_member):
        created = (await client.post(
            "/api/v1/sessions/", headers=auth_header(test_member), json=new_session(is_private=True)
        )).json()

        found = await client.get("/api/v1/sessions/private", params={"key": created["private_key"]})
        assert found.status_code == 200
        assert found.json()["id"] == created["id"]

        missing_key = await client.get("/api/v1/sessions/private")
        assert missing_key.status_code == 400

        wrong_key = await client.get("/api/v1/sessions/private", params={"key": "not-a-key"})
        assert wrong_key.status_code == 404

    async def test_making_session_public_clears_key(self, client: AsyncClient, test_member):
        created = (await client.post(
            "/api/v1/sessions/", headers=auth_header(test_member), json=new_session(is_private=True)
        )).json()

        updated = await client.patch(
            f"/api/v1/sessions/{created['id']}", headers=auth_header(test_member), json={"is_private": False}
        )

        assert updated.json()["private_key"] is None
        assert updated.json()["invited_users"] == []


@pytest.mark.integration
@pytest.mark.asyncio
class TestUpdateAndDelete:

    async def test_update_recomputes_cost(self, client: AsyncClient, test_member, test_session, published_events):
        response = await client.patch(
            f"/api/v1/sessions/{test_session.id}",
            headers=auth_header(test_member),
            json={"date_time": SATURDAY_MORNING, "duration_hours": 1},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_peak_time"] is False
        assert data["total_cost"] == 290.0
        assert published_events[-1][0] == "session.updated"

    async def test_title_edit_keeps_price_of_utc_start(self, client: AsyncClient, test_member):
        # 02:00 UTC is 10:00 on Saturday at the venue
        created = (await client.post(
            "/api/v1/sessions/",
            headers=auth_header(test_member),
            json=new_session(date_time="2030-01-05T02:00:00Z", duration_hours=1),
        )).json()
        assert created["date_time"] == "2030-01-05T10:00:00"
        assert created["is_peak_time"] is True
        assert created["total_cost"] == 390.0

        response = await client.patch(
            f"/api/v1/sessions/{created['id']}", headers=auth_header(test_member), json={"title": "B"}
        )

        data = response.json()
        assert data["title"] == "B"
        assert data["date_time"] == "2030-01-05T10:00:00"
        assert data["is_peak_time"] is True
        assert data["total_cost"] == 390.0

    async def test_offset_start_on_update_is_stored_in_venue_time(
        self, client: AsyncClient, test_member, test_session
    ):
        # 08:00 at +08:00 is 08:00 at the venue, before the weekend peak
        response = await client.patch(
            f"/api/v1/sessions/{test_session.id}",
            headers=auth_header(test_member),
            json={"date_time": "2030-01-05T08:00:00+08:00", "duration_hours": 1},
        )

        data = response.json()
        assert data["date_time"] == "2030-01-05T08:00:00"
        assert data["is_peak_time"] is False
        assert data["total_cost"] == 290.0

    async def test_moving_to_unknown_venue_zeroes_cost(self, client: AsyncClient, test_member, test_session):
        response = await client.patch(
            f"/api/v1/sessions/{test_session.id}",
            headers=auth_header(test_member),
            json={"location": "Somebody's driveway"},
        )
        assert response.json()["total_cost"] == 0

    async def test_non_owner_cannot_update(self, client: AsyncClient, other_member, test_session):
        response = await client.patch(
            f"/api/v1/sessions/{test_session.id}",
            headers=auth_header(other_member),
            json={"title": "Hijacked"},
        )
        assert response.status_code == 403

    async def test_admin_can_update(self, client: AsyncClient, test_admin, test_session):
        response = await client.patch(
            f"/api/v1/sessions/{test_session.id}",
            headers=auth_header(test_admin),
            json={"title": "Renamed by admin"},
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Renamed by admin"

    async def test_invalid_duration_on_update(self, client: AsyncClient, test_member, test_session):
        response = await client.patch(
            f"/api/v1/sessions/{test_session.id}",
            headers=auth_header(test_member),
            json={"duration_hours": 5},
        )
        assert response.status_code == 422

    async def test_non_owner_cannot_delete(self, client: AsyncClient, other_member, test_session):
        response = await client.delete(f"/api/v1/sessions/{test_session.id}", headers=auth_header(other_member))
        assert response.status_code == 403

    async def test_delete_cascades_to_rsvps(self, client: AsyncClient, db_session, test_member, test_session, test_rsvp):
        response = await client.delete(f"/api/v1/sessions/{test_session.id}", headers=auth_header(test_member))
        assert response.status_code == 204

        remaining = (await db_session.execute(
            select(func.count(RSVP.id)).where(RSVP.session_id == test_session.id)
        )).scalar()
        assert remaining == 0

        detail = await client.get(f"/api/v1/sessions/{test_session.id}")
        assert detail.status_code == 404

    async def test_admin_can_delete(self, client: AsyncClient, test_admin, test_session):
        response = await client.delete(f"/api/v1/sessions/{test_session.id}", headers=auth_header(test_admin))
        assert response.status_code == 204


@pytest.mark.integration
@pytest.mark.asyncio
class TestListing:

    async def test_list_is_paginated_in_start_order(self, client: AsyncClient, test_member):
        for day in (7, 5, 6):
            await client.post(
                "/api/v1/sessions/",
                headers=auth_header(test_member),
                json=new_session(title=f"Jan {day}", date_time=f"2030-01-0{day}T19:00:00"),
            )

        first = (await client.get("/api/v1/sessions/", params={"per_page": 2})).json()
        second = (await client.get("/api/v1/sessions/", params={"per_page": 2, "page": 2})).json()

        assert [s["title"] for s in first["items"]] == ["Jan 5", "Jan 6"]
        assert [s["title"] for s in second["items"]] == ["Jan 7"]
        assert first["pagination"]["total"] == 3
        assert first["pagination"]["has_next"] is True

    async def test_filter_by_start_window(self, client: AsyncClient, test_member):
        for day in (5, 6, 7):
            await client.post(
                "/api/v1/sessions/",
                headers=auth_header(test_member),
                json=new_session(title=f"Jan {day}", date_time=f"2030-01-0{day}T19:00:00"),
            )

        response = await client.get("/api/v1/sessions/", params={
            "starts_after": "2030-01-06T00:00:00",
            "starts_before": "2030-01-07T19:00:00",
        })

        assert [s["title"] for s in response.json()["items"]] == ["Jan 6"]

    async def test_filter_window_in_utc(self, client: AsyncClient, test_member):
        for day in (5, 6):
            await client.post(
                "/api/v1/sessions/",
                headers=auth_header(test_member),
                json=new_session(title=f"Jan {day}", date_time=f"2030-01-0{day}T19:00:00"),
            )

        # 11:00 UTC on the 5th is 19:00 at the venue
        response = await client.get("/api/v1/sessions/", params={"starts_after": "2030-01-05T11:00:00Z"})

        assert [s["title"] for s in response.json()["items"]] == ["Jan 5", "Jan 6"]
