"""
API Tests for Suspended Members

Exercises the HTTP surface end to end against a temporary database:
- Login and the location access gate
- CSV upload and reconciliation
- Notes, contact attempts, deletes
- Search and sorting

Run with: pytest backend/tests/test_members_api.py -v
"""

import pytest

LAGUNA = "Laguna Beach"
MEMBERS_URL = "/api/members/Laguna Beach"

FIRST_EXPORT = (
    "Guest,MobilePhone,Suspend Date,Payments,Membership Code\n"
    "Jane Doe,5551234567,03/05/2024,2,GOLD\n"
    "John Smith,5559876543,2024-01-10,0,SILVER\n"
)
SECOND_EXPORT = (
    "Guest,MobilePhone,Suspend Date,Payments\n"
    "Jane Doe,5551234567,03/05/2024,3\n"
    "Ann Lee,5550001111,not a date,1\n"
)


def csv_file(text, name="suspended.csv"):
    return {"file": (name, text.encode("utf-8"), "text/csv")}


class TestAuthEndpoints:
    """Login and identity."""

    @pytest.mark.asyncio
    async def test_login(self, api_client, test_password):
        response = await api_client.post("/api/auth/login", json={"username": "laguna", "password": test_password})

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["allowed_locations"] == [LAGUNA]

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, api_client):
        response = await api_client.post("/api/auth/login", json={"username": "laguna", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password"

    @pytest.mark.asyncio
    async def test_me(self, api_client, laguna_headers):
        response = await api_client.get("/api/auth/me", headers=laguna_headers)

        assert response.status_code == 200
        assert response.json() == {"username": "laguna", "role": "location", "allowed_locations": [LAGUNA]}

    @pytest.mark.asyncio
    async def test_locations_for_admin(self, api_client, admin_headers):
        response = await api_client.get("/api/locations", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == [
            "Huntington Beach", "Laguna Beach", "Costa Mesa", "Pleasanton", "Brentwood", "Alameda",
        ]

    @pytest.mark.asyncio
    async def test_health(self, api_client):
        response = await api_client.get("/api/health/live")
        assert response.json()["status"] == "alive"


class TestAccessGate:
    """Location-scoped access."""

    @pytest.mark.asyncio
    async def test_no_token(self, api_client):
        response = await api_client.get(MEMBERS_URL)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, api_client):
        response = await api_client.get(MEMBERS_URL, headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user_token(self, api_client, headers_for):
        response = await api_client.get(MEMBERS_URL, headers=headers_for("ghost"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_other_location_forbidden(self, api_client, headers_for):
        headers = headers_for("costa")

        for method, url in [
            ("GET", MEMBERS_URL),
            ("DELETE", MEMBERS_URL),
            ("PATCH", f"{MEMBERS_URL}/notes"),
        ]:
            response = await api_client.request(method, url, headers=headers, json={"member_key": "x"})
            assert response.status_code == 403
            assert response.json()["detail"] == "Access denied to this location"

    @pytest.mark.asyncio
    async def test_unknown_location_forbidden_even_for_admin(self, api_client, admin_headers):
        response = await api_client.get("/api/members/Atlantis", headers=admin_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_upload_to_other_location_leaves_it_untouched(self, api_client, headers_for, admin_headers):
        response = await api_client.post(
            "/api/members/Costa Mesa/upload", headers=headers_for("laguna"), files=csv_file(FIRST_EXPORT)
        )
        assert response.status_code == 403

        listing = await api_client.get("/api/members/Costa Mesa", headers=admin_headers)
        assert listing.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_admin_can_open_any_location(self, api_client, admin_headers):
        response = await api_client.get("/api/members/Alameda", headers=admin_headers)
        assert response.status_code == 200


class TestUploadFlow:
    """Upload, annotate, re-upload."""

    @pytest.mark.asyncio
    async def test_upload_annotate_and_reconcile(self, api_client, laguna_headers):
        first = await api_client.post(f"{MEMBERS_URL}/upload", headers=laguna_headers, files=csv_file(FIRST_EXPORT))
        assert first.status_code == 200
        assert first.json()["added"] == 2

        listing = (await api_client.get(MEMBERS_URL, headers=laguna_headers)).json()
        jane = next(m for m in listing["members"] if m["fields"]["Guest"] == "Jane Doe")
        assert "Payments" not in jane["fields"]
        assert "Membership Code" not in jane["fields"]

        noted = await api_client.patch(
            f"{MEMBERS_URL}/notes", headers=laguna_headers,
            json={"member_key": jane["member_key"], "notes": "called, will renew"},
        )
        assert noted.status_code == 200
        contacted = await api_client.patch(
            f"{MEMBERS_URL}/contacts", headers=laguna_headers,
            json={"member_key": jane["member_key"], "field": "firstContact", "value": "voicemail 3/6"},
        )
        assert contacted.json()["member"]["fields"]["firstContact"] == "voicemail 3/6"

        second = await api_client.post(f"{MEMBERS_URL}/upload", headers=laguna_headers, files=csv_file(SECOND_EXPORT))
        assert second.status_code == 200
        assert second.json() == {
            "success": True,
            "location": LAGUNA,
            "file_name": "suspended.csv",
            "rows": 2,
            "total": 2,
            "still_suspended": 1,
            "renewed": 1,
            "added": 1,
            "unmatched": 0,
        }

        listing = (await api_client.get(MEMBERS_URL, headers=laguna_headers)).json()
        guests = [m["fields"]["Guest"] for m in listing["members"]]
        assert guests == ["Ann Lee", "Jane Doe"]
        jane = listing["members"][1]["fields"]
        assert jane["notes"] == "called, will renew"
        assert jane["firstContact"] == "voicemail 3/6"

    @pytest.mark.asyncio
    async def test_malformed_csv_leaves_store_unchanged(self, api_client, laguna_headers):
        await api_client.post(f"{MEMBERS_URL}/upload", headers=laguna_headers, files=csv_file(FIRST_EXPORT))

        response = await api_client.post(
            f"{MEMBERS_URL}/upload", headers=laguna_headers,
            files=csv_file("Guest,Phone\nJane,555\nJohn,556,extra\n"),
        )

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Malformed CSV")
        listing = (await api_client.get(MEMBERS_URL, headers=laguna_headers)).json()
        assert listing["total"] == 2

    @pytest.mark.asyncio
    async def test_non_csv_rejected(self, api_client, laguna_headers):
        response = await api_client.post(
            f"{MEMBERS_URL}/upload", headers=laguna_headers, files=csv_file(FIRST_EXPORT, name="members.xlsx")
        )

        assert response.status_code == 400
        assert "Unsupported file type" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_replace_members(self, api_client, laguna_headers):
        response = await api_client.post(
            MEMBERS_URL, headers=laguna_headers,
            json={"members": [{"Guest": "Jane", "MobilePhone": "555", "AutoRenewal": "yes"}]},
        )

        assert response.json() == {"success": True, "location": LAGUNA, "stored": 1}
        listing = (await api_client.get(MEMBERS_URL, headers=laguna_headers)).json()
        assert listing["members"][0]["fields"] == {"Guest": "Jane", "MobilePhone": "555"}


class TestListing:
    """Sorting, search and presentation."""

    @pytest.fixture
    def upload(self, api_client, laguna_headers):
        async def _upload(text):
            response = await api_client.post(f"{MEMBERS_URL}/upload", headers=laguna_headers, files=csv_file(text))
            assert response.status_code == 200
        return _upload

    @pytest.mark.asyncio
    async def test_sorted_oldest_first(self, api_client, laguna_headers, upload):
        await upload(FIRST_EXPORT)

        listing = (await api_client.get(MEMBERS_URL, headers=laguna_headers)).json()

        assert [m["fields"]["Guest"] for m in listing["members"]] == ["John Smith", "Jane Doe"]
        assert [c["key"] for c in listing["columns"]] == ["Guest", "MobilePhone", "Suspend Date"]
        assert listing["contact_fields"]["finalContact"] == "Final Contact"
        assert listing["members"][1]["formatted"]["MobilePhone"] == "(555) 123-4567"

    @pytest.mark.asyncio
    async def test_search_by_phone_digits(self, api_client, laguna_headers, upload):
        await upload(FIRST_EXPORT)

        listing = (await api_client.get(MEMBERS_URL, headers=laguna_headers, params={"search": "(555) 123"})).json()

        assert listing["total"] == 2
        assert listing["count"] == 1
        assert listing["members"][0]["fields"]["Guest"] == "Jane Doe"

    @pytest.mark.asyncio
    async def test_search_by_guest_name(self, api_client, laguna_headers, upload):
        await upload(FIRST_EXPORT)

        listing = (await api_client.get(MEMBERS_URL, headers=laguna_headers, params={"search": "smith"})).json()

        assert [m["fields"]["Guest"] for m in listing["members"]] == ["John Smith"]


class TestEdits:
    """Annotation edits and deletes."""

    @pytest.fixture
    def member_key(self):
        return "name:jane"

    @pytest.fixture
    def seed(self, api_client, laguna_headers):
        async def _seed():
            await api_client.post(
                MEMBERS_URL, headers=laguna_headers,
                json={"members": [{"First Name": "Jane"}, {"First Name": "John"}]},
            )
        return _seed

    @pytest.mark.asyncio
    async def test_note_for_unknown_member(self, api_client, laguna_headers):
        response = await api_client.patch(
            f"{MEMBERS_URL}/notes", headers=laguna_headers, json={"member_key": "name:ghost", "notes": "x"}
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_contact_field(self, api_client, laguna_headers, seed, member_key):
        await seed()

        response = await api_client.patch(
            f"{MEMBERS_URL}/contacts", headers=laguna_headers,
            json={"member_key": member_key, "field": "fourthContact", "value": "x"},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_delete_member(self, api_client, laguna_headers, seed, member_key):
        await seed()

        response = await api_client.delete(f"{MEMBERS_URL}/member", headers=laguna_headers, params={"member_key": member_key})
        missing = await api_client.delete(f"{MEMBERS_URL}/member", headers=laguna_headers, params={"member_key": member_key})

        assert response.json() == {"success": True, "member_key": member_key}
        assert missing.status_code == 404
        listing = (await api_client.get(MEMBERS_URL, headers=laguna_headers)).json()
        assert [m["fields"]["First Name"] for m in listing["members"]] == ["John"]

    @pytest.mark.asyncio
    async def test_clear_location(self, api_client, laguna_headers, seed):
        await seed()

        response = await api_client.delete(MEMBERS_URL, headers=laguna_headers)

        assert response.json() == {"success": True, "location": LAGUNA, "removed": 2}
        listing = (await api_client.get(MEMBERS_URL, headers=laguna_headers)).json()
        assert listing["members"] == []
