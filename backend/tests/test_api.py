"""
HTTP-level tests: authentication, error responses and the main flows
through the FastAPI app with the database and object store swapped out.
"""
import json
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from main import app
from services.db import get_db
from services.file_storage import get_object_store
from services.hotness import LinearHotnessScorer, get_hotness_scorer
from services.realtime import get_broadcaster

PASSWORD = "Sunsetphotos2024"

pytestmark = pytest.mark.integration

@pytest.fixture
async def client(test_engine, object_store, broadcaster):
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_store] = lambda: object_store
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    app.dependency_overrides[get_hotness_scorer] = LinearHotnessScorer

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

async def signup(client, email: str, display_name: str = None) -> dict:
    """Register, log in and optionally create a profile. Returns auth headers and the user id."""
    response = await client.post("/api/users/register", json={"email": email, "password": PASSWORD})
    assert response.status_code == 201
    user_id = response.json()["id"]

    response = await client.post("/api/users/login", data={"username": email, "password": PASSWORD})
    assert response.status_code == 200
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    if display_name:
        response = await client.post("/api/profiles/me", json={"display_name": display_name},
                                     headers=headers)
        assert response.status_code == 201
    return {"id": user_id, "headers": headers}

class TestAuthentication:

    async def test_register_login_me(self, client):
        user = await signup(client, "x@example.com")

        response = await client.get("/api/users/me", headers=user["headers"])

        assert response.status_code == 200
        assert response.json()["email"] == "x@example.com"

    async def test_duplicate_registration_is_generic(self, client):
        await signup(client, "x@example.com")

        response = await client.post("/api/users/register",
                                     json={"email": "X@example.com", "password": PASSWORD})

        assert response.status_code == 400
        assert "Registration failed" in response.json()["error"]

    async def test_weak_password_rejected(self, client):
        response = await client.post("/api/users/register",
                                     json={"email": "weak@example.com", "password": "short"})
        assert response.status_code == 422
        assert response.json()["code"] == "invalid_input"

    async def test_wrong_password(self, client):
        await signup(client, "x@example.com")
        response = await client.post("/api/users/login",
                                     data={"username": "x@example.com", "password": "Wrong12345"})
        assert response.status_code == 401

    async def test_invalid_token_is_rejected_not_anonymous(self, client):
        headers = {"Authorization": "Bearer not-a-jwt"}

        me = await client.get("/api/users/me", headers=headers)
        feed = await client.get("/api/photos", headers=headers)

        assert me.status_code == 401
        assert me.headers["WWW-Authenticate"] == "Bearer"
        assert feed.status_code == 401
        assert feed.json()["code"] == "not_authenticated"

class TestPhotoFlow:

    async def test_upload_then_see_in_mine(self, client, object_store, utils):
        user = await signup(client, "x@example.com", "photographer_x")

        response = await client.post(
            "/api/photos",
            data={"metadata": json.dumps({"title": "Sunset"})},
            files=[("files", ("sunset.png", utils.image_bytes("PNG"), "image/png"))],
            headers=user["headers"],
        )
        assert response.status_code == 201
        created = response.json()
        assert created["can_delete"] is True
        assert len(object_store.blobs) == 1

        feed = await client.get("/api/photos", params={"filter": "mine", "sort": "latest"},
                                headers=user["headers"])
        body = feed.json()
        assert body["total_count"] == 1
        assert body["photos"][0]["title"] == "Sunset"
        assert body["photos"][0]["comments_count"] == 0
        assert body["photos"][0]["likes_count"] == 0

    async def test_upload_requires_login(self, client, utils):
        response = await client.post(
            "/api/photos",
            data={"metadata": json.dumps({"title": "Sunset"})},
            files=[("files", ("sunset.png", utils.image_bytes("PNG"), "image/png"))],
        )
        assert response.status_code == 401

    async def test_bad_metadata(self, client, utils):
        user = await signup(client, "x@example.com")
        response = await client.post(
            "/api/photos",
            data={"metadata": json.dumps({"title": "   "})},
            files=[("files", ("sunset.png", utils.image_bytes("PNG"), "image/png"))],
            headers=user["headers"],
        )
        assert response.status_code == 422

    async def test_anonymous_mine_is_unauthenticated(self, client):
        response = await client.get("/api/photos", params={"filter": "mine"})
        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required", "code": "not_authenticated"}

    async def test_query_validation(self, client):
        response = await client.get("/api/photos", params={"page": 0})
        assert response.status_code == 422
        assert response.json()["code"] == "invalid_input"

    async def test_like_comment_rate(self, client, utils):
        owner = await signup(client, "o@example.com", "owner")
        fan = await signup(client, "f@example.com", "fan")
        created = await client.post(
            "/api/photos",
            data={"metadata": json.dumps({"title": "Bridge"})},
            files=[("files", ("bridge.png", utils.image_bytes("PNG"), "image/png"))],
            headers=owner["headers"],
        )
        photo_id = created.json()["id"]

        like = await client.post(f"/api/photos/{photo_id}/like", headers=fan["headers"])
        assert like.json() == {"photo_id": photo_id, "liked": True, "likes_count": 1}

        comment = await client.post(f"/api/photos/{photo_id}/comments",
                                    json={"content": "lovely"}, headers=fan["headers"])
        assert comment.status_code == 201

        rating = await client.put(
            f"/api/photos/{photo_id}/ratings",
            json={"composition_score": 9, "storytelling_score": 6, "technique_score": 6},
            headers=fan["headers"],
        )
        assert rating.json()["average_score"] == 7.0

        unread = await client.get("/api/notifications/unread-count", headers=owner["headers"])
        assert unread.json() == {"unread": 2}

        detail = await client.get(f"/api/photos/{photo_id}", headers=fan["headers"])
        assert detail.json()["is_liked"] is True
        assert detail.json()["comments_count"] == 1

        denied = await client.delete(f"/api/photos/{photo_id}", headers=fan["headers"])
        assert denied.status_code == 403
        assert denied.json()["code"] == "not_authorized"

        deleted = await client.delete(f"/api/photos/{photo_id}", headers=owner["headers"])
        assert deleted.status_code == 204
        missing = await client.get(f"/api/photos/{photo_id}")
        assert missing.status_code == 404

class TestSocialFlow:

    async def test_friend_request_round_trip(self, client):
        a = await signup(client, "a@example.com", "alice")
        b = await signup(client, "b@example.com", "bob")

        sent = await client.post("/api/friends/requests", json={"receiver_id": b["id"]},
                                 headers=a["headers"])
        assert sent.status_code == 201
        request_id = sent.json()["id"]

        again = await client.post("/api/friends/requests", json={"receiver_id": b["id"]},
                                  headers=a["headers"])
        assert again.status_code == 409
        assert again.json()["code"] == "request_pending"

        incoming = await client.get("/api/friends/requests", headers=b["headers"])
        assert [r["id"] for r in incoming.json()["incoming"]] == [request_id]

        accepted = await client.post(f"/api/friends/requests/{request_id}/respond",
                                     json={"action": "accept"}, headers=b["headers"])
        assert accepted.json()["request"]["status"] == "accepted"

        status = await client.get(f"/api/friends/status/{b['id']}", headers=a["headers"])
        assert status.json() == {"user_id": b["id"], "status": "friend"}

        friends = await client.get("/api/friends", headers=a["headers"])
        assert [f["profile"]["display_name"] for f in friends.json()] == ["bob"]

    async def test_follow_endpoints(self, client):
        a = await signup(client, "a@example.com")
        b = await signup(client, "b@example.com")

        followed = await client.post(f"/api/follows/{b['id']}", headers=a["headers"])
        assert followed.status_code == 201
        duplicate = await client.post(f"/api/follows/{b['id']}", headers=a["headers"])
        assert duplicate.status_code == 409

        state = await client.get(f"/api/follows/{b['id']}", headers=a["headers"])
        assert state.json()["following"] is True

        unfollowed = await client.delete(f"/api/follows/{b['id']}", headers=a["headers"])
        assert unfollowed.json()["following"] is False

    async def test_display_name_availability(self, client):
        await signup(client, "a@example.com", "alice")

        taken = await client.get("/api/profiles/display-name/available", params={"name": "alice"})
        free = await client.get("/api/profiles/display-name/available", params={"name": "carol"})

        assert taken.json()["available"] is False
        assert free.json()["available"] is True

class TestHealth:

    async def test_health_and_liveness(self, client):
        health = await client.get("/health")
        live = await client.get("/health/live")

        assert health.json()["status"] == "healthy"
        assert live.json()["status"] == "alive"
        assert health.headers["X-Content-Type-Options"] == "nosniff"
