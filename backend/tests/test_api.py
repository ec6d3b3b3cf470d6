"""
PaintSnap Backend — API Endpoint Tests
========================================

What:  Drives the real application (middleware, sessions, routers, SQLite,
       on-disk blobs) through httpx's ASGITransport.

What we test:
    ✅ register / login / logout / current user / limits
    ✅ Firebase token sign-in is idempotent and also works as a bearer token
    ✅ full walk: project → area → photo → tag, then cascading delete
    ✅ project rename, area listing and cascading project delete
    ✅ image files are released only after the transaction commits
    ✅ one user cannot see or change another user's data
    ✅ free-tier quota denial with upgrade URL
    ✅ validation errors use the standard error body
    ✅ auth rate limiting and health check
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import png_bytes, register


async def create_area(client, name, project_id=None):
    body = {"name": name}
    if project_id is not None:
        body["projectId"] = project_id
    response = await client.post("/api/areas", json=body)
    assert response.status_code == 201, response.text
    return response.json()


async def upload_photo(client, area_id, name="North wall", content=None):
    response = await client.post(
        "/api/photos",
        data={"areaId": str(area_id), "name": name},
        files={"image": ("wall.png", content or png_bytes(), "image/png")},
    )
    assert response.status_code == 201, response.text
    return response.json()


async def add_tag(client, photo_id, description="Swiss Coffee", x="50", y="50"):
    return await client.post(
        f"/api/photos/{photo_id}/tags",
        data={"description": description, "positionX": x, "positionY": y},
    )


class TestAuth:

    @pytest.mark.asyncio
    async def test_register_starts_session(self, client):
        user = await register(client, "alice")

        assert user["username"] == "alice"
        assert user["accountType"] == "basic"
        assert "passwordHash" not in user
        me = await client.get("/api/auth/user")
        assert me.status_code == 200
        assert me.json()["id"] == user["id"]

    @pytest.mark.asyncio
    async def test_register_creates_default_project(self, client):
        await register(client, "alice")
        projects = (await client.get("/api/projects")).json()
        assert [p["name"] for p in projects] == ["My Project"]
        assert projects[0]["isDefault"] is True

    @pytest.mark.asyncio
    async def test_duplicate_username(self, client, make_client):
        await register(client, "alice")
        response = await make_client().post("/api/auth/register", json={
            "username": "alice", "email": "other@example.com", "password": "secret123",
        })
        assert response.status_code == 400
        assert response.json()["message"] == "Username already exists"

    @pytest.mark.asyncio
    async def test_short_password(self, client):
        response = await client.post("/api/auth/register", json={
            "username": "alice", "email": "alice@example.com", "password": "123",
        })
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["errors"][0]["field"] == "password"

    @pytest.mark.asyncio
    async def test_login_logout(self, client, make_client):
        await register(client, "alice")
        other = make_client()

        response = await other.post("/api/auth/login", json={"username": "alice", "password": "secret123"})
        assert response.status_code == 200
        assert (await other.get("/api/auth/user")).status_code == 200

        assert (await other.post("/api/auth/logout")).status_code == 200
        assert (await other.get("/api/auth/user")).status_code == 401

    @pytest.mark.asyncio
    async def test_login_failures_are_indistinguishable(self, client, make_client):
        await register(client, "alice")
        wrong_password = await make_client().post(
            "/api/auth/login", json={"username": "alice", "password": "nope-nope"}
        )
        unknown_user = await make_client().post(
            "/api/auth/login", json={"username": "nobody", "password": "secret123"}
        )
        assert wrong_password.status_code == unknown_user.status_code == 401
        assert wrong_password.json()["message"] == unknown_user.json()["message"]
        assert wrong_password.json()["message"] == "Invalid username or password"

    @pytest.mark.asyncio
    async def test_unauthenticated(self, client):
        response = await client.get("/api/areas")
        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "unauthorized"
        assert "request_id" in body

    @pytest.mark.asyncio
    async def test_verify_token_is_idempotent(self, client, make_client, identity_provider):
        identity_provider.add("tok-erin", uid="fb-erin", email="erin@example.com", display_name="Erin")

        first = await client.post("/api/auth/verify-token", json={"token": "tok-erin"})
        second = await make_client().post("/api/auth/verify-token", json={"token": "tok-erin"})

        assert first.status_code == second.status_code == 200
        assert first.json()["id"] == second.json()["id"]
        assert first.json()["firebaseUid"] == "fb-erin"
        assert (await client.get("/api/auth/user")).status_code == 200

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.post("/api/auth/verify-token", json={"token": "forged"})
        assert response.status_code == 401
        assert (await client.get("/api/auth/user")).status_code == 401

    @pytest.mark.asyncio
    async def test_bearer_token_without_session(self, client, identity_provider):
        identity_provider.add("tok-erin", uid="fb-erin")
        await client.post("/api/auth/verify-token", json={"token": "tok-erin"})
        client.cookies.clear()

        response = await client.get("/api/auth/user", headers={"Authorization": "Bearer tok-erin"})

        assert response.status_code == 200
        assert response.json()["firebaseUid"] == "fb-erin"

    @pytest.mark.asyncio
    async def test_limits(self, client):
        await register(client, "alice")
        area = await create_area(client, "Kitchen")
        await upload_photo(client, area["id"])

        response = await client.get("/api/auth/limits", params={"areaId": area["id"]})

        assert response.status_code == 200
        body = response.json()
        assert body["maxAreas"] == 5
        assert body["areasRemaining"] == 4
        assert body["photosRemaining"] == 2
        assert body["tagsRemaining"] is None
        assert body["upgradeUrl"].startswith("https://")


class TestPaintingWorkflow:

    @pytest.mark.asyncio
    async def test_tag_a_wall_then_delete_the_area(self, client, app):
        await register(client, "alice")
        project = (await client.post("/api/projects", json={"name": "Home"})).json()
        kitchen = await create_area(client, "Kitchen", project_id=project["id"])
        photo = await upload_photo(client, kitchen["id"], name="Wall")

        response = await add_tag(client, photo["id"], description="Wall color")
        assert response.status_code == 201, response.text
        tag = response.json()
        assert tag["positionX"] == 50.0
        assert tag["positionY"] == 50.0

        areas = (await client.get("/api/areas", params={"projectId": project["id"]})).json()
        assert areas[0]["name"] == "Kitchen"
        assert areas[0]["photoCount"] == 1
        assert areas[0]["latestPhotoUrl"] == f"/api/photos/{photo['id']}/image"

        detail = (await client.get(f"/api/photos/{photo['id']}")).json()
        assert [t["description"] for t in detail["tags"]] == ["Wall color"]

        image = await client.get(photo["imageUrl"])
        assert image.status_code == 200
        assert image.headers["content-type"] == "image/png"

        storage_key_path = next((app.state.blob_store.storage_root / "photos").rglob("*.png"))
        assert storage_key_path.exists()

        assert (await client.delete(f"/api/areas/{kitchen['id']}")).status_code == 204

        assert (await client.get(f"/api/photos/{photo['id']}")).status_code == 404
        assert (await client.get(f"/api/photos/{photo['id']}/tags/{tag['id']}")).status_code == 404
        assert (await client.get(f"/api/areas/{kitchen['id']}")).status_code == 404
        assert not storage_key_path.exists()
        assert (await client.get(f"/api/projects/{project['id']}")).status_code == 200

    @pytest.mark.asyncio
    async def test_area_defaults_to_default_project(self, client):
        await register(client, "alice")
        default = (await client.get("/api/projects")).json()[0]
        area = await create_area(client, "Hallway")
        assert area["projectId"] == default["id"]

    @pytest.mark.asyncio
    async def test_rename_and_move_photo(self, client):
        await register(client, "alice")
        kitchen = await create_area(client, "Kitchen")
        den = await create_area(client, "Den")
        photo = await upload_photo(client, kitchen["id"])

        renamed = await client.patch(f"/api/photos/{photo['id']}", json={"name": "East wall"})
        assert renamed.json()["name"] == "East wall"

        moved = await client.patch(f"/api/photos/{photo['id']}/move", json={"areaId": den["id"]})
        assert moved.status_code == 200
        assert moved.json()["areaId"] == den["id"]
        den_photos = (await client.get(f"/api/areas/{den['id']}/photos")).json()
        assert [p["id"] for p in den_photos] == [photo["id"]]
        assert den_photos[0]["areaName"] == "Den"

    @pytest.mark.asyncio
    async def test_edit_and_delete_tags(self, client):
        await register(client, "alice")
        area = await create_area(client, "Kitchen")
        photo = await upload_photo(client, area["id"])
        tag = (await add_tag(client, photo["id"])).json()
        await add_tag(client, photo["id"], description="Trim", x="10", y="90")

        edited = await client.patch(
            f"/api/photos/{photo['id']}/tags/{tag['id']}",
            data={"notes": "Eggshell", "positionX": "75"},
        )
        assert edited.status_code == 200
        assert edited.json()["notes"] == "Eggshell"
        assert edited.json()["positionX"] == 75.0
        assert edited.json()["description"] == "Swiss Coffee"

        assert (await client.delete(f"/api/photos/{photo['id']}/tags/{tag['id']}")).status_code == 204
        remaining = (await client.get(f"/api/photos/{photo['id']}/tags")).json()
        assert [t["description"] for t in remaining] == ["Trim"]

        cleared = await client.delete(f"/api/photos/{photo['id']}/tags")
        assert cleared.json()["message"] == "Deleted 1 tags"
        assert (await client.get(f"/api/photos/{photo['id']}/tags")).json() == []

    @pytest.mark.asyncio
    async def test_tag_with_swatch_image(self, client):
        await register(client, "alice")
        area = await create_area(client, "Kitchen")
        photo = await upload_photo(client, area["id"])

        response = await client.post(
            f"/api/photos/{photo['id']}/tags",
            data={"description": "Sage", "positionX": "5", "positionY": "5"},
            files={"tagImage": ("chip.png", png_bytes("green"), "image/png")},
        )

        assert response.status_code == 201, response.text
        image_url = response.json()["imageUrl"]
        swatch = await client.get(image_url)
        assert swatch.status_code == 200
        assert swatch.headers["content-type"] == "image/png"

    @pytest.mark.asyncio
    async def test_replacing_swatch_image_releases_the_old_file(self, client, app):
        await register(client, "alice")
        area = await create_area(client, "Kitchen")
        photo = await upload_photo(client, area["id"])
        tag = (await client.post(
            f"/api/photos/{photo['id']}/tags",
            data={"description": "Sage", "positionX": "5", "positionY": "5"},
            files={"tagImage": ("chip.png", png_bytes("green"), "image/png")},
        )).json()
        tags_root = app.state.blob_store.storage_root / "tags"
        old_file = next(tags_root.rglob("*.png"))

        new_content = png_bytes("red", size=(6, 6))
        response = await client.patch(
            f"/api/photos/{photo['id']}/tags/{tag['id']}",
            files={"tagImage": ("chip2.png", new_content, "image/png")},
        )

        assert response.status_code == 200, response.text
        assert response.json()["description"] == "Sage"
        assert not old_file.exists()
        assert len(list(tags_root.rglob("*.png"))) == 1
        swatch = await client.get(response.json()["imageUrl"])
        assert swatch.status_code == 200
        assert swatch.content == new_content

    @pytest.mark.asyncio
    async def test_blob_release_waits_for_commit(self, client, app, monkeypatch):
        await register(client, "alice")
        area = await create_area(client, "Kitchen")
        await upload_photo(client, area["id"])

        events = []
        real_commit = AsyncSession.commit
        real_release = app.state.blob_store.release

        async def recording_commit(session):
            events.append("commit")
            await real_commit(session)

        async def recording_release(keys):
            events.append("release")
            await real_release(keys)

        monkeypatch.setattr(AsyncSession, "commit", recording_commit)
        monkeypatch.setattr(app.state.blob_store, "release", recording_release)

        assert (await client.delete(f"/api/areas/{area['id']}")).status_code == 204
        assert events == ["commit", "release"]


class TestProjects:

    @pytest.mark.asyncio
    async def test_rename_and_list_areas(self, client):
        await register(client, "alice")
        project = (await client.post("/api/projects", json={"name": "Cabin"})).json()
        assert project["isDefault"] is False
        await create_area(client, "Porch", project_id=project["id"])
        await create_area(client, "Loft")

        renamed = await client.patch(
            f"/api/projects/{project['id']}",
            json={"name": "Lake Cabin", "description": "Summer repaint"},
        )
        assert renamed.status_code == 200
        assert renamed.json()["name"] == "Lake Cabin"
        assert renamed.json()["description"] == "Summer repaint"

        areas = (await client.get(f"/api/projects/{project['id']}/areas")).json()
        assert [a["name"] for a in areas] == ["Porch"]

    @pytest.mark.asyncio
    async def test_delete_project_cascades(self, client, app):
        await register(client, "alice")
        project = (await client.post("/api/projects", json={"name": "Cabin"})).json()
        porch = await create_area(client, "Porch", project_id=project["id"])
        photo = await upload_photo(client, porch["id"])
        tag = (await add_tag(client, photo["id"])).json()
        photo_file = next((app.state.blob_store.storage_root / "photos").rglob("*.png"))

        assert (await client.delete(f"/api/projects/{project['id']}")).status_code == 204

        assert (await client.get(f"/api/projects/{project['id']}")).status_code == 404
        assert (await client.get(f"/api/projects/{project['id']}/areas")).status_code == 404
        assert (await client.get(f"/api/areas/{porch['id']}")).status_code == 404
        assert (await client.get(f"/api/photos/{photo['id']}")).status_code == 404
        assert (await client.get(f"/api/photos/{photo['id']}/tags/{tag['id']}")).status_code == 404
        assert not photo_file.exists()
        assert (await client.delete(f"/api/projects/{project['id']}")).status_code == 404
        assert [p["name"] for p in (await client.get("/api/projects")).json()] == ["My Project"]

    @pytest.mark.asyncio
    async def test_other_users_project_is_forbidden(self, client, make_client):
        await register(client, "alice")
        project = (await client.post("/api/projects", json={"name": "Cabin"})).json()
        mallory = make_client()
        await register(mallory, "mallory")

        assert (await mallory.patch(f"/api/projects/{project['id']}", json={"name": "Mine"})).status_code == 403
        assert (await mallory.delete(f"/api/projects/{project['id']}")).status_code == 403
        assert (await client.get(f"/api/projects/{project['id']}")).status_code == 200


class TestValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("x,y", [("101", "50"), ("50", "-1"), ("left", "50")])
    async def test_tag_position_out_of_range(self, client, x, y):
        await register(client, "alice")
        area = await create_area(client, "Kitchen")
        photo = await upload_photo(client, area["id"])

        response = await add_tag(client, photo["id"], x=x, y=y)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_upload_rejects_non_image(self, client):
        await register(client, "alice")
        area = await create_area(client, "Kitchen")
        response = await client.post(
            "/api/photos",
            data={"areaId": str(area["id"])},
            files={"image": ("notes.png", b"this is plain text", "image/png")},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_blank_area_name(self, client):
        await register(client, "alice")
        response = await client.post("/api/areas", json={"name": ""})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_resources(self, client):
        await register(client, "alice")
        assert (await client.get("/api/areas/9999")).status_code == 404
        assert (await client.delete("/api/photos/9999")).status_code == 404
        assert (await client.get("/api/photos/9999/image")).status_code == 404


class TestOwnership:

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, client, make_client):
        await register(client, "alice")
        area = await create_area(client, "Kitchen")
        photo = await upload_photo(client, area["id"])
        tag = (await add_tag(client, photo["id"])).json()

        mallory = make_client()
        await register(mallory, "mallory")

        assert (await mallory.get("/api/areas")).json() == []
        assert (await mallory.get("/api/photos")).json() == []
        assert (await mallory.get(f"/api/areas/{area['id']}")).status_code == 403
        assert (await mallory.patch(f"/api/areas/{area['id']}", json={"name": "Mine"})).status_code == 403
        assert (await mallory.delete(f"/api/photos/{photo['id']}")).status_code == 403
        assert (await mallory.get(f"/api/photos/{photo['id']}/tags")).status_code == 403
        assert (await mallory.delete(f"/api/photos/{photo['id']}/tags/{tag['id']}")).status_code == 403
        assert (await add_tag(mallory, photo["id"])).status_code == 403

        response = await mallory.post(
            "/api/photos",
            data={"areaId": str(area["id"])},
            files={"image": ("wall.png", png_bytes(), "image/png")},
        )
        assert response.status_code == 403

        assert (await client.get(f"/api/areas/{area['id']}")).json()["name"] == "Kitchen"


class TestQuotas:

    @pytest.fixture
    def settings_overrides(self):
        return {"free_max_areas": 3, "free_max_photos_per_area": 1}

    @pytest.mark.asyncio
    async def test_fourth_area_denied(self, client):
        await register(client, "alice")
        for name in ("Kitchen", "Den", "Hallway"):
            await create_area(client, name)

        response = await client.post("/api/areas", json={"name": "Attic"})

        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "account_limit_reached"
        assert body["details"]["limit"] == 3
        assert body["details"]["upgrade_url"] == "https://subscribepage.io/paintsnap"
        assert len((await client.get("/api/areas")).json()) == 3

    @pytest.mark.asyncio
    async def test_move_into_full_area_denied(self, client):
        await register(client, "alice")
        kitchen = await create_area(client, "Kitchen")
        den = await create_area(client, "Den")
        await upload_photo(client, den["id"])
        photo = await upload_photo(client, kitchen["id"])

        response = await client.patch(f"/api/photos/{photo['id']}/move", json={"areaId": den["id"]})

        assert response.status_code == 403
        assert response.json()["error"] == "account_limit_reached"


class TestRateLimit:

    @pytest.fixture
    def settings_overrides(self):
        return {"auth_rate_limit_requests": 2, "auth_rate_limit_window": 60}

    @pytest.mark.asyncio
    async def test_login_attempts_limited(self, client):
        for _ in range(2):
            response = await client.post("/api/auth/login", json={"username": "x", "password": "y"})
            assert response.status_code == 401

        response = await client.post("/api/auth/login", json={"username": "x", "password": "y"})

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert response.json()["error"] == "rate_limit_exceeded"

    @pytest.mark.asyncio
    async def test_other_paths_not_limited(self, client):
        for _ in range(5):
            assert (await client.get("/api/areas")).status_code == 401


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["identity_provider"] == "ready"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"
