"""
EdgeGate Backend — Post Route Tests
===================================

What we test:
    ✅ CRUD round trip with the author embedded
    ✅ Only the author may update, delete, publish or unpublish (403)
    ✅ Pagination metadata and filters (published, userId)
    ✅ Listing cache is dropped on writes and only covers invalidated pages
    ✅ 401 without a session, 404 for unknown posts, 422 for bad bodies
"""

import pytest

from conftest import create_post, create_user


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_post(self, auth_client, user):
        response = await auth_client.post(
            "/api/posts", json={"title": "  First  ", "content": "Hello world"}
        )
        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "First"
        assert data["published"] is False
        assert data["user_id"] == user.id
        assert data["author"]["email"] == "alice@example.com"
        assert response.headers["x-ratelimit-limit"] == "300"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"title": ""}, {"title": "   "}, {"title": "x" * 201}])
    async def test_invalid_body(self, auth_client, body):
        response = await auth_client.post("/api/posts", json=body)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_session(self, client):
        response = await client.post("/api/posts", json={"title": "Nope"})
        assert response.status_code == 401


class TestRead:

    @pytest.mark.asyncio
    async def test_get_post(self, auth_client, db_session, user):
        post = await create_post(db_session, user, title="Readable")
        response = await auth_client.get(f"/api/posts/{post.id}")
        assert response.status_code == 200
        assert response.json()["title"] == "Readable"
        assert response.json()["author"]["id"] == user.id

    @pytest.mark.asyncio
    async def test_unknown_post(self, auth_client):
        response = await auth_client.get("/api/posts/4242")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_pagination(self, auth_client, db_session, user):
        for i in range(5):
            await create_post(db_session, user, title=f"Post {i}")

        response = await auth_client.get("/api/posts", params={"page": 2, "limit": 2})

        assert response.status_code == 200
        data = response.json()
        assert len(data["posts"]) == 2
        assert data["pagination"] == {"page": 2, "limit": 2, "total": 5, "total_pages": 3}

    @pytest.mark.asyncio
    async def test_newest_first(self, auth_client, db_session, user):
        first = await create_post(db_session, user, title="Old")
        second = await create_post(db_session, user, title="New")

        response = await auth_client.get("/api/posts")

        ids = [p["id"] for p in response.json()["posts"]]
        assert ids == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_filters(self, auth_client, db_session, user):
        bob = await create_user(db_session, email="bob@example.com")
        await create_post(db_session, user, title="Draft")
        await create_post(db_session, user, title="Live", published=True)
        await create_post(db_session, bob, title="Bob's", published=True)

        published = await auth_client.get("/api/posts", params={"published": "true"})
        assert {p["title"] for p in published.json()["posts"]} == {"Live", "Bob's"}

        mine = await auth_client.get("/api/posts", params={"userId": user.id})
        assert {p["title"] for p in mine.json()["posts"]} == {"Draft", "Live"}

        both = await auth_client.get(
            "/api/posts", params={"userId": bob.id, "published": "false"}
        )
        assert both.json()["posts"] == []
        assert both.json()["pagination"]["total_pages"] == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [{"page": 0}, {"limit": 0}, {"limit": 101}])
    async def test_invalid_paging(self, auth_client, params):
        response = await auth_client.get("/api/posts", params=params)
        assert response.status_code == 422


class TestOwnership:

    @pytest.mark.asyncio
    async def test_update_own_post(self, auth_client, db_session, user):
        post = await create_post(db_session, user)
        response = await auth_client.patch(
            f"/api/posts/{post.id}", json={"title": "Renamed", "content": None}
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Renamed"
        assert response.json()["content"] is None

    @pytest.mark.asyncio
    async def test_empty_update(self, auth_client, db_session, user):
        post = await create_post(db_session, user)
        response = await auth_client.patch(f"/api/posts/{post.id}", json={})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_publish_and_unpublish(self, auth_client, db_session, user):
        post = await create_post(db_session, user)

        published = await auth_client.post(f"/api/posts/{post.id}/publish")
        assert published.status_code == 200
        assert published.json()["published"] is True

        unpublished = await auth_client.post(f"/api/posts/{post.id}/unpublish")
        assert unpublished.json()["published"] is False

    @pytest.mark.asyncio
    async def test_delete_own_post(self, auth_client, db_session, user):
        post = await create_post(db_session, user)

        response = await auth_client.delete(f"/api/posts/{post.id}")
        assert response.status_code == 204

        assert (await auth_client.get(f"/api/posts/{post.id}")).status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method, suffix, body",
        [
            ("PATCH", "", {"title": "Mine now"}),
            ("DELETE", "", None),
            ("POST", "/publish", None),
            ("POST", "/unpublish", None),
        ],
    )
    async def test_other_users_post_is_forbidden(self, auth_client, db_session, method, suffix, body):
        bob = await create_user(db_session, email="bob@example.com")
        post = await create_post(db_session, bob)

        response = await auth_client.request(method, f"/api/posts/{post.id}{suffix}", json=body)

        assert response.status_code == 403
        assert (await auth_client.get(f"/api/posts/{post.id}")).json()["title"] == "Hello"


class TestCaching:

    @pytest.mark.asyncio
    async def test_listing_cache_dropped_on_create(self, auth_client, cache, fake_redis):
        first = await auth_client.get("/api/posts")
        assert first.json()["pagination"]["total"] == 0
        assert "posts:page:1:10" in fake_redis.store

        await auth_client.post("/api/posts", json={"title": "Fresh"})

        assert "posts:page:1:10" not in fake_redis.store
        second = await auth_client.get("/api/posts")
        assert second.json()["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_single_post_cache_dropped_on_update(self, auth_client, db_session, user, cache, fake_redis):
        post = await create_post(db_session, user)
        await auth_client.get(f"/api/posts/{post.id}")
        assert f"post:{post.id}" in fake_redis.store

        await auth_client.post(f"/api/posts/{post.id}/publish")

        assert f"post:{post.id}" not in fake_redis.store
        assert (await auth_client.get(f"/api/posts/{post.id}")).json()["published"] is True

    @pytest.mark.asyncio
    async def test_filtered_listings_are_not_cached(self, auth_client, cache, fake_redis):
        await auth_client.get("/api/posts", params={"published": "true"})
        assert not any(key.startswith("posts:") for key in fake_redis.store)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [{"limit": 50}, {"limit": 10, "page": 6}])
    async def test_uninvalidated_pages_are_not_cached(self, auth_client, cache, fake_redis, params):
        first = await auth_client.get("/api/posts", params=params)
        assert first.status_code == 200
        assert not any(key.startswith("posts:page:") for key in fake_redis.store)

    @pytest.mark.asyncio
    async def test_large_page_size_sees_new_post(self, auth_client, cache):
        before = await auth_client.get("/api/posts", params={"limit": 50})
        assert before.json()["pagination"]["total"] == 0

        await auth_client.post("/api/posts", json={"title": "Fresh"})

        after = await auth_client.get("/api/posts", params={"limit": 50})
        assert after.json()["pagination"]["total"] == 1
        assert [p["title"] for p in after.json()["posts"]] == ["Fresh"]
