"""
Bookshelf API — Books Endpoint Integration Tests
=================================================

What:  The full stack (middleware → handlers → services → SQLite) through HTTP.
How:   httpx AsyncClient with ASGITransport; fresh tables per test.

What we test:
    ✅ Status codes: 201 + Location, 200, 204, 400, 401, 403, 404, 409, 422
    ✅ Pagination envelope, X-Total-Count and Link headers
    ✅ Filtering, searching and sorting
    ✅ Idempotency-Key replay, mismatch, per-user scoping, races and expiry
    ✅ Every error uses the envelope and carries the request ID
"""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import update

from bookshelf.database import async_session_factory
from bookshelf.models.idempotency import IdempotencyRecord
from bookshelf.models.timestamps import utcnow

BOOKS = "/api/v1/books"


def book_body(**overrides):
    body = {
        "title": "The Dispossessed",
        "author": "Ursula K. Le Guin",
        "isbn": "978-0-06-051275-3",
        "published_year": 1974,
    }
    body.update(overrides)
    return body


async def create(client, headers, **overrides):
    response = await client.post(BOOKS, json=book_body(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateBook:

    @pytest.mark.asyncio
    async def test_create_returns_201_and_location(self, test_client, auth_headers):
        response = await test_client.post(BOOKS, json=book_body(), headers=auth_headers)

        assert response.status_code == 201
        book = response.json()
        assert book["isbn"] == "9780060512753"
        assert response.headers["Location"].endswith(f"{BOOKS}/{book['id']}")

        fetched = await test_client.get(response.headers["Location"])
        assert fetched.status_code == 200
        assert fetched.json()["title"] == "The Dispossessed"

    @pytest.mark.asyncio
    async def test_create_requires_authentication(self, test_client):
        response = await test_client.post(BOOKS, json=book_body())

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        body = response.json()
        assert body["error"] == "unauthorized"
        assert body["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_invalid_token_reason_is_reported(self, test_client):
        response = await test_client.post(
            BOOKS, json=book_body(), headers={"Authorization": "Bearer not.a.token"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid access token"

    @pytest.mark.asyncio
    async def test_invalid_body_returns_400_with_fields(self, test_client, auth_headers):
        response = await test_client.post(
            BOOKS, json={"title": "", "isbn": "123"}, headers=auth_headers
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        fields = {err["field"] for err in body["details"]["errors"]}
        assert {"title", "author", "isbn"} <= fields

    @pytest.mark.asyncio
    async def test_malformed_json_returns_400(self, test_client, auth_headers):
        response = await test_client.post(
            BOOKS,
            content=b"{not json",
            headers={**auth_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_duplicate_isbn_returns_409(self, test_client, auth_headers):
        await create(test_client, auth_headers)

        response = await test_client.post(
            BOOKS, json=book_body(title="Another"), headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"


class TestListBooks:

    @pytest.mark.asyncio
    async def test_empty_list(self, test_client):
        response = await test_client.get(BOOKS)

        assert response.status_code == 200
        assert response.json() == {
            "data": [],
            "pagination": {
                "page": 1,
                "limit": 20,
                "total": 0,
                "total_pages": 0,
                "has_next": False,
                "has_prev": False,
            },
        }
        assert response.headers["X-Total-Count"] == "0"
        assert "Link" not in response.headers

    @pytest.mark.asyncio
    async def test_pagination_headers(self, test_client, auth_headers):
        for i in range(5):
            await create(test_client, auth_headers, title=f"Book {i}", isbn=None)

        response = await test_client.get(BOOKS, params={"page": 2, "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 2
        assert body["pagination"]["total"] == 5
        assert body["pagination"]["total_pages"] == 3
        assert response.headers["X-Total-Count"] == "5"

        link = response.headers["Link"]
        for rel in ("first", "prev", "next", "last"):
            assert f'rel="{rel}"' in link
        assert "page=3" in link

    @pytest.mark.asyncio
    async def test_pages_do_not_overlap(self, test_client, auth_headers):
        for i in range(5):
            await create(test_client, auth_headers, title=f"Book {i}", isbn=None)

        seen = []
        for page in (1, 2, 3):
            response = await test_client.get(BOOKS, params={"page": page, "limit": 2})
            seen.extend(book["id"] for book in response.json()["data"])

        assert len(seen) == 5
        assert len(set(seen)) == 5

    @pytest.mark.asyncio
    async def test_page_beyond_end_is_empty(self, test_client, auth_headers):
        await create(test_client, auth_headers)

        response = await test_client.get(BOOKS, params={"page": 10})

        assert response.status_code == 200
        assert response.json()["data"] == []
        assert response.json()["pagination"]["total"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params",
        [{"limit": 1000}, {"limit": 0}, {"page": 0}, {"page": "two"}, {"sort": "isbn"}],
    )
    async def test_invalid_query_returns_400(self, test_client, params):
        response = await test_client.get(BOOKS, params=params)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_filter_search_and_sort(self, test_client, auth_headers):
        await create(test_client, auth_headers, title="The Lathe of Heaven", isbn=None)
        await create(test_client, auth_headers, title="A Wizard of Earthsea", isbn=None)
        await create(test_client, auth_headers, title="Dune", author="Frank Herbert", isbn=None)

        by_author = await test_client.get(BOOKS, params={"author": "ursula k. le guin"})
        assert by_author.json()["pagination"]["total"] == 2

        by_title = await test_client.get(BOOKS, params={"q": "EARTH"})
        assert [b["title"] for b in by_title.json()["data"]] == ["A Wizard of Earthsea"]

        sorted_books = await test_client.get(BOOKS, params={"sort": "title"})
        titles = [b["title"] for b in sorted_books.json()["data"]]
        assert titles == ["A Wizard of Earthsea", "Dune", "The Lathe of Heaven"]

        reverse = await test_client.get(BOOKS, params={"sort": "-title"})
        assert [b["title"] for b in reverse.json()["data"]] == list(reversed(titles))

    @pytest.mark.asyncio
    async def test_search_treats_wildcards_literally(self, test_client, auth_headers):
        await create(test_client, auth_headers, title="100% Pure", isbn=None)
        await create(test_client, auth_headers, title="1000 Years", isbn=None)

        response = await test_client.get(BOOKS, params={"q": "0%"})

        assert [b["title"] for b in response.json()["data"]] == ["100% Pure"]


class TestSingleBook:

    @pytest.mark.asyncio
    async def test_unknown_id_returns_404(self, test_client):
        response = await test_client.get(f"{BOOKS}/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_malformed_id_returns_400(self, test_client):
        response = await test_client.get(f"{BOOKS}/not-a-uuid")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_replace_by_owner(self, test_client, auth_headers):
        book = await create(test_client, auth_headers)

        response = await test_client.put(
            f"{BOOKS}/{book['id']}",
            json={"title": "Replaced", "author": "Someone", "isbn": None, "published_year": None},
            headers=auth_headers,
        )

        assert response.status_code == 200
        replaced = response.json()
        assert replaced["title"] == "Replaced"
        assert replaced["isbn"] is None
        assert replaced["id"] == book["id"]
        assert replaced["created_at"] == book["created_at"]

    @pytest.mark.asyncio
    async def test_replace_requires_full_body(self, test_client, auth_headers):
        book = await create(test_client, auth_headers)

        response = await test_client.put(
            f"{BOOKS}/{book['id']}", json={"title": "Only title"}, headers=auth_headers
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_patch_changes_only_sent_fields(self, test_client, auth_headers):
        book = await create(test_client, auth_headers)

        response = await test_client.patch(
            f"{BOOKS}/{book['id']}", json={"published_year": 1975}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["published_year"] == 1975
        assert response.json()["title"] == book["title"]
        assert response.json()["isbn"] == book["isbn"]

    @pytest.mark.asyncio
    async def test_empty_patch_returns_400(self, test_client, auth_headers):
        book = await create(test_client, auth_headers)

        response = await test_client.patch(f"{BOOKS}/{book['id']}", json={}, headers=auth_headers)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_other_user_gets_403(self, test_client, auth_headers, other_auth_headers):
        book = await create(test_client, auth_headers)
        url = f"{BOOKS}/{book['id']}"

        patch = await test_client.patch(url, json={"title": "Mine now"}, headers=other_auth_headers)
        delete = await test_client.delete(url, headers=other_auth_headers)

        assert patch.status_code == 403
        assert patch.json()["error"] == "forbidden"
        assert delete.status_code == 403
        assert (await test_client.get(url)).json()["title"] == book["title"]

    @pytest.mark.asyncio
    async def test_delete_returns_204_then_404(self, test_client, auth_headers):
        book = await create(test_client, auth_headers)
        url = f"{BOOKS}/{book['id']}"

        response = await test_client.delete(url, headers=auth_headers)
        assert response.status_code == 204
        assert response.content == b""

        assert (await test_client.get(url)).status_code == 404
        assert (await test_client.delete(url, headers=auth_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_delete_requires_authentication(self, test_client, auth_headers):
        book = await create(test_client, auth_headers)

        response = await test_client.delete(f"{BOOKS}/{book['id']}")

        assert response.status_code == 401


class TestIdempotentCreate:

    @pytest.mark.asyncio
    async def test_retry_replays_original_response(self, test_client, auth_headers):
        headers = {**auth_headers, "Idempotency-Key": "create-dispossessed-1"}

        first = await test_client.post(BOOKS, json=book_body(), headers=headers)
        second = await test_client.post(BOOKS, json=book_body(), headers=headers)

        assert first.status_code == 201
        assert second.status_code == 201
        assert first.headers["Idempotent-Replayed"] == "false"
        assert second.headers["Idempotent-Replayed"] == "true"
        assert second.json() == first.json()
        assert second.headers["Location"] == first.headers["Location"]

        listing = await test_client.get(BOOKS)
        assert listing.json()["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_key_order_in_body_does_not_matter(self, test_client, auth_headers):
        headers = {**auth_headers, "Idempotency-Key": "reordered"}
        body = book_body()
        reordered = dict(reversed(list(body.items())))

        first = await test_client.post(BOOKS, json=body, headers=headers)
        second = await test_client.post(BOOKS, json=reordered, headers=headers)

        assert second.json()["id"] == first.json()["id"]

    @pytest.mark.asyncio
    async def test_same_key_different_body_returns_422(self, test_client, auth_headers):
        headers = {**auth_headers, "Idempotency-Key": "reused-key"}
        await test_client.post(BOOKS, json=book_body(), headers=headers)

        response = await test_client.post(
            BOOKS, json=book_body(title="Something else", isbn=None), headers=headers
        )

        assert response.status_code == 422
        assert response.json()["error"] == "idempotency_key_reused"

    @pytest.mark.asyncio
    async def test_keys_are_scoped_per_user(self, test_client, auth_headers, other_auth_headers):
        key = {"Idempotency-Key": "shared-key"}

        mine = await test_client.post(
            BOOKS, json=book_body(isbn=None), headers={**auth_headers, **key}
        )
        theirs = await test_client.post(
            BOOKS, json=book_body(isbn=None), headers={**other_auth_headers, **key}
        )

        assert theirs.status_code == 201
        assert theirs.headers["Idempotent-Replayed"] == "false"
        assert theirs.json()["id"] != mine.json()["id"]

    @pytest.mark.asyncio
    async def test_failed_create_is_not_remembered(self, test_client, auth_headers):
        await create(test_client, auth_headers)
        headers = {**auth_headers, "Idempotency-Key": "after-conflict"}

        conflict = await test_client.post(BOOKS, json=book_body(), headers=headers)
        assert conflict.status_code == 409

        retry = await test_client.post(BOOKS, json=book_body(isbn=None), headers=headers)
        assert retry.status_code == 201
        assert retry.headers["Idempotent-Replayed"] == "false"

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_lose_with_409(self, test_client, auth_headers):
        headers = {**auth_headers, "Idempotency-Key": "double-click"}

        responses = await asyncio.gather(
            *(test_client.post(BOOKS, json=book_body(), headers=headers) for _ in range(4))
        )

        codes = sorted(r.status_code for r in responses)
        assert codes == [201, 409, 409, 409]
        for response in responses:
            if response.status_code == 409:
                assert response.json()["error"] == "conflict"
        listing = await test_client.get(BOOKS)
        assert listing.json()["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_expired_key_is_treated_as_new(self, test_client, auth_headers):
        headers = {**auth_headers, "Idempotency-Key": "stale-key"}
        first = await test_client.post(BOOKS, json=book_body(), headers=headers)

        async with async_session_factory() as session:
            await session.execute(
                update(IdempotencyRecord)
                .where(IdempotencyRecord.key == "stale-key")
                .values(expires_at=utcnow() - timedelta(minutes=1))
            )
            await session.commit()

        # A different body would be a 422 mismatch if the record still counted
        second = await test_client.post(
            BOOKS, json=book_body(title="Second", isbn=None), headers=headers
        )

        assert second.status_code == 201
        assert second.headers["Idempotent-Replayed"] == "false"
        assert second.json()["id"] != first.json()["id"]

    @pytest.mark.asyncio
    async def test_blank_key_returns_400(self, test_client, auth_headers):
        response = await test_client.post(
            BOOKS, json=book_body(), headers={**auth_headers, "Idempotency-Key": "   "}
        )

        assert response.status_code == 400


class TestFrameworkErrors:

    @pytest.mark.asyncio
    async def test_unknown_route_uses_envelope(self, test_client):
        response = await test_client.get("/api/v1/nothing-here", headers={"X-Request-ID": "rid-404"})

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert body["request_id"] == "rid-404"

    @pytest.mark.asyncio
    async def test_wrong_method_uses_envelope(self, test_client):
        response = await test_client.put(BOOKS, json={})

        assert response.status_code == 405
        assert response.json()["error"] == "method_not_allowed"
