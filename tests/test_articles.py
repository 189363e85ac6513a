"""
Article endpoint tests — the CRUD lifecycle, ownership checks, favorites,
listing filters, pagination, the follow feed and the tag index.

Each test registers the users it needs through the API, so test order
does not matter.
"""
import re

import pytest
from httpx import AsyncClient


def _auth(token: str) -> dict:
    return {"Authorization": f"Token {token}"}


async def _create_article(
    client: AsyncClient,
    token: str,
    title: str = "Hello World",
    tags: list[str] | None = None,
) -> dict:
    resp = await client.post("/api/articles", headers=_auth(token), json={"article": {
        "title": title,
        "description": f"About {title}",
        "body": f"Body of {title}",
        "tagList": tags or [],
    }})
    assert resp.status_code == 201, resp.text
    return resp.json()["article"]


# ---------------------------------------------------------------------------
# Create + get
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_article(async_client: AsyncClient, register):
    """Creating an article returns 201 with the author's profile and zero favorites."""
    ana = await register("ana")
    article = await _create_article(async_client, ana["token"], tags=["x", "y"])
    assert article["title"] == "Hello World"
    assert article["description"] == "About Hello World"
    assert article["body"] == "Body of Hello World"
    assert article["tagList"] == ["x", "y"]
    assert article["favorited"] is False
    assert article["favoritesCount"] == 0
    assert article["author"]["username"] == "ana"
    assert article["author"]["following"] is False
    assert article["createdAt"]
    assert article["updatedAt"]


@pytest.mark.asyncio
async def test_slug_is_url_safe_and_unique(async_client: AsyncClient, register):
    """Two articles with the same title get distinct, URL-safe slugs."""
    ana = await register("ana")
    first = await _create_article(async_client, ana["token"], "Hello World")
    second = await _create_article(async_client, ana["token"], "Hello World")

    for article in (first, second):
        assert re.fullmatch(r"[a-z0-9-]+", article["slug"])
        assert article["slug"].startswith("hello-world-")
    assert first["slug"] != second["slug"]


@pytest.mark.asyncio
async def test_tag_list_keeps_order_and_duplicates(async_client: AsyncClient, register):
    """Tags come back in the order given, duplicates included."""
    ana = await register("ana")
    article = await _create_article(async_client, ana["token"], tags=["b", "a", "b"])
    resp = await async_client.get(f"/api/articles/{article['slug']}")
    assert resp.json()["article"]["tagList"] == ["b", "a", "b"]


@pytest.mark.asyncio
async def test_create_article_requires_token(async_client: AsyncClient):
    """Anonymous create is rejected with 401."""
    resp = await async_client.post("/api/articles", json={"article": {
        "title": "T", "description": "D", "body": "B",
    }})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_article_missing_title(async_client: AsyncClient, register):
    """A missing title is reported as blank."""
    ana = await register("ana")
    resp = await async_client.post("/api/articles", headers=_auth(ana["token"]), json={"article": {
        "description": "D", "body": "B",
    }})
    assert resp.status_code == 422
    assert resp.json() == {"errors": {"title": "can't be blank"}}


@pytest.mark.asyncio
async def test_create_article_blank_body(async_client: AsyncClient, register):
    """A blank body is reported under the body field, not the envelope."""
    ana = await register("ana")
    resp = await async_client.post("/api/articles", headers=_auth(ana["token"]), json={"article": {
        "title": "T", "body": "",
    }})
    assert resp.status_code == 422
    assert resp.json() == {"errors": {"body": "can't be blank"}}


@pytest.mark.asyncio
async def test_timestamps_render_the_same_on_create_and_read(async_client: AsyncClient, register):
    """createdAt/updatedAt are UTC ISO strings both right after create and on later reads."""
    ana = await register("ana")
    created = await _create_article(async_client, ana["token"])
    resp = await async_client.get(f"/api/articles/{created['slug']}")
    fetched = resp.json()["article"]
    assert fetched["createdAt"] == created["createdAt"]
    assert fetched["updatedAt"] == created["updatedAt"]
    assert created["createdAt"].endswith("+00:00")


@pytest.mark.asyncio
async def test_get_article_anonymous(async_client: AsyncClient, register):
    """Anonymous readers see the article with favorited=false."""
    ana = await register("ana")
    article = await _create_article(async_client, ana["token"])
    resp = await async_client.get(f"/api/articles/{article['slug']}")
    assert resp.status_code == 200
    body = resp.json()["article"]
    assert body["slug"] == article["slug"]
    assert body["favorited"] is False
    assert body["author"]["following"] is False


@pytest.mark.asyncio
async def test_get_article_not_found(async_client: AsyncClient):
    """Unknown slug returns 404."""
    resp = await async_client.get("/api/articles/no-such-slug")
    assert resp.status_code == 404
    assert resp.content == b""


# ---------------------------------------------------------------------------
# Update / delete and ownership
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_article_by_owner(async_client: AsyncClient, register):
    """The author can edit fields; the slug stays the same."""
    ana = await register("ana")
    article = await _create_article(async_client, ana["token"], tags=["old"])
    resp = await async_client.put(
        f"/api/articles/{article['slug']}",
        headers=_auth(ana["token"]),
        json={"article": {"title": "New Title", "body": "New body", "tagList": ["new"]}},
    )
    assert resp.status_code == 200
    updated = resp.json()["article"]
    assert updated["title"] == "New Title"
    assert updated["body"] == "New body"
    assert updated["description"] == article["description"]
    assert updated["tagList"] == ["new"]
    # The slug is fixed at creation.
    assert updated["slug"] == article["slug"]


@pytest.mark.asyncio
async def test_update_article_by_other_user_is_forbidden(async_client: AsyncClient, register):
    """A non-owner gets 403 and the stored article is left unchanged."""
    ana = await register("ana")
    bob = await register("bob")
    article = await _create_article(async_client, ana["token"])

    resp = await async_client.put(
        f"/api/articles/{article['slug']}",
        headers=_auth(bob["token"]),
        json={"article": {"title": "Hijacked", "body": "Hijacked body"}},
    )
    assert resp.status_code == 403
    assert resp.content == b""

    stored = (await async_client.get(f"/api/articles/{article['slug']}")).json()["article"]
    assert stored["title"] == "Hello World"
    assert stored["body"] == "Body of Hello World"


@pytest.mark.asyncio
async def test_update_article_requires_token(async_client: AsyncClient, register):
    """Anonymous update is rejected with 401."""
    ana = await register("ana")
    article = await _create_article(async_client, ana["token"])
    resp = await async_client.put(
        f"/api/articles/{article['slug']}", json={"article": {"title": "X"}}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_update_missing_article(async_client: AsyncClient, register):
    """Updating an unknown slug returns 404."""
    ana = await register("ana")
    resp = await async_client.put(
        "/api/articles/ghost", headers=_auth(ana["token"]), json={"article": {"title": "X"}}
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_article_by_owner(async_client: AsyncClient, register):
    """Deleting an article also removes its comments, favorites and tags."""
    ana = await register("ana")
    bob = await register("bob")
    article = await _create_article(async_client, ana["token"], tags=["gone"])
    await async_client.post(f"/api/articles/{article['slug']}/favorite", headers=_auth(bob["token"]))
    await async_client.post(
        f"/api/articles/{article['slug']}/comments",
        headers=_auth(bob["token"]),
        json={"comment": {"body": "Nice"}},
    )

    resp = await async_client.delete(f"/api/articles/{article['slug']}", headers=_auth(ana["token"]))
    assert resp.status_code == 204

    assert (await async_client.get(f"/api/articles/{article['slug']}")).status_code == 404
    assert (await async_client.get("/api/tags")).json() == {"tags": []}
    favorited = await async_client.get("/api/articles", params={"favorited": "bob"})
    assert favorited.json()["articlesCount"] == 0


@pytest.mark.asyncio
async def test_delete_article_by_other_user_is_forbidden(async_client: AsyncClient, register):
    """Only the author may delete an article."""
    ana = await register("ana")
    bob = await register("bob")
    article = await _create_article(async_client, ana["token"])
    resp = await async_client.delete(f"/api/articles/{article['slug']}", headers=_auth(bob["token"]))
    assert resp.status_code == 403
    assert (await async_client.get(f"/api/articles/{article['slug']}")).status_code == 200


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favorite_scenario(async_client: AsyncClient, register):
    """Favorite as B, read as B, then unfavorite: counter follows the relation."""
    ana = await register("ana")
    bob = await register("bob")
    article = await _create_article(async_client, ana["token"])
    slug = article["slug"]

    resp = await async_client.post(f"/api/articles/{slug}/favorite", headers=_auth(bob["token"]))
    assert resp.status_code == 200
    assert resp.json()["article"]["favorited"] is True
    assert resp.json()["article"]["favoritesCount"] == 1

    as_bob = (await async_client.get(f"/api/articles/{slug}", headers=_auth(bob["token"]))).json()
    assert as_bob["article"]["favorited"] is True
    assert as_bob["article"]["favoritesCount"] == 1

    as_ana = (await async_client.get(f"/api/articles/{slug}", headers=_auth(ana["token"]))).json()
    assert as_ana["article"]["favorited"] is False

    resp = await async_client.delete(f"/api/articles/{slug}/favorite", headers=_auth(bob["token"]))
    assert resp.status_code == 200
    assert resp.json()["article"]["favorited"] is False
    assert resp.json()["article"]["favoritesCount"] == 0


@pytest.mark.asyncio
async def test_favorite_twice_keeps_count(async_client: AsyncClient, register):
    """Favoriting twice counts the user once."""
    ana = await register("ana")
    bob = await register("bob")
    article = await _create_article(async_client, ana["token"])
    for _ in range(2):
        resp = await async_client.post(
            f"/api/articles/{article['slug']}/favorite", headers=_auth(bob["token"])
        )
    assert resp.json()["article"]["favoritesCount"] == 1


@pytest.mark.asyncio
async def test_favorite_requires_token(async_client: AsyncClient, register):
    """Anonymous favorite is rejected with 401."""
    ana = await register("ana")
    article = await _create_article(async_client, ana["token"])
    resp = await async_client.post(f"/api/articles/{article['slug']}/favorite")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_favorite_missing_article(async_client: AsyncClient, register):
    """Favoriting an unknown slug returns 404."""
    bob = await register("bob")
    resp = await async_client.post("/api/articles/ghost/favorite", headers=_auth(bob["token"]))
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_articles_empty(async_client: AsyncClient):
    """Listing with no articles returns an empty page and a zero count."""
    resp = await async_client.get("/api/articles")
    assert resp.status_code == 200
    assert resp.json() == {"articles": [], "articlesCount": 0}


@pytest.mark.asyncio
async def test_list_articles_unknown_tag(async_client: AsyncClient, register):
    """Filtering by a tag nobody uses yields nothing."""
    ana = await register("ana")
    await _create_article(async_client, ana["token"], tags=["y"])
    resp = await async_client.get("/api/articles", params={"tag": "x"})
    assert resp.json() == {"articles": [], "articlesCount": 0}


@pytest.mark.asyncio
async def test_list_articles_newest_first(async_client: AsyncClient, register):
    """Listing is ordered by creation time, newest first."""
    ana = await register("ana")
    for title in ("First", "Second", "Third"):
        await _create_article(async_client, ana["token"], title)
    resp = await async_client.get("/api/articles")
    data = resp.json()
    assert data["articlesCount"] == 3
    assert [a["title"] for a in data["articles"]] == ["Third", "Second", "First"]


@pytest.mark.asyncio
async def test_list_articles_filters(async_client: AsyncClient, register):
    """tag, author and favorited filters narrow the listing."""
    ana = await register("ana")
    bob = await register("bob")
    a1 = await _create_article(async_client, ana["token"], "Ana Python", tags=["python"])
    await _create_article(async_client, ana["token"], "Ana Rust", tags=["rust"])
    await _create_article(async_client, bob["token"], "Bob Python", tags=["python"])
    await async_client.post(f"/api/articles/{a1['slug']}/favorite", headers=_auth(bob["token"]))

    by_tag = (await async_client.get("/api/articles", params={"tag": "python"})).json()
    assert by_tag["articlesCount"] == 2
    assert {a["title"] for a in by_tag["articles"]} == {"Ana Python", "Bob Python"}

    by_author = (await async_client.get("/api/articles", params={"author": "ana"})).json()
    assert {a["title"] for a in by_author["articles"]} == {"Ana Python", "Ana Rust"}

    by_fav = (await async_client.get("/api/articles", params={"favorited": "bob"})).json()
    assert [a["title"] for a in by_fav["articles"]] == ["Ana Python"]

    combined = (await async_client.get(
        "/api/articles", params={"tag": "python", "author": "bob"}
    )).json()
    assert [a["title"] for a in combined["articles"]] == ["Bob Python"]

    nobody = (await async_client.get("/api/articles", params={"author": "ghost"})).json()
    assert nobody == {"articles": [], "articlesCount": 0}


@pytest.mark.asyncio
async def test_list_articles_pagination(async_client: AsyncClient, register):
    """limit/offset slice the listing while articlesCount stays the total."""
    ana = await register("ana")
    for i in range(5):
        await _create_article(async_client, ana["token"], f"Post {i}")

    page = (await async_client.get("/api/articles", params={"limit": 2, "offset": 1})).json()
    assert page["articlesCount"] == 5
    assert [a["title"] for a in page["articles"]] == ["Post 3", "Post 2"]

    tail = (await async_client.get("/api/articles", params={"limit": 10, "offset": 4})).json()
    assert [a["title"] for a in tail["articles"]] == ["Post 0"]


@pytest.mark.asyncio
async def test_list_articles_rejects_negative_offset(async_client: AsyncClient):
    """Negative offset is a validation error."""
    resp = await async_client.get("/api/articles", params={"offset": -1})
    assert resp.status_code == 422
    assert "offset" in resp.json()["errors"]


@pytest.mark.asyncio
async def test_list_articles_viewer_relative(async_client: AsyncClient, register):
    """favorited and following reflect the signed-in reader."""
    ana = await register("ana")
    bob = await register("bob")
    article = await _create_article(async_client, ana["token"])
    await async_client.post(f"/api/articles/{article['slug']}/favorite", headers=_auth(bob["token"]))
    await async_client.post("/api/profiles/ana/follow", headers=_auth(bob["token"]))

    as_bob = (await async_client.get("/api/articles", headers=_auth(bob["token"]))).json()
    assert as_bob["articles"][0]["favorited"] is True
    assert as_bob["articles"][0]["author"]["following"] is True

    anonymous = (await async_client.get("/api/articles")).json()
    assert anonymous["articles"][0]["favorited"] is False
    assert anonymous["articles"][0]["author"]["following"] is False


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_feed_shows_followed_authors_only(async_client: AsyncClient, register):
    """The feed holds only articles by followed authors."""
    ana = await register("ana")
    bob = await register("bob")
    cid = await register("cid")
    await _create_article(async_client, ana["token"], "By Ana")
    await _create_article(async_client, cid["token"], "By Cid")
    await async_client.post("/api/profiles/ana/follow", headers=_auth(bob["token"]))

    feed = (await async_client.get("/api/articles/feed", headers=_auth(bob["token"]))).json()
    assert feed["articlesCount"] == 1
    assert feed["articles"][0]["title"] == "By Ana"
    assert feed["articles"][0]["author"]["following"] is True


@pytest.mark.asyncio
async def test_feed_empty_without_follows(async_client: AsyncClient, register):
    """A user who follows nobody gets an empty feed."""
    ana = await register("ana")
    await _create_article(async_client, ana["token"])
    feed = (await async_client.get("/api/articles/feed", headers=_auth(ana["token"]))).json()
    assert feed == {"articles": [], "articlesCount": 0}


@pytest.mark.asyncio
async def test_feed_requires_token(async_client: AsyncClient):
    """The feed is not available anonymously."""
    resp = await async_client.get("/api/articles/feed")
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_tags_are_distinct_union(async_client: AsyncClient, register):
    """The tag index lists every used tag once."""
    ana = await register("ana")
    await _create_article(async_client, ana["token"], "One", tags=["python", "web"])
    await _create_article(async_client, ana["token"], "Two", tags=["web", "api", "web"])
    resp = await async_client.get("/api/tags")
    assert resp.status_code == 200
    assert resp.json() == {"tags": ["api", "python", "web"]}
