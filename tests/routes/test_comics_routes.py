"""Tests for the public catalog routes (comics, chapters, genres)."""
from unittest.mock import patch


class TestListComics:

    def test_empty_catalog(self, client):
        resp = client.get("/api/comics")
        assert resp.status_code == 200
        assert resp.json() == {"data": [], "total": 0}

    def test_pagination_and_search(self, client, create_comic):
        for i in range(5):
            create_comic(f"Series {i}", author="Author A" if i % 2 else "Author B")

        page = client.get("/api/comics?limit=2&offset=1").json()
        assert len(page["data"]) == 2
        assert page["total"] == 5

        found = client.get("/api/comics", params={"search": "author a"}).json()
        assert found["total"] == 2
        assert {c["title"] for c in found["data"]} == {"Series 1", "Series 3"}

    def test_bad_paging_values_fall_back(self, client, create_comic):
        for i in range(3):
            create_comic(f"C{i}")

        resp = client.get("/api/comics?limit=abc&offset=-5")
        assert resp.status_code == 200
        assert len(resp.json()["data"]) == 3

        resp = client.get("/api/comics?limit=5000")
        assert resp.status_code == 200
        assert len(resp.json()["data"]) == 3

    def test_total_cached_until_write(self, client, create_comic, catalog_app):
        create_comic("First")
        assert client.get("/api/comics").json()["total"] == 1

        # stale value served while cached
        catalog_app.state.query_cache.set("total", 42)
        assert client.get("/api/comics").json()["total"] == 42

        create_comic("Second")
        assert client.get("/api/comics").json()["total"] == 2


class TestTopAndFeatured:

    def test_top_by_views(self, client, create_comic):
        a = create_comic("A")
        b = create_comic("B")
        client.get(f"/api/comics/{b['id']}")

        top = client.get("/api/comics/top").json()
        assert [c["id"] for c in top["data"]] == [b["id"], a["id"]]
        assert top["data"][0]["views"] == 1

    def test_featured_is_plain_list(self, client, create_comic):
        for i in range(4):
            create_comic(f"F{i}")

        resp = client.get("/api/comics/featured?count=2&fromTop=nonsense")
        assert resp.status_code == 200
        assert isinstance(resp.json(), list)
        assert len(resp.json()) == 2


class TestRecent:

    def test_recent_shape(self, client, create_comic, create_chapter):
        a = create_comic("A")
        create_comic("B")
        for n in (1, 2, 3, 4):
            create_chapter(a["id"], n)

        body = client.get("/api/comics/recent").json()
        assert body["total"] == 1
        assert body["data"][0]["id"] == a["id"]
        assert body["data"][0]["latest_chapter"] == 4
        assert [ch["chapter_number"] for ch in body["data"][0]["recent_chapters"]] == [4, 3, 2]
        assert body["data"][1]["latest_chapter"] is None


class TestComicDetail:

    def test_by_slug_counts_one_view_per_hour(self, client, create_comic):
        create_comic("Hunter x Hunter")

        first = client.get("/api/comics/slug/hunter-x-hunter")
        assert first.status_code == 200
        client.get("/api/comics/slug/hunter-x-hunter")

        comic_id = first.json()["id"]
        assert client.get("/api/comics/top").json()["data"][0]["views"] == 1
        assert client.get(f"/api/comics/{comic_id}").json()["views"] == 1

    def test_unknown(self, client):
        resp = client.get("/api/comics/slug/nope")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Comic not found"}
        assert client.get("/api/comics/999").status_code == 404


class TestChapterReads:

    def test_chapter_by_slug_and_number(self, client, create_comic, create_chapter):
        comic = create_comic("Nav Test")
        create_chapter(comic["id"], 1)
        create_chapter(comic["id"], 2, image_urls=["/images/chapters/nav-test/2/001.jpg"])
        create_chapter(comic["id"], 3)

        body = client.get("/api/comics/slug/nav-test/chapter/2").json()
        assert body["comic_slug"] == "nav-test"
        assert body["comic_title"] == "Nav Test"
        assert body["prev_chapter"]["chapter_number"] == 1
        assert body["next_chapter"]["chapter_number"] == 3
        assert body["image_urls"] == [
            {"server_name": "Server 1", "image_urls": ["/images/chapters/nav-test/2/001.jpg"]}
        ]

    def test_bad_chapter_number(self, client, create_comic):
        create_comic("Nav Test")
        resp = client.get("/api/comics/slug/nav-test/chapter/two")
        assert resp.status_code == 400
        assert client.get("/api/comics/slug/nav-test/chapter/9").status_code == 404

    def test_chapters_list_and_single(self, client, create_comic, create_chapter):
        comic = create_comic("List Me")
        second = create_chapter(comic["id"], 2)
        create_chapter(comic["id"], 1)

        listing = client.get(f"/api/comics/{comic['id']}/chapters").json()
        assert [ch["chapter_number"] for ch in listing] == [1, 2]

        single = client.get(f"/api/chapters/{second['id']}").json()
        assert single["prev_chapter"]["chapter_number"] == 1
        assert single["next_chapter"] is None
        assert client.get("/api/chapters/999").status_code == 404

    def test_tiktok_ids_resolved_on_read(self, client, create_comic, create_chapter):
        comic = create_comic("Tik")
        chapter = create_chapter(comic["id"], 1, image_urls=[
            {"server_name": "TT", "image_urls": ["tiktok:abc"]},
        ])

        with patch("comicshelf.config.TIKTOK_IMAGE_BASE_URL", "https://tt.example/obj"):
            body = client.get(f"/api/chapters/{chapter['id']}").json()
            base = client.get("/api/config/tiktok-base-url").json()

        assert body["image_urls"] == [{"server_name": "TT", "image_urls": ["https://tt.example/obj/abc"]}]
        assert base == {"baseUrl": "https://tt.example/obj"}


class TestGenres:

    def test_genre_list_and_prefix_match(self, client, create_comic):
        create_comic("One", genres=["Action-Comedy"])
        create_comic("Two", genres=["Action", "Drama"])
        create_comic("Three", genres=["Drama"])

        assert client.get("/api/genres").json() == ["Action", "Action-Comedy", "Drama"]

        body = client.get("/api/genres/Action/comics").json()
        assert body["total"] == 2
        assert {c["title"] for c in body["data"]} == {"One", "Two"}

    def test_genre_list_invalidated_on_write(self, client, create_comic):
        create_comic("One", genres=["Horror"])
        assert client.get("/api/genres").json() == ["Horror"]

        create_comic("Two", genres=["Comedy"])
        assert client.get("/api/genres").json() == ["Comedy", "Horror"]

    def test_unknown_genres_not_cached(self, client, create_comic, catalog_app):
        from comicshelf.cache import genre_count_key

        create_comic("One", genres=["Horror"])
        cache = catalog_app.state.query_cache

        for name in ("nope-1", "nope-2", "Hor"):
            assert client.get(f"/api/genres/{name}/comics").status_code == 200
            assert genre_count_key(name) not in cache

        assert client.get("/api/genres/Horror/comics").json()["total"] == 1
        assert genre_count_key("Horror") in cache
