"""Tests for per-reader history, follows and sync."""


class TestHistory:

    def test_requires_login(self, client):
        assert client.get("/api/user/history").status_code == 401

    def test_add_and_update(self, client, user_headers, create_comic):
        comic = create_comic("Reading")

        client.post("/api/user/history", json={"comicId": comic["id"], "chapterNumber": 2}, headers=user_headers)
        client.post("/api/user/history", json={"comic_id": comic["id"], "chapter_number": 5}, headers=user_headers)

        history = client.get("/api/user/history", headers=user_headers).json()
        assert len(history) == 1
        assert history[0]["chapter_number"] == 5
        assert history[0]["title"] == "Reading"

    def test_chapter_id_resolves_number(self, client, user_headers, create_comic, create_chapter):
        comic = create_comic("By Id")
        chapter = create_chapter(comic["id"], 7.5)

        client.post("/api/user/history", json={"comic_id": comic["id"], "chapter_id": chapter["id"]},
                    headers=user_headers)
        assert client.get("/api/user/history", headers=user_headers).json()[0]["chapter_number"] == 7.5

    def test_unknown_comic(self, client, user_headers):
        resp = client.post("/api/user/history", json={"comic_id": 999, "chapter_number": 1}, headers=user_headers)
        assert resp.status_code == 404

    def test_remove_and_clear(self, client, user_headers, create_comic):
        a = create_comic("A")
        b = create_comic("B")
        for comic in (a, b):
            client.post("/api/user/history", json={"comic_id": comic["id"], "chapter_number": 1},
                        headers=user_headers)

        client.delete(f"/api/user/history/{a['id']}", headers=user_headers)
        assert [h["comic_id"] for h in client.get("/api/user/history", headers=user_headers).json()] == [b["id"]]

        resp = client.delete("/api/user/history", headers=user_headers)
        assert resp.json() == {"success": True, "removed": 1}

    def test_limit(self, client, user_headers, create_comic):
        for i in range(3):
            comic = create_comic(f"H{i}")
            client.post("/api/user/history", json={"comic_id": comic["id"]}, headers=user_headers)

        assert len(client.get("/api/user/history?limit=2", headers=user_headers).json()) == 2
        assert len(client.get("/api/user/history?limit=bad", headers=user_headers).json()) == 3


class TestFollows:

    def test_follow_check_unfollow(self, client, user_headers, create_comic):
        comic = create_comic("Followed")
        url = f"/api/user/follows/{comic['id']}"

        assert client.post(url, headers=user_headers).json() == {"success": True, "is_following": True}
        assert client.post(url, headers=user_headers).status_code == 200
        assert client.get(f"{url}/check", headers=user_headers).json() == {"is_following": True}

        follows = client.get("/api/user/follows", headers=user_headers).json()
        assert len(follows) == 1
        assert follows[0]["slug"] == "followed"

        assert client.delete(url, headers=user_headers).json() == {"success": True, "is_following": False}
        assert client.get(f"{url}/check", headers=user_headers).json() == {"is_following": False}

    def test_follow_unknown_comic(self, client, user_headers):
        assert client.post("/api/user/follows/999", headers=user_headers).status_code == 404


class TestSync:

    def test_merges_local_data(self, client, user_headers, create_comic):
        a = create_comic("Local A")
        b = create_comic("Local B")

        resp = client.post(
            "/api/user/sync",
            json={
                "history": [{"comicId": a["id"], "chapterNumber": 4}, {"comicId": 999, "chapterNumber": 1}],
                "follows": [{"id": b["id"]}, {"comicId": 998}],
            },
            headers=user_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert [(h["comic_id"], h["chapter_number"]) for h in body["history"]] == [(a["id"], 4)]
        assert [f["comic_id"] for f in body["follows"]] == [b["id"]]

    def test_empty_sync(self, client, user_headers):
        resp = client.post("/api/user/sync", json={}, headers=user_headers)
        assert resp.json() == {"success": True, "history": [], "follows": []}


class TestOwnComics:

    def test_only_own_comics_listed(self, client, user_headers, create_comic):
        create_comic("Admin Made")
        body = client.get("/api/user/comics", headers=user_headers).json()
        assert body == {"data": [], "total": 0}
