"""Tests for the HuggingFace dataset folder import."""
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

VALID_URL = "https://huggingface.co/datasets/someone/manga-pages/tree/main/comic/ch1"


def _mock_async_client(response=None, error=None):
    client = MagicMock()
    client.get = AsyncMock(return_value=response, side_effect=error)
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=client)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx, client


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.reason_phrase = "Not Found" if status_code == 404 else "OK"
    resp.json.return_value = payload
    return resp


class TestParseFolderUrl:

    def test_valid(self):
        from comicshelf.routes.huggingface_routes import parse_folder_url
        assert parse_folder_url(VALID_URL) == {
            "owner": "someone",
            "repo": "manga-pages",
            "branch": "main",
            "path": "comic/ch1",
        }

    @pytest.mark.parametrize("url", [
        "",
        "https://huggingface.co/someone/repo/tree/main/x",
        "http://huggingface.co/datasets/a/b/tree/main/x",
        "https://evil.example/datasets/a/b/tree/main/x",
        "https://huggingface.co/datasets/a/b/tree/main/../secrets",
        "https://huggingface.co/datasets/a/b/tree/main/~root",
        VALID_URL + "\n",
        "https://huggingface.co/datasets/a/b/tree/main/" + "x" * 500,
    ])
    def test_rejected(self, url):
        from fastapi import HTTPException
        from comicshelf.routes.huggingface_routes import parse_folder_url
        with pytest.raises(HTTPException) as exc:
            parse_folder_url(url)
        assert exc.value.status_code == 400


class TestImageUrlsFromTree:

    def test_filters_and_sorts(self):
        from comicshelf.routes.huggingface_routes import image_urls_from_tree

        files = [
            {"type": "file", "path": "comic/ch1/10.jpg"},
            {"type": "file", "path": "comic/ch1/2.PNG"},
            {"type": "file", "path": "comic/ch1/readme.md"},
            {"type": "directory", "path": "comic/ch1/extra.jpg"},
            {"type": "file", "path": "comic/ch1/1.webp"},
        ]
        assert image_urls_from_tree(files, "o", "r", "main") == [
            "https://huggingface.co/datasets/o/r/resolve/main/comic/ch1/1.webp",
            "https://huggingface.co/datasets/o/r/resolve/main/comic/ch1/2.PNG",
            "https://huggingface.co/datasets/o/r/resolve/main/comic/ch1/10.jpg",
        ]


class TestFetchImagesRoute:

    def test_success(self, client):
        ctx, http = _mock_async_client(_response(payload=[
            {"type": "file", "path": "comic/ch1/2.jpg"},
            {"type": "file", "path": "comic/ch1/1.jpg"},
        ]))
        with patch("comicshelf.routes.huggingface_routes.httpx.AsyncClient", return_value=ctx):
            resp = client.post("/api/huggingface/fetch-images", json={"folder_url": VALID_URL})

        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 2
        assert body["image_urls"][0].endswith("/comic/ch1/1.jpg")
        http.get.assert_awaited_once_with(
            "https://huggingface.co/api/datasets/someone/manga-pages/tree/main/comic/ch1"
        )

    def test_invalid_url_makes_no_request(self, client):
        with patch("comicshelf.routes.huggingface_routes.httpx.AsyncClient") as client_cls:
            resp = client.post("/api/huggingface/fetch-images", json={"folder_url": "https://example.com/x"})
        assert resp.status_code == 400
        client_cls.assert_not_called()

    def test_upstream_error_status_passed_through(self, client):
        ctx, _http = _mock_async_client(_response(status_code=404))
        with patch("comicshelf.routes.huggingface_routes.httpx.AsyncClient", return_value=ctx):
            resp = client.post("/api/huggingface/fetch-images", json={"folder_url": VALID_URL})
        assert resp.status_code == 404
        assert "HuggingFace API error" in resp.json()["error"]

    def test_network_failure_is_502(self, client):
        ctx, _http = _mock_async_client(error=httpx.ConnectTimeout("slow"))
        with patch("comicshelf.routes.huggingface_routes.httpx.AsyncClient", return_value=ctx):
            resp = client.post("/api/huggingface/fetch-images", json={"folder_url": VALID_URL})
        assert resp.status_code == 502

    def test_unexpected_payload_is_502(self, client):
        ctx, _http = _mock_async_client(_response(payload={"error": "weird"}))
        with patch("comicshelf.routes.huggingface_routes.httpx.AsyncClient", return_value=ctx):
            resp = client.post("/api/huggingface/fetch-images", json={"folder_url": VALID_URL})
        assert resp.status_code == 502
