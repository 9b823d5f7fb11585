import base64
import json

import pytest

from botplugins.lolicon import API, ImageQueue, pixiv_re


def _api_body(url):
    return json.dumps({"error": "", "data": [{"urls": {"original": url}}]}).encode()


def test_pixiv_re():
    assert pixiv_re("https://i.pixiv.cat/a.jpg") == "https://i.pixiv.re/a.jpg"


def test_fill_and_take_from_api():
    seen = []

    def fetch(url):
        seen.append(url)
        return _api_body("https://i.pixiv.cat/img/1.jpg")

    q = ImageQueue(10, fetch)
    assert q.fill(2) == []
    assert seen == [API, API]
    assert q.take(0.1) == pixiv_re("https://i.pixiv.cat/img/1.jpg")
    assert q.take(0.1).endswith("/img/1.jpg")


def test_fill_respects_capacity():
    q = ImageQueue(1, lambda url: _api_body("https://i.pixiv.re/x.png"))
    q.fill(2)
    assert q.take(0.1) == "https://i.pixiv.re/x.png"
    with pytest.raises(TimeoutError):
        q.take(0.01)


def test_api_error_reported():
    q = ImageQueue(5, lambda url: json.dumps({"error": "bad"}).encode())
    errors = q.fill(1)
    assert len(errors) == 1
    assert str(errors[0]) == "bad"
    with pytest.raises(TimeoutError):
        q.take(0.01)


def test_custom_api_returns_base64():
    calls = []

    def fetch(url):
        calls.append(url)
        return b"abc"

    q = ImageQueue(5, fetch)
    q.set_custom_api("  http://example.com/img  ")
    q.fill(1)
    assert calls == ["http://example.com/img"]
    assert q.take(0.1) == "base64://" + base64.b64encode(b"abc").decode()


def test_custom_api_rejects_non_http():
    q = ImageQueue(5, lambda url: b"")
    with pytest.raises(ValueError):
        q.set_custom_api("ftp://example.com")
    assert q.custom_api == ""