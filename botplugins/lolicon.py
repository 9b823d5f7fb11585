"""Prefetched queue of random pictures from the lolicon API or a custom URL."""

from __future__ import annotations

import base64
import json
import queue
import threading
from typing import Callable

import requests

API = "https://api.lolicon.app/setu/v2"
CAPACITY = 10


def pixiv_re(url: str) -> str:
    """Point a pixiv.cat proxy URL at pixiv.re."""
    return url.replace("i.pixiv.cat", "i.pixiv.re")


def _http_get(url: str) -> bytes:
    response = requests.get(url, timeout=30)
    response.raise_for_status()
    return response.content


class ImageQueue:
    """Bounded queue of image references filled from the API.

    fetch(url) returns the response body as bytes.
    """

    def __init__(self, capacity: int = CAPACITY, fetch: Callable[[str], bytes] = _http_get):
        self.capacity = capacity
        self._fetch = fetch
        self._queue: queue.Queue[str] = queue.Queue(maxsize=capacity)
        self._lock = threading.Lock()
        self.custom_api = ""

    def set_custom_api(self, url: str) -> None:
        """Use url as the picture source from now on."""
        url = url.strip()
        if not url.startswith("http"):
            raise ValueError("url非法!")
        self.custom_api = url

    def _produce(self) -> str:
        if self.custom_api:
            data = self._fetch(self.custom_api)
            return "base64://" + base64.b64encode(data).decode("ascii")
        doc = json.loads(self._fetch(API))
        error = doc.get("error")
        if error:
            raise RuntimeError(error)
        try:
            url = doc["data"][0]["urls"]["original"]
        except (KeyError, IndexError, TypeError) as exc:
            raise RuntimeError("no picture in response") from exc
        return pixiv_re(url)

    def fill(self, count: int = 2) -> list[Exception]:
        """Add up to count pictures without exceeding capacity; return the failures."""
        errors: list[Exception] = []
        with self._lock:
            room = self.capacity - self._queue.qsize()
            for _ in range(min(room, count)):
                try:
                    self._queue.put_nowait(self._produce())
                except queue.Full:
                    break
                except Exception as exc:  # a failed fetch is reported, others still run
                    errors.append(exc)
        return errors

    def take(self, timeout: float = 60.0) -> str:
        """Next picture reference; TimeoutError if none arrives in time."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError("等待填充，请稍后再试......") from None