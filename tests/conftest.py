"""Shared fixtures: a stand-in for requests.Session that serves canned timemap bodies."""

import json
from urllib.parse import parse_qs, urlsplit

import pytest
import requests


class FakeResponse:
    def __init__(self, text="", status_code=200, url=""):
        self.text = text
        self.status_code = status_code
        self.url = url

    def raise_for_status(self):
        if 400 <= self.status_code < 600:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error for url: {self.url}", response=self)


class FakeSession:
    """Serves responses keyed by the `url` query parameter of each request."""

    def __init__(self, bodies=None, error=None):
        self.bodies = bodies or {}
        self.error = error
        self.headers = {}
        self.requests = []
        self.closed = False

    def get(self, url, timeout=None):
        self.requests.append(url)
        if self.error is not None:
            raise self.error
        target = parse_qs(urlsplit(url).query)["url"][0]
        body = self.bodies.get(target, "[]")
        if isinstance(body, FakeResponse):
            body.url = url
            return body
        if not isinstance(body, str):
            body = json.dumps(body)
        return FakeResponse(body, url=url)

    def close(self):
        self.closed = True


def timemap_rows(*urls):
    """A timemap JSON document whose records archive `urls`."""
    header = ["urlkey", "timestamp", "original", "mimetype", "statuscode", "digest", "length"]
    rows = [
        [f"key{i}", f"2023010100000{i}", url, "text/html", "200", f"DIGEST{i}", "512"]
        for i, url in enumerate(urls)
    ]
    return [header] + rows


@pytest.fixture
def fake_session():
    return FakeSession()
