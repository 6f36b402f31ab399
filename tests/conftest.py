"""Shared test fixtures for mergebot tests.

``FakeGitHub`` is an in-memory stand-in for the GitHub REST API served via
``httpx.MockTransport``; every client under test talks to it instead of
the network.
"""

import json

import httpx
import pytest

from mergebot.github import GitHubClient
from mergebot.notify import NotificationSink
from mergebot.orchestrator import MergeOrchestrator
from mergebot.queue import RepoRegistry

REPO = "Acme/Widgets"
REPO_ID = "acme/widgets"
REPO_URL = "https://api.github.com/repos/acme/widgets"
TOKEN = "ghp_testtoken1234"


def pr_url(number: int) -> str:
    return f"{REPO_URL}/pulls/{number}"


def sha_for(number: int) -> str:
    return f"{number:04d}" + "a" * 36


class FakeGitHub:
    """Records every request and answers from in-memory PR / status tables."""

    def __init__(self):
        self.pulls: dict[str, dict] = {}
        self.statuses: dict[str, str] = {}
        self.failing: set[tuple[str, str]] = set()
        self.requests: list[httpx.Request] = []
        self.merged: list[str] = []
        self.updates: list[dict] = []
        self.comments: list[tuple[int, str]] = []

    # --- setup helpers ---

    def add_pull(
        self,
        number: int,
        state: str = "open",
        mergeable: bool | None = True,
        mergeable_state: str = "clean",
        status: str | None = None,
        base_ref: str = "main",
        head_ref: str | None = None,
        repo_url: str = REPO_URL,
    ) -> str:
        url = f"{repo_url}/pulls/{number}"
        self.pulls[url] = {
            "url": url,
            "number": number,
            "state": state,
            "mergeable": mergeable,
            "mergeable_state": mergeable_state,
            "base": {"ref": base_ref, "sha": "b" * 40},
            "head": {"ref": head_ref or f"feature-{number}", "sha": sha_for(number)},
        }
        if status is not None:
            self.statuses[sha_for(number)] = status
        return url

    def fail(self, method: str, url: str) -> None:
        self.failing.add((method, url))

    # --- inspection helpers ---

    def comments_on(self, number: int) -> list[str]:
        return [body for n, body in self.comments if n == number]

    def calls(self, method: str, suffix: str = "") -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and str(r.url).endswith(suffix)
        ]

    # --- transport ---

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        method = request.method

        if (method, url) in self.failing:
            return httpx.Response(500, json={"message": "Server Error"})

        if method == "GET" and url in self.pulls:
            return httpx.Response(200, json=self.pulls[url])

        if method == "GET" and "/commits/" in url and url.endswith("/status"):
            sha = url.split("/commits/", 1)[1][: -len("/status")]
            if sha in self.statuses:
                return httpx.Response(200, json={"state": self.statuses[sha], "sha": sha})

        if method == "PUT" and url.endswith("/merge"):
            self.merged.append(url[: -len("/merge")])
            return httpx.Response(200, json={"merged": True})

        if method == "POST" and url.endswith("/merges"):
            self.updates.append(json.loads(request.content))
            return httpx.Response(201, json={"sha": "c" * 40})

        if method == "POST" and "/issues/" in url and url.endswith("/comments"):
            number = int(url.split("/issues/", 1)[1].split("/", 1)[0])
            self.comments.append((number, json.loads(request.content)["body"]))
            return httpx.Response(201, json={"id": len(self.comments)})

        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def github_client(fake_github):
    return GitHubClient(TOKEN, transport=fake_github.transport)


@pytest.fixture
def registry():
    return RepoRegistry()


@pytest.fixture
def orchestrator(registry, github_client):
    return MergeOrchestrator(registry, github_client, NotificationSink(github_client))
