"""GitHub REST client used by the merge queue.

Every call takes the PR's API URL as delivered in the webhook
(``https://api.github.com/repos/<owner>/<name>/pulls/<number>``) and derives
the other endpoints from it, so no base URL needs configuring.

Calls:
    fetch_pull_request(pr_url)            GET  {pr_url}
    fetch_combined_status(pr_url, sha)    GET  {repo_url}/commits/{sha}/status
    merge_pull_request(pr_url)            PUT  {pr_url}/merge          (squash)
    update_branch(pull_request)           POST {repo_url}/merges
    post_comment(pr_url, body)            POST {repo_url}/issues/{number}/comments

Fetches raise ``RemoteFetchError``; actions raise ``RemoteActionError``
(``NotificationError`` for comments).  Nothing is retried here.
"""

import logging

import httpx
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ACCEPT = "application/vnd.github.v3+json"
DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class RemoteError(RuntimeError):
    """A GitHub call did not succeed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteFetchError(RemoteError):
    """Fetching a PR or a combined status failed; the attempt is abandoned."""


class RemoteActionError(RemoteError):
    """A merge or branch update failed; the queue still advances."""


class NotificationError(RemoteActionError):
    """Posting a comment failed."""


# ---------------------------------------------------------------------------
# Remote models
# ---------------------------------------------------------------------------

class Branch(BaseModel):
    ref: str
    sha: str


class PullRequest(BaseModel):
    """The fields of a GitHub pull request the orchestrator decides on.

    ``state`` and ``mergeable_state`` are kept as plain strings: GitHub adds
    values over time and the orchestrator reports unknown ones instead of
    failing validation.
    """

    url: str
    state: str
    mergeable: bool | None = None
    mergeable_state: str = "unknown"
    base: Branch
    head: Branch


class CombinedStatus(BaseModel):
    state: str


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------

def split_pr_url(pr_url: str) -> tuple[str, str]:
    """Split a PR API URL into ``(repo_url, number)``.

    >>> split_pr_url("https://api.github.com/repos/o/r/pulls/12")
    ('https://api.github.com/repos/o/r', '12')
    """
    repo_url, sep, number = pr_url.rstrip("/").rpartition("/pulls/")
    if not sep or not number:
        raise ValueError(f"Not a pull request API URL: {pr_url}")
    return repo_url, number


def pr_number(pr_url: str) -> str:
    return split_pr_url(pr_url)[1]


def comments_url(pr_url: str) -> str:
    repo_url, number = split_pr_url(pr_url)
    return f"{repo_url}/issues/{number}/comments"


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class GitHubClient:
    """Thin async wrapper over ``httpx.AsyncClient`` with GitHub auth headers.

    Pass *transport* to route requests somewhere other than the network
    (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        self._client = httpx.AsyncClient(
            headers={
                "Accept": ACCEPT,
                "Authorization": f"token {token}",
            },
            transport=transport,
            timeout=timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        error_cls: type[RemoteError],
        json: dict | None = None,
    ) -> httpx.Response:
        """Send a request and translate failures into *error_cls*."""
        try:
            resp = await self._client.request(method, url, json=json)
        except httpx.HTTPError as e:
            raise error_cls(f"{method} {url} failed: {e}") from e
        if not resp.is_success:
            detail = resp.text[:500] if resp.text else ""
            raise error_cls(
                f"({resp.status_code}) {method} {url}: {detail}",
                status_code=resp.status_code,
            )
        return resp

    async def _fetch(self, url: str, model: type[BaseModel]):
        resp = await self._request("GET", url, RemoteFetchError)
        try:
            return model.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise RemoteFetchError(
                f"Unexpected response from GET {url}: {e}",
                status_code=resp.status_code,
            ) from e

    # --- Fetches ---

    async def fetch_pull_request(self, pr_url: str) -> PullRequest:
        return await self._fetch(pr_url, PullRequest)

    async def fetch_combined_status(self, pr_url: str, sha: str) -> CombinedStatus:
        repo_url, _ = split_pr_url(pr_url)
        return await self._fetch(f"{repo_url}/commits/{sha}/status", CombinedStatus)

    # --- Actions ---

    async def merge_pull_request(self, pr_url: str) -> None:
        await self._request(
            "PUT", f"{pr_url}/merge", RemoteActionError,
            json={"merge_method": "squash"},
        )

    async def update_branch(self, pull_request: PullRequest) -> None:
        """Merge the PR's base branch into its head branch.

        GitHub's merge endpoint merges ``head`` into ``base``, so the PR's
        head ref is the target (``base``) and its base ref the source
        (``head``).

        The call always goes to the base repository.  For a PR opened from
        a fork the head branch lives in the fork, so GitHub answers 404 (or,
        if the base repository has a branch of the same name, updates that
        branch instead).  Such PRs have to be brought up to date by hand.
        """
        repo_url, _ = split_pr_url(pull_request.url)
        await self._request(
            "POST", f"{repo_url}/merges", RemoteActionError,
            json={"base": pull_request.head.ref, "head": pull_request.base.ref},
        )

    async def post_comment(self, pr_url: str, body: str) -> None:
        try:
            url = comments_url(pr_url)
        except ValueError as e:
            raise NotificationError(str(e)) from e
        await self._request("POST", url, NotificationError, json={"body": body})
