"""Merge queue orchestrator — drives the head of a repository's queue.

Each run looks at the PR at the head of the queue, fetches its state from
GitHub and picks one action:

    closed                          → comment, drop
    clean + mergeable               → squash-merge, drop (comment on failure)
    clean + not mergeable           → comment, drop
    behind                          → merge base into head, drop (comment on failure)
    blocked + checks pending        → keep, comment only if explicit, stop
    blocked + checks success        → comment, drop
    blocked + checks failure        → comment, drop
    blocked + checks anything else  → comment, drop
    any other mergeable_state       → comment, drop

After a drop the run continues with the new head, non-explicitly, so
draining a backlog of already-resolved PRs posts no "waiting" comments.
A PR with pending checks stays at the head until a ``status`` webhook
triggers the next run.

Key invariants:
- Only the head of a queue is ever acted on.
- Every handler holds the repository lock for the whole run, so two
  webhooks for the same repository never act on the same head at once.
  Different repositories run concurrently.
- A failed fetch (PR or combined status) abandons the run without touching
  the queue; the next command or status webhook retries it.
- A failed merge / update still drops the PR; the user is told in a comment.
"""

import enum
import logging
from dataclasses import dataclass

from mergebot.commands import Action, MergeRequest
from mergebot.github import (
    GitHubClient,
    PullRequest,
    RemoteActionError,
    RemoteFetchError,
)
from mergebot.notify import Messages, NotificationSink
from mergebot.queue import MergeQueue, RepoEntry, RepoRegistry

logger = logging.getLogger(__name__)


class HeadState(enum.Enum):
    """What the orchestrator found at the head of the queue."""

    CLOSED = "closed"
    CLEAN_OK = "clean_ok"
    CLEAN_CONTRADICTION = "clean_contradiction"
    BEHIND = "behind"
    BLOCKED_PENDING = "blocked_pending"
    BLOCKED_UNEXPECTED_SUCCESS = "blocked_unexpected_success"
    BLOCKED_FAILURE = "blocked_failure"
    BLOCKED_UNKNOWN = "blocked_unknown"
    UNKNOWN_STATE = "unknown_state"

    @property
    def keeps_head(self) -> bool:
        return self is HeadState.BLOCKED_PENDING


@dataclass(frozen=True)
class AttemptResult:
    """Outcome for one head-of-queue PR.

    ``success`` is False only when the merge or branch update call failed.
    """

    pr_url: str
    state: HeadState
    success: bool = True

    def __repr__(self) -> str:
        status = "OK" if self.success else "FAIL"
        return f"AttemptResult({self.pr_url}, {self.state.name}, {status})"


class MergeOrchestrator:
    def __init__(
        self,
        registry: RepoRegistry,
        client: GitHubClient,
        notifier: NotificationSink | None = None,
    ) -> None:
        self.registry = registry
        self.client = client
        self.notifier = notifier or NotificationSink(client)

    # ------------------------------------------------------------------
    # Entry points (one per inbound trigger)
    # ------------------------------------------------------------------

    async def handle_request(self, request: MergeRequest) -> None:
        if request.action is Action.MERGE:
            await self.handle_merge(request.repo_id, request.pr_url)
        else:
            await self.handle_cancel(request.repo_id, request.pr_url)

    async def handle_merge(self, repo_id: str, pr_url: str) -> list[AttemptResult]:
        """Queue *pr_url* and either start on it or tell the user where it sits."""
        entry = self.registry.resolve(repo_id)
        async with entry.lock:
            logger.info("Merge requested | repo=%s | pr=%s", entry.repo_id, pr_url)
            if pr_url not in entry.queue:
                was_empty = entry.queue.enqueue(pr_url)
                logger.info(
                    "Queued | repo=%s | pr=%s | position=%d",
                    entry.repo_id, pr_url, len(entry.queue),
                )
                if was_empty:
                    return await self._run(entry, explicit=True)
            return await self._report_position(entry, pr_url)

    async def handle_cancel(self, repo_id: str, pr_url: str) -> bool:
        """Drop *pr_url* from the queue.  Never starts or restarts a run."""
        entry = self.registry.resolve(repo_id)
        async with entry.lock:
            logger.info("Cancel requested | repo=%s | pr=%s", entry.repo_id, pr_url)
            if not entry.queue.cancel(pr_url):
                await self.notifier.comment(pr_url, Messages.NO_REQUEST)
                return False
            logger.info("Removed from queue | repo=%s | pr=%s", entry.repo_id, pr_url)
            await self.notifier.comment(pr_url, Messages.CANCELED)
            return True

    async def handle_status(self, repo_id: str) -> list[AttemptResult]:
        """Re-evaluate the head after a commit status changed.

        Repositories without queued PRs are ignored (and not registered).
        """
        entry = self.registry.get(repo_id)
        if entry is None or not len(entry.queue):
            logger.debug("Status update ignored, nothing queued | repo=%s", repo_id)
            return []
        async with entry.lock:
            if not len(entry.queue):
                return []
            logger.info("Triggering merge attempt | repo=%s", entry.repo_id)
            return await self._run(entry, explicit=False)

    # ------------------------------------------------------------------
    # Queue processing
    # ------------------------------------------------------------------

    async def _report_position(self, entry: RepoEntry, pr_url: str) -> list[AttemptResult]:
        ahead = entry.queue.ahead_of(pr_url)
        if not ahead:
            return await self._run(entry, explicit=True)
        await self.notifier.comment(pr_url, Messages.queued_after(ahead))
        return []

    async def _run(self, entry: RepoEntry, explicit: bool) -> list[AttemptResult]:
        """``attempt()`` with fetch failures logged instead of raised."""
        try:
            return await self.attempt(entry.queue, explicit=explicit)
        except RemoteFetchError as e:
            logger.error(
                "Merge attempt abandoned | repo=%s | head=%s | error=%s",
                entry.repo_id, entry.queue.head, e,
            )
            return []

    async def attempt(self, queue: MergeQueue, explicit: bool = False) -> list[AttemptResult]:
        """Process the queue head, then each new head, until one must wait.

        Only the first PR is handled with the caller's *explicit* flag; PRs
        reached by advancing are handled non-explicitly.

        Raises:
            RemoteFetchError: the PR or its combined status could not be
                fetched.  The queue is left as it was for that PR.
        """
        results: list[AttemptResult] = []
        while queue.head is not None:
            pr_url = queue.head
            result = await self._process_head(pr_url, explicit)
            results.append(result)
            if result.state.keeps_head:
                break
            queue.cancel(pr_url)
            logger.info("Dequeued | pr=%s | state=%s", pr_url, result.state.value)
            explicit = False
        return results

    async def _process_head(self, pr_url: str, explicit: bool) -> AttemptResult:
        pull_request = await self.client.fetch_pull_request(pr_url)

        if pull_request.state != "open":
            logger.info("PR is closed; can't merge | pr=%s", pr_url)
            await self.notifier.comment(pr_url, Messages.CLOSED)
            return AttemptResult(pr_url, HeadState.CLOSED)

        mergeable_state = pull_request.mergeable_state
        if mergeable_state == "clean":
            return await self._merge_clean(pr_url, pull_request)
        if mergeable_state == "behind":
            return await self._update_behind(pr_url, pull_request)
        if mergeable_state == "blocked":
            return await self._check_blocked(pr_url, pull_request, explicit)

        logger.error(
            "Unknown mergeable_state | pr=%s | mergeable_state=%s",
            pr_url, mergeable_state,
        )
        await self.notifier.comment(pr_url, Messages.UNEXPECTED_STATE)
        return AttemptResult(pr_url, HeadState.UNKNOWN_STATE)

    async def _merge_clean(self, pr_url: str, pull_request: PullRequest) -> AttemptResult:
        if pull_request.mergeable is not True:
            logger.error(
                "Clean but not mergeable | pr=%s | mergeable=%s",
                pr_url, pull_request.mergeable,
            )
            await self.notifier.comment(pr_url, Messages.NOT_MERGEABLE)
            return AttemptResult(pr_url, HeadState.CLEAN_CONTRADICTION)

        logger.info("Attempting to merge | pr=%s", pr_url)
        try:
            await self.client.merge_pull_request(pr_url)
        except RemoteActionError as e:
            logger.error("Failed to merge | pr=%s | error=%s", pr_url, e)
            await self.notifier.comment(pr_url, Messages.MERGE_FAILED)
            return AttemptResult(pr_url, HeadState.CLEAN_OK, success=False)
        logger.info("Merged | pr=%s", pr_url)
        return AttemptResult(pr_url, HeadState.CLEAN_OK)

    async def _update_behind(self, pr_url: str, pull_request: PullRequest) -> AttemptResult:
        logger.info(
            "Attempting to update out-of-date PR | pr=%s | base=%s | head=%s",
            pr_url, pull_request.base.ref, pull_request.head.ref,
        )
        try:
            await self.client.update_branch(pull_request)
        except RemoteActionError as e:
            logger.error("Failed to update | pr=%s | error=%s", pr_url, e)
            await self.notifier.comment(pr_url, Messages.UPDATE_FAILED)
            return AttemptResult(pr_url, HeadState.BEHIND, success=False)
        logger.info("Updated with base branch | pr=%s", pr_url)
        return AttemptResult(pr_url, HeadState.BEHIND)

    async def _check_blocked(
        self, pr_url: str, pull_request: PullRequest, explicit: bool,
    ) -> AttemptResult:
        logger.info("Checking combined status | pr=%s | sha=%s", pr_url, pull_request.head.sha)
        status = await self.client.fetch_combined_status(pr_url, pull_request.head.sha)

        if status.state == "pending":
            logger.info("Status checks pending | pr=%s | explicit=%s", pr_url, explicit)
            if explicit:
                await self.notifier.comment(pr_url, Messages.WAITING_FOR_CHECKS)
            return AttemptResult(pr_url, HeadState.BLOCKED_PENDING)

        if status.state == "success":
            logger.error("Status checks unexpectedly passed while blocked | pr=%s", pr_url)
            await self.notifier.comment(pr_url, Messages.UNEXPECTEDLY_BLOCKED)
            return AttemptResult(pr_url, HeadState.BLOCKED_UNEXPECTED_SUCCESS)

        if status.state == "failure":
            logger.info("Status checks failed | pr=%s", pr_url)
            await self.notifier.comment(pr_url, Messages.CHECKS_FAILED)
            return AttemptResult(pr_url, HeadState.BLOCKED_FAILURE)

        logger.error("Status checks in unexpected state | pr=%s | state=%s", pr_url, status.state)
        await self.notifier.comment(pr_url, Messages.CHECKS_UNEXPECTED)
        return AttemptResult(pr_url, HeadState.BLOCKED_UNKNOWN)
