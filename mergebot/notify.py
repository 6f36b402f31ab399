"""PR comment notifications.

The bot talks to users only through comments on the pull request.  Posting
is best-effort: a failed comment is logged and otherwise ignored, so a
notification can never block or change queue progression.

Usage:
    from mergebot.notify import NotificationSink, Messages
    await sink.comment(pr_url, Messages.CLOSED)
"""

import logging

from mergebot.github import GitHubClient, NotificationError, pr_number

logger = logging.getLogger(__name__)


class Messages:
    """Comment bodies posted by the bot."""

    CLOSED = "I can't merge this. It's closed."
    NOT_MERGEABLE = "I can't merge this. GitHub marked it not mergeable."
    MERGE_FAILED = "I wasn't able to merge this. Sorry."
    UPDATE_FAILED = "I wasn't able to update this PR with its base branch."
    WAITING_FOR_CHECKS = "I'll merge this after its status checks succeed."
    UNEXPECTEDLY_BLOCKED = "I can't merge this. GitHub marked its state 'blocked'."
    CHECKS_FAILED = "I can't merge this. Its status checks have failed."
    CHECKS_UNEXPECTED = "I can't merge this. Its status checks are in an unexpected state."
    UNEXPECTED_STATE = "I can't merge this. GitHub marked its state with an unexpected value."
    NO_REQUEST = "There was no merge request for this PR."
    CANCELED = "OK. Merge request canceled."

    @staticmethod
    def queued_after(pr_urls: list[str]) -> str:
        """Queue position message listing the PRs ahead, e.g. ``#12 #15``."""
        return "I'll merge this after {}.".format(" ".join(_pr_ref(url) for url in pr_urls))


def _pr_ref(pr_url: str) -> str:
    try:
        return f"#{pr_number(pr_url)}"
    except ValueError:
        return pr_url


class NotificationSink:
    def __init__(self, client: GitHubClient) -> None:
        self._client = client

    async def comment(self, pr_url: str, body: str) -> bool:
        """Post *body* on the PR's discussion.  Returns False on failure."""
        logger.info("Commenting | pr=%s | body=%s", pr_url, body)
        try:
            await self._client.post_comment(pr_url, body)
        except NotificationError as e:
            logger.warning("Comment failed | pr=%s | error=%s", pr_url, e)
            return False
        return True
