"""Parse ``!merge`` / ``!cancel`` commands out of PR comments."""

import enum
import logging
import re
from dataclasses import dataclass

from mergebot.events import IssueCommentEvent
from mergebot.queue import normalize_repo_id

logger = logging.getLogger(__name__)

COMMAND_RE = re.compile(r"^\s*!(merge|cancel)\b")


class Action(enum.Enum):
    MERGE = "merge"
    CANCEL = "cancel"


@dataclass(frozen=True)
class MergeRequest:
    action: Action
    repo_id: str
    pr_url: str
    explicit: bool = True


def parse_command(event: IssueCommentEvent) -> MergeRequest | None:
    """Return the command carried by *event*, or None if there is none.

    Edited and deleted comments, comments on plain issues, and comments that
    do not start with a command are ignored.
    """
    if event.action != "created":
        return None
    if event.issue.pull_request is None:
        return None
    match = COMMAND_RE.match(event.comment.body)
    if match is None:
        return None

    request = MergeRequest(
        action=Action(match.group(1)),
        repo_id=normalize_repo_id(event.repository.full_name),
        pr_url=event.issue.pull_request.url,
    )
    logger.info(
        "Command received | action=%s | repo=%s | pr=%s",
        request.action.value, request.repo_id, request.pr_url,
    )
    return request
