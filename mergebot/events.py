"""Schemas for inbound GitHub webhook events.

GitHub names the event kind in the ``X-GitHub-Event`` header rather than in
the payload, so ``parse_event()`` folds the header value into the payload as
``event`` and validates it against a discriminated union.  Only the fields the
merge queue reads are modelled; everything else in the payload is ignored.

Usage:
    from mergebot.events import parse_event
    event = parse_event("issue_comment", payload)   # None for unhandled kinds
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError


class WebhookValidationError(ValueError):
    """A payload for a handled event kind does not match its schema."""

    def __init__(self, kind: str, errors: list[dict]):
        self.kind = kind
        self.errors = errors
        super().__init__(f"Invalid {kind!r} payload: {len(errors)} validation error(s)")


class Repository(BaseModel):
    full_name: str


class IssuePullRequest(BaseModel):
    url: str


class Issue(BaseModel):
    url: str
    pull_request: IssuePullRequest | None = None


class Comment(BaseModel):
    body: str


class IssueCommentEvent(BaseModel):
    event: Literal["issue_comment"] = "issue_comment"
    action: Literal["created", "edited", "deleted"]
    repository: Repository
    issue: Issue
    comment: Comment


class StatusEvent(BaseModel):
    event: Literal["status"] = "status"
    state: Literal["pending", "success", "failure", "error"]
    repository: Repository


WebhookEvent = Annotated[
    Union[IssueCommentEvent, StatusEvent],
    Field(discriminator="event"),
]

HANDLED_EVENTS = frozenset({"issue_comment", "status"})

_adapter: TypeAdapter = TypeAdapter(WebhookEvent)


def parse_event(kind: str, payload: object) -> IssueCommentEvent | StatusEvent | None:
    """Validate *payload* for the event *kind*.

    Returns ``None`` for event kinds the merge queue does not handle
    (``ping``, ``push``, ...).

    Raises:
        WebhookValidationError: the kind is handled but the payload is malformed.
    """
    if kind not in HANDLED_EVENTS:
        return None
    if not isinstance(payload, dict):
        raise WebhookValidationError(
            kind, [{"type": "dict_type", "loc": (), "msg": "Payload must be a JSON object"}]
        )
    try:
        return _adapter.validate_python({**payload, "event": kind})
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        raise WebhookValidationError(kind, errors) from e
