"""FastAPI application receiving GitHub webhooks.

Provides:
    GET  /health        — liveness probe
    GET  /queues        — non-empty merge queues (JSON, for operators)
    POST <webhook path> — GitHub webhook receiver (default ``/``)

The webhook route validates the payload, answers immediately and runs the
merge-queue work as a background task after the response is sent, so GitHub
never waits on (or times out because of) our own GitHub calls.

Handled events (``X-GitHub-Event`` header):
    issue_comment — ``!merge`` / ``!cancel`` commands on pull requests
    status        — commit status changes; re-evaluates the queue head
Other event kinds are acknowledged and ignored.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable

import httpx
from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Request

from mergebot.commands import parse_command
from mergebot.config import Settings, load_settings
from mergebot.events import IssueCommentEvent, StatusEvent, WebhookValidationError, parse_event
from mergebot.github import GitHubClient
from mergebot.orchestrator import MergeOrchestrator
from mergebot.queue import RepoRegistry

logger = logging.getLogger(__name__)


async def _dispatch(handler: Callable[..., Awaitable[object]], *args: object) -> None:
    """Run a queue handler, logging anything it did not handle itself."""
    try:
        await handler(*args)
    except Exception:
        logger.exception("Uncaught error in webhook handler | handler=%s", handler.__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Close the GitHub client with the server."""
    yield
    await app.state.github.aclose()
    logger.info("GitHub client closed")


def create_app(
    settings: Settings | None = None,
    registry: RepoRegistry | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI app.

    When *settings* is ``None`` (e.g. when called by uvicorn as a factory),
    configuration is read from the environment and fails with
    ``ConfigError`` if the token is missing.

    *registry* and *transport* exist for tests: one shares queue state with
    the caller, the other routes GitHub calls to a fake.
    """
    if settings is None:
        settings = load_settings()
    if registry is None:
        registry = RepoRegistry()

    github = GitHubClient(settings.token, transport=transport)
    orchestrator = MergeOrchestrator(registry, github)

    app = FastAPI(title="mergebot", lifespan=_lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.github = github
    app.state.orchestrator = orchestrator

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/queues")
    def get_queues():
        return registry.snapshot()

    @app.post(settings.webhook_path)
    async def receive_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        x_github_event: str | None = Header(default=None),
    ):
        kind = x_github_event or ""
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise HTTPException(status_code=400, detail="Body is not valid JSON")

        try:
            event = parse_event(kind, payload)
        except WebhookValidationError as e:
            logger.warning("Rejected webhook | event=%s | errors=%d", kind, len(e.errors))
            raise HTTPException(status_code=422, detail=e.errors)

        if event is None:
            logger.debug("Ignored webhook | event=%s", kind)
            return {"status": "ignored"}

        if isinstance(event, IssueCommentEvent):
            merge_request = parse_command(event)
            if merge_request is None:
                return {"status": "ignored"}
            background_tasks.add_task(_dispatch, orchestrator.handle_request, merge_request)
        elif isinstance(event, StatusEvent):
            logger.debug(
                "Status update | repo=%s | state=%s",
                event.repository.full_name, event.state,
            )
            background_tasks.add_task(
                _dispatch, orchestrator.handle_status, event.repository.full_name,
            )
        return {"status": "accepted"}

    logger.info("Webhook receiver ready | path=%s", settings.webhook_path)
    return app
