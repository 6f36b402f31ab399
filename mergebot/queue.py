"""Per-repository merge queues.

A ``RepoRegistry`` is created once per process (by the web app factory) and
maps a repository's lowercased ``owner/name`` to its ``RepoEntry``: the FIFO
``MergeQueue`` of PR API URLs plus the ``asyncio.Lock`` that serializes every
queue mutation and orchestrator run for that repository.

Entries are created on first reference and live for the process lifetime.
Nothing is persisted.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterator

logger = logging.getLogger(__name__)


class MergeQueue:
    """Ordered, duplicate-free collection of PR URLs.

    Backed by a dict (insertion ordered, O(1) membership and removal).
    """

    def __init__(self) -> None:
        self._entries: dict[str, None] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __contains__(self, pr_url: object) -> bool:
        return pr_url in self._entries

    def __repr__(self) -> str:
        return f"MergeQueue({list(self._entries)!r})"

    @property
    def head(self) -> str | None:
        """The PR currently being processed, or None when empty."""
        return next(iter(self._entries), None)

    def enqueue(self, pr_url: str) -> bool:
        """Append *pr_url* unless already queued.

        Returns True if the queue was empty before the append.  A duplicate
        leaves the queue untouched and returns False.
        """
        if pr_url in self._entries:
            return False
        was_empty = not self._entries
        self._entries[pr_url] = None
        return was_empty

    def cancel(self, pr_url: str) -> bool:
        """Remove *pr_url* wherever it sits; return whether it was queued."""
        if pr_url not in self._entries:
            return False
        del self._entries[pr_url]
        return True

    def ahead_of(self, pr_url: str) -> list[str]:
        """PR URLs strictly ahead of *pr_url*, in insertion order."""
        ahead = []
        for url in self._entries:
            if url == pr_url:
                break
            ahead.append(url)
        return ahead

    def snapshot(self) -> list[str]:
        return list(self._entries)


@dataclass
class RepoEntry:
    repo_id: str
    queue: MergeQueue = field(default_factory=MergeQueue)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


def normalize_repo_id(full_name: str) -> str:
    return full_name.strip().lower()


class RepoRegistry:
    """Process-wide map of repository id -> ``RepoEntry``."""

    def __init__(self) -> None:
        self._repos: dict[str, RepoEntry] = {}

    def __len__(self) -> int:
        return len(self._repos)

    def resolve(self, full_name: str) -> RepoEntry:
        """Return the entry for *full_name*, creating an empty one if needed."""
        repo_id = normalize_repo_id(full_name)
        entry = self._repos.get(repo_id)
        if entry is None:
            entry = self._repos[repo_id] = RepoEntry(repo_id)
            logger.debug("Registered repository | repo=%s", repo_id)
        return entry

    def get(self, full_name: str) -> RepoEntry | None:
        """Return the entry for *full_name* without creating one."""
        return self._repos.get(normalize_repo_id(full_name))

    def snapshot(self) -> dict[str, list[str]]:
        """Non-empty queues keyed by repository id."""
        return {
            repo_id: entry.queue.snapshot()
            for repo_id, entry in sorted(self._repos.items())
            if len(entry.queue)
        }
