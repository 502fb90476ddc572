"""
Redirect continuation across an auth detour.

Before sending an unauthenticated invitee to sign in, the review page saves
where to come back to. After authentication the entry is consumed exactly
once and navigation resumes after a short delay. ``store`` is any mutable
string mapping: browser storage proxied through a session, a server-side
session dict, or a plain dict in tests.

Where the auth URL itself can carry the intent, prefer
``links.auth_url(..., next_url=...)`` and ``links.parse_auth_intent``.
"""

import logging
from typing import Any, Callable, MutableMapping, Optional

from pydantic import BaseModel

from ..acceptance.deadline import Deadline

logger = logging.getLogger(__name__)

REDIRECT_KEY = "review_redirect_after_auth"
TOKEN_KEY = "review_invitation_token"


class PendingRedirect(BaseModel):
    redirect_url: str
    token: str


class RedirectContinuation:
    """
    Single-use continuation stored under two well-known keys.

    Example:
        ```python
        continuation = gate.continuation(session)
        continuation.save(links.review_url(token), token)
        # ... user signs in ...
        pending = continuation.resume(navigate)
        ```
    """

    def __init__(self, store: MutableMapping[str, str], delay: float = 0.1) -> None:
        """
        Args:
            store: Backing key/value store
            delay: Seconds between consuming the entry and navigating
        """
        self.store = store
        self.delay = delay
        self._pending: Optional[Deadline] = None

    def save(self, redirect_url: str, token: str) -> None:
        """Record where to resume. Overwrites any previous entry."""
        self.store[REDIRECT_KEY] = redirect_url
        self.store[TOKEN_KEY] = token
        logger.debug("Saved redirect continuation for invitation %s", token)

    def peek(self) -> Optional[PendingRedirect]:
        """Read the entry without consuming it."""
        redirect_url = self.store.get(REDIRECT_KEY)
        token = self.store.get(TOKEN_KEY)
        if not redirect_url or not token:
            return None
        return PendingRedirect(redirect_url=redirect_url, token=token)

    def consume(self) -> Optional[PendingRedirect]:
        """
        Remove and return the entry.

        Both keys are removed whether or not the entry was complete, so a
        half-written entry cannot be resumed later.
        """
        redirect_url = self.store.pop(REDIRECT_KEY, None)
        token = self.store.pop(TOKEN_KEY, None)
        if not redirect_url or not token:
            return None
        return PendingRedirect(redirect_url=redirect_url, token=token)

    def resume(self, navigate: Callable[[str], Any]) -> Optional[PendingRedirect]:
        """
        Consume the entry and navigate to it after ``delay`` seconds.

        Must be called from a running event loop.

        Returns:
            The consumed entry, or None when there was nothing to resume
        """
        pending = self.consume()
        if pending is None:
            return None

        self.cancel()
        logger.info("Resuming invitation flow at %s", pending.redirect_url)
        self._pending = Deadline(self.delay, on_expire=lambda: navigate(pending.redirect_url))
        self._pending.arm()
        return pending

    @property
    def is_scheduled(self) -> bool:
        return self._pending is not None and self._pending.armed

    def cancel(self) -> bool:
        """Drop a scheduled navigation. The consumed entry is not restored."""
        if self._pending is None:
            return False
        cancelled = self._pending.cancel()
        self._pending = None
        return cancelled
