"""
Carrying an in-progress invitation across an auth detour.
"""

from .redirect import REDIRECT_KEY, TOKEN_KEY, PendingRedirect, RedirectContinuation

__all__ = [
    "RedirectContinuation",
    "PendingRedirect",
    "REDIRECT_KEY",
    "TOKEN_KEY",
]
