"""
Route guard that keeps pure reviewers out of owner-only pages.
"""

from .access import AccessGuard, GuardDecision

__all__ = ["AccessGuard", "GuardDecision"]
