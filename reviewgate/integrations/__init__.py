"""
ReviewGate framework integrations.
"""

# FastAPI adapter is imported conditionally to avoid requiring fastapi
# as a hard dependency

__all__ = []

try:
    from .fastapi import ReviewGateFastAPI, get_current_identity, get_gate

    __all__.extend(["ReviewGateFastAPI", "get_current_identity", "get_gate"])
except ImportError:
    pass
