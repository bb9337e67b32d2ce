"""State repositories package."""

from keygate_api.repositories.state_store import StateDocument, StateStore

__all__ = [
    "StateDocument",
    "StateStore",
]
