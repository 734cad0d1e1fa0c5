"""
draft_errors.py
===============

Typed failures raised by the draft engine.  Every validation failure of a
draft operation is one of these; the FastAPI layer turns them into JSON
error responses using ``status_code`` and ``kind``.  None of them leave the
draft in a partially-updated state.
"""

from __future__ import annotations


class DraftError(Exception):
    """Base class for all draft engine failures."""

    kind: str = "DraftError"
    status_code: int = 400

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind


class DraftNotFound(DraftError):
    kind = "DraftNotFound"
    status_code = 404


class InvalidState(DraftError):
    """Operation not allowed in the draft's current status."""

    kind = "InvalidState"
    status_code = 409


class IncompleteDraftOrder(DraftError):
    kind = "IncompleteDraftOrder"
    status_code = 400


class InvalidPickNumber(DraftError):
    kind = "InvalidPickNumber"
    status_code = 400


class NotOnClock(DraftError):
    kind = "NotOnClock"
    status_code = 409


class PickAlreadyMade(DraftError):
    kind = "PickAlreadyMade"
    status_code = 409


class PlayerUnavailable(DraftError):
    kind = "PlayerUnavailable"
    status_code = 409


class PlayerNotFound(DraftError):
    kind = "PlayerNotFound"
    status_code = 404


class ParticipantNotFound(DraftError):
    kind = "ParticipantNotFound"
    status_code = 404


class NoAvailablePlayers(DraftError):
    kind = "NoAvailablePlayers"
    status_code = 409


class NotAuthorized(DraftError):
    kind = "NotAuthorized"
    status_code = 403


class StalePick(Exception):
    """Raised by the store when the compare-and-set on ``current_pick`` misses.

    Internal to the engine: :class:`draft_manager.DraftManager` catches it,
    reloads and re-validates, so callers only ever see a :class:`DraftError`.
    """

    def __init__(self, draft_id: str, expected_pick: int) -> None:
        super().__init__(f"draft {draft_id} moved past pick {expected_pick}")
        self.draft_id = draft_id
        self.expected_pick = expected_pick
