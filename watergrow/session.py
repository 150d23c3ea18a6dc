"""
Client session state and its transitions.

SessionState is immutable; every transition is a plain function that takes a
state and returns the next one, so the flow can be tested without a server:

    UNINITIALIZED -> ONBOARDING | JOIN -> ROLE_SELECT -> ACTIVE -> JOIN (leave)
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from .records import PlantRecord, Role


class View(Enum):
    UNINITIALIZED = "uninitialized"
    ONBOARDING = "onboarding"
    JOIN = "join"
    ROLE_SELECT = "role_select"
    ACTIVE = "active"


@dataclass(frozen=True)
class SessionState:
    view: View = View.UNINITIALIZED
    room_id: str = ""
    role: Optional[Role] = None
    snapshot: Optional[PlantRecord] = None
    previous_partner_count: Optional[int] = None
    error: Optional[str] = None

    @property
    def local_count(self) -> Optional[int]:
        if self.role is None or self.snapshot is None:
            return None
        return self.role.count(self.snapshot)

    @property
    def partner_count(self) -> Optional[int]:
        if self.role is None or self.snapshot is None:
            return None
        return self.role.partner.count(self.snapshot)


def start(state: SessionState, onboarding_completed: bool) -> SessionState:
    # decided once; later calls leave the view alone
    if state.view is not View.UNINITIALIZED:
        return state
    return replace(state, view=View.JOIN if onboarding_completed else View.ONBOARDING)


def complete_onboarding(state: SessionState) -> SessionState:
    if state.view is not View.ONBOARDING:
        return state
    return replace(state, view=View.JOIN)


def join_failed(state: SessionState, message: str) -> SessionState:
    return replace(state, error=message)


def joined(state: SessionState, record: PlantRecord) -> SessionState:
    """Room resolved: remember the room and its first snapshot, then pick a role."""
    return replace(
        state,
        view=View.ROLE_SELECT,
        room_id=record.room_id,
        role=None,
        snapshot=record,
        previous_partner_count=None,
        error=None,
    )


def pick_role(state: SessionState, role: Role) -> SessionState:
    if state.view is not View.ROLE_SELECT:
        return state
    # the first snapshot the feed delivers becomes the baseline
    return replace(state, view=View.ACTIVE, role=role, previous_partner_count=None)


def leave(state: SessionState) -> SessionState:
    return replace(
        state,
        view=View.JOIN,
        room_id="",
        role=None,
        snapshot=None,
        previous_partner_count=None,
        error=None,
    )


def apply_snapshot(state: SessionState, record: PlantRecord) -> Tuple[SessionState, bool]:
    """
    Replace the snapshot with ``record`` (last delivered wins) and report
    whether the partner's counter went up since the previous snapshot.

    Records for any other room are ignored.
    """
    if not state.room_id or record.room_id != state.room_id:
        return state, False

    if state.role is None:
        return replace(state, snapshot=record), False

    partner_count = state.role.partner.count(record)
    previous = state.previous_partner_count
    hydrated = previous is not None and partner_count > previous
    return replace(state, snapshot=record, previous_partner_count=partner_count), hydrated


def rollback(state: SessionState, previous: PlantRecord) -> SessionState:
    """
    Undo a failed optimistic write: put back the local counter and timestamp
    from ``previous``. Whatever the feed delivered about the partner in the
    meantime stays, and so does the partner baseline.
    """
    if state.role is None or state.snapshot is None or previous.room_id != state.room_id:
        return state
    restored = state.role.with_count(state.snapshot, state.role.count(previous), previous.last_watered)
    return replace(state, snapshot=restored)
