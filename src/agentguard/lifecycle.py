"""Explicit state machine for one correlation-scoped action lifecycle.

    (start) --action.requested--> REQUESTED --policy.evaluated--> EVALUATED
    EVALUATED --action.executed--> EXECUTED
    EVALUATED --action.blocked--> BLOCKED
    EVALUATED --approval.requested--> AWAITING_APPROVAL
    AWAITING_APPROVAL --approval.decided--> DECIDED
    DECIDED --action.executed | action.blocked--> EXECUTED | BLOCKED

REQUESTED also accepts action.blocked, which records a policy that failed to
evaluate. EXECUTED and BLOCKED are terminal.
"""

from __future__ import annotations

from typing import Iterable

from .errors import InvalidTransition
from .types import ActionType, LifecycleState

TRANSITIONS: dict[tuple[LifecycleState | None, ActionType], LifecycleState] = {
    (None, ActionType.ACTION_REQUESTED): LifecycleState.REQUESTED,
    (LifecycleState.REQUESTED, ActionType.POLICY_EVALUATED): LifecycleState.EVALUATED,
    (LifecycleState.REQUESTED, ActionType.ACTION_BLOCKED): LifecycleState.BLOCKED,
    (LifecycleState.EVALUATED, ActionType.ACTION_EXECUTED): LifecycleState.EXECUTED,
    (LifecycleState.EVALUATED, ActionType.ACTION_BLOCKED): LifecycleState.BLOCKED,
    (LifecycleState.EVALUATED, ActionType.APPROVAL_REQUESTED): LifecycleState.AWAITING_APPROVAL,
    (LifecycleState.AWAITING_APPROVAL, ActionType.APPROVAL_DECIDED): LifecycleState.DECIDED,
    (LifecycleState.DECIDED, ActionType.ACTION_EXECUTED): LifecycleState.EXECUTED,
    (LifecycleState.DECIDED, ActionType.ACTION_BLOCKED): LifecycleState.BLOCKED,
}

TERMINAL_STATES: frozenset[LifecycleState] = frozenset(
    {LifecycleState.EXECUTED, LifecycleState.BLOCKED}
)


def advance(state: LifecycleState | None, action_type: ActionType | str) -> LifecycleState:
    """Return the state after ``action_type``; raise InvalidTransition if not in the table."""
    try:
        tag = ActionType(action_type)
    except ValueError as exc:
        raise InvalidTransition(f"unknown action_type: {action_type!r}") from exc
    nxt = TRANSITIONS.get((state, tag))
    if nxt is None:
        current = "start" if state is None else state.value
        raise InvalidTransition(f"{tag.value} is not allowed from {current}")
    return nxt


def replay(action_types: Iterable[ActionType | str]) -> LifecycleState | None:
    """Fold a timeline's action types (oldest first) into its current state."""
    state: LifecycleState | None = None
    for action_type in action_types:
        state = advance(state, action_type)
    return state


class Lifecycle:
    """Tracks one lifecycle while an orchestrator or workflow appends to it."""

    def __init__(self, state: LifecycleState | None = None) -> None:
        self.state = state

    def step(self, action_type: ActionType) -> LifecycleState:
        self.state = advance(self.state, action_type)
        return self.state

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES
