"""
Canonical workflow types (``booking_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines, plus the lookup that turns
(current state, action) into a Transition.  Every lifecycle in the kernel
(contract slice, per-date row, parent contract, invoice, invitation) is
declared once with these types in ``lifecycles.py``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass

from booking_kernel.exceptions import InvalidTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.  The owning service evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a record lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.from_state}->{t.to_state} "
                    f"references an unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} has an "
                    f"outgoing transition"
                )

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def find_transition(self, current_state: str, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == current_state and t.action == action:
                return t
        return None

    def allowed_actions(self, current_state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == current_state)


def require_transition(
    workflow: Workflow,
    entity_type: str,
    entity_id: object,
    current_state: str,
    action: str,
) -> Transition:
    """Return the transition or raise InvalidTransitionError."""
    state = getattr(current_state, "value", current_state)
    transition = workflow.find_transition(state, action)
    if transition is None:
        raise InvalidTransitionError(entity_type, str(entity_id), state, action)
    return transition
