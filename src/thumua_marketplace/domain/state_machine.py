"""Exchange Proposal State Machine Guard.

Uses python-statemachine to enforce legal status transitions at the domain
level. Every proposal starts ``pending``; the three outcomes are final, so a
proposal changes status at most once.

The guard is instantiated per proposal and validated before the conditional
UPDATE in ExchangeRepository.transition_if_pending() is issued.

Transition table:
    pending -> accepted   (accept)   responder only
    pending -> rejected   (reject)   responder only
    pending -> cancelled  (cancel)   proposer only
"""

from __future__ import annotations

from statemachine import State, StateMachine

from thumua_marketplace.domain.enums import ExchangeStatus

# Event fired for each target status.
EVENT_FOR_STATUS: dict[ExchangeStatus, str] = {
    ExchangeStatus.ACCEPTED: "accept",
    ExchangeStatus.REJECTED: "reject",
    ExchangeStatus.CANCELLED: "cancel",
}


class ExchangeStateMachine(StateMachine):
    """State machine that guards the exchange proposal lifecycle.

    Usage:
        sm = ExchangeStateMachine(current_status="pending")
        sm.accept()   # transitions to accepted
        sm.status     # "accepted"
    """

    # --- States ---
    pending = State("Pending", value=ExchangeStatus.PENDING.value, initial=True)
    accepted = State("Accepted", value=ExchangeStatus.ACCEPTED.value, final=True)
    rejected = State("Rejected", value=ExchangeStatus.REJECTED.value, final=True)
    cancelled = State("Cancelled", value=ExchangeStatus.CANCELLED.value, final=True)

    # --- Events / Transitions ---
    accept = pending.to(accepted)
    reject = pending.to(rejected)
    cancel = pending.to(cancelled)

    def __init__(self, current_status: str = ExchangeStatus.PENDING.value) -> None:
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=str(current_status))

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches ExchangeStatus)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return the event names that can fire from the current state."""
        return sorted(event.id for event in self.allowed_events)


def validate_transition(current_status: str, target_status: ExchangeStatus) -> str:
    """Check that ``current_status`` may move to ``target_status``.

    Returns:
        The new status string.

    Raises:
        TransitionNotAllowed: If the proposal is not pending.
        ValueError: If the status or target is unknown.
    """
    event_name = EVENT_FOR_STATUS.get(target_status)
    if event_name is None:
        raise ValueError(f"'{target_status}' is not a reachable status")

    sm = ExchangeStateMachine(current_status=current_status)
    getattr(sm, event_name)()
    return sm.status
