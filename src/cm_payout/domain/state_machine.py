"""Payout state machine.

    PAYABLE | PENDING --START---> PROCESSING
    PROCESSING --------SUCCEED--> COMPLETED   (terminal)
    PROCESSING --------FAIL-----> FAILED
    FAILED ------------RETRY----> PENDING
    PAYABLE | PENDING | PROCESSING | FAILED --CANCEL--> CANCELLED   (terminal)
"""

from src.cm_common.enums import PayoutEvent, PayoutStatus

PAYOUT_TRANSITIONS: dict[tuple[PayoutStatus, PayoutEvent], PayoutStatus] = {
    (PayoutStatus.PAYABLE, PayoutEvent.START): PayoutStatus.PROCESSING,
    (PayoutStatus.PENDING, PayoutEvent.START): PayoutStatus.PROCESSING,
    (PayoutStatus.PROCESSING, PayoutEvent.SUCCEED): PayoutStatus.COMPLETED,
    (PayoutStatus.PROCESSING, PayoutEvent.FAIL): PayoutStatus.FAILED,
    (PayoutStatus.FAILED, PayoutEvent.RETRY): PayoutStatus.PENDING,
    (PayoutStatus.PAYABLE, PayoutEvent.CANCEL): PayoutStatus.CANCELLED,
    (PayoutStatus.PENDING, PayoutEvent.CANCEL): PayoutStatus.CANCELLED,
    (PayoutStatus.PROCESSING, PayoutEvent.CANCEL): PayoutStatus.CANCELLED,
    (PayoutStatus.FAILED, PayoutEvent.CANCEL): PayoutStatus.CANCELLED,
}

# Statuses whose amount is still owed to the user (not yet paid, not abandoned)
OPEN_STATUSES = frozenset(
    {PayoutStatus.PAYABLE, PayoutStatus.PENDING, PayoutStatus.PROCESSING, PayoutStatus.FAILED}
)


def next_payout_status(current: PayoutStatus, event: PayoutEvent) -> PayoutStatus | None:
    """Target status for (current, event), or None if the pair is not a legal transition."""
    return PAYOUT_TRANSITIONS.get((PayoutStatus(current), event))
