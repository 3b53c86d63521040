"""Order state machine.

    PENDING  --PAYMENT_CONFIRMED--> ESCROWED
    ESCROWED --BUYER_CONFIRMED----> COMPLETED
    ESCROWED --REFUND-------------> REFUNDED   (external refund process)
    COMPLETED --REFUND------------> REFUNDED   (external refund process)

A failed payment is not an event: the order simply stays PENDING.
"""

from src.cm_common.enums import OrderEvent, OrderStatus

ORDER_TRANSITIONS: dict[tuple[OrderStatus, OrderEvent], OrderStatus] = {
    (OrderStatus.PENDING, OrderEvent.PAYMENT_CONFIRMED): OrderStatus.ESCROWED,
    (OrderStatus.ESCROWED, OrderEvent.BUYER_CONFIRMED): OrderStatus.COMPLETED,
    (OrderStatus.ESCROWED, OrderEvent.REFUND): OrderStatus.REFUNDED,
    (OrderStatus.COMPLETED, OrderEvent.REFUND): OrderStatus.REFUNDED,
}


def next_order_status(current: OrderStatus, event: OrderEvent) -> OrderStatus | None:
    """Target status for (current, event), or None if the pair is not a legal transition."""
    return ORDER_TRANSITIONS.get((OrderStatus(current), event))


def is_payable_order_status(status: OrderStatus) -> bool:
    """A payout tied to an order may only be settled while the order is not refunded."""
    return OrderStatus(status) != OrderStatus.REFUNDED
