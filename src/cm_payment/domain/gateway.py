"""Payment gateway Protocols — the engine's only view of the external provider."""

from typing import Protocol

from src.cm_payment.domain.models import (
    NotificationCredentials,
    SettlementResult,
    VerifiedPaymentEvent,
)


class PaymentGatewayProtocol(Protocol):
    async def initiate(self, order_id: str, amount: int, return_target: str) -> str:
        """Start a checkout for ``amount`` paise and return the redirect URL.

        Raises PaymentInitiationError (GatewayError) on provider failure or timeout.
        """
        ...

    def authenticate_notification(
        self, raw_body: bytes, credentials: NotificationCredentials
    ) -> VerifiedPaymentEvent:
        """Verify and parse a webhook body.

        Raises NotificationAuthenticationError if it cannot be authenticated and
        MalformedNotificationError if an authenticated body lacks the order reference.
        """
        ...


class PayoutRailProtocol(Protocol):
    async def settle(self, payout_id: str, user_id: str, amount: int) -> SettlementResult:
        """Disburse ``amount`` paise. ``payout_id`` doubles as the idempotency key."""
        ...

    async def get_settlement_status(self, payout_id: str) -> SettlementResult | None:
        """Outcome of an earlier settle call, or None if the provider has no record."""
        ...
