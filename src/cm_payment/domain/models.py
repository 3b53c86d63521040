"""Payment boundary value objects — pure dataclasses."""

from dataclasses import dataclass

PAYMENT_SUCCESS_STATE = "COMPLETED"
PAYMENT_SUCCESS_CODE = "PAYMENT_SUCCESS"


@dataclass(frozen=True)
class NotificationCredentials:
    """Authentication material delivered alongside a webhook body."""

    authorization: str | None = None  # Authorization header: sha256(username:password)
    signature: str | None = None  # X-VERIFY header: HMAC-SHA256 of the raw body


@dataclass(frozen=True)
class VerifiedPaymentEvent:
    """A payment notification whose origin has been authenticated."""

    order_id: str
    transaction_id: str | None
    state: str | None
    response_code: str | None

    @property
    def succeeded(self) -> bool:
        return self.state == PAYMENT_SUCCESS_STATE and self.response_code == PAYMENT_SUCCESS_CODE


@dataclass(frozen=True)
class SettlementResult:
    succeeded: bool
    reference: str | None = None
    failure_reason: str | None = None
