"""Webhook authentication and parsing.

Two independent checks, each enforced when its secret is configured:
  - Authorization header == sha256("username:password") hex digest
  - X-VERIFY header == HMAC-SHA256(raw body, webhook secret), optionally "sha256=" prefixed
At least one must be configured; an unconfigured verifier rejects everything.
All comparisons use hmac.compare_digest.
"""

import hashlib
import hmac
import json
import logging

from pydantic import BaseModel, ValidationError

from src.cm_common.errors import MalformedNotificationError, NotificationAuthenticationError
from src.cm_payment.domain.models import NotificationCredentials, VerifiedPaymentEvent

logger = logging.getLogger(__name__)


class _NotificationData(BaseModel):
    merchantTransactionId: str | None = None
    transactionId: str | None = None
    state: str | None = None
    responseCode: str | None = None


class _Notification(BaseModel):
    data: _NotificationData | None = None


def expected_authorization(username: str, password: str) -> str:
    return hashlib.sha256(f"{username}:{password}".encode()).hexdigest()


def sign_body(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


class NotificationVerifier:
    def __init__(self, username: str = "", password: str = "", secret: str = "") -> None:
        self._authorization = expected_authorization(username, password) if username and password else None
        self._secret = secret or None

    def verify(self, raw_body: bytes, credentials: NotificationCredentials) -> None:
        if self._authorization is None and self._secret is None:
            logger.error("Webhook rejected: no notification credentials configured")
            raise NotificationAuthenticationError("Webhook verification is not configured")

        if self._authorization is not None:
            supplied = (credentials.authorization or "").strip()
            if not hmac.compare_digest(supplied, self._authorization):
                logger.warning("Webhook rejected: authorization header mismatch")
                raise NotificationAuthenticationError()

        if self._secret is not None:
            supplied = (credentials.signature or "").strip()
            supplied = supplied.removeprefix("sha256=")
            if not hmac.compare_digest(supplied, sign_body(raw_body, self._secret)):
                logger.warning("Webhook rejected: body signature mismatch")
                raise NotificationAuthenticationError()

    def authenticate(
        self, raw_body: bytes, credentials: NotificationCredentials
    ) -> VerifiedPaymentEvent:
        self.verify(raw_body, credentials)
        try:
            notification = _Notification.model_validate(json.loads(raw_body))
        except (ValueError, ValidationError) as e:
            raise MalformedNotificationError(f"unparseable body ({e.__class__.__name__})") from e

        data = notification.data
        if data is None or not data.merchantTransactionId:
            raise MalformedNotificationError("missing merchantTransactionId")
        return VerifiedPaymentEvent(
            order_id=data.merchantTransactionId,
            transaction_id=data.transactionId,
            state=data.state,
            response_code=data.responseCode,
        )
