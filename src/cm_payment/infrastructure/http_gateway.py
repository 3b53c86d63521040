"""HTTP adapter for the PhonePe-style checkout API.

Only two calls are made: an OAuth client-credentials token fetch and the
checkout ``pay`` call that returns the redirect URL for the buyer.
"""

import logging
import time

import httpx

from config.settings import settings
from src.cm_common.errors import PaymentInitiationError
from src.cm_payment.domain.models import NotificationCredentials, VerifiedPaymentEvent
from src.cm_payment.infrastructure.notification_auth import NotificationVerifier

logger = logging.getLogger(__name__)

_TOKEN_PATH = "/v1/oauth/token"
_PAY_PATH = "/checkout/v2/pay"
# Refresh this many seconds before the provider's stated expiry
_TOKEN_EXPIRY_MARGIN = 60


class HttpPaymentGateway:
    def __init__(
        self,
        base_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        verifier: NotificationVerifier | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.PAYMENT_GATEWAY_BASE_URL).rstrip("/")
        self._client_id = client_id if client_id is not None else settings.PAYMENT_GATEWAY_CLIENT_ID
        self._client_secret = (
            client_secret if client_secret is not None else settings.PAYMENT_GATEWAY_CLIENT_SECRET
        )
        self._verifier = verifier or NotificationVerifier(
            username=settings.PAYMENT_WEBHOOK_USERNAME,
            password=settings.PAYMENT_WEBHOOK_PASSWORD,
            secret=settings.PAYMENT_WEBHOOK_SECRET,
        )
        self._timeout = httpx.Timeout(timeout_seconds or settings.GATEWAY_TIMEOUT_SECONDS)
        self._transport = transport
        self._token: str | None = None
        self._token_expires_at = 0.0

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        )

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        if self._token is not None and time.time() < self._token_expires_at:
            return self._token
        resp = await client.post(
            _TOKEN_PATH,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "client_version": "1",
                "grant_type": "client_credentials",
            },
        )
        resp.raise_for_status()
        body = resp.json()
        token = body.get("access_token")
        if not token:
            raise PaymentInitiationError("token response missing access_token")
        self._token = token
        self._token_expires_at = float(body.get("expires_at", time.time() + 600)) - _TOKEN_EXPIRY_MARGIN
        return token

    async def initiate(self, order_id: str, amount: int, return_target: str) -> str:
        payload = {
            "merchantOrderId": order_id,
            "amount": amount,
            "paymentFlow": {
                "type": "PG_CHECKOUT",
                "merchantUrls": {"redirectUrl": return_target},
            },
        }
        try:
            async with self._client() as client:
                token = await self._access_token(client)
                resp = await client.post(
                    _PAY_PATH,
                    json=payload,
                    headers={"Authorization": f"O-Bearer {token}"},
                )
                resp.raise_for_status()
                body = resp.json()
        except httpx.TimeoutException as e:
            logger.error("Payment initiation timed out: order=%s", order_id)
            raise PaymentInitiationError("request timed out") from e
        except httpx.HTTPError as e:
            logger.error("Payment initiation failed: order=%s error=%s", order_id, e)
            raise PaymentInitiationError(str(e) or e.__class__.__name__) from e
        except ValueError as e:
            raise PaymentInitiationError("unparseable response body") from e

        redirect_url = body.get("redirectUrl")
        if not redirect_url:
            logger.error("Payment initiation returned no redirect: order=%s", order_id)
            raise PaymentInitiationError("response missing redirectUrl")
        logger.info("Payment initiated: order=%s amount=%d", order_id, amount)
        return redirect_url

    def authenticate_notification(
        self, raw_body: bytes, credentials: NotificationCredentials
    ) -> VerifiedPaymentEvent:
        return self._verifier.authenticate(raw_body, credentials)


_gateway: HttpPaymentGateway | None = None


def get_payment_gateway() -> HttpPaymentGateway:
    global _gateway  # noqa: PLW0603
    if _gateway is None:
        _gateway = HttpPaymentGateway()
    return _gateway
