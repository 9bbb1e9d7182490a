"""
M-Pesa (Safaricom Daraja) STK push client.

Flow: fetch an OAuth token with the consumer key/secret, then POST a
CustomerPayBillOnline request. The buyer gets a PIN prompt on their phone and
Daraja later posts the result to MPESA_CALLBACK_URL, where it is matched back
to the order through the CheckoutRequestID returned here.
"""
import base64
import math
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from shared.config import mpesa as config
from shared.errors import GatewayFailure

from .schemas import OAuthTokenResponse, StkPushResponse

logger = structlog.get_logger(__name__)


def normalize_phone_number(phone_number: str) -> str:
    """Daraja wants MSISDNs as 2547XXXXXXXX; accept 07.., 7.. and +254.. too."""
    digits = "".join(ch for ch in str(phone_number) if ch.isdigit())
    if digits.startswith("254"):
        return digits
    if digits.startswith("0"):
        return "254" + digits[1:]
    if len(digits) == 9:
        return "254" + digits
    raise GatewayFailure(f"Invalid M-Pesa phone number: {phone_number}")


class MpesaGateway:
    """Payment gateway adapter. initiate_payment() returns a validated StkPushResponse."""

    def __init__(
        self,
        base_url: str = config.MPESA_BASE_URL,
        consumer_key: str = config.MPESA_CONSUMER_KEY,
        consumer_secret: str = config.MPESA_CONSUMER_SECRET,
        shortcode: str = config.MPESA_SHORTCODE,
        passkey: str = config.MPESA_PASSKEY,
        callback_url: str = config.MPESA_CALLBACK_URL,
        timeout: float = config.MPESA_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.shortcode = shortcode
        self.passkey = passkey
        self.callback_url = callback_url
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    def _password(self, timestamp: str) -> str:
        raw = f"{self.shortcode}{self.passkey}{timestamp}".encode()
        return base64.b64encode(raw).decode()

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        resp = await client.get(
            "/oauth/v1/generate",
            params={"grant_type": "client_credentials"},
            auth=(self.consumer_key, self.consumer_secret),
        )
        resp.raise_for_status()
        body = resp.json()
        try:
            return OAuthTokenResponse.model_validate(body).access_token
        except ValidationError as e:
            logger.warning("mpesa_unexpected_oauth_response", body=body)
            raise GatewayFailure("M-Pesa OAuth response did not include an access token") from e

    async def initiate_payment(
        self,
        amount: Decimal | float,
        products: list[dict[str, Any]],
        phone_number: str,
        account_reference: str,
        transaction_desc: str,
    ) -> StkPushResponse:
        msisdn = normalize_phone_number(phone_number)
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        payload = {
            "BusinessShortCode": self.shortcode,
            "Password": self._password(timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            # M-Pesa only charges whole shillings
            "Amount": math.ceil(Decimal(str(amount))),
            "PartyA": msisdn,
            "PartyB": self.shortcode,
            "PhoneNumber": msisdn,
            "CallBackURL": self.callback_url,
            "AccountReference": account_reference[:12],
            "TransactionDesc": transaction_desc[:13],
        }

        try:
            async with self._client() as client:
                token = await self._access_token(client)
                resp = await client.post(
                    "/mpesa/stkpush/v1/processrequest",
                    json=payload,
                    headers={"Authorization": f"Bearer {token}"},
                )
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "mpesa_http_error",
                status_code=e.response.status_code,
                body=e.response.text[:500],
            )
            raise GatewayFailure(f"M-Pesa returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning("mpesa_transport_error", error=str(e))
            raise GatewayFailure("Could not reach M-Pesa") from e
        except ValueError as e:
            raise GatewayFailure("M-Pesa returned a non-JSON response") from e

        try:
            result = StkPushResponse.model_validate(body)
        except ValidationError as e:
            logger.warning("mpesa_unexpected_response", body=body)
            raise GatewayFailure("Unexpected M-Pesa response") from e

        if result.response_code != "0":
            raise GatewayFailure(result.response_description or "M-Pesa rejected the request")

        logger.info(
            "mpesa_stk_push_accepted",
            checkout_request_id=result.checkout_request_id,
            items=len(products),
        )
        return result


def get_payment_gateway() -> MpesaGateway:
    """FastAPI dependency; tests override it with a fake gateway."""
    return MpesaGateway()
