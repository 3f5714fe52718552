import hashlib
import hmac
import httpx
from typing import Any, Dict, List, Optional
from app.core.config import settings
from app.core.exceptions import PaymentGatewayError
import logging

logger = logging.getLogger(__name__)


def kobo_to_naira(amount: Any) -> float:
    """Gateway reports charged amounts in kobo"""
    return round(float(amount or 0) / 100, 2)


def metadata_value(metadata: Any, key: str) -> Optional[str]:
    """
    Read a metadata value from a gateway payload.

    Initialization sends metadata as a list of {key, value} pairs; charge
    events echo it back either in that form or as a flat object.
    """
    if isinstance(metadata, dict):
        value = metadata.get(key)
        return str(value) if value is not None else None
    if isinstance(metadata, list):
        for item in metadata:
            if isinstance(item, dict) and item.get("key") == key:
                value = item.get("value")
                return str(value) if value is not None else None
    return None


class TerraSwitchClient:
    """Client for the Terra Switching collections API"""

    INITIALIZE_PATH = "/corporate/initialize"
    VERIFY_PATH = "/transactions/verify/{reference}"

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.secret_key = secret_key if secret_key is not None else settings.TERRASWITCH_SECRET_KEY
        self.base_url = base_url or settings.TERRASWITCH_BASE_URL
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.TERRASWITCH_WEBHOOK_SECRET
        self.timeout = timeout or settings.TERRASWITCH_TIMEOUT_SECONDS
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        if not self.secret_key:
            raise PaymentGatewayError("Payment gateway is not configured")
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
            "lg": "en",
            "ch": "web",
        }

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = self._headers()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport
            ) as client:
                response = await client.request(method, path, json=json, headers=headers)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Terra Switching {method} {path} returned {e.response.status_code}: {e.response.text}")
            raise PaymentGatewayError(
                f"Request failed with status {e.response.status_code}",
                code=str(e.response.status_code)
            )
        except httpx.HTTPError as e:
            logger.error(f"Error calling Terra Switching {method} {path}: {e}")
            raise PaymentGatewayError("Could not reach payment gateway")
        except ValueError:
            logger.error(f"Terra Switching {method} {path} returned a non-JSON body")
            raise PaymentGatewayError("Invalid response from payment gateway")

        # The gateway reports some failures with a 200 and a failure body
        if body.get("status") is False or body.get("error") is True:
            message = body.get("message") or "Request was not successful"
            logger.error(f"Terra Switching {method} {path} failed: {message}")
            raise PaymentGatewayError(message)

        return body.get("data") or {}

    async def initialize_transaction(
        self,
        amount: float,
        description: str,
        customer: Dict[str, str],
        metadata: Optional[List[Dict[str, str]]] = None,
        redirect_url: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a fixed-amount payment link.

        Args:
            amount: Amount in naira
            description: Shown to the payer on the checkout page
            customer: email, firstName, lastName, phoneNumber, phoneCode
            metadata: List of {"key": ..., "value": ...} pairs echoed back in events
            redirect_url: Where the payer lands after checkout

        Returns:
            Gateway data containing at least "link" and "slug"
        """
        payload = {
            "type": "fixed",
            "amount": round(amount, 2),
            "description": description,
            "customer": customer,
            "metadata": metadata or [],
        }
        if redirect_url:
            payload["redirectUrl"] = redirect_url

        data = await self._request("POST", self.INITIALIZE_PATH, json=payload)
        if not data.get("link"):
            raise PaymentGatewayError("Payment gateway did not return a payment link")

        logger.info(f"Initialized Terra Switching payment {data.get('slug')} for {amount:.2f}")
        return data

    async def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """Look up the outcome of a transaction by reference"""
        return await self._request("GET", self.VERIFY_PATH.format(reference=reference))

    def verify_webhook_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """Check an HMAC-SHA512 webhook signature against the raw request body"""
        if not self.webhook_secret or not signature:
            return False

        if signature.startswith("sha512="):
            signature = signature[len("sha512="):]

        expected = hmac.new(
            self.webhook_secret.encode("utf-8"),
            raw_body,
            hashlib.sha512
        ).hexdigest()
        return hmac.compare_digest(expected, signature)
