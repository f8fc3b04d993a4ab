"""Payment provider contract and the Midtrans Snap / Core API client."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import httpx

from ..core.config import Settings
from ..core.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class CustomerDetails:
    first_name: str
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class ItemDetails:
    id: str
    name: str
    price: int
    quantity: int = 1


@dataclass
class ProviderTransaction:
    """Checkout handle returned when a transaction is created."""

    token: str
    redirect_url: str


@dataclass
class ProviderStatus:
    """Provider-side view of one order, as returned by a status query."""

    order_id: str
    transaction_status: str
    fraud_status: Optional[str] = None
    status_code: Optional[str] = None
    gross_amount: Optional[str] = None
    payment_type: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


class PaymentProvider(Protocol):
    """What the payment gateway needs from a provider."""

    name: str

    async def create_transaction(
        self,
        order_id: str,
        amount: int,
        customer: CustomerDetails,
        item: ItemDetails,
        callback_url: Optional[str] = None,
    ) -> ProviderTransaction:
        """Create a checkout transaction; raises UpstreamUnavailableError on failure."""
        ...

    async def get_status(self, order_id: str) -> Optional[ProviderStatus]:
        """Look up an order; None if the provider does not know it."""
        ...


class MidtransProvider:
    """
    Midtrans client over HTTPS.

    Transactions are created through Snap and looked up through the Core API,
    both authenticated with HTTP Basic using the server key as username.
    Every call is bounded by ``timeout``; transport failures, timeouts and
    provider-side errors surface as :class:`UpstreamUnavailableError`.
    """

    name = "midtrans"

    def __init__(
        self,
        server_key: str,
        api_base_url: str,
        snap_base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.server_key = server_key
        self.api_base_url = api_base_url.rstrip("/")
        self.snap_base_url = snap_base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> "MidtransProvider":
        return cls(
            server_key=settings.midtrans_server_key,
            api_base_url=settings.midtrans_api_base_url,
            snap_base_url=settings.midtrans_snap_base_url,
            timeout=settings.payment_provider_timeout_seconds,
            client=client,
        )

    async def create_transaction(
        self,
        order_id: str,
        amount: int,
        customer: CustomerDetails,
        item: ItemDetails,
        callback_url: Optional[str] = None,
    ) -> ProviderTransaction:
        """
        Create a Snap transaction.

        Args:
            order_id: Unique order identifier
            amount: Gross amount in IDR
            customer: Payer contact details
            item: Single line item describing the booking
            callback_url: Where the hosted page sends the payer afterwards

        Returns:
            Checkout token and redirect URL

        Raises:
            UpstreamUnavailableError: If Midtrans fails, times out or rejects the request
        """
        payload: Dict[str, Any] = {
            "transaction_details": {"order_id": order_id, "gross_amount": amount},
            "customer_details": {
                key: value
                for key, value in (
                    ("first_name", customer.first_name),
                    ("email", customer.email),
                    ("phone", customer.phone),
                )
                if value
            },
            "item_details": [
                {
                    "id": item.id,
                    "price": item.price,
                    "quantity": item.quantity,
                    "name": item.name[:50],
                }
            ],
        }
        if callback_url:
            payload["callbacks"] = {"finish": callback_url}

        data = await self._request("POST", f"{self.snap_base_url}/snap/v1/transactions", json=payload)

        token = data.get("token")
        redirect_url = data.get("redirect_url")
        if not token or not redirect_url:
            raise UpstreamUnavailableError(
                detail="Midtrans returned no transaction token",
                provider=self.name
            )

        return ProviderTransaction(token=token, redirect_url=redirect_url)

    async def get_status(self, order_id: str) -> Optional[ProviderStatus]:
        """
        Query the Core API for an order's current status.

        Returns:
            The provider status, or None if Midtrans has no such order

        Raises:
            UpstreamUnavailableError: If Midtrans fails or times out
        """
        data = await self._request(
            "GET",
            f"{self.api_base_url}/v2/{order_id}/status",
            allow_not_found=True,
        )

        # The Core API reports unknown orders in the body with HTTP 200
        if not data or str(data.get("status_code")) == "404" or "transaction_status" not in data:
            return None

        return ProviderStatus(
            order_id=data.get("order_id", order_id),
            transaction_status=data["transaction_status"],
            fraud_status=data.get("fraud_status"),
            status_code=str(data.get("status_code")) if data.get("status_code") is not None else None,
            gross_amount=data.get("gross_amount"),
            payment_type=data.get("payment_type"),
            raw=data,
        )

    async def _request(
        self,
        method: str,
        url: str,
        json: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Dict[str, Any]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        auth = httpx.BasicAuth(self.server_key, "")

        try:
            if self._client is not None:
                response = await self._client.request(
                    method, url, json=json, headers=headers, auth=auth, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, json=json, headers=headers, auth=auth)
        except httpx.TimeoutException as e:
            logger.error(
                "Payment provider request timed out",
                extra={"provider": self.name, "method": method, "url": url, "timeout": self.timeout}
            )
            raise UpstreamUnavailableError(detail="Midtrans request timed out", provider=self.name) from e
        except httpx.HTTPError as e:
            logger.error(
                "Payment provider request failed",
                extra={"provider": self.name, "method": method, "url": url, "error": str(e)}
            )
            raise UpstreamUnavailableError(detail="Midtrans request failed", provider=self.name) from e

        if allow_not_found and response.status_code == 404:
            return {}

        if response.status_code >= 400:
            logger.error(
                "Payment provider returned an error",
                extra={
                    "provider": self.name,
                    "method": method,
                    "url": url,
                    "status_code": response.status_code,
                    "body": response.text[:500]
                }
            )
            raise UpstreamUnavailableError(
                detail=f"Midtrans responded with HTTP {response.status_code}",
                provider=self.name
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailableError(detail="Midtrans returned a malformed response", provider=self.name) from e
