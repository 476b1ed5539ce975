"""Shiprocket REST client (token auth, orders, AWB, pickup, cancellation)."""
from datetime import datetime, timedelta
from typing import Any, Optional
import httpx

from shared.core import get_logger
from app.core_settings import Settings
from app.application.errors import CarrierAPIError
from app.domain.models import utcnow

logger = get_logger(__name__)

# Tokens are valid for ten days; renew a day early
TOKEN_TTL = timedelta(days=9)


class ShiprocketClient:
    def __init__(
        self,
        base_url: str,
        email: str,
        password: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.email = email
        self.password = password
        self.timeout = timeout
        self.transport = transport
        self._token: Optional[str] = None
        self._token_expiry: Optional[datetime] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ShiprocketClient":
        return cls(
            settings.SHIPROCKET_API_URL,
            settings.SHIPROCKET_EMAIL,
            settings.SHIPROCKET_PASSWORD,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    def _authenticate(self) -> str:
        try:
            with self._client() as client:
                response = client.post("/auth/login", json={"email": self.email, "password": self.password})
        except httpx.HTTPError as e:
            raise CarrierAPIError(f"Shiprocket authentication failed: {e}")
        if response.status_code >= 400:
            raise CarrierAPIError(
                f"Shiprocket authentication failed: {_error_message(response)}",
                {"status_code": response.status_code},
            )
        self._token = response.json()["token"]
        self._token_expiry = utcnow() + TOKEN_TTL
        logger.info("Shiprocket authentication successful")
        return self._token

    def _get_token(self) -> str:
        if not self._token or not self._token_expiry or utcnow() >= self._token_expiry:
            return self._authenticate()
        return self._token

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        token = self._get_token()
        try:
            with self._client() as client:
                response = client.request(
                    method, endpoint, headers={"Authorization": f"Bearer {token}"}, **kwargs
                )
        except httpx.HTTPError as e:
            logger.error(f"Shiprocket {method} {endpoint} failed: {e}")
            raise CarrierAPIError(f"Shiprocket request failed: {e}")
        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(
                f"Shiprocket API error on {endpoint}",
                extra={'extra_fields': {'status_code': response.status_code, 'error': message}},
            )
            raise CarrierAPIError(message, {"endpoint": endpoint, "status_code": response.status_code})
        return response.json()

    def create_order(self, payload: dict) -> dict:
        return self._request("POST", "/orders/create/adhoc", json=payload)

    def generate_awb(self, shipment_id: int, courier_id: Optional[int] = None) -> dict:
        body: dict[str, Any] = {"shipment_id": shipment_id}
        if courier_id is not None:
            body["courier_id"] = courier_id
        return self._request("POST", "/courier/assign/awb", json=body)

    def schedule_pickup(self, shipment_ids: list[int], pickup_date: Optional[str] = None) -> dict:
        body: dict[str, Any] = {"shipment_id": shipment_ids}
        if pickup_date:
            body["pickup_date"] = pickup_date
        return self._request("POST", "/courier/generate/pickup", json=body)

    def cancel_shipment(self, order_ids: list[int]) -> dict:
        return self._request("POST", "/orders/cancel", json={"ids": order_ids})


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase
