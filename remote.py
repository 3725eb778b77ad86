import logging
from typing import Any, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from errors import BookingValidationError, DuplicateBookingError, StorageError
from models import Booking, BookingDraft, BookingPayload, booking_from_json
from store import BookingStore

logger = logging.getLogger(__name__)


class RemoteBookingStore(BookingStore):
    """
    Booking store reached over the /bookings HTTP endpoint.

    A failed round trip is not retried: transport errors and malformed
    responses raise StorageError, rejected bookings raise the matching
    validation error sent back by the server.
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return response.text

    async def _request(self, method: str, url: str, missing_ok: bool = False, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise StorageError(f"{method} {url} failed: {exc}") from exc

        if missing_ok and response.status_code == 404:
            return response
        if response.status_code == 409:
            raise DuplicateBookingError(self._error_text(response))
        if response.status_code in (400, 422):
            raise BookingValidationError(self._error_text(response))
        if response.is_error:
            logger.error("%s %s returned %s", method, url, response.status_code)
            raise StorageError(f"{response.status_code}: {self._error_text(response)}")
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise StorageError(f"Malformed response: {exc}") from exc

    @staticmethod
    def _booking(raw: Any) -> Booking:
        if not isinstance(raw, dict):
            raise StorageError(f"Malformed booking: {raw!r}")
        try:
            return booking_from_json(raw)
        except (ValidationError, ValueError) as exc:
            raise StorageError(f"Malformed booking: {exc}") from exc

    async def list_for_week(self, week_key: str) -> List[Booking]:
        response = await self._request("GET", "/bookings", params={"weekKey": week_key})
        data = self._json(response)
        if not isinstance(data, list):
            raise StorageError("Malformed response: expected a list of bookings")
        return [self._booking(raw) for raw in data]

    async def create(self, draft: BookingDraft) -> Booking:
        body = BookingPayload.from_booking(draft).to_json()
        response = await self._request("POST", "/bookings", json=body)
        booking = self._booking(self._json(response))
        logger.info("Created remote booking %s for %s in %s", booking.id, booking.title, booking.week_key)
        return booking

    async def delete(self, booking_id: str) -> None:
        await self._request("DELETE", f"/bookings/{quote(booking_id, safe='')}", missing_ok=True)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
