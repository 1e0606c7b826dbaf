"""Razorpay-compatible payment gateway client (orders and refunds)."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, cast
from uuid import uuid4

import httpx
from pydantic import SecretStr

from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

# Connection never established, so the request was not delivered and is safe to resend.
_UNSENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


class PaymentGatewayError(RuntimeError):
    """Raised when the gateway is unreachable or responds with an error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        *,
        error_code: str | None = None,
        error_body: Any | None = None,
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.error_body = error_body
        self.timed_out = timed_out


class PaymentGatewayClient:
    """
    Thin client for the gateway REST API.

    Every call carries an explicit timeout. Failures are retried a bounded
    number of times with exponential backoff: connection failures always,
    read timeouts and 5xx responses only for idempotent calls.
    """

    def __init__(
        self,
        *,
        key_id: str,
        key_secret: str | SecretStr,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 8.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.25,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        secret_value = (
            key_secret.get_secret_value() if isinstance(key_secret, SecretStr) else key_secret
        )
        if not key_id or not secret_value:
            raise ValueError("Payment gateway key id and secret must be provided")

        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._backoff_seconds = backoff_seconds
        self._transport = transport
        self._sleep = sleep
        self._auth = httpx.BasicAuth(key_id, secret_value)

    def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        """Create an order for ``amount`` minor units; returns the gateway order payload."""
        body: Dict[str, Any] = {"amount": amount, "currency": currency, "receipt": receipt}
        if notes:
            body["notes"] = notes
        # An unpaid duplicate order is harmless, so timeouts may be retried.
        return self.request("POST", "/orders", json_body=body, idempotent=True)

    def refund_payment(
        self,
        gateway_payment_id: str,
        *,
        amount: int,
        notes: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        """Refund a captured payment; returns the gateway refund payload."""
        if not gateway_payment_id:
            raise ValueError("gateway_payment_id must be provided")
        body: Dict[str, Any] = {"amount": amount}
        if notes:
            body["notes"] = notes
        return self.request(
            "POST",
            f"/payments/{gateway_payment_id}/refund",
            json_body=body,
            idempotent=False,
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Dict[str, Any] | None = None,
        idempotent: bool = False,
    ) -> Dict[str, Any]:
        """Perform a gateway request with bounded retries and return the parsed JSON."""
        operation = f"{method} {path.split('/')[1] if '/' in path else path}"
        attempt = 0
        while True:
            try:
                payload = self._send_once(method, path, json_body)
                prometheus_metrics.record_gateway_request(operation, "success")
                return payload
            except PaymentGatewayError as exc:
                if attempt >= self._max_retries or not self._should_retry(exc, idempotent):
                    prometheus_metrics.record_gateway_request(operation, "error")
                    raise
                delay = self._backoff_seconds * (2**attempt)
                attempt += 1
                prometheus_metrics.record_gateway_request(operation, "retry")
                logger.warning(
                    "Payment gateway call failed, retrying",
                    extra={
                        "evt": "gateway_retry",
                        "method": method,
                        "path": path,
                        "attempt": attempt,
                        "delay": delay,
                        "error": str(exc),
                    },
                )
                self._sleep(delay)

    def _should_retry(self, exc: PaymentGatewayError, idempotent: bool) -> bool:
        if isinstance(exc.__cause__, _UNSENT_ERRORS):
            return True
        if not idempotent:
            return False
        if exc.timed_out:
            return True
        return exc.status_code is not None and exc.status_code >= 500

    def _send_once(
        self, method: str, path: str, json_body: Dict[str, Any] | None
    ) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            auth=self._auth,
            headers={"Accept": "application/json"},
        ) as client:
            try:
                response = client.request(method, url, json=json_body)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                error_payload: Any | None = None
                error_code: str | None = None
                try:
                    error_payload = exc.response.json()
                    if isinstance(error_payload, dict):
                        error = error_payload.get("error")
                        if isinstance(error, dict):
                            error_code = error.get("code")
                except json.JSONDecodeError:
                    error_payload = exc.response.text

                logger.error(
                    "Payment gateway error %s for %s %s: %s",
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                )
                raise PaymentGatewayError(
                    message=f"Payment gateway responded with status {status}",
                    status_code=status,
                    error_code=error_code,
                    error_body=error_payload,
                ) from exc
            except httpx.TimeoutException as exc:
                logger.error("Payment gateway timeout for %s %s: %s", method, path, str(exc))
                raise PaymentGatewayError("Payment gateway timed out", timed_out=True) from exc
            except httpx.RequestError as exc:
                logger.error("Payment gateway request failure for %s %s: %s", method, path, str(exc))
                raise PaymentGatewayError("Failed to reach payment gateway") from exc

        try:
            return cast(Dict[str, Any], response.json())
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from gateway for %s %s: %s", method, path, response.text)
            raise PaymentGatewayError("Received malformed JSON from payment gateway") from exc


class FakePaymentGatewayClient(PaymentGatewayClient):
    """In-memory stand-in that mimics the gateway for development and tests."""

    def __init__(self) -> None:
        super().__init__(key_id="rzp_test_fake", key_secret="fake-gateway-key")
        self._logger = logging.getLogger(self.__class__.__name__)
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.refunds: Dict[str, Dict[str, Any]] = {}

    def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        order_id = f"order_fake_{uuid4().hex[:14]}"
        order = {
            "id": order_id,
            "entity": "order",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
            "notes": notes or {},
        }
        self.orders[order_id] = order
        self._logger.debug("Fake order created", extra={"order_id": order_id, "amount": amount})
        return order

    def refund_payment(
        self,
        gateway_payment_id: str,
        *,
        amount: int,
        notes: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        refund_id = f"rfnd_fake_{uuid4().hex[:14]}"
        refund = {
            "id": refund_id,
            "entity": "refund",
            "payment_id": gateway_payment_id,
            "amount": amount,
            "status": "processed",
            "notes": notes or {},
        }
        self.refunds[refund_id] = refund
        self._logger.debug(
            "Fake refund processed",
            extra={"refund_id": refund_id, "payment_id": gateway_payment_id},
        )
        return refund
