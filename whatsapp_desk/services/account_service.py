"""Account-data lookups against the Splynx billing API.

Every call is bounded by HTTP_TIMEOUT_SECONDS and returns a Result; nothing here raises
for transport, HTTP or payload problems.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from whatsapp_desk.config import settings
from whatsapp_desk.logging_config import get_logger
from whatsapp_desk.services.result import Result

logger = get_logger("account_service")


@dataclass(frozen=True)
class Invoice:
    id: str
    total: Decimal
    date: str


def _get_json(path: str, params: Optional[dict] = None) -> Result[Any]:
    if not settings.splynx_api_key or not settings.splynx_api_secret:
        return Result.failure("Splynx credentials not configured", "not_configured")

    url = f"{settings.splynx_base_url.rstrip('/')}/{path.lstrip('/')}"
    try:
        with httpx.Client(
            timeout=settings.http_timeout_seconds,
            auth=(settings.splynx_api_key, settings.splynx_api_secret),
        ) as client:
            response = client.get(url, params=params)
    except httpx.TimeoutException as e:
        logger.warning(f"Splynx timeout: {path}", extra={"context": {"error": str(e)}})
        return Result.failure(str(e), "timeout")
    except httpx.HTTPError as e:
        logger.warning(f"Splynx request failed: {path}", extra={"context": {"error": str(e)}})
        return Result.failure(str(e), "lookup_error")

    if response.status_code != 200:
        logger.warning(f"Splynx returned {response.status_code} for {path}")
        return Result.failure(f"HTTP {response.status_code}", "http_error")

    try:
        return Result.success(response.json())
    except ValueError as e:
        return Result.failure(f"Invalid JSON: {e}", "bad_payload")


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            return None
        return amount.quantize(Decimal("0.01"))
    except InvalidOperation:
        return None


def lookup_customer(phone: str) -> Result[dict]:
    """Find the Splynx customer record whose main phone matches."""
    result = _get_json("admin/customers/customer", params={"main_phone": phone})
    if not result.ok:
        return result
    data = result.value
    if isinstance(data, list) and data:
        return Result.success(data[0])
    return Result.failure("Customer not found", "not_found")


def get_balance(customer_id: str) -> Result[Decimal]:
    if not customer_id:
        return Result.failure("Customer has no billing id", "no_customer_id")
    result = _get_json(f"admin/customers/customer/{customer_id}/balance")
    if not result.ok:
        return result
    data = result.value if isinstance(result.value, dict) else {}
    balance = _to_decimal(data.get("balance"))
    if balance is None:
        return Result.failure("Balance missing from response", "bad_payload")
    return Result.success(balance)


def get_status(customer_id: str) -> Result[str]:
    if not customer_id:
        return Result.failure("Customer has no billing id", "no_customer_id")
    result = _get_json(f"admin/customers/customer/{customer_id}")
    if not result.ok:
        return result
    data = result.value if isinstance(result.value, dict) else {}
    status = str(data.get("status") or "").strip()
    if not status:
        return Result.failure("Status missing from response", "bad_payload")
    return Result.success(status)


def get_latest_invoice(customer_id: str) -> Result[Invoice]:
    if not customer_id:
        return Result.failure("Customer has no billing id", "no_customer_id")
    result = _get_json(
        "admin/invoices/invoice",
        params={"customer_id": customer_id, "limit": 1, "sort": "-id"},
    )
    if not result.ok:
        return result
    data = result.value
    if not isinstance(data, list) or not data:
        return Result.failure("No invoices", "not_found")
    latest = data[0]
    total = _to_decimal(latest.get("total"))
    if total is None or latest.get("id") is None:
        return Result.failure("Invoice fields missing", "bad_payload")
    return Result.success(Invoice(id=str(latest["id"]), total=total, date=str(latest.get("date_add") or "")))
