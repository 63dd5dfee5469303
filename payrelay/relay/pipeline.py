"""Payment translation pipeline.

Each call is independent: validate the notification, apply the small-amount
auto-approval rule, enrich and forward the record to the backend, then map
the backend result into the public response shape. Every record built here
belongs to a single call.
"""

import math
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import uuid4

from payrelay.common.config import RelaySettings
from payrelay.common.logging import logger, order_id_ctx, user_id_ctx
from payrelay.common.metrics import relay_payments_total
from payrelay.relay import codec
from payrelay.relay.backend import BackendClient
from payrelay.relay.errors import BackendUnreachable, InternalFailure, MissingField, RelayError


@dataclass(frozen=True)
class ValidationRules:
    """Required keys for one route; `aliases` maps an alternate key to its canonical one."""

    required: tuple[str, ...]
    aliases: dict[str, str] = field(default_factory=dict)

    def normalize(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Return a copy with aliased keys copied onto their canonical names."""

        record = dict(payload)
        for alias, canonical in self.aliases.items():
            if record.get(canonical) is None and record.get(alias) is not None:
                record[canonical] = record[alias]
        return record

    def check(self, record: dict[str, Any]) -> None:
        missing = [key for key in self.required if record.get(key) is None]
        if missing:
            raise MissingField(missing)


PROCESS_RULES = ValidationRules(required=("userId", "amount", "creditAmount"), aliases={"uid": "userId"})
VERIFY_RULES = ValidationRules(required=("paymentId", "amount"))

SMALL_AMOUNT = "SMALL_AMOUNT"
# Amounts are 64-bit minor units; larger magnitudes are treated as unparsable.
MAX_AMOUNT_DIGITS = 18
MAX_AMOUNT = 10**MAX_AMOUNT_DIGITS


def now_millis() -> int:
    return int(time.time() * 1000)


def as_text(value: Any, default: str = "") -> str:
    """String form of a JSON scalar as it appears on the wire."""

    if value is None:
        return default
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return codec.serialize(value)
    return str(value)


def parse_amount(value: Any) -> int:
    """Parse an amount in minor units; unparsable input yields 0."""

    if isinstance(value, bool):
        number = None
    elif isinstance(value, int):
        if abs(value) < MAX_AMOUNT:
            return value
        number = None
    else:
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            number = None
    if number is None or not number.is_finite() or number.adjusted() >= MAX_AMOUNT_DIGITS:
        logger.warning("amount not parsable value=%r; using 0", value)
        return 0
    return int(number)


class PaymentPipeline:
    """Stateless translation of inbound notifications into backend calls."""

    def __init__(self, settings: RelaySettings, backend: BackendClient) -> None:
        self.settings = settings
        self.backend = backend

    def _count(self, outcome: str) -> None:
        relay_payments_total.labels(service=self.settings.service_name, outcome=outcome).inc()

    def process(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Handle `POST /api/payment/process`.

        Raises `MissingField` for absent keys and `InternalFailure` for anything
        unexpected; a backend outage is answered with a fallback result.
        """

        try:
            return self._process(payload)
        except RelayError:
            self._count("rejected")
            raise
        except Exception as exc:
            self._count("failed")
            logger.exception("payment processing failed: %s", exc)
            raise InternalFailure() from exc

    def _process(self, payload: dict[str, Any]) -> dict[str, Any]:
        record = PROCESS_RULES.normalize(payload)
        PROCESS_RULES.check(record)

        user_id = as_text(record["userId"])
        credit_amount = as_text(record["creditAmount"], "0")
        user_id_ctx.set(user_id)
        order_id_ctx.set(as_text(record.get("orderId")))
        amount = parse_amount(record["amount"])
        logger.info(
            "payment notification paymentKey=%s orderId=%s amount=%s userId=%s creditAmount=%s",
            record.get("paymentKey"),
            record.get("orderId"),
            record["amount"],
            user_id,
            credit_amount,
        )

        auto = amount < self.settings.auto_approve_threshold
        if auto:
            logger.info("small payment auto-approved amount=%s threshold=%s", amount, self.settings.auto_approve_threshold)
            result = self._auto_approve(amount, user_id, credit_amount)
            self._count("auto_approved")
        else:
            enriched = self.enrich(record, user_id, credit_amount)
            try:
                result = self.backend.forward_payment(enriched)
                self._count("forwarded")
            except BackendUnreachable as exc:
                logger.error("backend unreachable, answering with fallback: %s", exc.reason)
                result = self._fallback(enriched)
                self._count("fallback")

        return self._respond(record, user_id, credit_amount, result, auto)

    def enrich(self, record: dict[str, Any], user_id: str, credit_amount: str) -> dict[str, Any]:
        """Copy the notification and add identifiers, timestamp and provenance."""

        enriched = dict(record)
        enriched["userId"] = user_id
        enriched["creditAmount"] = credit_amount
        enriched.setdefault("paymentKey", "")
        enriched.setdefault("orderId", "")
        enriched.setdefault("productId", "credit")
        enriched["paymentMethod"] = self.settings.payment_method
        enriched["paymentProcessor"] = self.settings.payment_processor
        enriched["transactionId"] = str(uuid4())
        enriched["timestamp"] = now_millis()
        return enriched

    def _auto_approve(self, amount: int, user_id: str, credit_amount: str) -> dict[str, Any]:
        return {
            "success": True,
            "message": "small payment approved without backend call",
            "autoProcessed": True,
            "reason": SMALL_AMOUNT,
            "originalAmount": amount,
            "userId": user_id,
            "creditAmount": credit_amount,
            "transactionId": str(uuid4()),
            "processedAt": now_millis(),
        }

    def _fallback(self, enriched: dict[str, Any]) -> dict[str, Any]:
        return {
            "success": True,
            "isMock": True,
            "message": "backend unreachable; payment accepted in fallback mode",
            "note": "this response was generated locally because the backend could not be reached",
            "creditAmount": enriched["creditAmount"],
            "transactionId": enriched["transactionId"],
        }

    def _respond(
        self,
        record: dict[str, Any],
        user_id: str,
        credit_amount: str,
        result: dict[str, Any],
        auto: bool,
    ) -> dict[str, Any]:
        message = result.get("message")
        if message is None:
            message = "payment forwarded to backend"
        response = {
            "success": result.get("success") is True,
            "paymentKey": as_text(record.get("paymentKey")),
            "orderId": as_text(record.get("orderId")),
            "amount": as_text(record["amount"]),
            "userId": user_id,
            "creditAmount": credit_amount,
            "message": as_text(message),
            "gameServerResponse": result,
        }
        if auto:
            response["autoProcessed"] = True
        return response

    def verify(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Handle `POST /api/payment/verify`; never contacts the backend."""

        try:
            return self._verify(payload)
        except RelayError:
            raise
        except Exception as exc:
            logger.exception("payment verification failed unexpectedly: %s", exc)
            raise InternalFailure() from exc

    def _verify(self, payload: dict[str, Any]) -> dict[str, Any]:
        VERIFY_RULES.check(payload)
        payment_id = as_text(payload["paymentId"])
        raw_amount = payload["amount"]
        try:
            if isinstance(raw_amount, bool):
                raise ValueError(raw_amount)
            amount = float(raw_amount)
        except (TypeError, ValueError, OverflowError):
            amount = math.nan

        if not math.isfinite(amount) or amount < 0:
            logger.warning("payment verification failed paymentId=%s amount=%r", payment_id, raw_amount)
            return {"success": False, "paymentId": payment_id, "message": "payment verification failed: invalid amount"}
        if amount < self.settings.auto_approve_threshold:
            logger.info("small payment verified without check paymentId=%s amount=%s", payment_id, amount)
        else:
            logger.info("payment verified paymentId=%s amount=%s", payment_id, amount)
        return {"success": True, "paymentId": payment_id, "message": "payment verified"}
