"""
Payment collaborators.

The booking manager only sees the ``PaymentGateway`` contract: create an
order, verify a client's proof of payment against it, refund a captured
transaction. Gateways report trouble with ``GatewayError`` /
``GatewayTimeout``; translating those into booking errors is the manager's
job, so nothing here knows about bookings.
"""
import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Protocol

from quickcourt.core.config import settings
from quickcourt.core.enums import PaymentMethod

logger = logging.getLogger(__name__)


class GatewayError(RuntimeError):
    pass


class GatewayTimeout(GatewayError):
    pass


class ManualRefundRequired(GatewayError):
    """The method has no automated refund path (cash, wallet)."""


@dataclass(frozen=True)
class OrderHandle:
    order_id: str
    amount: Decimal
    currency: str


@dataclass(frozen=True)
class Captured:
    transaction_id: str
    amount: Decimal


@dataclass(frozen=True)
class Failed:
    reason: str


@dataclass(frozen=True)
class RefundHandle:
    refund_id: str
    amount: Decimal


class PaymentGateway(Protocol):
    def charge(self, amount: Decimal, currency: str, metadata: Mapping[str, str]) -> OrderHandle: ...

    def verify(self, order: OrderHandle, proof: Mapping[str, str]) -> Captured | Failed: ...

    def refund(self, transaction_id: str, amount: Decimal) -> RefundHandle: ...


def _hmac_sha256_hex(secret: str, msg: str) -> str:
    return hmac.new(secret.encode("utf-8"), msg.encode("utf-8"), hashlib.sha256).hexdigest()


class SandboxGateway:
    """In-process gateway with the order/payment/signature handshake of a hosted checkout.

    The client pays against ``order_id`` and returns ``payment_id`` plus
    ``signature = HMAC-SHA256(secret, "order_id|payment_id")``.
    """

    def __init__(self, secret: str | None = None):
        self.secret = secret or settings.PAYMENT_SANDBOX_SECRET
        self.refunds: list[RefundHandle] = []

    def sign(self, order_id: str, payment_id: str) -> str:
        return _hmac_sha256_hex(self.secret, f"{order_id}|{payment_id}")

    def charge(self, amount: Decimal, currency: str, metadata: Mapping[str, str]) -> OrderHandle:
        order = OrderHandle(order_id=f"order_{uuid.uuid4().hex[:14]}", amount=Decimal(amount), currency=currency)
        logger.info("sandbox order %s created for %s %s", order.order_id, amount, currency)
        return order

    def verify(self, order: OrderHandle, proof: Mapping[str, str]) -> Captured | Failed:
        payment_id = (proof.get("payment_id") or "").strip()
        signature = (proof.get("signature") or "").strip()
        if not payment_id or not signature:
            return Failed("missing payment_id or signature")
        if not hmac.compare_digest(self.sign(order.order_id, payment_id), signature):
            return Failed("invalid payment signature")
        return Captured(transaction_id=payment_id, amount=order.amount)

    def refund(self, transaction_id: str, amount: Decimal) -> RefundHandle:
        handle = RefundHandle(refund_id=f"rfnd_{uuid.uuid4().hex[:14]}", amount=Decimal(amount))
        self.refunds.append(handle)
        logger.info("sandbox refund %s of %s on %s", handle.refund_id, amount, transaction_id)
        return handle


class OfflineGateway:
    """Cash at the counter / wallet: the facility confirms receipt, refunds are reconciled by hand."""

    def charge(self, amount: Decimal, currency: str, metadata: Mapping[str, str]) -> OrderHandle:
        return OrderHandle(order_id=f"offline_{uuid.uuid4().hex[:12]}", amount=Decimal(amount), currency=currency)

    def verify(self, order: OrderHandle, proof: Mapping[str, str]) -> Captured | Failed:
        receipt = (proof.get("receipt") or proof.get("payment_id") or "").strip()
        if not receipt:
            return Failed("missing receipt")
        return Captured(transaction_id=receipt, amount=order.amount)

    def refund(self, transaction_id: str, amount: Decimal) -> RefundHandle:
        raise ManualRefundRequired(f"refund of {amount} on {transaction_id} must be settled manually")


@dataclass
class GatewayRegistry:
    """Routes each booking to the gateway for its recorded payment method."""
    gateways: dict[str, PaymentGateway] = field(default_factory=dict)

    def for_method(self, method: str) -> PaymentGateway:
        try:
            return self.gateways[method]
        except KeyError:
            raise GatewayError(f"no gateway configured for payment method {method!r}") from None


def default_registry() -> GatewayRegistry:
    online = SandboxGateway()
    offline = OfflineGateway()
    return GatewayRegistry({
        PaymentMethod.RAZORPAY.value: online,
        PaymentMethod.STRIPE.value: online,
        PaymentMethod.CASH.value: offline,
        PaymentMethod.WALLET.value: offline,
    })
