"""
Order lifecycle: creation from client requests, totals, status changes and
field patches, with broadcast and notification side effects.
"""

import logging
import re
import uuid
from typing import Dict, List, Optional, Union

from config import Settings
from database import NEWEST_FIRST, EntityStore, now_ms
from errors import Conflict, InvalidInput, NotFound
from notifications import NotificationService
from realtime import Broadcaster
from schemas import (
    ORDER_PATCH_FIELDS,
    CreateOrderRequest,
    Order,
    OrderItem,
    OrderItemIn,
    OrderPatch,
    OrderStatus,
)

COLLECTION = "order"

# prices and quantities are stored as 32-bit ints, totals as BSON int64
MAX_ITEM_VALUE = 2**31 - 1
MAX_TOTAL = 2**63 - 1


def generate_order_id() -> str:
    return "ORDER-" + uuid.uuid4().hex[:12].upper()


def compute_subtotal(items: List[OrderItem]) -> int:
    return sum(item.line_total() for item in items)


def compute_total(items: List[OrderItem], shipping_fee: int = 15000, tax_percent: int = 10) -> int:
    """shipping + subtotal + floor(subtotal * tax), integer arithmetic throughout."""
    subtotal = compute_subtotal(items)
    return shipping_fee + subtotal + subtotal * tax_percent // 100


def to_order_item(raw: OrderItemIn, log: logging.Logger) -> OrderItem:
    try:
        price = int(raw.price)
    except (OverflowError, ValueError):
        log.warning("Invalid price %r for item %r, using 0", raw.price, raw.name)
        price = 0
    if price < 0:
        log.warning("Negative price %s for item %r, using 0", price, raw.name)
        price = 0
    elif price > MAX_ITEM_VALUE:
        log.warning("Price %s for item %r out of range, using 0", price, raw.name)
        price = 0
    qty = raw.resolved_qty()
    if qty > MAX_ITEM_VALUE:
        log.warning("Quantity %s for item %r out of range, using 0", qty, raw.name)
        qty = 0
    return OrderItem(
        product_id=raw.product_id,
        name=raw.name or "",
        price=price,
        qty=qty,
    )


class NoChanges:
    """Result of a patch that carried no recognised field."""

    def __init__(self, ignored: List[str]):
        self.ignored = ignored

    def as_dict(self) -> Dict[str, Union[str, List[str]]]:
        return {"message": "No changes applied", "ignoredFields": self.ignored}


class OrderService:
    def __init__(
        self,
        store: EntityStore,
        notifications: NotificationService,
        broadcaster: Broadcaster,
        settings: Settings,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.notifications = notifications
        self.broadcaster = broadcaster
        self.settings = settings
        self.log = logger or logging.getLogger(__name__)

    # Reads

    def get(self, order_id: str) -> Order:
        doc = self.store.get(COLLECTION, order_id)
        if not doc:
            raise NotFound(f"Order not found: {order_id}")
        return Order.model_validate(doc)

    def query(
        self,
        payment_session_id: Optional[str] = None,
        phone: Optional[str] = None,
        restaurant_id: Optional[str] = None,
    ) -> List[Order]:
        filt: dict = {}
        if payment_session_id:
            filt["payment_session_id"] = payment_session_id
        else:
            if phone:
                filt["customer_phone"] = {"$regex": re.escape(phone), "$options": "i"}
            if restaurant_id:
                filt["restaurant_id"] = restaurant_id
        docs = self.store.find(COLLECTION, filt, sort=NEWEST_FIRST)
        self.log.debug("Order query %s returned %d orders", filt, len(docs))
        return [Order.model_validate(d) for d in docs]

    # Writes

    def create(self, req: CreateOrderRequest) -> Order:
        order_id = req.id.strip() if req.id and req.id.strip() else generate_order_id()
        items = [to_order_item(i, self.log) for i in req.items]
        total = compute_total(items, self.settings.shipping_fee, self.settings.tax_percent)
        if total > MAX_TOTAL:
            raise InvalidInput(f"Order total out of range: {total}")

        now = now_ms()
        created_at = req.created_at if req.created_at and req.created_at > 0 else now
        updated_at = req.updated_at if req.updated_at and req.updated_at > 0 else now

        order = Order(
            id=order_id,
            customer_name=req.customer_name,
            customer_phone=req.customer_phone,
            customer_email=req.customer_email,
            address=req.address,
            restaurant_id=req.restaurant_id,
            user_id=req.user_id,
            payment_session_id=req.payment_session_id,
            payment_method=req.payment_method,
            payment_status=req.payment_status,
            note=req.note,
            status=OrderStatus.parse(req.status) or OrderStatus.PENDING,
            total=total,
            items=items,
            created_at=created_at,
            updated_at=max(updated_at, created_at),
        )
        if self.store.exists(COLLECTION, {"_id": order.id}):
            raise Conflict(f"Order already exists: {order.id}")

        # order and items go in as one document
        self.store.create(COLLECTION, order, doc_id=order.id)
        self.log.info("Order %s created with %d items, total=%d", order.id, len(items), order.total)

        self.broadcaster.publish_order(order)
        self._notify(order)
        return order

    def patch_status(self, order_id: str, token, expected_version: Optional[int] = None) -> Order:
        current = self.get(order_id)
        status = OrderStatus.parse(token)
        if status is None:
            raise InvalidInput(f"Invalid status: {token}")
        order = self._write(current, {"status": status.value}, expected_version)
        self.log.info("Order %s status -> %s", order.id, status.value)

        self.broadcaster.publish_order(order)
        if self.settings.notify_on_status_change:
            self._notify(order)
        return order

    def patch_fields(self, order_id: str, patch: OrderPatch) -> Union[Order, NoChanges]:
        current = self.get(order_id)
        ignored = patch.ignored_fields()
        if ignored:
            self.log.warning("Order %s patch ignored unknown fields: %s", order_id, ", ".join(ignored))

        provided = patch.model_fields_set
        fields = {name: getattr(patch, name) for name in ORDER_PATCH_FIELDS if name in provided}
        if "status" in provided and patch.status is None:
            raise InvalidInput("Invalid status: null")
        has_status = "status" in provided

        if not fields and not has_status:
            return NoChanges(ignored)

        expected = patch.expected_version
        order = current
        if has_status:
            order = self.patch_status(order_id, patch.status, expected)
            expected = None if expected is None else order.version
        if fields:
            order = self._write(order, fields, expected)
            self.broadcaster.publish_order(order)
        return order

    def record_payment(self, order_id: str, transaction_id: Optional[str]) -> Optional[Order]:
        """Mark an order paid after a verified gateway return. Unknown ids are logged and skipped."""
        doc = self.store.get(COLLECTION, order_id)
        if not doc:
            self.log.warning("Payment return for unknown order %s", order_id)
            return None
        order = self._write(
            Order.model_validate(doc),
            {"payment_status": "paid", "vnpay_transaction_id": transaction_id},
            None,
        )
        self.log.info("Order %s paid (transaction %s)", order.id, transaction_id)
        self.broadcaster.publish_order(order)
        return order

    def _write(self, current: Order, fields: dict, expected_version: Optional[int]) -> Order:
        fields = dict(fields)
        fields["updated_at"] = max(now_ms(), current.created_at)
        match = None
        if expected_version is not None:
            match = {"version": expected_version}
        doc = self.store.update(COLLECTION, current.id, fields, inc={"version": 1}, match=match)
        if doc is None:
            if expected_version is not None:
                raise Conflict(
                    f"Order {current.id} was modified concurrently (expected version {expected_version})"
                )
            raise NotFound(f"Order not found: {current.id}")
        return Order.model_validate(doc)

    def _notify(self, order: Order):
        try:
            self.notifications.create_from_order(order)
        except Exception:
            self.log.exception("Failed to create notification for order %s", order.id)
