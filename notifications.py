"""
Restaurant notifications: a snapshot of an order taken whenever the order is
created or changes status. Only the read flag ever changes afterwards.
"""

import logging
import uuid
from typing import List, Optional

from pymongo import DESCENDING

from database import EntityStore, now_ms
from schemas import Notification, Order

COLLECTION = "notification"


class NotificationService:
    def __init__(self, store: EntityStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.log = logger or logging.getLogger(__name__)

    def create_from_order(self, order: Order) -> Notification:
        notification = Notification(
            id=str(uuid.uuid4()),
            restaurant_id=order.restaurant_id,
            order_id=order.id,
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            total=order.total,
            status=order.status.value,
            timestamp=now_ms(),
            is_read=False,
        )
        self.store.create(COLLECTION, notification, doc_id=notification.id)
        self.log.debug("Notification %s created for order %s", notification.id, order.id)
        return notification

    def list_by_restaurant(self, restaurant_id: str, unread_only: bool = False) -> List[Notification]:
        filt = {"restaurant_id": restaurant_id}
        if unread_only:
            filt["is_read"] = False
        docs = self.store.find(COLLECTION, filt, sort=[("timestamp", DESCENDING)])
        return [Notification.model_validate(d) for d in docs]

    def mark_read(self, notification_id: str) -> None:
        # unknown ids and already-read notifications are left alone
        self.store.update(COLLECTION, notification_id, {"is_read": True})

    def unread_count(self, restaurant_id: str) -> int:
        return self.store.count(COLLECTION, {"restaurant_id": restaurant_id, "is_read": False})
