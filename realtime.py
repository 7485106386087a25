"""
Realtime fan-out for dashboards.

Topics:
- "orders"                  every order create/patch
- "orders/{restaurantId}"   same events, scoped to one restaurant
- "drone"                   drone updates
- "cart"                    full cart after every change

Publishing is fire-and-forget: the payload is handed to each subscriber of
the exact topic and publish() returns without waiting for delivery.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from fastapi.encoders import jsonable_encoder

ORDERS_TOPIC = "orders"
DRONE_TOPIC = "drone"
CART_TOPIC = "cart"


def restaurant_orders_topic(restaurant_id: str) -> str:
    return f"{ORDERS_TOPIC}/{restaurant_id}"


class Subscription:
    def __init__(self, topic: str, deliver: Callable[[Any], None]):
        self.topic = topic
        self.deliver = deliver


class Broadcaster:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.log = logger or logging.getLogger(__name__)
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, callback: Callable[[Any], None]) -> Subscription:
        subscription = Subscription(topic, callback)
        with self._lock:
            self._subscriptions.setdefault(topic, []).append(subscription)
        return subscription

    def subscribe_queue(self, topic: str):
        """
        Subscribe with an asyncio.Queue bound to the running loop.

        Must be called from inside the event loop; publishers on other threads
        hand messages over with call_soon_threadsafe.
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()

        def deliver(message):
            loop.call_soon_threadsafe(queue.put_nowait, message)

        return self.subscribe(topic, deliver), queue

    def unsubscribe(self, subscription: Subscription):
        with self._lock:
            subs = self._subscriptions.get(subscription.topic, [])
            if subscription in subs:
                subs.remove(subscription)
            if not subs:
                self._subscriptions.pop(subscription.topic, None)

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(topic, []))

    def publish(self, topic: str, payload: Any) -> int:
        message = jsonable_encoder(payload)
        with self._lock:
            targets = list(self._subscriptions.get(topic, []))
        delivered = 0
        for subscription in targets:
            try:
                subscription.deliver(message)
                delivered += 1
            except RuntimeError as e:
                # loop of a websocket that went away
                self.log.debug("Dropping subscriber on %s: %s", topic, e)
                self.unsubscribe(subscription)
            except Exception:
                self.log.exception("Subscriber on %s failed", topic)
        return delivered

    def publish_order(self, order) -> None:
        self.log.info("Broadcasting order update %s", order.id)
        self.publish(ORDERS_TOPIC, order)
        if order.restaurant_id:
            self.publish(restaurant_orders_topic(order.restaurant_id), order)

    def publish_drone(self, drone) -> None:
        self.publish(DRONE_TOPIC, drone)

    def publish_cart(self, items) -> None:
        self.publish(CART_TOPIC, items)


broadcaster = Broadcaster()


def get_broadcaster() -> Broadcaster:
    return broadcaster
