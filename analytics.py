"""
Restaurant analytics, always recomputed from the order history.
"""

import time
from datetime import datetime
from typing import Any, Callable, Dict, List

from database import EntityStore
from schemas import Analytics, DroneStatus

# Placeholder until deliveries record their actual duration
DELIVERY_TIME_MINUTES = 18

PERIODS = {
    "day": (24 * 60 * 60, "Hôm nay"),
    "week": (7 * 24 * 60 * 60, "Tuần này"),
    "month": (30 * 24 * 60 * 60, "Tháng này"),
}


class AnalyticsService:
    def __init__(self, store: EntityStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    def calculate(self, restaurant_id: str, period: str = "day") -> Analytics:
        window, label = PERIODS.get((period or "day").lower(), PERIODS["day"])
        start_ms = int((self.clock() - window) * 1000)
        orders = self.store.find("order", {"restaurant_id": restaurant_id, "created_at": {"$gt": start_ms}})

        revenue = sum(int(o.get("total", 0)) for o in orders)
        count = len(orders)
        return Analytics(
            restaurant_id=restaurant_id,
            period=label,
            revenue=revenue,
            orders=count,
            avg_order_value=revenue // count if count else 0,
            delivery_time=DELIVERY_TIME_MINUTES,
        )

    def overview(self, restaurant_id: str) -> Dict[str, Any]:
        restaurant = self.store.get("restaurant", restaurant_id)
        if not restaurant:
            return {}

        today = datetime.fromtimestamp(self.clock()).date()
        todays = [
            o for o in self.store.find("order", {"restaurant_id": restaurant_id})
            if o.get("created_at") and datetime.fromtimestamp(o["created_at"] / 1000).date() == today
        ]
        active_drones = self.store.count(
            "drone", {"restaurant_id": restaurant_id, "status": DroneStatus.DELIVERING.value}
        )

        return {
            "id": restaurant["id"],
            "name": restaurant.get("name"),
            "revenue": sum(int(o.get("total", 0)) for o in todays),
            "ordersToday": len(todays),
            "activeDrones": active_drones,
            "avgDeliveryTime": DELIVERY_TIME_MINUTES,
            "rating": restaurant.get("rating") or 0.0,
            "topItems": top_items(todays),
        }


def top_items(orders: List[dict], limit: int = 5) -> List[Dict[str, Any]]:
    stats: Dict[str, Dict[str, Any]] = {}
    for order in orders:
        for item in order.get("items", []):
            name = item.get("name", "")
            entry = stats.setdefault(name, {"name": name, "orders": 0, "revenue": 0})
            qty = int(item.get("qty", 0))
            entry["orders"] += qty
            entry["revenue"] += int(item.get("price", 0)) * qty
    # sorted() is stable: equal revenue keeps first-seen order
    return sorted(stats.values(), key=lambda s: s["revenue"], reverse=True)[:limit]
