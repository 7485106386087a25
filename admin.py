"""
Admin dashboard views: platform-wide counters and enriched listings.
"""

from collections import Counter
from typing import Any, Dict, List, Optional

from auth import AuthService
from database import EntityStore, now_ms
from errors import NotFound
from schemas import Drone, DroneStatus, OrderStatus, Restaurant, UserRole


def _total(orders: List[dict]) -> int:
    return sum(int(o.get("total", 0)) for o in orders)


class AdminService:
    def __init__(self, store: EntityStore, auth: AuthService):
        self.store = store
        self.auth = auth

    def stats(self) -> Dict[str, Any]:
        restaurants = self.store.find("restaurant")
        drones = self.store.find("drone")
        orders = self.store.find("order")
        active = sum(1 for r in restaurants if r.get("is_active"))
        drone_status = Counter(d.get("status") or DroneStatus.IDLE.value for d in drones)
        return {
            "totalCustomers": self.store.count("user", {"role": UserRole.CUSTOMER.value}),
            "totalRestaurants": len(restaurants),
            "activeRestaurants": active,
            "pendingRestaurants": len(restaurants) - active,
            "totalOrders": len(orders),
            "totalRevenue": _total(orders),
            "totalDrones": len(drones),
            "activeDrones": drone_status[DroneStatus.DELIVERING.value],
            "idleDrones": drone_status[DroneStatus.IDLE.value],
            "chargingDrones": drone_status[DroneStatus.CHARGING.value],
            "maintenanceDrones": drone_status[DroneStatus.MAINTENANCE.value],
        }

    def restaurants(self) -> List[Dict[str, Any]]:
        orders = self.store.find("order")
        drones = self.store.find("drone")
        owners = {u["id"]: u for u in self.store.find("user")}
        result = []
        for r in self.store.find("restaurant"):
            own_orders = [o for o in orders if o.get("restaurant_id") == r["id"]]
            owner = owners.get(r.get("owner_id"))
            result.append({
                "id": r["id"],
                "name": r.get("name"),
                "category": r.get("category") or "General",
                "status": "Active" if r.get("is_active") else "Pending",
                "ownerId": r.get("owner_id"),
                "ownerName": owner.get("name") if owner else "Unknown",
                "totalOrders": len(own_orders),
                "totalRevenue": _total(own_orders),
                "rating": r.get("rating") or 0.0,
                "droneCount": sum(1 for d in drones if d.get("restaurant_id") == r["id"]),
                "location": r.get("location") or "Unknown",
                "createdAt": r.get("created_at") or now_ms(),
            })
        return result

    def customers(self) -> List[Dict[str, Any]]:
        orders = self.store.find("order")
        roles = [UserRole.CUSTOMER.value, UserRole.SUSPENDED.value]
        result = []
        for u in self.store.find("user", {"role": {"$in": roles}}):
            own_orders = [o for o in orders if o.get("user_id") == u["id"]]
            last = max((o.get("created_at") or 0 for o in own_orders), default=None)
            result.append({
                "id": u["id"],
                "name": u.get("name"),
                "phone": u.get("phone") or "",
                "email": u.get("email") or "",
                "totalOrders": len(own_orders),
                "totalSpend": _total(own_orders),
                "accountStatus": "Suspended" if u.get("role") == UserRole.SUSPENDED.value else "Active",
                "createdAt": u.get("created_at") or now_ms(),
                "lastOrderDate": last,
            })
        return result

    def drones(self) -> List[Dict[str, Any]]:
        result = []
        for doc in self.store.find("drone"):
            drone = Drone.model_validate(doc)
            result.append({
                "id": drone.id,
                "restaurantId": drone.restaurant_id,
                "restaurantName": drone.restaurant_name or "Unknown",
                "status": drone.status.value,
                "battery": drone.battery,
                "currentOrderId": drone.current_order_id,
                "lastMaintenance": drone.last_maintenance or now_ms(),
                "flaggedForIssue": drone.flagged_for_issue,
                "issueDescription": drone.issue_description,
            })
        return result

    def set_restaurant_active(self, restaurant_id: str, is_active: bool) -> Restaurant:
        doc = self.store.update("restaurant", restaurant_id, {"is_active": is_active})
        if doc is None:
            raise NotFound(f"Restaurant not found: {restaurant_id}")
        return Restaurant.model_validate(doc)

    def suspend(self, user_id: str):
        self._change_role(user_id, UserRole.CUSTOMER, UserRole.SUSPENDED)

    def reactivate(self, user_id: str):
        self._change_role(user_id, UserRole.SUSPENDED, UserRole.CUSTOMER)

    def _change_role(self, user_id: str, expected: UserRole, new_role: UserRole):
        user = self.store.get("user", user_id)
        if not user or user.get("role") != expected.value:
            raise NotFound(f"No {expected.value} with id {user_id}")
        self.auth.set_role(user_id, new_role)

    def realtime_stats(self, restaurant_id: Optional[str] = None) -> Dict[str, int]:
        filt = {"restaurant_id": restaurant_id} if restaurant_id else {}
        statuses = Counter(o.get("status") for o in self.store.find("order", filt))

        def bucket(*members: OrderStatus) -> int:
            return sum(statuses[m.value] for m in members)

        return {
            "totalOrders": sum(statuses.values()),
            "pending": bucket(OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PREPARING),
            "inProgress": bucket(OrderStatus.READY, OrderStatus.DELIVERING),
            "delivered": bucket(OrderStatus.DELIVERED),
            "cancelled": bucket(OrderStatus.CANCELLED),
            "activeDrones": self.store.count("drone", {"status": DroneStatus.DELIVERING.value}),
        }
