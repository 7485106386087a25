"""
Drone updates and order assignment.

Assigning an order through PATCH is advisory (last write wins) unless
DRONE_EXCLUSIVE_CLAIMS is on. claim()/release() always enforce that a drone
carries at most one order, using a compare-and-set on currentOrderId.
"""

import logging
import re
from typing import List, Optional

from config import Settings
from database import EntityStore, now_ms
from errors import Conflict, InvalidInput, NotFound
from realtime import Broadcaster
from schemas import Drone, DronePatch, DroneStatus, clamp_battery

COLLECTION = "drone"

# status words used by the map clients
STATUS_ALIASES = {
    "delivering": DroneStatus.DELIVERING,
    "arrived": DroneStatus.IDLE,
    "returning": DroneStatus.IDLE,
}


def parse_drone_status(token) -> DroneStatus:
    key = str(token).strip().lower()
    if key in STATUS_ALIASES:
        return STATUS_ALIASES[key]
    for status in DroneStatus:
        if status.value.lower() == key:
            return status
    raise InvalidInput(f"Invalid drone status: {token}")


class DroneService:
    def __init__(
        self,
        store: EntityStore,
        broadcaster: Broadcaster,
        settings: Settings,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.settings = settings
        self.log = logger or logging.getLogger(__name__)

    def list(self, restaurant_id: Optional[str] = None, restaurant: Optional[str] = None) -> List[Drone]:
        filt: dict = {}
        if restaurant_id:
            filt["restaurant_id"] = restaurant_id
        elif restaurant:
            filt["restaurant_name"] = {"$regex": f"^{re.escape(restaurant)}$", "$options": "i"}
        return [Drone.model_validate(d) for d in self.store.find(COLLECTION, filt)]

    def get(self, drone_id: str) -> Drone:
        doc = self.store.get(COLLECTION, drone_id)
        if not doc:
            raise NotFound(f"Drone not found: {drone_id}")
        return Drone.model_validate(doc)

    def patch(self, drone_id: str, patch: DronePatch) -> Drone:
        drone = self.get(drone_id)
        ignored = patch.ignored_fields()
        if ignored:
            self.log.warning("Drone %s patch ignored unknown fields: %s", drone_id, ", ".join(ignored))

        provided = patch.model_fields_set
        updates: dict = {}
        if patch.status is not None:
            updates["status"] = parse_drone_status(patch.status).value
        if patch.battery is not None:
            updates["battery"] = clamp_battery(patch.battery)
        if patch.battery_level is not None:
            updates["battery"] = clamp_battery(patch.battery_level)
        if patch.position is not None:
            updates["position"] = patch.position.model_dump()
        for name in (
            "drone_code",
            "speed_mps",
            "restaurant_id",
            "restaurant_name",
            "last_maintenance",
            "flagged_for_issue",
            "issue_description",
        ):
            if name in provided:
                updates[name] = getattr(patch, name)

        assignment_given = "current_order_id" in provided or "order_id" in provided
        assignment = patch.order_id if "order_id" in provided else patch.current_order_id
        if assignment_given and self.settings.drone_exclusive_claims:
            if assignment:
                drone = self.claim(drone_id, assignment)
            else:
                drone = self.release(drone_id)
        elif assignment_given:
            updates["current_order_id"] = assignment

        updates["updated_at"] = patch.updated_at if patch.updated_at is not None else now_ms()
        doc = self.store.update(COLLECTION, drone.id, updates)
        if doc is None:
            raise NotFound(f"Drone not found: {drone_id}")
        saved = Drone.model_validate(doc)
        self.broadcaster.publish_drone(saved)
        return saved

    def claim(self, drone_id: str, order_id: Optional[str]) -> Drone:
        if not order_id:
            raise InvalidInput("orderId is required to claim a drone")
        if not self.store.exists("order", {"_id": order_id}):
            raise NotFound(f"Order not found: {order_id}")

        now = now_ms()
        doc = self.store.update(
            COLLECTION,
            drone_id,
            {"current_order_id": order_id, "updated_at": now},
            match={"$or": [{"current_order_id": None}, {"current_order_id": order_id}]},
        )
        if doc is None:
            holder = self.get(drone_id).current_order_id
            raise Conflict(f"Drone {drone_id} is already assigned to order {holder}")

        self.store.update("order", order_id, {"drone_id": drone_id, "updated_at": now}, inc={"version": 1})
        drone = Drone.model_validate(doc)
        self.log.info("Drone %s claimed for order %s", drone_id, order_id)
        self.broadcaster.publish_drone(drone)
        return drone

    def release(self, drone_id: str, order_id: Optional[str] = None) -> Drone:
        drone = self.get(drone_id)
        holder = drone.current_order_id
        if holder is None:
            return drone
        if order_id and order_id != holder:
            raise Conflict(f"Drone {drone_id} is assigned to order {holder}, not {order_id}")

        doc = self.store.update(
            COLLECTION,
            drone_id,
            {"current_order_id": None, "updated_at": now_ms()},
            match={"current_order_id": holder},
        )
        if doc is None:
            raise Conflict(f"Drone {drone_id} assignment changed concurrently")
        drone = Drone.model_validate(doc)
        self.log.info("Drone %s released from order %s", drone_id, holder)
        self.broadcaster.publish_drone(drone)
        return drone
