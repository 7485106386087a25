"""
Drone patches, battery clamping and exclusive order claims.
"""

import pytest

from conftest import order_body
from errors import Conflict, InvalidInput, NotFound
from schemas import CreateOrderRequest, Drone, DronePatch, DroneStatus


@pytest.fixture
def drone(store):
    d = Drone(id="DRONE-SD-001", drone_code="DRONE-SD-001", restaurant_id="SweetDreams",
              restaurant_name="Sweet Dreams Bakery")
    store.create("drone", d, doc_id=d.id)
    return d


@pytest.fixture
def two_orders(orders):
    a = orders.create(CreateOrderRequest.model_validate(order_body(id="ORDER-A")))
    b = orders.create(CreateOrderRequest.model_validate(order_body(id="ORDER-B")))
    return a, b


class TestBattery:

    def test_clamped_high(self, drones, drone):
        assert drones.patch(drone.id, DronePatch(battery=150)).battery == 100

    def test_clamped_low(self, drones, drone):
        assert drones.patch(drone.id, DronePatch(battery=-10)).battery == 0

    def test_battery_level_alias(self, drones, drone):
        patch = DronePatch.model_validate({"batteryLevel": 42})
        assert drones.patch(drone.id, patch).battery == 42

    def test_stored_value_is_clamped_on_read(self):
        assert Drone.model_validate({"id": "X", "battery": 250}).battery == 100


class TestPatch:

    def test_status_words(self, drones, drone):
        assert drones.patch(drone.id, DronePatch(status="delivering")).status == DroneStatus.DELIVERING
        assert drones.patch(drone.id, DronePatch(status="returning")).status == DroneStatus.IDLE
        assert drones.patch(drone.id, DronePatch(status="CHARGING")).status == DroneStatus.CHARGING

    def test_invalid_status(self, drones, drone):
        with pytest.raises(InvalidInput):
            drones.patch(drone.id, DronePatch(status="hovering"))

    def test_position_and_timestamp(self, drones, drone):
        patch = DronePatch.model_validate({"position": {"lat": 10.77, "lng": 106.7}, "updatedAt": 1234})
        saved = drones.patch(drone.id, patch)
        assert (saved.position.lat, saved.position.lng) == (10.77, 106.7)
        assert saved.updated_at == 1234

    def test_unknown_drone(self, drones):
        with pytest.raises(NotFound):
            drones.patch("DRONE-NOPE", DronePatch(battery=50))

    def test_broadcast(self, drones, drone, broadcaster):
        seen = []
        broadcaster.subscribe("drone", seen.append)
        drones.patch(drone.id, DronePatch(status="delivering"))
        assert seen[0]["id"] == drone.id
        assert seen[0]["flightStatus"] == "delivering"

    def test_advisory_assignment_overwrites(self, drones, drone, two_orders):
        a, b = two_orders
        drones.patch(drone.id, DronePatch(current_order_id=a.id))
        assert drones.patch(drone.id, DronePatch(current_order_id=b.id)).current_order_id == b.id


class TestClaims:

    def test_claim_and_release(self, drones, orders, drone, two_orders):
        a, _ = two_orders
        claimed = drones.claim(drone.id, a.id)
        assert claimed.current_order_id == a.id
        assert orders.get(a.id).drone_id == drone.id
        assert drones.release(drone.id, a.id).current_order_id is None

    def test_second_order_conflicts(self, drones, drone, two_orders):
        a, b = two_orders
        drones.claim(drone.id, a.id)
        with pytest.raises(Conflict):
            drones.claim(drone.id, b.id)
        assert drones.get(drone.id).current_order_id == a.id

    def test_reclaim_same_order(self, drones, drone, two_orders):
        a, _ = two_orders
        drones.claim(drone.id, a.id)
        assert drones.claim(drone.id, a.id).current_order_id == a.id

    def test_release_wrong_order(self, drones, drone, two_orders):
        a, b = two_orders
        drones.claim(drone.id, a.id)
        with pytest.raises(Conflict):
            drones.release(drone.id, b.id)

    def test_claim_unknown_order(self, drones, drone):
        with pytest.raises(NotFound):
            drones.claim(drone.id, "ORDER-NOPE")

    def test_exclusive_patch(self, drones, drone, two_orders, settings):
        settings.drone_exclusive_claims = True
        a, b = two_orders
        drones.patch(drone.id, DronePatch(current_order_id=a.id))
        with pytest.raises(Conflict):
            drones.patch(drone.id, DronePatch(current_order_id=b.id))
        assert drones.patch(drone.id, DronePatch(current_order_id=None)).current_order_id is None


class TestDroneRoutes:

    def test_list_by_restaurant_name(self, client, drone):
        found = client.get("/api/drones", params={"restaurant": "sweet dreams bakery"}).json()
        assert [d["id"] for d in found] == [drone.id]

    def test_patch(self, client, drone):
        resp = client.patch(f"/api/drones/{drone.id}", json={"battery": 150, "status": "delivering"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["battery"] == 100
        assert body["status"] == "Delivering"
        assert body["flightStatus"] == "delivering"

    def test_claim_conflict(self, client, drone):
        a = client.post("/api/orders", json=order_body()).json()
        b = client.post("/api/orders", json=order_body()).json()
        assert client.post(f"/api/drones/{drone.id}/claim", json={"orderId": a["id"]}).status_code == 200
        resp = client.post(f"/api/drones/{drone.id}/claim", json={"orderId": b["id"]})
        assert resp.status_code == 409
        assert resp.json()["error"] == "Conflict"

    def test_release_without_body(self, client, drone):
        a = client.post("/api/orders", json=order_body()).json()
        client.post(f"/api/drones/{drone.id}/claim", json={"orderId": a["id"]})
        resp = client.post(f"/api/drones/{drone.id}/release")
        assert resp.status_code == 200
        assert resp.json()["currentOrderId"] is None
