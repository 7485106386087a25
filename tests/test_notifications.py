"""
Restaurant notifications.
"""

from conftest import order_body
from schemas import Notification


def add_notification(store, notification_id, timestamp, is_read=False, restaurant_id="R1"):
    n = Notification(id=notification_id, restaurant_id=restaurant_id, order_id="O-" + notification_id,
                     status="pending", timestamp=timestamp, is_read=is_read)
    store.create("notification", n, doc_id=n.id)


class TestNotificationService:

    def test_newest_first(self, store, notifications):
        add_notification(store, "a", 1000)
        add_notification(store, "b", 3000)
        add_notification(store, "c", 2000)
        assert [n.id for n in notifications.list_by_restaurant("R1")] == ["b", "c", "a"]

    def test_unread_filter_and_count(self, store, notifications):
        add_notification(store, "a", 1000)
        add_notification(store, "b", 2000, is_read=True)
        add_notification(store, "c", 3000, restaurant_id="R2")
        assert [n.id for n in notifications.list_by_restaurant("R1", unread_only=True)] == ["a"]
        assert notifications.unread_count("R1") == 1

    def test_mark_read_is_idempotent(self, store, notifications):
        add_notification(store, "a", 1000)
        add_notification(store, "b", 2000)
        notifications.mark_read("a")
        notifications.mark_read("a")
        assert notifications.unread_count("R1") == 1

    def test_mark_read_unknown_id(self, notifications):
        notifications.mark_read("missing")
        assert notifications.unread_count("R1") == 0


class TestNotificationRoutes:

    def test_listing_shape(self, client):
        client.post("/api/orders", json=order_body(restaurantId="R1"))
        body = client.get("/api/notifications/R1").json()
        assert body["total"] == 1
        assert body["unreadCount"] == 1
        assert body["notifications"][0]["isRead"] is False

    def test_mark_read(self, client):
        client.post("/api/orders", json=order_body(restaurantId="R1"))
        notification_id = client.get("/api/notifications/restaurant/R1").json()["notifications"][0]["id"]

        resp = client.post(f"/api/notifications/{notification_id}/read")
        assert resp.status_code == 200
        assert client.get("/api/notifications/restaurant/R1/count").json() == {"count": 0}
        assert client.get("/api/notifications/restaurant/R1/unread").json() == []
        assert client.get("/api/notifications/R1", params={"unreadOnly": "true"}).json()["total"] == 0
