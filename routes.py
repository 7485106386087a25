"""
HTTP routes, one router per resource.
"""

import re
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from admin import AdminService
from analytics import AnalyticsService
from auth import AuthService
from config import Settings, get_settings
from database import BY_NAME, EntityStore, get_store, now_ms
from drones import DroneService
from errors import Conflict, InvalidInput, NotFound
from notifications import NotificationService
from orders import NoChanges, OrderService
from payments import build_payment_url, verify_return
from realtime import Broadcaster, get_broadcaster
from schemas import (
    CartItem,
    CartItemCreate,
    CreateOrderRequest,
    Drone,
    DroneClaim,
    DronePatch,
    LoginRequest,
    Notification,
    Order,
    OrderPatch,
    PaymentCreateRequest,
    Product,
    ProductPatch,
    RegisterRequest,
    Restaurant,
    RestaurantStatusUpdate,
    User,
    VnpayCreateRequest,
)


# Service wiring

def notification_service(store: EntityStore = Depends(get_store)) -> NotificationService:
    return NotificationService(store)


def order_service(
    store: EntityStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    settings: Settings = Depends(get_settings),
) -> OrderService:
    return OrderService(store, NotificationService(store), broadcaster, settings)


def drone_service(
    store: EntityStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    settings: Settings = Depends(get_settings),
) -> DroneService:
    return DroneService(store, broadcaster, settings)


def auth_service(store: EntityStore = Depends(get_store)) -> AuthService:
    return AuthService(store)


def admin_service(store: EntityStore = Depends(get_store)) -> AdminService:
    return AdminService(store, AuthService(store))


def analytics_service(store: EntityStore = Depends(get_store)) -> AnalyticsService:
    return AnalyticsService(store)


def ci_equals(value: str) -> dict:
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


# Orders (mounted at /api/orders and the legacy /orders)

orders_router = APIRouter(tags=["orders"])


@orders_router.get("", response_model=List[Order])
def list_orders(
    payment_session_id: Optional[str] = Query(None, alias="paymentSessionId"),
    phone: Optional[str] = None,
    restaurant: Optional[str] = None,
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    orders: OrderService = Depends(order_service),
):
    return orders.query(payment_session_id, phone, restaurant or restaurant_id)


@orders_router.get("/{order_id}", response_model=Order)
def get_order(order_id: str, orders: OrderService = Depends(order_service)):
    return orders.get(order_id)


@orders_router.post("", response_model=Order, status_code=201)
def create_order(payload: CreateOrderRequest, orders: OrderService = Depends(order_service)):
    return orders.create(payload)


@orders_router.patch("/{order_id}")
def patch_order(order_id: str, patch: OrderPatch, orders: OrderService = Depends(order_service)):
    result = orders.patch_fields(order_id, patch)
    if isinstance(result, NoChanges):
        return result.as_dict()
    return result


# Products

products_router = APIRouter(prefix="/api/products", tags=["products"])


@products_router.get("", response_model=List[Product])
def list_products(restaurant: Optional[str] = None, store: EntityStore = Depends(get_store)):
    if restaurant and restaurant.strip():
        docs = store.find("product", {"restaurant": ci_equals(restaurant.strip())}, sort=BY_NAME)
    else:
        docs = store.find("product", sort=BY_NAME)
    return docs


@products_router.get("/{product_id}", response_model=Product)
def get_product(product_id: str, store: EntityStore = Depends(get_store)):
    doc = store.get("product", product_id)
    if not doc:
        raise NotFound("Product not found")
    return doc


@products_router.post("", response_model=Product, status_code=201)
def create_product(payload: Product, store: EntityStore = Depends(get_store)):
    if not payload.id.strip():
        raise InvalidInput("Product id is required")
    if store.exists("product", {"_id": payload.id}):
        raise Conflict(f"Product already exists: {payload.id}")
    store.create("product", payload, doc_id=payload.id)
    return payload


@products_router.patch("/{product_id}", response_model=Product)
def update_product(product_id: str, patch: ProductPatch, store: EntityStore = Depends(get_store)):
    update_data = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if k in ProductPatch.model_fields}
    doc = store.update("product", product_id, update_data)
    if doc is None:
        raise NotFound("Product not found")
    return doc


@products_router.delete("/{product_id}", status_code=204)
def delete_product(product_id: str, store: EntityStore = Depends(get_store)):
    if not store.delete("product", product_id):
        raise NotFound("Product not found")
    return Response(status_code=204)


# Restaurants

restaurants_router = APIRouter(prefix="/api/restaurants", tags=["restaurants"])


@restaurants_router.get("", response_model=List[Restaurant])
def list_restaurants(category: Optional[str] = None, store: EntityStore = Depends(get_store)):
    if category:
        return store.find("restaurant", {"category": ci_equals(category)})
    return store.find("restaurant", {"is_active": True})


@restaurants_router.get("/owner/{owner_id}", response_model=Restaurant)
def get_restaurant_by_owner(owner_id: str, store: EntityStore = Depends(get_store)):
    doc = store.find_one("restaurant", {"owner_id": owner_id})
    if not doc:
        raise NotFound("Restaurant not found")
    return doc


@restaurants_router.get("/{restaurant_id}", response_model=Restaurant)
def get_restaurant(restaurant_id: str, store: EntityStore = Depends(get_store)):
    doc = store.get("restaurant", restaurant_id)
    if not doc:
        raise NotFound("Restaurant not found")
    return doc


# Drones

drones_router = APIRouter(prefix="/api/drones", tags=["drones"])


@drones_router.get("", response_model=List[Drone])
def list_drones(
    restaurant: Optional[str] = None,
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    drones: DroneService = Depends(drone_service),
):
    return drones.list(restaurant_id=restaurant_id, restaurant=restaurant)


@drones_router.get("/{drone_id}", response_model=Drone)
def get_drone(drone_id: str, drones: DroneService = Depends(drone_service)):
    return drones.get(drone_id)


@drones_router.patch("/{drone_id}", response_model=Drone)
def patch_drone(drone_id: str, patch: DronePatch, drones: DroneService = Depends(drone_service)):
    return drones.patch(drone_id, patch)


@drones_router.post("/{drone_id}/claim", response_model=Drone)
def claim_drone(drone_id: str, payload: DroneClaim, drones: DroneService = Depends(drone_service)):
    return drones.claim(drone_id, payload.order_id)


@drones_router.post("/{drone_id}/release", response_model=Drone)
def release_drone(
    drone_id: str,
    payload: Optional[DroneClaim] = None,
    drones: DroneService = Depends(drone_service),
):
    return drones.release(drone_id, payload.order_id if payload else None)


# Cart

cart_router = APIRouter(prefix="/api/cart", tags=["cart"])


def _cart_snapshot(store: EntityStore, broadcaster: Broadcaster) -> List[CartItem]:
    items = [CartItem.model_validate(d) for d in store.find("cartitem", sort=[("_id", 1)])]
    broadcaster.publish_cart(items)
    return items


@cart_router.get("", response_model=List[CartItem])
def get_cart(store: EntityStore = Depends(get_store)):
    return store.find("cartitem", sort=[("_id", 1)])


@cart_router.post("", response_model=List[CartItem])
@cart_router.post("/add", response_model=List[CartItem])
def add_to_cart(
    payload: CartItemCreate,
    store: EntityStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    store.create("cartitem", payload, doc_id=store.next_sequence("cartitem"))
    return _cart_snapshot(store, broadcaster)


@cart_router.delete("/clear", response_model=List[CartItem])
def clear_cart(store: EntityStore = Depends(get_store), broadcaster: Broadcaster = Depends(get_broadcaster)):
    store.delete_many("cartitem")
    return _cart_snapshot(store, broadcaster)


@cart_router.delete("/{item_id}", response_model=List[CartItem])
def remove_from_cart(
    item_id: int,
    store: EntityStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    if not store.delete("cartitem", item_id):
        raise NotFound("Cart item not found")
    return _cart_snapshot(store, broadcaster)


# Notifications

notifications_router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _notification_page(notifications: NotificationService, restaurant_id: str, unread_only: bool):
    items = notifications.list_by_restaurant(restaurant_id, unread_only)
    return {
        "notifications": items,
        "unreadCount": notifications.unread_count(restaurant_id),
        "total": len(items),
    }


@notifications_router.get("/restaurant/{restaurant_id}/unread", response_model=List[Notification])
def unread_notifications(restaurant_id: str, notifications: NotificationService = Depends(notification_service)):
    return notifications.list_by_restaurant(restaurant_id, unread_only=True)


@notifications_router.get("/restaurant/{restaurant_id}/count")
def unread_notification_count(restaurant_id: str, notifications: NotificationService = Depends(notification_service)):
    return {"count": notifications.unread_count(restaurant_id)}


@notifications_router.get("/restaurant/{restaurant_id}")
def restaurant_notifications(
    restaurant_id: str,
    unread_only: bool = Query(False, alias="unreadOnly"),
    notifications: NotificationService = Depends(notification_service),
):
    return _notification_page(notifications, restaurant_id, unread_only)


@notifications_router.get("/{restaurant_id}")
def notifications_for_restaurant(
    restaurant_id: str,
    unread_only: bool = Query(False, alias="unreadOnly"),
    notifications: NotificationService = Depends(notification_service),
):
    return _notification_page(notifications, restaurant_id, unread_only)


@notifications_router.post("/{notification_id}/read")
def mark_notification_read(notification_id: str, notifications: NotificationService = Depends(notification_service)):
    notifications.mark_read(notification_id)
    return {"message": "Notification marked as read"}


# Analytics

analytics_router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@analytics_router.get("/restaurant/{restaurant_id}")
def restaurant_analytics(
    restaurant_id: str,
    period: str = "day",
    analytics: AnalyticsService = Depends(analytics_service),
):
    result = analytics.calculate(restaurant_id, period)
    return result.model_dump(by_alias=True, exclude={"restaurant_id"})


@analytics_router.get("/restaurant/{restaurant_id}/overview")
def restaurant_overview(restaurant_id: str, analytics: AnalyticsService = Depends(analytics_service)):
    return analytics.overview(restaurant_id)


# Payments

payments_router = APIRouter(prefix="/api", tags=["payments"])


@payments_router.post("/payment/vnpay/create")
def create_vnpay_payment(payload: PaymentCreateRequest, settings: Settings = Depends(get_settings)):
    return {"url": build_payment_url(payload.amount, payload.order_id, settings)}


@payments_router.post("/vnpay/create-payment")
def create_vnpay_payment_v2(payload: VnpayCreateRequest, settings: Settings = Depends(get_settings)):
    order_id = payload.order_id or f"ORDER-{now_ms()}"
    url = build_payment_url(
        payload.amount,
        order_id,
        settings,
        order_info=payload.order_info,
        order_type=payload.order_type,
        locale=payload.locale,
    )
    return {"paymentUrl": url, "orderId": order_id, "amount": payload.amount}


@payments_router.get("/vnpay/return")
def vnpay_return(
    request: Request,
    settings: Settings = Depends(get_settings),
    orders: OrderService = Depends(order_service),
):
    params = dict(request.query_params)
    valid = verify_return(params, settings)
    order_id = params.get("vnp_TxnRef")
    paid = valid and params.get("vnp_ResponseCode") == "00"
    if paid and order_id:
        orders.record_payment(order_id, params.get("vnp_TransactionNo"))
    return {
        "valid": valid,
        "paid": paid,
        "orderId": order_id,
        "responseCode": params.get("vnp_ResponseCode"),
    }


# Admin

admin_router = APIRouter(prefix="/api/admin", tags=["admin"])


@admin_router.get("/stats")
def admin_stats(admin: AdminService = Depends(admin_service)):
    return admin.stats()


@admin_router.get("/restaurants")
def admin_restaurants(admin: AdminService = Depends(admin_service)):
    return admin.restaurants()


@admin_router.get("/customers")
def admin_customers(admin: AdminService = Depends(admin_service)):
    return admin.customers()


@admin_router.get("/drones")
def admin_drones(admin: AdminService = Depends(admin_service)):
    return admin.drones()


@admin_router.patch("/restaurants/{restaurant_id}/status", response_model=Restaurant)
def update_restaurant_status(
    restaurant_id: str,
    payload: RestaurantStatusUpdate,
    admin: AdminService = Depends(admin_service),
):
    if payload.is_active is None:
        raise InvalidInput("isActive field required")
    return admin.set_restaurant_active(restaurant_id, payload.is_active)


@admin_router.patch("/users/{user_id}/suspend")
def suspend_customer(user_id: str, admin: AdminService = Depends(admin_service)):
    admin.suspend(user_id)
    return {"message": "Customer suspended"}


@admin_router.patch("/users/{user_id}/reactivate")
def reactivate_customer(user_id: str, admin: AdminService = Depends(admin_service)):
    admin.reactivate(user_id)
    return {"message": "Customer reactivated"}


realtime_router = APIRouter(prefix="/api", tags=["realtime"])


@realtime_router.get("/realtimeStats")
def realtime_stats(
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    admin: AdminService = Depends(admin_service),
):
    return admin.realtime_stats(restaurant_id)


# Auth

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


@auth_router.get("/users", response_model=List[User])
def list_users(auth: AuthService = Depends(auth_service)):
    return auth.list_users()


@auth_router.post("/login")
def login(payload: LoginRequest, auth: AuthService = Depends(auth_service)):
    user = auth.authenticate(payload.username, payload.password)
    return {
        "id": user.id,
        "username": user.username,
        "role": user.role.value,
        "restaurantId": user.restaurant_id,
        "name": user.name,
    }


@auth_router.post("/register", status_code=201)
def register(payload: RegisterRequest, auth: AuthService = Depends(auth_service)):
    user = auth.register(payload)
    return {"ok": True, "data": user}


routers = [
    products_router,
    restaurants_router,
    drones_router,
    cart_router,
    notifications_router,
    analytics_router,
    payments_router,
    admin_router,
    realtime_router,
    auth_router,
]
