"""
Demo data: two restaurants with their menus, one drone each and a few
accounts. Each collection is only seeded while it is empty.
"""

import logging
import re
import unicodedata

from auth import hash_password
from database import EntityStore, now_ms
from schemas import Drone, DroneStatus, Product, Restaurant, UserRole

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", ascii_name.lower()).strip("-")


RESTAURANTS = [
    Restaurant(
        id="SweetDreams",
        name="Sweet Dreams Bakery",
        description="Bánh ngọt và tráng miệng",
        category="Bakery",
        location="Quận 1, TP.HCM",
        rating=4.7,
        owner_id="OWNER-SD",
        primary_color="#f472b6",
        secondary_color="#fdf2f8",
        accent_color="#be185d",
    ),
    Restaurant(
        id="Aloha",
        name="Aloha Kitchen",
        description="Burger và pizza kiểu Hawaii",
        category="Fast Food",
        location="Quận 3, TP.HCM",
        rating=4.5,
        owner_id="OWNER-AK",
        primary_color="#f59e0b",
        secondary_color="#fffbeb",
        accent_color="#b45309",
    ),
]

PRODUCTS = [
    ("Bánh Donut", 25000, "Bánh ngọt",
     "https://images.unsplash.com/photo-1551024601-bec78aea704b?w=400&h=300&fit=crop", "SweetDreams"),
    ("Bánh Tiramisu", 55000, "Tráng miệng",
     "https://images.unsplash.com/photo-1571877227200-a0d98ea607e9?w=400&h=300&fit=crop", "SweetDreams"),
    ("Hamburger", 79000, "Món chính",
     "https://images.unsplash.com/photo-1568901346375-23c9450c58cd?w=400&h=300&fit=crop", "Aloha"),
    ("Pizza Hawaii", 89000, "Món chính",
     "https://images.unsplash.com/photo-1565299624946-b28f40a0ae38?w=400&h=300&fit=crop", "Aloha"),
]

DRONES = [
    ("DRONE-SD-001", "SweetDreams"),
    ("DRONE-AK-001", "Aloha"),
]

# (id, username, password, name, phone, role, restaurant_id)
USERS = [
    ("ADMIN-001", "admin", "admin123", "Administrator", "0900000001", UserRole.ADMIN, None),
    ("OWNER-SD", "sweetdreams", "sweet123", "Sweet Dreams Owner", "0900000002", UserRole.RESTAURANT, "SweetDreams"),
    ("OWNER-AK", "aloha", "aloha123", "Aloha Owner", "0900000003", UserRole.RESTAURANT, "Aloha"),
    ("CUS-DEMO", "customer", "customer123", "Demo Customer", "0900000004", UserRole.CUSTOMER, None),
]


def seed_demo(store: EntityStore) -> dict:
    created = {"restaurants": 0, "products": 0, "drones": 0, "users": 0}
    now = now_ms()

    if store.count("restaurant") == 0:
        for r in RESTAURANTS:
            store.create("restaurant", r.model_copy(update={"created_at": now}), doc_id=r.id)
            created["restaurants"] += 1

    if store.count("product") == 0:
        for name, price, category, image_url, restaurant in PRODUCTS:
            product = Product(
                id=slugify(name),
                name=name,
                price=price,
                category=category,
                image_url=image_url,
                restaurant=restaurant,
            )
            store.create("product", product, doc_id=product.id)
            created["products"] += 1

    if store.count("drone") == 0:
        names = {r.id: r.name for r in RESTAURANTS}
        for code, restaurant_id in DRONES:
            drone = Drone(
                id=code,
                drone_code=code,
                restaurant_id=restaurant_id,
                restaurant_name=names.get(restaurant_id),
                status=DroneStatus.IDLE,
                battery=100,
                last_maintenance=now,
                updated_at=now,
            )
            store.create("drone", drone, doc_id=drone.id)
            created["drones"] += 1

    if store.count("user") == 0:
        for user_id, username, password, name, phone, role, restaurant_id in USERS:
            store.create(
                "user",
                {
                    "username": username,
                    "name": name,
                    "email": f"{username}@foodfast.local",
                    "phone": phone,
                    "role": role.value,
                    "restaurant_id": restaurant_id,
                    "order_count": 0,
                    "created_at": now,
                    "password_hash": hash_password(password),
                },
                doc_id=user_id,
            )
            created["users"] += 1

    if any(created.values()):
        logger.info("Seeded demo data: %s", created)
    return created
