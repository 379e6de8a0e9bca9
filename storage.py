# storage.py
"""
Repository functions over the delivery schema.

Every function is one query. Writes commit immediately; nothing here opens a
multi-statement transaction, so concurrent updates to the same row are
last-write-wins.
"""
from sqlalchemy import func, update

from database import (
    db, now_utc, money,
    OrderStatus,
    User, Vendor, MenuItem, Order, Driver,
)


# ---- users ----

def get_user(user_id):
    return db.session.get(User, str(user_id))


def get_user_by_username(username):
    return User.query.filter_by(username=username).first()


def get_user_by_email(email):
    return User.query.filter_by(email=email).first()


def create_user(data: dict) -> User:
    """Insert a user. ``data["password"]`` is plain text and hashed here."""
    fields = dict(data)
    pw = fields.pop("password")
    u = User(**fields)
    u.set_password(pw)
    db.session.add(u)
    db.session.commit()
    return u


def get_all_users():
    return User.query.order_by(User.created_at.desc()).all()


# ---- vendors ----

def get_vendor(vendor_id):
    return db.session.get(Vendor, str(vendor_id))


def get_vendor_by_user_id(user_id):
    return Vendor.query.filter_by(user_id=str(user_id)).first()


def get_vendors():
    return Vendor.query.filter_by(is_open=True).order_by(Vendor.name.asc()).all()


def create_vendor(data: dict) -> Vendor:
    v = Vendor(**data)
    db.session.add(v)
    db.session.commit()
    return v


def update_vendor(vendor_id, changes: dict):
    if changes:
        db.session.execute(update(Vendor).where(Vendor.id == vendor_id).values(**changes))
        db.session.commit()
    return get_vendor(vendor_id)


def update_vendor_status(vendor_id, is_open: bool):
    db.session.execute(update(Vendor).where(Vendor.id == vendor_id).values(is_open=bool(is_open)))
    db.session.commit()


# ---- menu ----

def get_menu_items(vendor_id):
    return (
        MenuItem.query
        .filter_by(vendor_id=str(vendor_id))
        .order_by(MenuItem.category.asc(), MenuItem.name.asc())
        .all()
    )


def get_menu_item(item_id):
    return db.session.get(MenuItem, str(item_id))


def create_menu_item(data: dict) -> MenuItem:
    it = MenuItem(**data)
    db.session.add(it)
    db.session.commit()
    return it


def update_menu_item_availability(item_id, is_available: bool):
    db.session.execute(
        update(MenuItem).where(MenuItem.id == item_id).values(is_available=bool(is_available))
    )
    db.session.commit()


# ---- orders ----

def create_order(data: dict) -> Order:
    ts = now_utc()
    fields = {"status": OrderStatus.PENDING.value, "created_at": ts, "updated_at": ts}
    fields.update(data)
    o = Order(**fields)
    db.session.add(o)
    db.session.commit()
    return o


def get_order(order_id):
    return db.session.get(Order, str(order_id))


def get_orders_by_customer(customer_id):
    return Order.query.filter_by(customer_id=str(customer_id)).order_by(Order.created_at.desc()).all()


def get_orders_by_vendor(vendor_id):
    return Order.query.filter_by(vendor_id=str(vendor_id)).order_by(Order.created_at.desc()).all()


def get_orders_by_driver(driver_user_id):
    return Order.query.filter_by(driver_id=str(driver_user_id)).order_by(Order.created_at.desc()).all()


def get_available_orders():
    return (
        Order.query
        .filter_by(status=OrderStatus.READY.value)
        .order_by(Order.created_at.asc())
        .all()
    )


def update_order_status(order_id, status):
    db.session.execute(
        update(Order)
        .where(Order.id == order_id)
        .values(status=str(status), updated_at=now_utc())
    )
    db.session.commit()


def assign_driver_to_order(order_id, driver_user_id):
    # No guard on an existing driver_id: a second claim overwrites the first.
    db.session.execute(
        update(Order)
        .where(Order.id == order_id)
        .values(
            driver_id=str(driver_user_id),
            status=OrderStatus.PICKED_UP.value,
            updated_at=now_utc(),
        )
    )
    db.session.commit()


def get_all_orders():
    return Order.query.order_by(Order.created_at.desc()).all()


# ---- drivers ----

def get_driver(driver_id):
    return db.session.get(Driver, str(driver_id))


def get_driver_by_user_id(user_id):
    return Driver.query.filter_by(user_id=str(user_id)).first()


def create_driver(data: dict) -> Driver:
    d = Driver(**data)
    db.session.add(d)
    db.session.commit()
    return d


def get_available_drivers():
    return Driver.query.filter_by(is_online=True).order_by(Driver.created_at.asc()).all()


def update_driver_online_status(driver_id, is_online: bool):
    db.session.execute(update(Driver).where(Driver.id == driver_id).values(is_online=bool(is_online)))
    db.session.commit()


# ---- admin ----

def get_platform_stats() -> dict:
    total_orders = db.session.query(func.count(Order.id)).scalar() or 0
    total_revenue = db.session.query(func.coalesce(func.sum(Order.total), 0)).scalar()
    active_vendors = db.session.query(func.count(Vendor.id)).filter(Vendor.is_open.is_(True)).scalar() or 0
    active_drivers = db.session.query(func.count(Driver.id)).filter(Driver.is_online.is_(True)).scalar() or 0
    return {
        "totalOrders": int(total_orders),
        "totalRevenue": str(money(total_revenue)),
        "activeVendors": int(active_vendors),
        "activeDrivers": int(active_drivers),
    }
