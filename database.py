# database.py
import enum
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash


db = SQLAlchemy()


def now_utc():
    return datetime.utcnow()


def new_id() -> str:
    return str(uuid.uuid4())


def money(x) -> Decimal:
    try:
        return Decimal(str(x)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except Exception:
        return Decimal("0.00")


def iso(dt):
    return dt.isoformat() if dt else None


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"
    VENDOR = "vendor"
    ADMIN = "admin"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    PREPARING = "preparing"
    READY = "ready"
    PICKED_UP = "picked_up"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


ORDER_STATUSES = {s.value for s in OrderStatus}


class User(db.Model, UserMixin):
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    username = db.Column(db.String(80), unique=True, index=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(160), unique=True, index=True, nullable=False)
    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=UserRole.CUSTOMER.value)
    phone = db.Column(db.String(40))
    address = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=now_utc)

    def set_password(self, pw):
        self.password_hash = generate_password_hash(pw)

    def check_password(self, pw):
        return check_password_hash(self.password_hash, pw)

    def get_id(self):
        return str(self.id)

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role,
            "phone": self.phone,
            "address": self.address,
            "isActive": bool(self.is_active),
            "createdAt": iso(self.created_at),
        }


class Vendor(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=False, index=True)
    name = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text)
    cuisine = db.Column(db.String(80), nullable=False)
    address = db.Column(db.Text, nullable=False)
    phone = db.Column(db.String(40))
    image_url = db.Column(db.Text)
    rating = db.Column(db.Numeric(3, 2), default=Decimal("0.00"))
    delivery_fee = db.Column(db.Numeric(10, 2), nullable=False)
    minimum_order = db.Column(db.Numeric(10, 2), default=Decimal("0.00"))
    delivery_time = db.Column(db.Integer, nullable=False)
    is_open = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=now_utc)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "description": self.description,
            "cuisine": self.cuisine,
            "address": self.address,
            "phone": self.phone,
            "imageUrl": self.image_url,
            "rating": str(money(self.rating)),
            "deliveryFee": str(money(self.delivery_fee)),
            "minimumOrder": str(money(self.minimum_order)),
            "deliveryTime": self.delivery_time,
            "isOpen": bool(self.is_open),
            "createdAt": iso(self.created_at),
        }


class MenuItem(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    vendor_id = db.Column(db.String(36), db.ForeignKey("vendor.id"), nullable=False, index=True)
    name = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    category = db.Column(db.String(80), nullable=False)
    image_url = db.Column(db.Text)
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=now_utc)

    def to_dict(self):
        return {
            "id": self.id,
            "vendorId": self.vendor_id,
            "name": self.name,
            "description": self.description,
            "price": str(money(self.price)),
            "category": self.category,
            "imageUrl": self.image_url,
            "isAvailable": bool(self.is_available),
            "createdAt": iso(self.created_at),
        }


class Order(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    customer_id = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=False, index=True)
    vendor_id = db.Column(db.String(36), db.ForeignKey("vendor.id"), nullable=False, index=True)
    driver_id = db.Column(db.String(36), db.ForeignKey("user.id"), index=True)
    # [{"itemId", "name", "price", "quantity"}] frozen at placement
    items = db.Column(db.JSON, nullable=False, default=list)
    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    delivery_fee = db.Column(db.Numeric(10, 2), nullable=False)
    tax = db.Column(db.Numeric(10, 2), nullable=False)
    total = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=OrderStatus.PENDING.value)
    delivery_address = db.Column(db.Text, nullable=False)
    customer_notes = db.Column(db.Text)
    estimated_delivery_time = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc)

    def to_dict(self):
        return {
            "id": self.id,
            "customerId": self.customer_id,
            "vendorId": self.vendor_id,
            "driverId": self.driver_id,
            "items": list(self.items or []),
            "subtotal": str(money(self.subtotal)),
            "deliveryFee": str(money(self.delivery_fee)),
            "tax": str(money(self.tax)),
            "total": str(money(self.total)),
            "status": self.status,
            "deliveryAddress": self.delivery_address,
            "customerNotes": self.customer_notes,
            "estimatedDeliveryTime": self.estimated_delivery_time,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class Driver(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=False, index=True)
    vehicle_type = db.Column(db.String(40), nullable=False)
    license_number = db.Column(db.String(80), nullable=False)
    rating = db.Column(db.Numeric(3, 2), default=Decimal("5.00"))
    is_online = db.Column(db.Boolean, nullable=False, default=False)
    current_location_lat = db.Column(db.Numeric(10, 8))
    current_location_lng = db.Column(db.Numeric(11, 8))
    total_deliveries = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=now_utc)

    def to_dict(self):
        lat = self.current_location_lat
        lng = self.current_location_lng
        return {
            "id": self.id,
            "userId": self.user_id,
            "vehicleType": self.vehicle_type,
            "licenseNumber": self.license_number,
            "rating": str(money(self.rating)),
            "isOnline": bool(self.is_online),
            "currentLocationLat": str(lat) if lat is not None else None,
            "currentLocationLng": str(lng) if lng is not None else None,
            "totalDeliveries": self.total_deliveries or 0,
            "createdAt": iso(self.created_at),
        }


class AuditLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("user.id"))
    action = db.Column(db.String(80), nullable=False)
    entity = db.Column(db.String(80), nullable=False)
    entity_id = db.Column(db.String(36))
    ip = db.Column(db.String(80))
    details_json = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=now_utc)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "action": self.action,
            "entity": self.entity,
            "entityId": self.entity_id,
            "ip": self.ip,
            "details": self.details_json,
            "createdAt": iso(self.created_at),
        }


class Settings(db.Model):
    key = db.Column(db.String(120), primary_key=True)
    value = db.Column(db.String(1000), nullable=False)


def setting_get(key, default=None):
    row = db.session.get(Settings, str(key))
    if not row:
        return default
    return row.value


def setting_set(key, value):
    k = str(key)
    v = "" if value is None else str(value)
    row = db.session.get(Settings, k)
    if not row:
        row = Settings(key=k, value=v)
        db.session.add(row)
    else:
        row.value = v
    db.session.commit()
    return v
