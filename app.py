# app.py
import os
import secrets
from functools import wraps
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import Flask, request, jsonify
from flask_login import (
    LoginManager, login_user, logout_user,
    login_required, current_user
)
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

import storage
from database import (
    db,
    now_utc, money,
    setting_get, setting_set,
    UserRole, OrderStatus, ORDER_STATUSES,
    User, AuditLog,
)
from schemas import (
    InsertUser, LoginRequest,
    InsertVendor, UpdateVendor, VendorStatusUpdate,
    InsertMenuItem, MenuItemAvailabilityUpdate,
    InsertOrder, OrderStatusUpdate,
    InsertDriver, DriverStatusUpdate,
)


BASE_DIR = os.path.abspath(os.path.dirname(__file__))
DB_PATH = os.path.join(BASE_DIR, "delivery.db")

DEFAULT_TAX_RATE = "0.08"

CENTS = Decimal("0.01")
# largest value a Numeric(10, 2) money column holds
MAX_MONEY = Decimal("99999999.99")

# Status values each role may request through PUT /api/orders/<id>/status.
# Admin is not listed: any known status is accepted from an admin.
ROLE_STATUS_TRANSITIONS = {
    UserRole.VENDOR.value: {
        OrderStatus.ACCEPTED.value,
        OrderStatus.PREPARING.value,
        OrderStatus.READY.value,
    },
    UserRole.DRIVER.value: {
        OrderStatus.PICKED_UP.value,
        OrderStatus.DELIVERED.value,
    },
}


app = Flask(__name__)

app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", secrets.token_hex(32))
app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", f"sqlite:///{DB_PATH}")
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
app.config["DEFAULT_ADMIN_PASSWORD"] = os.environ.get("DEFAULT_ADMIN_PASSWORD", "admin12345")

app.logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

db.init_app(app)

login_manager = LoginManager(app)
login_manager.login_view = "api_login"


def json_error(message, code=400, **extra):
    body = {"success": False, "error": message}
    body.update(extra)
    return jsonify(body), code


def require_json():
    if not request.is_json:
        return json_error("Expected JSON body", 400)
    return None


def validation_error(message, exc: ValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors(include_url=False)
    ]
    return json_error(message, 400, errors=errors)


def parse_json(schema, message):
    """Validate the request body against ``schema``.

    Returns ``(model, None)`` on success or ``(None, response)`` with a 400.
    """
    bad = require_json()
    if bad:
        return None, bad
    try:
        return schema.model_validate(request.get_json()), None
    except ValidationError as e:
        return None, validation_error(message, e)


def norm_role(role) -> str:
    return (role or "").strip().lower()


def require_roles(*roles):
    allowed = {norm_role(r) for r in roles}
    label = " or ".join(sorted(allowed))

    def deco(fn):
        @wraps(fn)
        @login_required
        def wrapper(*args, **kwargs):
            cur = norm_role(getattr(current_user, "role", ""))
            if cur not in allowed:
                return json_error(f"{label} role required", 403)
            return fn(*args, **kwargs)
        return wrapper
    return deco


def landing_page_for_role(role: str) -> str:
    r = norm_role(role)
    if r == UserRole.ADMIN.value:
        return "/admin"
    if r == UserRole.VENDOR.value:
        return "/vendor"
    if r == UserRole.DRIVER.value:
        return "/driver"
    return "/"


@login_manager.user_loader
def load_user(user_id):
    return storage.get_user(user_id)


@login_manager.unauthorized_handler
def _unauthorized():
    return json_error("Authentication required", 401)


@app.errorhandler(403)
def _err_403(_e):
    return json_error("Forbidden", 403)


@app.errorhandler(404)
def _err_404(_e):
    return json_error("Not found", 404)


@app.errorhandler(HTTPException)
def _err_http(e):
    return json_error(e.description or e.name, e.code or 500)


@app.errorhandler(Exception)
def _err_unhandled(e):
    db.session.rollback()
    app.logger.exception("Unhandled error on %s %s", request.method, request.path)
    return json_error("Internal server error", 500)


def audit(action, entity, entity_id=None, details=None):
    uid = current_user.id if getattr(current_user, "is_authenticated", False) else None

    log = AuditLog(
        user_id=uid,
        action=action,
        entity=entity,
        entity_id=entity_id,
        ip=request.headers.get("X-Forwarded-For", request.remote_addr),
        details_json=(details or {}),
        created_at=now_utc()
    )
    db.session.add(log)
    db.session.commit()


def current_tax_rate() -> Decimal:
    raw = setting_get("tax_rate", DEFAULT_TAX_RATE)
    try:
        return Decimal(str(raw))
    except (InvalidOperation, ValueError):
        app.logger.warning("Bad tax_rate setting %r, using %s", raw, DEFAULT_TAX_RATE)
        return Decimal(DEFAULT_TAX_RATE)


def cents(x) -> Decimal:
    return Decimal(str(x)).quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_order_totals(lines, delivery_fee, tax_rate) -> dict:
    subtotal = cents(sum((cents(l.price) * l.quantity for l in lines), Decimal("0.00")))
    fee = cents(delivery_fee)
    tax = cents(subtotal * Decimal(str(tax_rate)))
    return {
        "subtotal": subtotal,
        "delivery_fee": fee,
        "tax": tax,
        "total": cents(subtotal + fee + tax),
    }


def order_accessible_to_current_user(o) -> bool:
    role = norm_role(current_user.role)
    if role == UserRole.ADMIN.value:
        return True
    if o.customer_id == current_user.id or o.driver_id == current_user.id:
        return True
    if role == UserRole.VENDOR.value:
        v = storage.get_vendor_by_user_id(current_user.id)
        return bool(v and v.id == o.vendor_id)
    return False


# ---- system ----

@app.route("/api/system/init", methods=["POST"])
def api_system_init():
    db.create_all()

    if not setting_get("tax_rate"):
        setting_set("tax_rate", DEFAULT_TAX_RATE)

    if User.query.count() == 0:
        pw = app.config["DEFAULT_ADMIN_PASSWORD"]
        admin = storage.create_user({
            "username": "admin",
            "password": pw,
            "email": "admin@delivery.local",
            "first_name": "Platform",
            "last_name": "Admin",
            "role": UserRole.ADMIN.value,
        })
        audit("seed", "user", admin.id, {"note": "Default admin created"})
        app.logger.info("Default admin account created")
        return jsonify({"success": True, "message": f"Initialized. Default admin: admin / {pw}"})

    return jsonify({"success": True, "message": "Already initialized"})


@app.route("/api/health", methods=["GET"])
def api_health():
    return jsonify({"success": True, "time": now_utc().isoformat()})


# ---- auth ----

@app.route("/api/register", methods=["POST"])
def api_register():
    data, bad = parse_json(InsertUser, "Invalid user data")
    if bad:
        return bad

    fields = data.model_dump()
    fields["email"] = fields["email"].lower()
    # duplicates are left to the unique constraints and surface as a 500
    u = storage.create_user(fields)
    audit("register", "user", u.id)

    login_user(u)
    audit("login", "user", u.id, {"note": "auto-login after register"})

    return jsonify(u.to_dict()), 201


@app.route("/api/login", methods=["POST"])
def api_login():
    data, bad = parse_json(LoginRequest, "Invalid login data")
    if bad:
        return bad

    ident = data.username
    user = storage.get_user_by_username(ident) or storage.get_user_by_email(ident.lower())
    if not user or not user.is_active or not user.check_password(data.password):
        return json_error("Invalid credentials", 401)

    login_user(user)
    audit("login", "user", user.id)

    return jsonify({
        "success": True,
        "user": user.to_dict(),
        "redirectUrl": landing_page_for_role(user.role)
    })


@app.route("/api/logout", methods=["POST"])
@login_required
def api_logout():
    audit("logout", "user", current_user.id)
    logout_user()
    return jsonify({"success": True})


@app.route("/api/user", methods=["GET"])
@login_required
def api_current_user():
    return jsonify(current_user.to_dict())


# ---- vendors ----

@app.route("/api/vendors", methods=["GET"])
def api_vendors_list():
    return jsonify([v.to_dict() for v in storage.get_vendors()])


@app.route("/api/vendors", methods=["POST"])
@require_roles("vendor")
def api_vendors_create():
    data, bad = parse_json(InsertVendor, "Invalid vendor data")
    if bad:
        return bad
    if storage.get_vendor_by_user_id(current_user.id):
        return json_error("Vendor profile already exists", 400)

    v = storage.create_vendor({**data.model_dump(), "user_id": current_user.id})
    audit("create", "vendor", v.id, {"name": v.name})
    return jsonify(v.to_dict()), 201


@app.route("/api/vendors/me", methods=["GET"])
@require_roles("vendor")
def api_vendor_me():
    v = storage.get_vendor_by_user_id(current_user.id)
    if not v:
        return json_error("Vendor not found", 404)
    return jsonify(v.to_dict())


@app.route("/api/vendors/<vendor_id>", methods=["GET"])
def api_vendor_get(vendor_id):
    v = storage.get_vendor(vendor_id)
    if not v:
        return json_error("Vendor not found", 404)
    return jsonify(v.to_dict())


@app.route("/api/vendors/<vendor_id>", methods=["PUT"])
@require_roles("vendor")
def api_vendor_update(vendor_id):
    v = storage.get_vendor(vendor_id)
    if not v:
        return json_error("Vendor not found", 404)
    if v.user_id != current_user.id:
        return json_error("Access denied", 403)

    data, bad = parse_json(UpdateVendor, "Invalid vendor data")
    if bad:
        return bad

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    v = storage.update_vendor(vendor_id, changes)
    audit("update", "vendor", vendor_id, {"fields": sorted(changes)})
    return jsonify(v.to_dict())


@app.route("/api/vendors/<vendor_id>/status", methods=["PUT"])
@require_roles("vendor")
def api_vendor_set_status(vendor_id):
    v = storage.get_vendor(vendor_id)
    if not v:
        return json_error("Vendor not found", 404)
    if v.user_id != current_user.id:
        return json_error("Access denied", 403)

    data, bad = parse_json(VendorStatusUpdate, "Invalid vendor status")
    if bad:
        return bad

    storage.update_vendor_status(vendor_id, data.is_open)
    audit("status", "vendor", vendor_id, {"isOpen": data.is_open})
    return jsonify({"success": True})


# ---- menu ----

@app.route("/api/vendors/<vendor_id>/menu", methods=["GET"])
def api_vendor_menu(vendor_id):
    return jsonify([it.to_dict() for it in storage.get_menu_items(vendor_id)])


@app.route("/api/menu-items", methods=["POST"])
@require_roles("vendor")
def api_menu_items_create():
    v = storage.get_vendor_by_user_id(current_user.id)
    if not v:
        return json_error("Vendor account required", 403)

    data, bad = parse_json(InsertMenuItem, "Invalid menu item data")
    if bad:
        return bad

    it = storage.create_menu_item({**data.model_dump(), "vendor_id": v.id})
    audit("create", "menu_item", it.id, {"name": it.name, "price": str(it.price)})
    return jsonify(it.to_dict()), 201


@app.route("/api/menu-items/<item_id>/availability", methods=["PUT"])
@require_roles("vendor")
def api_menu_item_set_availability(item_id):
    it = storage.get_menu_item(item_id)
    if not it:
        return json_error("Menu item not found", 404)
    v = storage.get_vendor_by_user_id(current_user.id)
    if not v or v.id != it.vendor_id:
        return json_error("Access denied", 403)

    data, bad = parse_json(MenuItemAvailabilityUpdate, "Invalid availability data")
    if bad:
        return bad

    storage.update_menu_item_availability(item_id, data.is_available)
    audit("availability", "menu_item", item_id, {"isAvailable": data.is_available})
    return jsonify({"success": True})


# ---- orders ----

@app.route("/api/orders", methods=["POST"])
@require_roles("customer")
def api_orders_create():
    data, bad = parse_json(InsertOrder, "Invalid order data")
    if bad:
        return bad

    v = storage.get_vendor(data.vendor_id)
    if not v:
        return json_error("Vendor not found", 404)

    totals = compute_order_totals(data.items, v.delivery_fee, current_tax_rate())
    if totals["total"] > MAX_MONEY:
        return json_error("Order total too large", 400)

    snapshot = [
        {"itemId": l.item_id, "name": l.name, "price": float(money(l.price)), "quantity": l.quantity}
        for l in data.items
    ]

    o = storage.create_order({
        "customer_id": current_user.id,
        "vendor_id": v.id,
        "items": snapshot,
        "delivery_address": data.delivery_address,
        "customer_notes": data.customer_notes,
        "estimated_delivery_time": v.delivery_time,
        **totals,
    })
    audit("create", "order", o.id, {"vendorId": v.id, "total": str(o.total)})
    return jsonify(o.to_dict()), 201


@app.route("/api/orders/<order_id>", methods=["GET"])
@login_required
def api_order_get(order_id):
    o = storage.get_order(order_id)
    if not o:
        return json_error("Order not found", 404)
    if not order_accessible_to_current_user(o):
        return json_error("Access denied", 403)
    return jsonify(o.to_dict())


@app.route("/api/my-orders", methods=["GET"])
@login_required
def api_my_orders():
    role = norm_role(current_user.role)

    if role == UserRole.CUSTOMER.value:
        orders = storage.get_orders_by_customer(current_user.id)
    elif role == UserRole.DRIVER.value:
        orders = storage.get_orders_by_driver(current_user.id)
    elif role == UserRole.VENDOR.value:
        v = storage.get_vendor_by_user_id(current_user.id)
        orders = storage.get_orders_by_vendor(v.id) if v else []
    else:
        orders = []

    return jsonify([o.to_dict() for o in orders])


@app.route("/api/orders/<order_id>/status", methods=["PUT"])
@login_required
def api_order_set_status(order_id):
    o = storage.get_order(order_id)
    if not o:
        return json_error("Order not found", 404)

    data, bad = parse_json(OrderStatusUpdate, "Invalid order status")
    if bad:
        return bad

    status = data.status.strip().lower()
    role = norm_role(current_user.role)

    # Only the role is checked, never the current status.
    if role != UserRole.ADMIN.value and status not in ROLE_STATUS_TRANSITIONS.get(role, set()):
        return json_error("Cannot update order status", 403)
    if status not in ORDER_STATUSES:
        return json_error("Unknown order status", 400)

    prev = o.status
    storage.update_order_status(order_id, status)
    audit("status", "order", order_id, {"from": prev, "to": status})
    return jsonify({"success": True})


@app.route("/api/available-orders", methods=["GET"])
@require_roles("driver")
def api_available_orders():
    return jsonify([o.to_dict() for o in storage.get_available_orders()])


@app.route("/api/orders/<order_id>/assign", methods=["POST"])
@require_roles("driver")
def api_order_assign_driver(order_id):
    o = storage.get_order(order_id)
    if not o:
        return json_error("Order not found", 404)

    prev_driver = o.driver_id
    storage.assign_driver_to_order(order_id, current_user.id)
    audit("assign", "order", order_id, {"driverId": current_user.id, "previousDriverId": prev_driver})
    return jsonify({"success": True})


# ---- drivers ----

@app.route("/api/drivers", methods=["POST"])
@require_roles("driver")
def api_drivers_create():
    data, bad = parse_json(InsertDriver, "Invalid driver data")
    if bad:
        return bad
    if storage.get_driver_by_user_id(current_user.id):
        return json_error("Driver profile already exists", 400)

    d = storage.create_driver({**data.model_dump(), "user_id": current_user.id})
    audit("create", "driver", d.id, {"vehicleType": d.vehicle_type})
    return jsonify(d.to_dict()), 201


@app.route("/api/drivers/me", methods=["GET"])
@require_roles("driver")
def api_driver_me():
    d = storage.get_driver_by_user_id(current_user.id)
    if not d:
        return json_error("Driver not found", 404)
    return jsonify(d.to_dict())


@app.route("/api/drivers/<driver_id>/status", methods=["PUT"])
@require_roles("driver")
def api_driver_set_status(driver_id):
    d = storage.get_driver(driver_id)
    if not d:
        return json_error("Driver not found", 404)
    if d.user_id != current_user.id:
        return json_error("Access denied", 403)

    data, bad = parse_json(DriverStatusUpdate, "Invalid driver status")
    if bad:
        return bad

    storage.update_driver_online_status(driver_id, data.is_online)
    audit("status", "driver", driver_id, {"isOnline": data.is_online})
    return jsonify({"success": True})


# ---- admin ----

@app.route("/api/admin/users", methods=["GET"])
@require_roles("admin")
def api_admin_users():
    return jsonify([u.to_dict() for u in storage.get_all_users()])


@app.route("/api/admin/orders", methods=["GET"])
@require_roles("admin")
def api_admin_orders():
    return jsonify([o.to_dict() for o in storage.get_all_orders()])


@app.route("/api/admin/stats", methods=["GET"])
@require_roles("admin")
def api_admin_stats():
    return jsonify(storage.get_platform_stats())


@app.route("/api/admin/drivers", methods=["GET"])
@require_roles("admin")
def api_admin_drivers():
    return jsonify([d.to_dict() for d in storage.get_available_drivers()])


@app.route("/api/admin/audit-logs", methods=["GET"])
@require_roles("admin")
def api_admin_audit_logs():
    logs = AuditLog.query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(500).all()
    return jsonify([l.to_dict() for l in logs])


if __name__ == "__main__":
    with app.app_context():
        db.create_all()
    app.run(host="127.0.0.1", port=5000, debug=True, use_reloader=False)
