def create_test_vendor(client, **overrides):
    vendor_to_create = {
        "name": "Test Kitchen",
        "description": "Home style cooking",
        "cuisine": "Italian",
        "address": "1 Market Street",
        "phone": "555-0100",
        "deliveryFee": "3.00",
        "minimumOrder": "10.00",
        "deliveryTime": 30,
    }
    vendor_to_create.update(overrides)
    response = client.post("/api/vendors", json=vendor_to_create)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def create_test_menu_item(client, **overrides):
    item_to_create = {
        "name": "Margherita",
        "description": "Tomato, mozzarella, basil",
        "price": "9.99",
        "category": "Pizza",
    }
    item_to_create.update(overrides)
    response = client.post("/api/menu-items", json=item_to_create)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def place_test_order(client, vendor_id, items=None, **overrides):
    order_to_create = {
        "vendorId": vendor_id,
        "items": items or [
            {"itemId": "item-1", "name": "Pasta", "price": 10, "quantity": 2},
            {"itemId": "item-2", "name": "Salad", "price": 5, "quantity": 1},
        ],
        "deliveryAddress": "42 Elm Street",
        "customerNotes": "Ring twice",
    }
    order_to_create.update(overrides)
    response = client.post("/api/orders", json=order_to_create)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def create_test_driver(client, **overrides):
    driver_to_create = {
        "vehicleType": "bike",
        "licenseNumber": "LIC-12345",
    }
    driver_to_create.update(overrides)
    response = client.post("/api/drivers", json=driver_to_create)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def set_status(client, order_id, status):
    return client.put(f"/api/orders/{order_id}/status", json={"status": status})
