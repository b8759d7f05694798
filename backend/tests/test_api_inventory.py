"""
Inventory API tests: record creation, ledger endpoints and movement history.
"""

import pytest

from pos_api.services import inventory_service


class TestInventoryApi:
    def test_create_record_with_opening_stock(self, client, manager_headers, product, branch):
        resp = client.post("/api/inventory", headers=manager_headers, json={
            "product_id": product.id,
            "branch_id": branch.id,
            "current_stock": 12,
            "average_cost": "55.00",
            "location": "Aisle 2",
        })
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["current_stock"] == 12
        assert data["available_stock"] == 12
        assert data["total_value"] == "660.00"
        assert data["product"]["sku"] == product.sku

    def test_duplicate_record_conflict(self, client, manager_headers, inventory, product, branch):
        resp = client.post("/api/inventory", headers=manager_headers, json={
            "product_id": product.id, "branch_id": branch.id,
        })
        assert resp.status_code == 409

    def test_manager_cannot_stock_other_branch(self, client, manager_headers, product, other_branch):
        resp = client.post("/api/inventory", headers=manager_headers, json={
            "product_id": product.id, "branch_id": other_branch.id,
        })
        assert resp.status_code == 403

    def test_unknown_product_is_reference_error(self, client, admin_headers, branch):
        resp = client.post("/api/inventory", headers=admin_headers, json={"product_id": 999, "branch_id": branch.id})
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "reference_error"

    def test_adjust(self, client, manager_headers, inventory):
        resp = client.post(f"/api/inventory/{inventory.id}/adjust", headers=manager_headers,
                           json={"delta": -3, "reason": "Damaged in transit"})
        assert resp.status_code == 200
        assert resp.get_json()["data"]["current_stock"] == 7

    @pytest.mark.parametrize("body", [
        {"delta": -11, "reason": "Too many"},
        {"delta": 0, "reason": "Nothing"},
        {"delta": 2},
        {"delta": "2", "reason": "String"},
        {"reason": "No delta"},
    ])
    def test_adjust_rejects_bad_input(self, client, manager_headers, inventory, body):
        resp = client.post(f"/api/inventory/{inventory.id}/adjust", headers=manager_headers, json=body)
        assert resp.status_code == 400
        stock = client.get(f"/api/inventory/{inventory.id}", headers=manager_headers).get_json()["data"]
        assert stock["current_stock"] == 10

    def test_restock(self, client, manager_headers, inventory):
        resp = client.post(f"/api/inventory/{inventory.id}/restock", headers=manager_headers,
                           json={"quantity": 10, "unit_cost": "80.00", "reason": "PO 1042"})
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["current_stock"] == 20
        assert data["average_cost"] == "70.00"
        assert data["last_restock_at"] is not None

    def test_restock_requires_unit_cost(self, client, manager_headers, inventory):
        resp = client.post(f"/api/inventory/{inventory.id}/restock", headers=manager_headers, json={"quantity": 3})
        assert resp.status_code == 400

    def test_count(self, client, manager, manager_headers, inventory):
        resp = client.post(f"/api/inventory/{inventory.id}/count", headers=manager_headers,
                           json={"counted_quantity": 9})
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["current_stock"] == 9
        assert data["last_counted_by_user_id"] == manager.id

    def test_movements_newest_first(self, client, manager_headers, inventory):
        client.post(f"/api/inventory/{inventory.id}/adjust", headers=manager_headers,
                    json={"delta": -1, "reason": "Shrink"})
        resp = client.get(f"/api/inventory/{inventory.id}/movements", headers=manager_headers)
        assert resp.status_code == 200
        movements = resp.get_json()["data"]
        assert [m["movement_type"] for m in movements] == ["adjust", "restock"]
        assert movements[0]["previous_stock"] == 10
        assert movements[0]["new_stock"] == 9

    def test_update_thresholds(self, client, manager_headers, inventory):
        resp = client.put(f"/api/inventory/{inventory.id}", headers=manager_headers,
                          json={"min_stock": 3, "max_stock": 50})
        assert resp.status_code == 200
        assert resp.get_json()["data"]["max_stock"] == 50

    def test_update_rejects_stock_fields(self, client, manager_headers, inventory):
        resp = client.put(f"/api/inventory/{inventory.id}", headers=manager_headers, json={"current_stock": 99})
        assert resp.status_code == 400

    def test_low_stock_filter(self, client, manager_headers, inventory, second_product, branch):
        client.post("/api/inventory", headers=manager_headers, json={
            "product_id": second_product.id, "branch_id": branch.id, "current_stock": 1, "min_stock": 5,
        })
        resp = client.get("/api/inventory?low_stock=true", headers=manager_headers)
        assert [r["product_id"] for r in resp.get_json()["data"]] == [second_product.id]

    def test_delete(self, client, manager_headers, inventory):
        resp = client.delete(f"/api/inventory/{inventory.id}", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["is_active"] is False

    def test_deactivate_via_update_refused_while_reserved(self, client, manager_headers, inventory, product, branch):
        resp = client.post("/api/sales", headers=manager_headers, json={
            "branch_id": branch.id,
            "payment_method": "cash",
            "status": "pending",
            "items": [{"product_id": product.id, "quantity": 2}],
        })
        assert resp.status_code == 201

        resp = client.put(f"/api/inventory/{inventory.id}", headers=manager_headers, json={"is_active": False})
        assert resp.status_code == 409
        assert resp.get_json()["error"]["details"]["reserved_stock"] == 2

    def test_unexpected_error_on_get_is_generic_500(self, monkeypatch, client, manager_headers, inventory):
        def broken_get_inventory(inventory_id):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(inventory_service, "get_inventory", broken_get_inventory)

        resp = client.get(f"/api/inventory/{inventory.id}", headers=manager_headers)

        assert resp.status_code == 500
        assert resp.get_json()["message"] == "Internal server error"
