"""
CRUD API tests for branches, products, customers and staff accounts.

Verifies the response envelope, payload validation, uniqueness conflicts
and soft deletion.
"""

from conftest import make_user


# =============================================================================
# PRODUCTS
# =============================================================================


class TestProductsApi:
    def test_create_and_get(self, client, admin_headers):
        resp = client.post("/api/products", headers=admin_headers, json={
            "sku": "MUG-001",
            "name": "Ceramic Mug",
            "unit_price": "120.00",
            "cost_price": "60.00",
            "category": "Home",
            "tax_rate": "0.16",
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["success"] is True
        product = body["data"]
        assert product["unit_price"] == "120.00"

        resp = client.get(f"/api/products/{product['id']}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["sku"] == "MUG-001"

    def test_missing_required_fields(self, client, admin_headers):
        resp = client.post("/api/products", headers=admin_headers, json={"name": "No SKU"})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["success"] is False
        assert body["error"]["code"] == "validation_error"
        assert "sku" in body["error"]["details"]["missing"]

    def test_price_must_exceed_cost(self, client, admin_headers):
        resp = client.post("/api/products", headers=admin_headers, json={
            "sku": "LOSS-1", "name": "Loss Leader", "unit_price": "10.00", "cost_price": "12.00",
        })
        assert resp.status_code == 400

    def test_unknown_field_rejected(self, client, admin_headers):
        resp = client.post("/api/products", headers=admin_headers, json={
            "sku": "X-1", "name": "X", "unit_price": "1.00", "stock": 4,
        })
        assert resp.status_code == 400

    def test_duplicate_sku_conflict(self, client, admin_headers, product):
        resp = client.post("/api/products", headers=admin_headers, json={
            "sku": product.sku, "name": "Copy", "unit_price": "5.00",
        })
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "conflict"

    def test_update_and_soft_delete(self, client, admin_headers, product):
        resp = client.put(f"/api/products/{product.id}", headers=admin_headers, json={"name": "Dark Roast"})
        assert resp.status_code == 200
        assert resp.get_json()["data"]["name"] == "Dark Roast"

        assert client.delete(f"/api/products/{product.id}", headers=admin_headers).status_code == 200
        listed = client.get("/api/products", headers=admin_headers).get_json()
        assert listed["pagination"]["total"] == 0
        listed = client.get("/api/products?include_inactive=true", headers=admin_headers).get_json()
        assert listed["pagination"]["total"] == 1

    def test_search_and_pagination(self, client, admin_headers, product, second_product):
        resp = client.get("/api/products?search=tea", headers=admin_headers)
        assert [p["sku"] for p in resp.get_json()["data"]] == ["TEA-020"]

        resp = client.get("/api/products?per_page=1&page=2", headers=admin_headers)
        pagination = resp.get_json()["pagination"]
        assert pagination["total"] == 2
        assert pagination["total_pages"] == 2
        assert pagination["has_prev"] is True
        assert pagination["has_next"] is False

    def test_missing_product_is_404(self, client, admin_headers):
        resp = client.get("/api/products/424242", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "not_found"


# =============================================================================
# BRANCHES
# =============================================================================


class TestBranchesApi:
    def test_create_branch(self, client, admin_headers):
        resp = client.post("/api/branches", headers=admin_headers, json={"name": "Sur", "code": "SUR", "city": "Puebla"})
        assert resp.status_code == 201
        assert resp.get_json()["data"]["code"] == "SUR"

    def test_duplicate_code(self, client, admin_headers, branch):
        resp = client.post("/api/branches", headers=admin_headers, json={"name": "Copy", "code": branch.code})
        assert resp.status_code == 409

    def test_manager_cannot_create_branch(self, client, manager_headers):
        resp = client.post("/api/branches", headers=manager_headers, json={"name": "Sur", "code": "SUR"})
        assert resp.status_code == 403

    def test_update_and_deactivate(self, client, admin_headers, branch):
        resp = client.put(f"/api/branches/{branch.id}", headers=admin_headers, json={"phone": "555-0100"})
        assert resp.status_code == 200
        assert resp.get_json()["data"]["phone"] == "555-0100"

        resp = client.delete(f"/api/branches/{branch.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["is_active"] is False

    def test_assign_users(self, client, admin_headers, cashier, other_branch):
        resp = client.post(f"/api/branches/{other_branch.id}/users", headers=admin_headers,
                           json={"user_ids": [cashier.id]})
        assert resp.status_code == 200
        assert resp.get_json()["data"][0]["branch_id"] == other_branch.id

    def test_assign_unknown_users(self, client, admin_headers, branch):
        resp = client.post(f"/api/branches/{branch.id}/users", headers=admin_headers, json={"user_ids": [9999]})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"]["code"] == "reference_error"
        assert body["error"]["details"]["user_ids"] == [9999]


# =============================================================================
# CUSTOMERS
# =============================================================================


class TestCustomersApi:
    def test_cashier_can_create_customer(self, client, cashier_headers, branch):
        resp = client.post("/api/customers", headers=cashier_headers, json={
            "first_name": "Ana",
            "last_name": "Lopez",
            "email": "ANA@example.com",
            "branch_ids": [branch.id],
        })
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["email"] == "ana@example.com"
        assert data["branch_ids"] == [branch.id]

    def test_duplicate_email(self, client, admin_headers):
        payload = {"first_name": "Ana", "last_name": "Lopez", "email": "ana@example.com"}
        assert client.post("/api/customers", headers=admin_headers, json=payload).status_code == 201
        assert client.post("/api/customers", headers=admin_headers, json=payload).status_code == 409

    def test_unknown_branch_reference(self, client, admin_headers):
        resp = client.post("/api/customers", headers=admin_headers, json={
            "first_name": "Ana", "last_name": "Lopez", "branch_ids": [9999],
        })
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "reference_error"

    def test_branch_filter_includes_shared_customers(self, client, admin_headers, branch, other_branch):
        client.post("/api/customers", headers=admin_headers,
                    json={"first_name": "Local", "last_name": "One", "branch_ids": [branch.id]})
        client.post("/api/customers", headers=admin_headers,
                    json={"first_name": "Far", "last_name": "Two", "branch_ids": [other_branch.id]})
        client.post("/api/customers", headers=admin_headers,
                    json={"first_name": "Shared", "last_name": "Three"})

        resp = client.get(f"/api/customers?branch_id={branch.id}", headers=admin_headers)
        names = sorted(c["first_name"] for c in resp.get_json()["data"])
        assert names == ["Local", "Shared"]

    def test_cashier_cannot_delete_customer(self, client, cashier_headers, admin_headers):
        created = client.post("/api/customers", headers=admin_headers,
                              json={"first_name": "Ana", "last_name": "Lopez"}).get_json()["data"]
        assert client.delete(f"/api/customers/{created['id']}", headers=cashier_headers).status_code == 403
        assert client.delete(f"/api/customers/{created['id']}", headers=admin_headers).status_code == 200


# =============================================================================
# STAFF ACCOUNTS
# =============================================================================


class TestUsersApi:
    def test_create_user_generates_employee_id(self, client, admin_headers, branch):
        resp = client.post("/api/users", headers=admin_headers, json={
            "email": "Maria@pos.test",
            "first_name": "Maria",
            "last_name": "Perez",
            "role": "cashier",
            "branch_id": branch.id,
            "password": "Password123!",
        })
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["email"] == "maria@pos.test"
        assert data["employee_id"].startswith("EMPMP")
        assert "password_hash" not in data

    def test_password_required_and_checked(self, client, admin_headers, branch):
        base = {"email": "x@pos.test", "first_name": "X", "last_name": "Y", "role": "auditor"}
        assert client.post("/api/users", headers=admin_headers, json=base).status_code == 400
        resp = client.post("/api/users", headers=admin_headers, json={**base, "password": "weak"})
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "weak_password"

    def test_cashier_needs_branch(self, client, admin_headers):
        resp = client.post("/api/users", headers=admin_headers, json={
            "email": "x@pos.test", "first_name": "X", "last_name": "Y",
            "role": "cashier", "password": "Password123!",
        })
        assert resp.status_code == 400

    def test_invalid_role(self, client, admin_headers):
        resp = client.post("/api/users", headers=admin_headers, json={
            "email": "x@pos.test", "first_name": "X", "last_name": "Y",
            "role": "janitor", "password": "Password123!",
        })
        assert resp.status_code == 400

    def test_single_owner(self, client, admin_headers, owner):
        resp = client.post("/api/users", headers=admin_headers, json={
            "email": "owner2@pos.test", "first_name": "Second", "last_name": "Owner",
            "role": "owner", "password": "Password123!",
        })
        assert resp.status_code == 409

    def test_duplicate_email(self, client, admin_headers, cashier, branch):
        resp = client.post("/api/users", headers=admin_headers, json={
            "email": "cashier@pos.test", "first_name": "X", "last_name": "Y",
            "role": "cashier", "branch_id": branch.id, "password": "Password123!",
        })
        assert resp.status_code == 409

    def test_cannot_delete_self(self, client, admin, admin_headers):
        resp = client.delete(f"/api/users/{admin.id}", headers=admin_headers)
        assert resp.status_code == 400

    def test_delete_is_soft(self, client, admin_headers, branch):
        target = make_user("cashier", "leaving@pos.test", branch.id)
        resp = client.delete(f"/api/users/{target.id}", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["is_active"] is False
        assert data["deleted_at"] is not None

    def test_manager_lists_only_own_branch(self, client, manager_headers, cashier, other_branch):
        make_user("cashier", "far@pos.test", other_branch.id)
        resp = client.get("/api/users", headers=manager_headers)
        emails = sorted(u["email"] for u in resp.get_json()["data"])
        assert emails == ["cashier@pos.test", "manager@pos.test"]


class TestHealth:
    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        assert body["data"]["checks"]["database"]["status"] == "healthy"

    def test_cors_for_allowed_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_no_cors_for_unknown_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers
