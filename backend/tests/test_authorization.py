"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Role capabilities gate every mutating endpoint (403)
- Branch-scoped roles (manager, cashier) are pinned to their own branch
- Auditor is read-only across all branches
"""

import pytest

from conftest import make_user, stock
from pos_api.permissions import (
    Role,
    capabilities_for_role,
    get_all_capability_codes,
    is_branch_scoped,
    parse_role,
    role_has_capability,
)


# =============================================================================
# ROLE -> CAPABILITY MAPPING
# =============================================================================


class TestRoleCapabilities:
    def test_owner_and_admin_have_everything(self):
        every = set(get_all_capability_codes())
        assert set(capabilities_for_role("owner")) == every
        assert set(capabilities_for_role("admin")) == every

    def test_auditor_only_views(self):
        caps = capabilities_for_role("auditor")
        assert caps
        assert all(code.startswith("VIEW_") for code in caps)
        assert "VIEW_ALL_BRANCHES" in caps

    def test_manager_is_branch_bound(self):
        assert not role_has_capability("manager", "VIEW_ALL_BRANCHES")
        assert not role_has_capability("manager", "MANAGE_BRANCHES")
        assert role_has_capability("manager", "REFUND_SALE")
        assert is_branch_scoped(Role.MANAGER)

    def test_cashier_sells_but_does_not_manage(self):
        assert role_has_capability("cashier", "CREATE_SALE")
        assert not role_has_capability("cashier", "CANCEL_SALE")
        assert not role_has_capability("cashier", "ADJUST_INVENTORY")
        assert is_branch_scoped(Role.CASHIER)

    def test_unknown_role_has_nothing(self):
        assert parse_role("superuser") is None
        assert not role_has_capability("superuser", "VIEW_SALES")


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/branches"),
            ("POST", "/api/branches"),
            ("GET", "/api/products"),
            ("GET", "/api/customers"),
            ("GET", "/api/users"),
            ("GET", "/api/inventory"),
            ("POST", "/api/inventory/1/adjust"),
            ("GET", "/api/sales"),
            ("POST", "/api/sales"),
            ("DELETE", "/api/sales/1"),
            ("GET", "/api/dashboard/stats"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["success"] is False


# =============================================================================
# CASHIER DENIED PRIVILEGED OPERATIONS (403)
# =============================================================================


class TestCashierDenied:
    def test_cannot_list_users(self, client, cashier_headers):
        resp = client.get("/api/users", headers=cashier_headers)
        assert resp.status_code == 403
        assert resp.get_json()["error"]["details"]["required_capability"] == "VIEW_USERS"

    def test_cannot_create_product(self, client, cashier_headers):
        resp = client.post("/api/products", headers=cashier_headers, json={"sku": "X", "name": "X", "unit_price": "1"})
        assert resp.status_code == 403

    def test_cannot_adjust_inventory(self, client, cashier_headers, inventory):
        resp = client.post(
            f"/api/inventory/{inventory.id}/adjust",
            headers=cashier_headers,
            json={"delta": -1, "reason": "Shrink"},
        )
        assert resp.status_code == 403

    def test_cannot_cancel_sale(self, client, cashier_headers):
        assert client.delete("/api/sales/1", headers=cashier_headers).status_code == 403

    def test_cannot_refund_sale(self, client, cashier_headers):
        assert client.post("/api/sales/1/refund", headers=cashier_headers, json={}).status_code == 403

    def test_cannot_manage_branches(self, client, cashier_headers):
        resp = client.post("/api/branches", headers=cashier_headers, json={"name": "Sur", "code": "SUR"})
        assert resp.status_code == 403


# =============================================================================
# AUDITOR IS READ-ONLY
# =============================================================================


class TestAuditor:
    def test_can_read_everything(self, client, auditor_headers, inventory):
        for path in ("/api/branches", "/api/products", "/api/inventory", "/api/sales", "/api/users",
                     "/api/customers", "/api/dashboard/stats"):
            assert client.get(path, headers=auditor_headers).status_code == 200, path

    def test_cannot_sell(self, client, auditor_headers, inventory, product, branch):
        resp = client.post("/api/sales", headers=auditor_headers, json={
            "branch_id": branch.id,
            "payment_method": "cash",
            "items": [{"product_id": product.id, "quantity": 1}],
        })
        assert resp.status_code == 403


# =============================================================================
# BRANCH SCOPING
# =============================================================================


class TestBranchScoping:
    def test_cashier_lists_only_own_branch_inventory(
        self, client, cashier_headers, inventory, product, other_branch
    ):
        stock(product, other_branch, 4)
        resp = client.get("/api/inventory", headers=cashier_headers)
        assert resp.status_code == 200
        records = resp.get_json()["data"]
        assert [r["id"] for r in records] == [inventory.id]

    def test_cashier_cannot_request_other_branch(self, client, cashier_headers, other_branch):
        resp = client.get(f"/api/inventory?branch_id={other_branch.id}", headers=cashier_headers)
        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "permission_denied"

    def test_cashier_cannot_sell_for_other_branch(self, client, cashier_headers, product, other_branch):
        stock(product, other_branch, 4)
        resp = client.post("/api/sales", headers=cashier_headers, json={
            "branch_id": other_branch.id,
            "payment_method": "cash",
            "items": [{"product_id": product.id, "quantity": 1}],
        })
        assert resp.status_code == 403

    def test_manager_cannot_view_other_branch_record(self, client, manager_headers, product, other_branch):
        foreign = stock(product, other_branch, 4)
        resp = client.get(f"/api/inventory/{foreign.id}", headers=manager_headers)
        assert resp.status_code == 403

    def test_branch_listing_is_scoped(self, client, cashier_headers, branch, other_branch):
        resp = client.get("/api/branches", headers=cashier_headers)
        assert [b["id"] for b in resp.get_json()["data"]] == [branch.id]
        assert client.get(f"/api/branches/{other_branch.id}", headers=cashier_headers).status_code == 403

    def test_admin_sees_every_branch(self, client, admin_headers, inventory, product, other_branch):
        stock(product, other_branch, 4)
        resp = client.get("/api/inventory", headers=admin_headers)
        assert resp.get_json()["pagination"]["total"] == 2

    def test_manager_cannot_create_admin(self, client, manager_headers, branch):
        resp = client.post("/api/users", headers=manager_headers, json={
            "email": "boss@pos.test",
            "first_name": "Big",
            "last_name": "Boss",
            "role": "admin",
            "password": "Password123!",
        })
        assert resp.status_code == 403

    def test_manager_creates_cashier_in_own_branch(self, client, manager_headers, branch):
        resp = client.post("/api/users", headers=manager_headers, json={
            "email": "new.cashier@pos.test",
            "first_name": "New",
            "last_name": "Cashier",
            "role": "cashier",
            "branch_id": branch.id,
            "password": "Password123!",
        })
        assert resp.status_code == 201
        assert resp.get_json()["data"]["branch_id"] == branch.id

    def test_manager_cannot_manage_other_branch_staff(self, client, manager_headers, other_branch):
        foreign = make_user("cashier", "foreign@pos.test", other_branch.id)
        resp = client.delete(f"/api/users/{foreign.id}", headers=manager_headers)
        assert resp.status_code == 403
