"""
Authentication API tests.

Verifies:
- login returns an opaque bearer token and never the password hash
- bad credentials and inactive accounts return 401
- logout revokes the token
- /me lists the role's capabilities
- deactivating a user or changing their password kills open sessions
- users change their own password and profile; other sessions are revoked
"""

import pytest

from conftest import PASSWORD, auth_headers
from pos_api.errors import ValidationError
from pos_api.services import auth_service, user_service


def _login(client, email, password=PASSWORD):
    return client.post('/api/auth/login', json={'email': email, 'password': password})


class TestLogin:
    def test_login_success(self, client, cashier):
        resp = _login(client, "cashier@pos.test")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        assert body["data"]["token"]
        assert body["data"]["expires_in"] == 24 * 3600
        assert body["data"]["user"]["role"] == "cashier"
        assert "password_hash" not in body["data"]["user"]

    def test_email_is_case_insensitive(self, client, cashier):
        resp = _login(client, "  CASHIER@pos.test ")
        assert resp.status_code == 200

    def test_wrong_password(self, client, cashier):
        resp = _login(client, "cashier@pos.test", "Wrong123!")
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "invalid_credentials"

    def test_unknown_email(self, client, db_session):
        resp = _login(client, "nobody@pos.test")
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post('/api/auth/login', json={'email': 'cashier@pos.test'})
        assert resp.status_code == 400

    def test_inactive_user_cannot_login(self, client, db_session, cashier):
        cashier.is_active = False
        db_session.commit()
        resp = _login(client, "cashier@pos.test")
        assert resp.status_code == 401

    def test_login_stamps_last_login(self, client, db_session, cashier):
        _login(client, "cashier@pos.test")
        db_session.refresh(cashier)
        assert cashier.last_login_at is not None


class TestSessions:
    def test_me_returns_capabilities(self, client, cashier):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]
        resp = client.get('/api/auth/me', headers=auth_headers(token))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["email"] == "cashier@pos.test"
        assert "CREATE_SALE" in data["capabilities"]
        assert "MANAGE_USERS" not in data["capabilities"]

    def test_logout_revokes_token(self, client, cashier):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]
        assert client.post('/api/auth/logout', headers=auth_headers(token)).status_code == 200
        assert client.get('/api/auth/me', headers=auth_headers(token)).status_code == 401

    def test_garbage_token(self, client, db_session):
        resp = client.get('/api/auth/me', headers=auth_headers("not-a-token"))
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "unauthorized"

    def test_deactivation_revokes_sessions(self, client, db_session, cashier):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]
        user_service.update_user(user_id=cashier.id, patch={"is_active": False})
        assert client.get('/api/auth/me', headers=auth_headers(token)).status_code == 401

    def test_password_change_revokes_sessions(self, client, db_session, cashier):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]
        user_service.update_user(user_id=cashier.id, patch={}, password="NewPassword1!", bcrypt_rounds=4)

        assert client.get('/api/auth/me', headers=auth_headers(token)).status_code == 401
        assert _login(client, "cashier@pos.test", "NewPassword1!").status_code == 200


class TestPasswords:
    @pytest.mark.parametrize(
        "password",
        ["Short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigitsHere!", "NoSpecial123"],
    )
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(ValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_round_trip(self):
        hashed = auth_service.hash_password(PASSWORD, rounds=4)
        assert hashed != PASSWORD
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("Password124!", hashed)


class TestSelfService:
    NEW_PASSWORD = "Fresh-Pass42!"

    def _change(self, client, token, current=PASSWORD, new=None, **extra):
        body = {"current_password": current, "new_password": new or self.NEW_PASSWORD}
        body.update(extra)
        return client.put('/api/auth/change-password', headers=auth_headers(token), json=body)

    def test_change_password_keeps_only_current_session(self, client, cashier):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]
        other = _login(client, "cashier@pos.test").get_json()["data"]["token"]

        resp = self._change(client, token, confirm_password=self.NEW_PASSWORD)

        assert resp.status_code == 200
        assert resp.get_json()["data"]["revoked_sessions"] == 1
        assert client.get('/api/auth/me', headers=auth_headers(token)).status_code == 200
        assert client.get('/api/auth/me', headers=auth_headers(other)).status_code == 401
        assert _login(client, "cashier@pos.test").status_code == 401
        assert _login(client, "cashier@pos.test", self.NEW_PASSWORD).status_code == 200

    def test_wrong_current_password(self, client, cashier):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]

        resp = self._change(client, token, current="Wrong123!")

        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "invalid_credentials"
        assert _login(client, "cashier@pos.test").status_code == 200

    @pytest.mark.parametrize("new, extra, code", [
        ("weakpass", {}, "weak_password"),
        (PASSWORD, {}, "validation_error"),
        ("Fresh-Pass42!", {"confirm_password": "Other-Pass42!"}, "validation_error"),
    ])
    def test_rejected_new_passwords(self, client, cashier, new, extra, code):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]

        resp = self._change(client, token, new=new, **extra)

        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == code
        assert _login(client, "cashier@pos.test").status_code == 200

    def test_missing_fields(self, client, cashier):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]
        resp = client.put('/api/auth/change-password', headers=auth_headers(token), json={"new_password": "x"})
        assert resp.status_code == 400

    def test_update_profile(self, client, cashier):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]

        resp = client.put('/api/auth/profile', headers=auth_headers(token), json={
            "first_name": "Casey",
            "phone": "555-0101",
            "email": "  Casey@POS.test ",
        })

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["first_name"] == "Casey"
        assert data["phone"] == "555-0101"
        assert data["email"] == "casey@pos.test"
        assert _login(client, "casey@pos.test").status_code == 200

    def test_profile_cannot_change_role(self, client, cashier):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]
        resp = client.put('/api/auth/profile', headers=auth_headers(token), json={"role": "admin"})
        assert resp.status_code == 400

    def test_profile_email_conflict(self, client, cashier, manager):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]
        resp = client.put('/api/auth/profile', headers=auth_headers(token), json={"email": "manager@pos.test"})
        assert resp.status_code == 409

    def test_empty_profile_update(self, client, cashier):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]
        resp = client.put('/api/auth/profile', headers=auth_headers(token), json={})
        assert resp.status_code == 400

    def test_me_describes_capabilities(self, client, cashier):
        token = _login(client, "cashier@pos.test").get_json()["data"]["token"]
        details = client.get('/api/auth/me', headers=auth_headers(token)).get_json()["data"]["capability_details"]
        by_code = {d["code"]: d for d in details}
        assert by_code["CREATE_SALE"]["name"] == "Create Sale"
        assert "MANAGE_USERS" not in by_code
