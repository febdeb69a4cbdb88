from decimal import Decimal

from conftest import PASSWORD, balance_of, make_user
from vale_cashback.core.config import SESSION_COOKIE_NAME
from vale_cashback.models.enums import ReferralStatus, UserStatus
from vale_cashback.models.merchant import Merchant
from vale_cashback.models.referral import Referral
from vale_cashback.models.user import User


def register(client, **overrides):
    payload = {"name": "Ana Client", "email": "ana@example.com", "password": "secret123", "type": "client"}
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


class TestRegister:

    def test_client_gets_signup_bonus(self, client, db):
        response = register(client)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["user"]["type"] == "client"
        assert body["data"]["user"]["invitation_code"].startswith("CL")
        assert body["data"]["access_token"]
        assert SESSION_COOKIE_NAME in response.cookies

        user = db.query(User).filter(User.email == "ana@example.com").one()
        assert balance_of(db, user.id) == Decimal("10.00")

    def test_merchant_starts_unapproved(self, client, db):
        response = register(
            client, name="Joao", email="joao@example.com", type="merchant", store_name="Padaria do Joao"
        )

        assert response.status_code == 201
        user_data = response.json()["data"]["user"]
        assert user_data["invitation_code"].startswith("LJ")
        assert user_data["merchant"]["approved"] is False
        assert user_data["merchant"]["commission_rate"] == "2.00"

        merchant = db.query(Merchant).one()
        assert merchant.store_name == "Padaria do Joao"
        assert balance_of(db, merchant.user_id) == Decimal("0.00")

    def test_referral_code_creates_pending_referral(self, client, db):
        referrer = make_user(db, name="Rita Referrer")

        response = register(client, referral_code=referrer.invitation_code)

        assert response.status_code == 201
        referral = db.query(Referral).one()
        assert referral.referrer_id == referrer.id
        assert referral.status == ReferralStatus.pending

    def test_unknown_referral_code_is_ignored(self, client, db):
        response = register(client, referral_code="CLNOPE99")

        assert response.status_code == 201
        assert db.query(Referral).count() == 0

    def test_duplicate_email(self, client):
        register(client)
        response = register(client)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    def test_weak_password(self, client):
        response = register(client, password="short")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"

    def test_admin_cannot_self_register(self, client):
        response = register(client, type="admin")

        assert response.status_code == 400

    def test_merchant_requires_store_name(self, client):
        response = register(client, type="merchant")

        assert response.status_code == 400

    def test_malformed_json(self, client):
        response = client.post(
            "/api/auth/register", content="{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_body_must_be_an_object(self, client):
        response = client.post("/api/auth/register", json=[])

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Request body must be a JSON object"

    def test_numeric_password(self, client, db):
        response = register(client, password=12345678)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid password"
        assert db.query(User).count() == 0

    def test_numeric_name(self, client):
        response = register(client, name=42)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestLogin:

    def test_login_sets_cookie_and_me_uses_it(self, client, db):
        user = make_user(db, email="ana@example.com")

        response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": PASSWORD})

        assert response.status_code == 200
        assert SESSION_COOKIE_NAME in response.cookies

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["data"]["id"] == str(user.id)

    def test_bearer_token(self, client, db):
        make_user(db, email="ana@example.com")
        token = client.post(
            "/api/auth/login", json={"email": "ana@example.com", "password": PASSWORD}
        ).json()["data"]["access_token"]
        client.cookies.clear()

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert me.status_code == 200

    def test_wrong_password(self, client, db):
        make_user(db, email="ana@example.com")

        response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "wrong-pass1"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_numeric_password(self, client, db):
        make_user(db, email="ana@example.com")

        response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": 12345678})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_numeric_identifier(self, client):
        response = client.post("/api/auth/login", json={"identifier": 5511999, "password": PASSWORD})

        assert response.status_code == 400

    def test_blocked_user(self, client, db):
        make_user(db, email="ana@example.com", status=UserStatus.blocked)

        response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": PASSWORD})

        assert response.status_code == 401

    def test_me_requires_auth(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "UNAUTHORIZED"

    def test_logout_clears_cookie(self, client, db):
        make_user(db, email="ana@example.com")
        client.post("/api/auth/login", json={"email": "ana@example.com", "password": PASSWORD})

        response = client.post("/api/auth/logout")

        assert response.status_code == 200
        assert client.get("/api/auth/me").status_code == 401
