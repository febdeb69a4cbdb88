from decimal import Decimal

import pytest

from conftest import auth_headers, balance_of, make_merchant, make_user
from vale_cashback.models.enums import UserType
from vale_cashback.models.merchant import Merchant

BANK = {"bank_name": "Banco do Brasil", "agency": "0001", "account": "12345-6"}


@pytest.fixture
def admin(db):
    return make_user(db, name="Ada Admin", user_type=UserType.admin)


class TestCommissionSettings:

    def test_read_and_update(self, client, admin):
        headers = auth_headers(admin)

        current = client.get("/api/admin/settings/commission", headers=headers)
        assert current.status_code == 200
        assert current.json()["data"]["platform_fee"] == "5.00"

        updated = client.put(
            "/api/admin/settings/commission", json={"client_cashback": "3"}, headers=headers
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["client_cashback"] == "3.00"

    def test_new_rules_apply_to_next_sale(self, client, db, admin):
        merchant = make_merchant(db)
        shopper = make_user(db)
        client.put("/api/admin/settings/commission", json={"client_cashback": "3"}, headers=auth_headers(admin))

        sale = client.post(
            "/api/merchant/sales",
            json={"client_id": str(shopper.id), "amount": "100.00"},
            headers=auth_headers(merchant.user)
        )

        assert sale.json()["data"]["cashback_earned"] == "3.00"

    def test_invalid_update(self, client, admin):
        response = client.put(
            "/api/admin/settings/commission", json={"platform_fee": "150"}, headers=auth_headers(admin)
        )

        assert response.status_code == 400

    def test_non_admin_forbidden(self, client, db):
        shopper = make_user(db)

        response = client.get("/api/admin/settings/commission", headers=auth_headers(shopper))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"


class TestMerchantsAndUsers:

    def test_approve_merchant(self, client, db, admin):
        merchant = make_merchant(db, approved=False)

        response = client.patch(f"/api/admin/merchants/{merchant.id}/approve", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json()["data"]["approved"] is True
        db.expire_all()
        assert db.get(Merchant, merchant.id).approved is True

        qr = client.post(
            "/api/merchant/generate-payment", json={"amount": "10.00"}, headers=auth_headers(merchant.user)
        )
        assert qr.status_code == 200

    def test_revoke_approval(self, client, db, admin):
        merchant = make_merchant(db)

        response = client.patch(
            f"/api/admin/merchants/{merchant.id}/approve", json={"approved": False}, headers=auth_headers(admin)
        )

        assert response.json()["data"]["approved"] is False

    def test_set_commission_rate(self, client, db, admin):
        merchant = make_merchant(db)

        response = client.patch(
            f"/api/admin/merchants/{merchant.id}/approve", json={"commission_rate": "3.5"}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json()["data"]["commission_rate"] == "3.50"
        db.expire_all()
        assert db.get(Merchant, merchant.id).commission_rate == Decimal("3.50")

        me = client.get("/api/auth/me", headers=auth_headers(merchant.user)).json()["data"]
        assert me["merchant"]["commission_rate"] == "3.50"

    def test_commission_rate_out_of_range(self, client, db, admin):
        merchant = make_merchant(db)

        response = client.patch(
            f"/api/admin/merchants/{merchant.id}/approve", json={"commission_rate": 150}, headers=auth_headers(admin)
        )

        assert response.status_code == 400
        db.expire_all()
        assert db.get(Merchant, merchant.id).commission_rate == Decimal("2.00")

    def test_status_body_must_be_an_object(self, client, db, admin):
        shopper = make_user(db)

        response = client.patch(f"/api/admin/users/{shopper.id}/status", json=["blocked"], headers=auth_headers(admin))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_merchant(self, client, admin):
        response = client.patch(
            "/api/admin/merchants/00000000-0000-0000-0000-000000000000/approve", headers=auth_headers(admin)
        )

        assert response.status_code == 404

    def test_block_user(self, client, db, admin):
        shopper = make_user(db)

        response = client.patch(
            f"/api/admin/users/{shopper.id}/status", json={"status": "blocked"}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "blocked"
        assert client.get("/api/auth/me", headers=auth_headers(shopper)).status_code == 401

    def test_invalid_status(self, client, db, admin):
        shopper = make_user(db)

        response = client.patch(
            f"/api/admin/users/{shopper.id}/status", json={"status": "sleeping"}, headers=auth_headers(admin)
        )

        assert response.status_code == 400


class TestWithdrawalProcessing:

    def create_request(self, client, merchant, amount="30.00"):
        return client.post(
            "/api/merchant/withdrawal-requests",
            json=dict(BANK, amount=amount),
            headers=auth_headers(merchant.user)
        ).json()["data"]

    def test_complete(self, client, db, admin):
        merchant = make_merchant(db, balance="50.00")
        request = self.create_request(client, merchant)

        listing = client.get("/api/admin/withdrawal-requests?status=pending", headers=auth_headers(admin))
        assert [item["id"] for item in listing.json()["data"]] == [request["id"]]

        response = client.patch(
            f"/api/admin/withdrawal-requests/{request['id']}",
            json={"status": "completed", "notes": "Paid"},
            headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "completed"
        assert response.json()["data"]["processed_by"] == str(admin.id)
        assert balance_of(db, merchant.user_id) == Decimal("20.00")

    def test_reject(self, client, db, admin):
        merchant = make_merchant(db, balance="50.00")
        request = self.create_request(client, merchant)

        response = client.patch(
            f"/api/admin/withdrawal-requests/{request['id']}",
            json={"status": "rejected", "notes": "Invalid account"},
            headers=auth_headers(admin)
        )

        assert response.json()["data"]["status"] == "rejected"
        assert response.json()["data"]["notes"] == "Invalid account"
        assert balance_of(db, merchant.user_id) == Decimal("50.00")

    def test_processing_twice_conflicts(self, client, db, admin):
        merchant = make_merchant(db, balance="50.00")
        request = self.create_request(client, merchant)
        url = f"/api/admin/withdrawal-requests/{request['id']}"

        client.patch(url, json={"status": "completed"}, headers=auth_headers(admin))
        again = client.patch(url, json={"status": "rejected"}, headers=auth_headers(admin))

        assert again.status_code == 409
        assert balance_of(db, merchant.user_id) == Decimal("20.00")


class TestNotifications:

    def test_list_and_mark_read(self, client, db, admin):
        merchant = make_merchant(db, balance="50.00")
        client.post(
            "/api/merchant/withdrawal-requests",
            json=dict(BANK, amount="30.00"),
            headers=auth_headers(merchant.user)
        )

        listing = client.get("/api/notifications/", headers=auth_headers(admin)).json()
        assert listing["summary"]["unread"] == 1
        notification_id = listing["data"][0]["id"]

        marked = client.patch(f"/api/notifications/{notification_id}/read", headers=auth_headers(admin))
        assert marked.status_code == 200
        assert marked.json()["data"]["read"] is True

        unread = client.get("/api/notifications/?unread=true", headers=auth_headers(admin)).json()
        assert unread["data"] == []

    def test_cannot_read_others_notifications(self, client, db, admin):
        merchant = make_merchant(db, balance="50.00")
        client.post(
            "/api/merchant/withdrawal-requests",
            json=dict(BANK, amount="30.00"),
            headers=auth_headers(merchant.user)
        )
        notification_id = client.get(
            "/api/notifications/", headers=auth_headers(admin)
        ).json()["data"][0]["id"]

        response = client.patch(f"/api/notifications/{notification_id}/read", headers=auth_headers(merchant.user))

        assert response.status_code == 404
