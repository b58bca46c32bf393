"""
API tests through FastAPI's TestClient

Tests cover:
- Availability search and booking creation
- Problem+json error bodies
- Payment webhook and checkout callback signature handling
- Auth and role checks on loyalty, admin and channel routes
"""

import json
from datetime import date

from podnbeyond.config import settings
from podnbeyond.models import Booking, BookingStatus, ChannelMapping
from podnbeyond.utils.security import compute_hmac_sha256

BOOKING_BODY = {
    "check_in": "2030-01-10",
    "check_out": "2030-01-12",
    "guests": 1,
    "guest_name": "Asha Guest",
    "guest_email": "guest@example.com",
}


def create_booking(client, room_type, headers=None, **overrides):
    body = {**BOOKING_BODY, "room_type_id": room_type.id, **overrides}
    return client.post("/v1/bookings", json=body, headers=headers or {})


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestAvailabilityApi:
    def test_search_returns_priced_rooms(self, client, room_type, stock):
        stock(room_type, date(2030, 1, 10), 2, allotment=4, booked=1)

        response = client.get("/v1/availability", params={
            "checkIn": "2030-01-10", "checkOut": "2030-01-12", "guests": 1
        })

        assert response.status_code == 200
        data = response.json()
        assert data["nights"] == 2
        assert len(data["rooms"]) == 1
        room = data["rooms"][0]
        assert room["room_type_id"] == room_type.id
        assert room["available"] == 3
        assert room["pricing"]["total_amount"] == 1238000

    def test_invalid_range_is_problem_json(self, client, room_type):
        response = client.get("/v1/availability", params={"checkIn": "2030-01-12", "checkOut": "2030-01-10"})

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("application/problem+json")
        body = response.json()
        assert body["status"] == 400
        assert body["instance"] == "/v1/availability"
        assert body["errors"][0]["field"] == "check_out"

    def test_missing_query_param(self, client):
        response = client.get("/v1/availability", params={"checkIn": "2030-01-10"})

        assert response.status_code == 400
        assert response.json()["title"] == "Bad Request"


class TestBookingApi:
    def test_create_guest_booking(self, client, room_type):
        response = create_booking(client, room_type)

        assert response.status_code == 201
        data = response.json()
        assert data["booking"]["status"] == "PENDING"
        assert data["booking"]["total_amount"] == 1238000
        assert data["booking"]["user_id"] is None
        assert data["pricing"]["service_charge"] == 100000
        assert data["payment"]["order_id"] == data["booking"]["payment_order_id"]
        assert data["payment"]["amount"] == 1238000

    def test_signed_in_booking_links_user(self, client, room_type, guest_user, auth_headers):
        response = create_booking(client, room_type, headers=auth_headers(guest_user))

        assert response.json()["booking"]["user_id"] == guest_user.id

    def test_invalid_email(self, client, room_type):
        response = create_booking(client, room_type, guest_email="not-an-email")

        assert response.status_code == 400
        assert any(e["field"] == "guest_email" for e in response.json()["errors"])

    def test_over_capacity(self, client, room_type):
        response = create_booking(client, room_type, guests=3)

        assert response.status_code == 400
        assert response.json()["errors"] == [
            {"field": "guests", "message": "room type accommodates at most 2 guests"}
        ]

    def test_script_stripped_from_name(self, client, room_type):
        response = create_booking(client, room_type, guest_name="<script>alert(1)</script>Asha")

        assert response.json()["booking"]["guest_name"] == "Asha"

    def test_unknown_booking(self, client, db):
        response = client.get("/v1/bookings/missing")

        assert response.status_code == 404
        assert response.json()["detail"] == "Booking missing not found"

    def test_cancel_and_cancel_again(self, client, room_type):
        booking_id = create_booking(client, room_type).json()["booking"]["id"]

        first = client.post(f"/v1/bookings/{booking_id}/cancel")
        second = client.post(f"/v1/bookings/{booking_id}/cancel")

        assert first.status_code == 200
        assert first.json()["refund_policy"] == "full"
        assert first.json()["booking"]["status"] == "CANCELLED"
        assert second.status_code == 409
        assert second.json()["title"] == "Conflict"


class TestWebhookApi:
    def _event(self, order_id):
        return json.dumps({
            "event": "payment.captured",
            "payload": {"payment": {"entity": {"id": "pay_1", "order_id": order_id}}},
        }).encode()

    def test_signed_capture_marks_paid(self, client, db, room_type, stock):
        stock(room_type, date(2030, 1, 10), 2)
        order_id = create_booking(client, room_type).json()["booking"]["payment_order_id"]
        body = self._event(order_id)

        response = client.post(
            "/v1/webhooks/razorpay",
            content=body,
            headers={"X-Razorpay-Signature": compute_hmac_sha256("test-webhook-secret", body)}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        db.expire_all()
        assert db.query(Booking).one().status == BookingStatus.PAID.value

    def test_bad_signature_rejected(self, client, db, room_type):
        order_id = create_booking(client, room_type).json()["booking"]["payment_order_id"]

        response = client.post(
            "/v1/webhooks/razorpay",
            content=self._event(order_id),
            headers={"X-Razorpay-Signature": "deadbeef"}
        )

        assert response.status_code == 400
        db.expire_all()
        assert db.query(Booking).one().status == BookingStatus.PENDING.value


class TestVerifyPaymentApi:
    def _verify(self, client, booking_id, order_id, payment_id="pay_9", signature=None):
        if signature is None:
            signature = compute_hmac_sha256("checkout-secret", f"{order_id}|{payment_id}".encode())
        return client.post(f"/v1/bookings/{booking_id}/verify-payment", json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature,
        })

    def test_signed_callback_marks_paid(self, client, db, room_type, stock, monkeypatch):
        stock(room_type, date(2030, 1, 10), 2)
        booking = create_booking(client, room_type).json()["booking"]
        monkeypatch.setattr(settings, "razorpay_key_secret", "checkout-secret")

        response = self._verify(client, booking["id"], booking["payment_order_id"])

        assert response.status_code == 200
        assert response.json()["status"] == "PAID"
        assert response.json()["payment_id"] == "pay_9"

    def test_bad_signature_rejected(self, client, db, room_type, monkeypatch):
        booking = create_booking(client, room_type).json()["booking"]
        monkeypatch.setattr(settings, "razorpay_key_secret", "checkout-secret")

        response = self._verify(client, booking["id"], booking["payment_order_id"], signature="deadbeef")

        assert response.status_code == 400
        db.expire_all()
        assert db.query(Booking).one().status == BookingStatus.PENDING.value

    def test_order_of_another_booking(self, client, room_type):
        booking = create_booking(client, room_type).json()["booking"]

        response = self._verify(client, booking["id"], "order_someone_else")

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "razorpay_order_id"

    def test_empty_signature(self, client, room_type):
        booking = create_booking(client, room_type).json()["booking"]

        response = client.post(f"/v1/bookings/{booking['id']}/verify-payment", json={
            "razorpay_order_id": booking["payment_order_id"],
            "razorpay_payment_id": "pay_9",
            "razorpay_signature": "",
        })

        assert response.status_code == 400


class TestLoyaltyApi:
    def test_requires_auth(self, client):
        response = client.get("/v1/loyalty/me")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client):
        response = client.get("/v1/loyalty/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_summary_and_redeem(self, client, guest_user, staff_user, auth_headers):
        adjusted = client.post(
            "/v1/admin/loyalty/adjust",
            json={"user_id": guest_user.id, "points": 300, "note": "Welcome bonus"},
            headers=auth_headers(staff_user)
        )
        assert adjusted.status_code == 201

        redeemed = client.post("/v1/loyalty/redeem", json={"points": 100}, headers=auth_headers(guest_user))
        assert redeemed.status_code == 200
        assert redeemed.json()["discount_minor_units"] == 10000
        assert redeemed.json()["remaining_points"] == 200

        summary = client.get("/v1/loyalty/me", headers=auth_headers(guest_user)).json()
        assert summary["points"] == 200
        assert summary["tier"] == "BRONZE"
        assert len(summary["recent_transactions"]) == 2

    def test_redeem_beyond_balance(self, client, guest_user, auth_headers):
        response = client.post("/v1/loyalty/redeem", json={"points": 1}, headers=auth_headers(guest_user))

        assert response.status_code == 400
        assert "Insufficient points" in response.json()["detail"]


class TestAdminApi:
    def test_guest_forbidden(self, client, guest_user, auth_headers):
        response = client.get("/v1/admin/room-types", headers=auth_headers(guest_user))

        assert response.status_code == 403

    def test_create_room_type(self, client, staff_user, auth_headers):
        response = client.post("/v1/admin/room-types", json={
            "name": "Twin Pod", "capacity": 2, "base_rate": 650000, "amenities": ["WiFi"]
        }, headers=auth_headers(staff_user))

        assert response.status_code == 201
        assert response.json()["is_active"] is True

    def test_deactivate_room_type(self, client, room_type, staff_user, auth_headers):
        response = client.delete(f"/v1/admin/room-types/{room_type.id}", headers=auth_headers(staff_user))

        assert response.status_code == 200
        assert response.json()["is_active"] is False

    def test_inventory_upsert_keeps_booked(self, client, room_type, stock, staff_user, auth_headers):
        stock(room_type, date(2030, 1, 10), 1, allotment=5, booked=2)

        response = client.put("/v1/admin/inventory", json={
            "room_type_id": room_type.id,
            "entries": [
                {"date": "2030-01-10", "allotment": 10},
                {"date": "2030-01-11", "allotment": 4},
            ],
        }, headers=auth_headers(staff_user))

        assert response.status_code == 200
        rows = {row["date"]: row for row in response.json()}
        assert rows["2030-01-10"]["booked"] == 2
        assert rows["2030-01-10"]["remaining"] == 8
        assert rows["2030-01-11"]["booked"] == 0

    def test_negative_allotment_rejected(self, client, room_type, staff_user, auth_headers):
        response = client.put("/v1/admin/inventory", json={
            "room_type_id": room_type.id,
            "entries": [{"date": "2030-01-10", "allotment": -1}],
        }, headers=auth_headers(staff_user))

        assert response.status_code == 400

    def test_list_bookings_by_status(self, client, room_type, staff_user, auth_headers):
        create_booking(client, room_type)

        pending = client.get("/v1/admin/bookings", params={"status": "PENDING"}, headers=auth_headers(staff_user))
        bogus = client.get("/v1/admin/bookings", params={"status": "LOST"}, headers=auth_headers(staff_user))

        assert len(pending.json()) == 1
        assert bogus.status_code == 400


class TestChannelApi:
    def test_providers_listed(self, client, staff_user, auth_headers):
        response = client.get("/v1/channel/providers", headers=auth_headers(staff_user))

        assert response.json() == [{"name": "beds24", "configured": True, "mappings": 0}]

    def test_duplicate_mapping_conflicts(self, client, db, room_type, staff_user, auth_headers):
        body = {"room_type_id": room_type.id, "external_room_code": "R100"}

        first = client.post("/v1/channel/mappings", json=body, headers=auth_headers(staff_user))
        second = client.post("/v1/channel/mappings", json=body, headers=auth_headers(staff_user))

        assert first.status_code == 201
        assert second.status_code == 409
        assert db.query(ChannelMapping).count() == 1

    def test_unknown_provider(self, client, staff_user, auth_headers):
        response = client.post("/v1/channel/expedia/sync/pull-reservations", headers=auth_headers(staff_user))

        assert response.status_code == 404

    def test_scheduler_status(self, client, staff_user, auth_headers):
        response = client.get("/v1/channel/scheduler", headers=auth_headers(staff_user))

        assert response.status_code == 200
        assert response.json()["running"] is False
