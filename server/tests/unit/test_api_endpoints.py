"""Unit tests for API endpoints."""

import base64
from datetime import timedelta
from uuid import uuid4

import pytest
from conftest import TEST_PASSWORD, auth_headers

from bookeros.core.permissions import Role


@pytest.mark.asyncio
async def test_login_and_me(test_client, owner):
    """Login returns a token that /me accepts."""
    response = await test_client.post(
        "/api/auth/login", json={"username": owner.username, "password": TEST_PASSWORD}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["role"] == "business"
    assert "manage_tours" in data["user"]["permissions"]

    me = await test_client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["username"] == owner.username


@pytest.mark.asyncio
async def test_login_wrong_password(test_client, owner):
    response = await test_client.post("/api/auth/login", json={"username": owner.username, "password": "nope"})

    assert response.status_code == 401
    assert response.headers["content-type"] == "application/problem+json"
    assert response.json()["status"] == 401


@pytest.mark.asyncio
async def test_inactive_user_cannot_login(test_client, make_user, business):
    user = await make_user(Role.MANAGER, business=business, username="former_manager", is_active=False)

    response = await test_client.post("/api/auth/login", json={"username": user.username, "password": TEST_PASSWORD})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_requires_token(test_client):
    assert (await test_client.get("/api/auth/me")).status_code == 401
    bad = await test_client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401
    basic = await test_client.get("/api/auth/me", headers={"Authorization": "Basic abc"})
    assert basic.status_code == 401


@pytest.mark.asyncio
async def test_create_booking_anonymous(test_client, booking_payload):
    """A customer can book without logging in; price comes from the tour."""
    response = await test_client.post("/api/bookings", json=booking_payload)

    assert response.status_code == 201
    data = response.json()
    assert data["total_amount"] == 4500.0
    assert data["status"] == "pending"
    assert data["payment_status"] == "unpaid"
    assert len(data["alphanumeric_code"]) == 19


@pytest.mark.asyncio
async def test_create_booking_ignores_client_price(test_client, booking_payload):
    booking_payload["total_amount"] = 1

    response = await test_client.post("/api/bookings", json=booking_payload)

    assert response.status_code == 201
    assert response.json()["total_amount"] == 4500.0


@pytest.mark.asyncio
async def test_create_booking_validation_problem(test_client, booking_payload):
    booking_payload["adults"] = 0
    booking_payload["children"] = 0

    response = await test_client.post("/api/bookings", json=booking_payload)

    assert response.status_code == 400
    assert response.headers["content-type"] == "application/problem+json"
    data = response.json()
    assert data["status"] == 400
    assert data["violations"]


@pytest.mark.asyncio
async def test_create_booking_unknown_tour(test_client, booking_payload):
    booking_payload["tour_id"] = str(uuid4())

    response = await test_client.post("/api/bookings", json=booking_payload)

    assert response.status_code == 404
    assert response.json()["status"] == 404


@pytest.mark.asyncio
async def test_create_booking_full(test_client, booking_payload):
    booking_payload["adults"] = 11
    booking_payload["children"] = 0

    response = await test_client.post("/api/bookings", json=booking_payload)

    assert response.status_code == 409
    assert response.json()["code"] == "FULL"


@pytest.mark.asyncio
async def test_idempotent_booking_creation(test_client, booking_payload):
    """Same key and body replays the first response; a different body is rejected."""
    headers = {"Idempotency-Key": "checkout-7f3a"}

    first = await test_client.post("/api/bookings", json=booking_payload, headers=headers)
    second = await test_client.post("/api/bookings", json=booking_payload, headers=headers)

    assert first.status_code == 201
    assert second.status_code == 201
    assert second.json()["id"] == first.json()["id"]

    booking_payload["adults"] = 1
    mismatch = await test_client.post("/api/bookings", json=booking_payload, headers=headers)
    assert mismatch.status_code == 422


@pytest.mark.asyncio
async def test_oversized_idempotency_key_rejected(test_client, booking_payload):
    response = await test_client.post("/api/bookings", json=booking_payload, headers={"Idempotency-Key": "k" * 256})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_booking_payment_flow(test_client, booking_payload, email_service):
    """Book, start checkout, verify payment and check in."""
    booking = (await test_client.post("/api/bookings", json=booking_payload)).json()

    checkout = await test_client.post(f"/api/bookings/{booking['id']}/checkout")
    assert checkout.status_code == 200
    session_id = checkout.json()["session_id"]
    assert checkout.json()["mode"] == "sandbox"

    verified = await test_client.post(
        f"/api/bookings/{booking['id']}/verify-payment", json={"session_id": session_id}
    )
    assert verified.status_code == 200
    data = verified.json()
    assert data["success"] is True
    assert data["booking"]["status"] == "confirmed"
    assert data["transaction"]["provider_payout"] == 2880.0
    assert len(email_service.sent) == 1

    again = await test_client.post(
        f"/api/bookings/{booking['id']}/verify-payment", json={"session_id": session_id}
    )
    assert again.status_code == 409
    assert again.json()["code"] == "INVALID_BOOKING_STATE"

    detail = await test_client.get(f"/api/bookings/{booking['id']}")
    assert detail.status_code == 200
    assert detail.json()["tour"]["name"] == "Marietas Islands Snorkel"


@pytest.mark.asyncio
async def test_unpaid_verification(test_client, booking_payload, payment_gateway):
    booking = (await test_client.post("/api/bookings", json=booking_payload)).json()
    payment_gateway.paid = False

    response = await test_client.post(
        f"/api/bookings/{booking['id']}/verify-payment", json={"session_id": "cs_open"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "PAYMENT_NOT_COMPLETED"


@pytest.mark.asyncio
async def test_cash_payment_roles(test_client, booking_payload, seller, customer):
    booking = (await test_client.post("/api/bookings", json=booking_payload)).json()
    url = f"/api/bookings/{booking['id']}/confirm-cash-payment"

    assert (await test_client.post(url)).status_code == 401
    forbidden = await test_client.post(url, headers=auth_headers(customer))
    assert forbidden.status_code == 403
    assert forbidden.json()["status"] == 403

    response = await test_client.post(url, headers=auth_headers(seller))
    assert response.status_code == 200
    assert response.json()["transaction"]["bank_commission"] == 0.0
    assert response.json()["payment"]["payment_method"] == "cash"


@pytest.mark.asyncio
async def test_check_in_and_redeem(test_client, booking_payload, manager, seller):
    booking = (await test_client.post("/api/bookings", json=booking_payload)).json()
    await test_client.post(f"/api/bookings/{booking['id']}/confirm-cash-payment", headers=auth_headers(seller))
    headers = auth_headers(manager)

    found = await test_client.post(
        "/api/validate-ticket-code", json={"alphanumeric_code": booking["alphanumeric_code"]}, headers=headers
    )
    assert found.status_code == 200
    assert found.json()["id"] == booking["id"]

    first = await test_client.post(f"/api/bookings/{booking['id']}/check-in", headers=headers)
    second = await test_client.post(f"/api/bookings/{booking['id']}/check-in", headers=headers)
    assert first.json()["already_checked_in"] is False
    assert second.json()["already_checked_in"] is True
    assert second.json()["checked_in_at"] == first.json()["checked_in_at"]

    redeemed = await test_client.post(
        "/api/redeem-ticket", json={"booking_id": booking["id"], "method": "qr_scan"}, headers=headers
    )
    assert redeemed.status_code == 200
    repeat = await test_client.post(
        "/api/redeem-ticket", json={"booking_id": booking["id"], "method": "qr_scan"}, headers=headers
    )
    assert repeat.status_code == 400
    assert repeat.json()["code"] == "ALREADY_REDEEMED"

    history = await test_client.get("/api/validation-history", headers=headers)
    assert history.status_code == 200
    assert {entry["alphanumeric_code"] for entry in history.json()} == {booking["alphanumeric_code"]}


@pytest.mark.asyncio
async def test_qr_lookup_is_business_scoped(test_client, booking_payload, make_user, other_business, owner):
    booking = (await test_client.post("/api/bookings", json=booking_payload)).json()
    outsider = await make_user(Role.BUSINESS, business=other_business)

    own = await test_client.get(f"/api/bookings/qr/{booking['qr_code']}", headers=auth_headers(owner))
    other = await test_client.get(f"/api/bookings/qr/{booking['qr_code']}", headers=auth_headers(outsider))

    assert own.status_code == 200
    assert other.status_code == 403


@pytest.mark.asyncio
async def test_malformed_ticket_code(test_client, manager):
    response = await test_client.post(
        "/api/validate-ticket-code", json={"alphanumeric_code": "1234"}, headers=auth_headers(manager)
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_bookings_scoped_to_business(test_client, booking_payload, owner, make_user, other_business, admin):
    await test_client.post("/api/bookings", json=booking_payload)
    outsider = await make_user(Role.BUSINESS, business=other_business)

    assert len((await test_client.get("/api/bookings", headers=auth_headers(owner))).json()) == 1
    assert (await test_client.get("/api/bookings", headers=auth_headers(outsider))).json() == []
    assert len((await test_client.get("/api/bookings", headers=auth_headers(admin))).json()) == 1


@pytest.mark.asyncio
async def test_block_date_and_reschedule(test_client, booking_payload, tour, tour_date, owner):
    """Blocking a date lists affected bookings; the customer link moves them."""
    booking = (await test_client.post("/api/bookings", json=booking_payload)).json()
    headers = auth_headers(owner)

    blocked = await test_client.post(
        "/api/availability-overrides",
        json={"tour_id": str(tour.id), "date": tour_date.date().isoformat(), "is_blocked": True, "reason": "Storm"},
        headers=headers,
    )
    assert blocked.status_code == 201
    assert [b["id"] for b in blocked.json()["affected_bookings"]] == [booking["id"]]

    rejected = await test_client.post("/api/bookings", json=booking_payload)
    assert rejected.status_code == 409
    assert rejected.json()["code"] == "DATE_BLOCKED"

    new_date = (tour_date + timedelta(days=1)).isoformat()
    proposal = await test_client.post(
        f"/api/bookings/{booking['id']}/propose-reschedule",
        json={"proposed_date": new_date, "reason": "Storm"},
        headers=headers,
    )
    assert proposal.status_code == 200
    token = proposal.json()["resolution_token"]
    assert proposal.json()["resolution_url"].endswith(token)

    details = await test_client.get(f"/api/bookings/resolve/{token}")
    assert details.status_code == 200
    assert details.json()["tour_name"] == "Marietas Islands Snorkel"

    resolved = await test_client.post(f"/api/bookings/resolve/{token}", json={"accept_proposed": True})
    assert resolved.status_code == 200
    assert resolved.json()["status"] == booking["status"]

    reused = await test_client.get(f"/api/bookings/resolve/{token}")
    assert reused.status_code == 404


@pytest.mark.asyncio
async def test_seat_hold_endpoint(test_client, tour, tour_date):
    response = await test_client.post(
        "/api/seat-holds",
        json={"tour_id": str(tour.id), "booking_date": tour_date.isoformat(), "seats_held": 4, "session_id": "cart-1"},
    )

    assert response.status_code == 201
    assert response.json()["seats_held"] == 4


@pytest.mark.asyncio
async def test_refund_flow(test_client, booking_payload, admin, payment_gateway):
    booking = (await test_client.post("/api/bookings", json=booking_payload)).json()
    await test_client.post(f"/api/bookings/{booking['id']}/verify-payment", json={"session_id": "cs_paid"})
    headers = auth_headers(admin)

    payments = (await test_client.get("/api/admin/payments", headers=headers)).json()
    assert len(payments) == 1

    payment_gateway.refund_status = "failed"
    failed = await test_client.post(f"/api/admin/payments/{payments[0]['id']}/refund", headers=headers)
    assert failed.status_code == 500
    assert failed.json()["code"] == "GATEWAY_ERROR"

    payment_gateway.refund_status = "succeeded"
    refunded = await test_client.post(f"/api/admin/payments/{payments[0]['id']}/refund", headers=headers)
    assert refunded.status_code == 200
    assert refunded.json()["booking_status"] == "cancelled"
    assert refunded.json()["payment"]["status"] == "refunded"


@pytest.mark.asyncio
async def test_business_cannot_refund(test_client, owner):
    response = await test_client.post(f"/api/admin/payments/{uuid4()}/refund", headers=auth_headers(owner))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_finance_endpoints(test_client, booking_payload, admin, owner):
    booking = (await test_client.post("/api/bookings", json=booking_payload)).json()
    await test_client.post(f"/api/bookings/{booking['id']}/verify-payment", json={"session_id": "cs_fin"})

    summary = await test_client.get("/api/financial-summary", headers=auth_headers(owner))
    assert summary.status_code == 200
    assert summary.json()["total_revenue"] == 4500.0
    assert summary.json()["transaction_count"] == 1

    config = await test_client.get("/api/retention-config", headers=auth_headers(admin))
    assert config.json()["platform_fee_rate"] == 5.0

    preview = await test_client.post(
        "/api/calculate-distribution", json={"amount": 1000, "cash": True}, headers=auth_headers(owner)
    )
    assert preview.json()["provider_payout"] == 670.0
    assert preview.json()["breakdown"]["bank_commission"] == 0


@pytest.mark.asyncio
async def test_retention_config_rules(test_client, admin, owner):
    too_much = await test_client.put(
        "/api/retention-config",
        json={"platform_fee_rate": 60, "seller_commission_rate": 50},
        headers=auth_headers(admin),
    )
    assert too_much.status_code == 400

    not_admin = await test_client.put("/api/retention-config", json={"tax_rate": 10}, headers=auth_headers(owner))
    assert not_admin.status_code == 403

    updated = await test_client.put("/api/retention-config", json={"tax_rate": 8}, headers=auth_headers(admin))
    assert updated.status_code == 200
    assert updated.json()["tax_rate"] == 8.0


@pytest.mark.asyncio
async def test_coupon_lifecycle(test_client, owner, tour, booking_payload):
    headers = auth_headers(owner)
    # A failed insert rolls the shared session back and expires loaded rows
    tour_id = str(tour.id)
    business_id = str(owner.business_id)
    created = await test_client.post(
        "/api/coupons",
        json={"code": "PLAYA15", "discount_type": "percent", "discount_value": 15, "usage_limit": 1},
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["business_id"] == business_id

    duplicate = await test_client.post(
        "/api/coupons", json={"code": "PLAYA15", "discount_type": "fixed", "discount_value": 100}, headers=headers
    )
    assert duplicate.status_code == 409

    preview = await test_client.post(
        "/api/coupons/validate", json={"code": "playa15", "amount": 1000, "tour_id": tour_id}
    )
    assert preview.status_code == 200
    assert preview.json()["final_amount"] == 850.0

    booking_payload["coupon_code"] = "PLAYA15"
    booking = await test_client.post("/api/bookings", json=booking_payload)
    assert booking.json()["total_amount"] == 3825.0

    exhausted = await test_client.post("/api/coupons/validate", json={"code": "PLAYA15"})
    assert exhausted.status_code == 404


@pytest.mark.asyncio
async def test_referral_code_endpoints(test_client, seller):
    headers = auth_headers(seller)

    missing = await test_client.get("/api/referrals/my-code", headers=headers)
    assert missing.status_code == 404

    generated = await test_client.post("/api/referrals/generate", headers=headers)
    code = generated.json()["referral_code"]
    assert code.startswith("SELLER-")
    again = await test_client.post("/api/referrals/generate", headers=headers)
    assert again.json()["referral_code"] == code

    stats = await test_client.get("/api/referrals/stats", headers=headers)
    assert stats.json()["total_referrals"] == 0


@pytest.mark.asyncio
async def test_media_upload(test_client, manager):
    content = base64.b64encode(b"\x89PNG\r\n\x1a\nfake").decode()

    uploaded = await test_client.post(
        "/api/media",
        json={"name": "dock.png", "mime_type": "image/png", "content": content},
        headers=auth_headers(manager),
    )
    assert uploaded.status_code == 201
    assert uploaded.json()["size"] == 12

    fetched = await test_client.get(uploaded.json()["url"])
    assert fetched.json()["content"] == content


@pytest.mark.asyncio
async def test_media_rejects_large_and_bad_files(test_client, manager):
    headers = auth_headers(manager)
    big = base64.b64encode(b"0" * (5 * 1024 * 1024 + 1)).decode()

    too_big = await test_client.post(
        "/api/media", json={"name": "big.pdf", "mime_type": "application/pdf", "content": big}, headers=headers
    )
    assert too_big.status_code == 400

    wrong_type = await test_client.post(
        "/api/media", json={"name": "x.exe", "mime_type": "application/x-msdownload", "content": "AAAA"},
        headers=headers,
    )
    assert wrong_type.status_code == 400


@pytest.mark.asyncio
async def test_tours_catalogue_and_management(test_client, tour, owner, make_user, other_business):
    business_id = str(owner.business_id)
    public = await test_client.get("/api/tours")
    assert [t["id"] for t in public.json()] == [str(tour.id)]

    created = await test_client.post(
        "/api/tours",
        json={"name": "Whale Watching", "location": "Banderas Bay", "price": 1800, "capacity": 12},
        headers=auth_headers(owner),
    )
    assert created.status_code == 201
    assert created.json()["business_id"] == business_id

    outsider = await make_user(Role.BUSINESS, business=other_business)
    hijack = await test_client.put(
        f"/api/tours/{tour.id}", json={"price": 1}, headers=auth_headers(outsider)
    )
    assert hijack.status_code == 403

    hidden = await test_client.put(f"/api/tours/{tour.id}", json={"status": "inactive"}, headers=auth_headers(owner))
    assert hidden.status_code == 200
    assert str(tour.id) not in [t["id"] for t in (await test_client.get("/api/tours")).json()]

    staff_view = await test_client.get("/api/tours?include_inactive=true", headers=auth_headers(owner))
    assert str(tour.id) in [t["id"] for t in staff_view.json()]


@pytest.mark.asyncio
async def test_manager_creates_and_edits_tours_of_own_business(test_client, manager, make_user, other_business):
    business_id = str(manager.business_id)
    headers = auth_headers(manager)

    created = await test_client.post(
        "/api/tours",
        json={
            "name": "Sunset Sail",
            "location": "Banderas Bay",
            "price": 2200,
            "capacity": 8,
            "business_id": str(other_business.id),
        },
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["business_id"] == business_id
    tour_id = created.json()["id"]

    edited = await test_client.put(f"/api/tours/{tour_id}", json={"price": 2400, "capacity": 10}, headers=headers)
    assert edited.status_code == 200
    assert float(edited.json()["price"]) == 2400
    assert edited.json()["capacity"] == 10

    outsider = await make_user(Role.MANAGER, business=other_business)
    blocked = await test_client.put(f"/api/tours/{tour_id}", json={"price": 1}, headers=auth_headers(outsider))
    assert blocked.status_code == 403


@pytest.mark.asyncio
async def test_customer_cannot_manage_tours(test_client, customer):
    response = await test_client.post(
        "/api/tours", json={"name": "X", "location": "Y", "price": 1}, headers=auth_headers(customer)
    )

    assert response.status_code == 403
    assert response.headers["content-type"] == "application/problem+json"
