import pytest
from fastapi.testclient import TestClient

from phone_auth.core.errors import ValidationFailure
from phone_auth.main import create_app
from phone_auth.models.otp_record import OtpRecord
from phone_auth.models.user import User

BD_PHONE = "+8801712345678"
BD_NATIONAL = "1712345678"


def request_registration_otp(client, phone_codes, name="Karim Ahmed", phone=BD_NATIONAL, iso="BD"):
    return client.post(
        "/auth/register/request-otp",
        json={"name": name, "country_phone_code_id": phone_codes[iso].id, "phone": phone},
    )


def verify_registration_otp(client, phone_codes, otp, phone=BD_NATIONAL, iso="BD"):
    return client.post(
        "/auth/register/verify-otp",
        json={"country_phone_code_id": phone_codes[iso].id, "phone": phone, "otp": otp},
    )


def test_new_phone_can_register(client, db, phone_codes, sms):
    r = request_registration_otp(client, phone_codes, name="  Karim Ahmed ")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["resend_available_in"] == 45
    otp = body["preview_code"]

    assert len(sms.sent) == 1
    assert sms.sent[0]["phone"] == BD_PHONE
    assert sms.sent[0]["otp"] == otp

    r = verify_registration_otp(client, phone_codes, otp)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["token"]
    assert body["user"]["name"] == "Karim Ahmed"
    assert body["user"]["phone"] == BD_PHONE
    assert body["user"]["email"] == "8801712345678@mobile.local"
    assert body["user"]["country_phone_code_id"] == phone_codes["BD"].id
    assert body["user"]["phone_verified_at"] is not None

    db.expire_all()
    user = db.query(User).filter(User.phone == BD_PHONE).one()
    assert user.password_hash
    assert db.query(OtpRecord).filter(OtpRecord.used_at.is_(None)).count() == 0

    r = client.get("/user", headers={"Authorization": f"Bearer {body['token']}"})
    assert r.status_code == 200
    assert r.json()["id"] == user.id


def test_registered_phone_is_rejected_before_any_code_is_sent(client, db, phone_codes, sms, make_user):
    make_user(phone=BD_PHONE)

    r = request_registration_otp(client, phone_codes)
    assert r.status_code == 422
    assert r.json()["errors"] == {
        "phone": ["This phone number is already registered. Please sign in instead."]
    }

    db.expire_all()
    assert db.query(OtpRecord).count() == 0
    assert sms.sent == []


def test_phone_registered_after_the_request_cannot_complete(client, db, phone_codes, make_user):
    otp = request_registration_otp(client, phone_codes).json()["preview_code"]
    make_user(phone=BD_PHONE)

    r = verify_registration_otp(client, phone_codes, otp)
    assert r.status_code == 422
    assert r.json()["errors"]["phone"] == [
        "This phone number is already registered. Please sign in instead."
    ]

    db.expire_all()
    assert db.query(User).count() == 1


def test_resend_cooldown_is_longer_for_registration(client, clock, phone_codes):
    assert request_registration_otp(client, phone_codes).status_code == 200

    clock.advance(30)
    r = request_registration_otp(client, phone_codes)
    assert r.status_code == 422
    assert r.headers["Retry-After"] == "15"

    clock.advance(15)
    assert request_registration_otp(client, phone_codes).status_code == 200


def test_delivery_failure_keeps_the_code_and_releases_the_cooldown(client, db, phone_codes, sms):
    sms.fail = True

    r = request_registration_otp(client, phone_codes)
    assert r.status_code == 422
    assert r.json() == {
        "message": "We could not send the OTP right now. Please try again shortly.",
        "errors": {"phone": ["We could not send the OTP right now. Please try again shortly."]},
    }

    db.expire_all()
    assert db.query(OtpRecord).count() == 1

    sms.fail = False
    r = request_registration_otp(client, phone_codes)
    assert r.status_code == 200
    assert len(sms.sent) == 1


def test_delivery_failures_still_count_towards_the_request_window(client, phone_codes, sms):
    sms.fail = True
    for _ in range(5):
        assert request_registration_otp(client, phone_codes).status_code == 422

    r = request_registration_otp(client, phone_codes)
    assert r.status_code == 422
    assert "Retry-After" in r.headers
    assert r.json()["message"].startswith("Too many attempts.")


def test_new_request_replaces_the_pending_name(client, db, clock, phone_codes):
    request_registration_otp(client, phone_codes, name="First Name")
    clock.advance(46)
    otp = request_registration_otp(client, phone_codes, name="Second Name").json()["preview_code"]

    db.expire_all()
    record = db.query(OtpRecord).one()
    assert record.name == "Second Name"
    assert record.user_id is None

    r = verify_registration_otp(client, phone_codes, otp)
    assert r.status_code == 200
    assert r.json()["user"]["name"] == "Second Name"


def test_registration_and_login_codes_do_not_collide(client, db, phone_codes, make_user):
    make_user(phone="+8801812345678")
    login = client.post(
        "/auth/request-otp",
        json={"country_phone_code_id": phone_codes["BD"].id, "phone": "1812345678"},
    )
    assert login.status_code == 200

    assert request_registration_otp(client, phone_codes).status_code == 200

    db.expire_all()
    assert {record.purpose for record in db.query(OtpRecord).all()} == {"login", "registration"}


def test_registration_with_pattern_based_phones(db, phone_codes, make_components):
    client = TestClient(create_app(make_components(PHONE_NORMALIZER="pattern_based")))

    r = client.post(
        "/auth/register/request-otp",
        json={"name": "Jane Roe", "phone": "+44 (20) 7946-0958"},
    )
    assert r.status_code == 200, r.text
    otp = r.json()["preview_code"]

    r = client.post("/auth/register/verify-otp", json={"phone": "442079460958", "otp": otp})
    assert r.status_code == 200, r.text
    user = r.json()["user"]
    assert user["phone"] == "+442079460958"
    assert user["country_phone_code_id"] is None


def test_pattern_based_mode_rejects_short_numbers(db, make_components):
    client = TestClient(create_app(make_components(PHONE_NORMALIZER="pattern_based")))

    r = client.post("/auth/register/request-otp", json={"name": "Jane Roe", "phone": "+1234567"})
    assert r.status_code == 422
    assert r.json()["errors"] == {
        "phone": ["Enter a valid international phone number, including the country code."]
    }


def test_blank_name_is_rejected(client, db, phone_codes, sms):
    r = request_registration_otp(client, phone_codes, name="   ")
    assert r.status_code == 422
    assert list(r.json()["errors"]) == ["name"]

    db.expire_all()
    assert db.query(OtpRecord).count() == 0
    assert sms.sent == []


def test_flow_rejects_blank_name_without_the_schema(db, phone_codes, components):
    with pytest.raises(ValidationFailure) as exc:
        components.registration_flow.request_otp(db, "  ", phone_codes["BD"].id, BD_NATIONAL)
    assert exc.value.to_errors() == {"name": ["The name field is required."]}
    assert db.query(OtpRecord).count() == 0
