from datetime import timedelta

from migralert.core.security import create_access_token, decode_token
from migralert.models.user import User
from migralert.services.auth_service import AuthService


def test_decode_roundtrip_and_rejection():
    token = create_access_token({"sub": "abc"})
    assert decode_token(token)["sub"] == "abc"
    assert decode_token(token + "x") is None

    expired = create_access_token({"sub": "abc"}, expires_delta=timedelta(seconds=-1))
    assert decode_token(expired) is None


def test_first_sight_materialises_user(db, token):
    user = AuthService(db).get_current_user(
        token("u-42", phone="512-555-0100", phone_verified=True, name="Rosa")
    )
    assert user.id == "u-42"
    assert user.phone == "+15125550100"
    assert user.verified_phone == "+15125550100"
    assert user.display_name == "Rosa"
    assert user.role == "user"
    assert db.query(User).count() == 1


def test_claims_refresh_existing_user(db, token, make_user):
    make_user("u-42", phone="+15125550100", phone_verified=False)
    service = AuthService(db)

    user = service.get_current_user(token("u-42", phone_verified=True, role="moderator"))
    assert user.phone == "+15125550100"
    assert user.phone_verified is True
    assert user.is_moderator


def test_unknown_role_and_bad_phone_ignored(db, token):
    user = AuthService(db).get_current_user(token("u-7", role="root", phone="12"))
    assert user.role == "user"
    assert user.phone is None
    assert user.verified_phone is None


def test_token_without_subject(db):
    assert AuthService(db).get_current_user(create_access_token({"name": "nobody"})) is None
