from unittest.mock import MagicMock

import pytest
import requests

from auth_gateway import SupabaseAuthGateway
from errors import AuthGatewayError, InvalidArgument, InvalidToken, Unauthorized


def make_response(status_code, body):
    res = MagicMock(spec=requests.Response)
    res.status_code = status_code
    res.ok = status_code < 400
    res.json.return_value = body
    res.text = str(body)
    return res


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def gateway(session):
    return SupabaseAuthGateway("https://proj.supabase.co/", "anon", "service", timeout=5, session=session)


def test_create_account_uses_service_key(gateway, session):
    session.request.return_value = make_response(200, {"id": "uid-1", "email": "ada@example.com"})

    assert gateway.create_account("ada@example.com", "s3cret", {"name": "Ada"}) == "uid-1"
    args, kwargs = session.request.call_args
    assert args == ("POST", "https://proj.supabase.co/auth/v1/admin/users")
    assert kwargs["headers"]["apikey"] == "service"
    assert kwargs["headers"]["Authorization"] == "Bearer service"
    assert kwargs["json"]["email_confirm"] is True
    assert kwargs["json"]["user_metadata"] == {"name": "Ada"}
    assert kwargs["timeout"] == 5


def test_create_account_rejected(gateway, session):
    session.request.return_value = make_response(422, {"msg": "Password should be at least 6 characters"})
    with pytest.raises(InvalidArgument, match="at least 6"):
        gateway.create_account("ada@example.com", "123", {})


def test_create_account_provider_outage(gateway, session):
    session.request.return_value = make_response(503, {"message": "unavailable"})
    with pytest.raises(AuthGatewayError):
        gateway.create_account("ada@example.com", "s3cret", {})


def test_password_login(gateway, session):
    session.request.return_value = make_response(
        200,
        {
            "access_token": "jwt",
            "token_type": "bearer",
            "user": {"id": "uid-1", "email": "ada@example.com", "user_metadata": {"name": "Ada"}},
        },
    )
    user, token_session = gateway.password_login("ada@example.com", "s3cret")

    assert user.id == "uid-1"
    assert user.user_metadata == {"name": "Ada"}
    assert token_session["access_token"] == "jwt"
    args, kwargs = session.request.call_args
    assert args == ("POST", "https://proj.supabase.co/auth/v1/token")
    assert kwargs["params"] == {"grant_type": "password"}
    assert kwargs["headers"]["apikey"] == "anon"


def test_password_login_bad_credentials(gateway, session):
    session.request.return_value = make_response(400, {"error_description": "Invalid login credentials"})
    with pytest.raises(Unauthorized):
        gateway.password_login("ada@example.com", "wrong")


def test_verify_token_sends_bearer(gateway, session):
    session.request.return_value = make_response(200, {"id": "uid-1", "email": "ada@example.com"})

    assert gateway.verify_token("jwt").email == "ada@example.com"
    _, kwargs = session.request.call_args
    assert kwargs["headers"]["Authorization"] == "Bearer jwt"
    assert kwargs["headers"]["apikey"] == "anon"


@pytest.mark.parametrize("status", [401, 403])
def test_verify_token_invalid(gateway, session, status):
    session.request.return_value = make_response(status, {"msg": "invalid JWT"})
    with pytest.raises(InvalidToken):
        gateway.verify_token("stale")
    with pytest.raises(InvalidToken, match="Invalid access token"):
        gateway.oauth_user_from_token("stale")


def test_network_failure_is_not_retried(gateway, session):
    session.request.side_effect = requests.ConnectionError("connection refused")
    with pytest.raises(AuthGatewayError):
        gateway.verify_token("jwt")
    assert session.request.call_count == 1
