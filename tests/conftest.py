import random
from datetime import date

import pytest
from fastapi.testclient import TestClient

from auth_gateway import ProviderUser
from config import Settings
from database import MemoryKVStore
from errors import InvalidArgument, InvalidToken, Unauthorized
from main import create_app
from records import RecordStore
from schemas import Subscription

CLIENT_KEY = "test-client-key"


class FakeAuthGateway:
    """In-process stand-in for the hosted identity provider"""

    def __init__(self):
        self.accounts = {}
        self.tokens = {}

    def create_account(self, email, password, metadata):
        if email in self.accounts:
            raise InvalidArgument("A user with this email address has already been registered")
        user_id = f"uid-{len(self.accounts) + 1}"
        self.accounts[email] = {"id": user_id, "password": password, "metadata": dict(metadata)}
        return user_id

    def issue_token(self, user: ProviderUser) -> str:
        token = f"token-{user.id}-{len(self.tokens)}"
        self.tokens[token] = user
        return token

    def password_login(self, email, password):
        account = self.accounts.get(email)
        if not account or account["password"] != password:
            raise Unauthorized("Invalid email or password")
        user = ProviderUser(id=account["id"], email=email, user_metadata=account["metadata"])
        token = self.issue_token(user)
        return user, {"access_token": token, "token_type": "bearer", "user": user.model_dump()}

    def verify_token(self, token):
        user = self.tokens.get(token)
        if user is None:
            raise InvalidToken("Invalid or expired session")
        return user

    def oauth_user_from_token(self, token):
        user = self.tokens.get(token)
        if user is None:
            raise InvalidToken("Invalid access token")
        return user


def make_sub(name="Netflix", cost=15.49, currency="USD", category="Entertainment", renewal=None, sub_id=None):
    return Subscription(
        id=sub_id or name.lower(),
        name=name,
        cost=cost,
        currency=currency,
        category=category,
        renewal_date=renewal or date(2026, 11, 1),
        created_at="2026-10-01T00:00:00Z",
    )


@pytest.fixture
def kv():
    return MemoryKVStore()


@pytest.fixture
def auth():
    return FakeAuthGateway()


@pytest.fixture
def records(kv, auth):
    return RecordStore(kv, auth)


@pytest.fixture
def app(kv, auth):
    settings = Settings(public_client_key=CLIENT_KEY)
    return create_app(settings, kv=kv, auth=auth, rng=random.Random(7))


@pytest.fixture
def client(app):
    return TestClient(app, headers={"Authorization": f"Bearer {CLIENT_KEY}"}, raise_server_exceptions=False)


@pytest.fixture
def anonymous_client(app):
    return TestClient(app, raise_server_exceptions=False)
