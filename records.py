"""
Record Store

CRUD over users and their subscriptions, built on the key/value store.

Keys:
- "user:<email>" and "user:id:<provider id>" hold identical User documents
- "subscriptions:<email>" holds the owner's ordered list of Subscription documents

Every subscription mutation reads the owner's whole list, changes it and
writes the whole list back (last write wins).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from uuid import uuid4

from pydantic import ValidationError

from auth_gateway import ProviderUser, SupabaseAuthGateway
from currencies import is_known_currency
from database import KVStore
from errors import Conflict, InvalidArgument, InvalidToken, NotFound
from schemas import Subscription, SubscriptionCreate, SubscriptionPatch, User

logger = logging.getLogger(__name__)

REQUIRED_SUBSCRIPTION_FIELDS = {"name": "name", "cost": "cost", "renewalDate": "renewal_date"}


def user_key(email: str) -> str:
    return f"user:{email}"


def user_id_key(user_id: str) -> str:
    return f"user:id:{user_id}"


def subscriptions_key(email: str) -> str:
    return f"subscriptions:{email}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


class RecordStore:
    def __init__(self, kv: KVStore, auth: SupabaseAuthGateway):
        self.kv = kv
        self.auth = auth

    # -------- Users --------

    def find_user(self, email: str) -> Optional[User]:
        doc = self.kv.get(user_key(email))
        return User.model_validate(doc) if doc else None

    def _write_user(self, user: User) -> None:
        doc = user.to_json()
        self.kv.set(user_key(user.email), doc)
        self.kv.set(user_id_key(user.id), doc)

    def _mirror_provider_user(self, provider_user: ProviderUser, auth_provider: str) -> User:
        email = provider_user.email
        if not email:
            raise InvalidToken("Provider account has no email address")
        meta = provider_user.user_metadata
        name = meta.get("full_name") or meta.get("name") or email.split("@")[0]
        user = User(
            id=provider_user.id,
            name=name,
            email=email,
            created_at=utc_now(),
            auth_provider=auth_provider,
            avatar=meta.get("avatar_url") if auth_provider == "google" else None,
        )
        self._write_user(user)
        logger.info(f"Created local mirror for {email} ({auth_provider})")
        return user

    def create_user(self, name: str, email: str, password: str) -> User:
        if not name or not email or not password:
            raise InvalidArgument("Name, email, and password are required")
        if self.kv.get(user_key(email)):
            raise Conflict("User already exists. Please login instead.")

        provider_id = self.auth.create_account(email, password, {"name": name})
        user = User(id=provider_id, name=name, email=email, created_at=utc_now(), auth_provider="email")
        self._write_user(user)
        logger.info(f"Signed up {email}")
        return user

    def authenticate(self, email: str, password: str) -> Tuple[User, Dict[str, Any]]:
        if not email or not password:
            raise InvalidArgument("Email and password are required")
        provider_user, session = self.auth.password_login(email, password)
        user = self.find_user(email)
        if user is None:
            # accounts created directly on the provider have no mirror yet
            provider_user.email = provider_user.email or email
            user = self._mirror_provider_user(provider_user, "email")
        return user, session

    def login_with_oauth(self, access_token: str) -> User:
        if not access_token:
            raise InvalidArgument("Access token is required")
        provider_user = self.auth.oauth_user_from_token(access_token)
        user = self.find_user(provider_user.email) if provider_user.email else None
        return user or self._mirror_provider_user(provider_user, "google")

    def verify_session(self, access_token: str) -> User:
        if not access_token:
            raise InvalidArgument("Access token is required")
        provider_user = self.auth.verify_token(access_token)
        user = self.find_user(provider_user.email) if provider_user.email else None
        if user is None:
            provider = provider_user.app_metadata.get("provider") or "email"
            user = self._mirror_provider_user(provider_user, provider)
        return user

    def get_user(self, email: str) -> User:
        user = self.find_user(email)
        if user is None:
            raise NotFound("User not found")
        return user

    def update_preferred_currency(self, email: str, currency: str) -> User:
        user = self.get_user(email)
        if not is_known_currency(currency):
            raise InvalidArgument(f"Unknown currency '{currency}'")
        user.preferred_currency = currency
        self._write_user(user)
        return user

    # -------- Subscriptions --------

    def list_subscriptions(self, email: str) -> List[Subscription]:
        docs = self.kv.get(subscriptions_key(email)) or []
        return [Subscription.model_validate(d) for d in docs]

    def _write_subscriptions(self, email: str, subscriptions: List[Subscription]) -> None:
        self.kv.set(subscriptions_key(email), [s.to_json() for s in subscriptions])

    def add_subscription(
        self, email: str, draft: Union[SubscriptionCreate, Mapping[str, Any]]
    ) -> Tuple[Subscription, List[Subscription]]:
        if not isinstance(draft, SubscriptionCreate):
            missing = [
                alias for alias, attr in REQUIRED_SUBSCRIPTION_FIELDS.items()
                if not draft.get(alias) and not draft.get(attr)
            ]
            if missing:
                raise InvalidArgument("Missing required subscription fields: " + ", ".join(missing))
            try:
                draft = SubscriptionCreate.model_validate(draft)
            except ValidationError as e:
                raise InvalidArgument(validation_message(e)) from e

        subscriptions = self.list_subscriptions(email)
        taken = {s.id for s in subscriptions}
        new_id = uuid4().hex
        while new_id in taken:
            new_id = uuid4().hex

        subscription = Subscription(id=new_id, created_at=utc_now(), **draft.model_dump())
        subscriptions.append(subscription)
        self._write_subscriptions(email, subscriptions)
        return subscription, subscriptions

    def update_subscription(
        self, email: str, subscription_id: str, patch: Union[SubscriptionPatch, Mapping[str, Any]]
    ) -> Tuple[Subscription, List[Subscription]]:
        if not isinstance(patch, SubscriptionPatch):
            try:
                patch = SubscriptionPatch.model_validate(patch)
            except ValidationError as e:
                raise InvalidArgument(validation_message(e)) from e

        subscriptions = self.list_subscriptions(email)
        for index, existing in enumerate(subscriptions):
            if existing.id == subscription_id:
                break
        else:
            raise NotFound("Subscription not found")

        merged = {**existing.model_dump(), **patch.changes(), "updated_at": utc_now()}
        subscriptions[index] = Subscription.model_validate(merged)
        self._write_subscriptions(email, subscriptions)
        return subscriptions[index], subscriptions

    def delete_subscription(self, email: str, subscription_id: str) -> List[Subscription]:
        subscriptions = self.list_subscriptions(email)
        remaining = [s for s in subscriptions if s.id != subscription_id]
        if len(remaining) == len(subscriptions):
            raise NotFound("Subscription not found")
        self._write_subscriptions(email, remaining)
        return remaining

    def clear_subscriptions(self, email: str) -> None:
        self.kv.set(subscriptions_key(email), [])
