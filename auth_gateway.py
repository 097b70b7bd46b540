"""
Auth Gateway

Thin client for the hosted identity provider (Supabase GoTrue REST API).
Password hashing, session issuance and the OAuth redirect flow all live on the
provider; this module only forwards credentials and tokens and returns the
provider's view of the user.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import requests
from pydantic import BaseModel, Field

from config import Settings
from errors import AuthGatewayError, InvalidArgument, InvalidToken, Unauthorized

logger = logging.getLogger(__name__)


class ProviderUser(BaseModel):
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    app_metadata: Dict[str, Any] = Field(default_factory=dict)


def _error_message(res: requests.Response) -> str:
    try:
        body = res.json()
    except ValueError:
        return res.text[:200] or f"HTTP {res.status_code}"
    if not isinstance(body, dict):
        return f"HTTP {res.status_code}"
    return (
        body.get("msg")
        or body.get("message")
        or body.get("error_description")
        or body.get("error")
        or f"HTTP {res.status_code}"
    )


class SupabaseAuthGateway:
    def __init__(
        self,
        url: str,
        anon_key: str,
        service_role_key: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseAuthGateway":
        if not settings.supabase_url:
            logger.warning("SUPABASE_URL not set, auth routes will fail until it is configured")
        return cls(
            settings.supabase_url,
            settings.supabase_anon_key,
            settings.supabase_service_role_key,
            timeout=settings.auth_timeout,
        )

    def _request(self, method: str, path: str, api_key: str, bearer: Optional[str] = None, **kwargs) -> requests.Response:
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {bearer or api_key}",
            "Accept": "application/json",
        }
        try:
            return self.session.request(
                method, f"{self.url}/auth/v1{path}", headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"Auth provider request {method} {path} failed: {e}")
            raise AuthGatewayError(f"Auth provider unavailable: {e}") from e

    def _user_from(self, res: requests.Response) -> ProviderUser:
        try:
            return ProviderUser.model_validate(res.json())
        except ValueError as e:
            raise AuthGatewayError(f"Unexpected auth provider response: {e}") from e

    def create_account(self, email: str, password: str, metadata: Dict[str, Any]) -> str:
        res = self._request(
            "POST",
            "/admin/users",
            self.service_role_key,
            json={"email": email, "password": password, "user_metadata": metadata, "email_confirm": True},
        )
        if res.status_code >= 500:
            raise AuthGatewayError(_error_message(res))
        if not res.ok:
            message = _error_message(res)
            logger.info(f"Auth provider rejected signup for {email}: {message}")
            raise InvalidArgument(message)
        return self._user_from(res).id

    def password_login(self, email: str, password: str) -> Tuple[ProviderUser, Dict[str, Any]]:
        res = self._request(
            "POST",
            "/token",
            self.anon_key,
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if res.status_code in (400, 401, 403):
            logger.info(f"Auth provider rejected login for {email}: {_error_message(res)}")
            raise Unauthorized("Invalid email or password")
        if not res.ok:
            raise AuthGatewayError(_error_message(res))
        try:
            session = res.json()
            user = ProviderUser.model_validate(session.get("user") or {})
        except ValueError as e:
            raise AuthGatewayError(f"Unexpected auth provider response: {e}") from e
        return user, session

    def verify_token(self, token: str) -> ProviderUser:
        res = self._request("GET", "/user", self.anon_key, bearer=token)
        if res.status_code in (401, 403, 404):
            raise InvalidToken("Invalid or expired session")
        if not res.ok:
            raise AuthGatewayError(_error_message(res))
        return self._user_from(res)

    def oauth_user_from_token(self, token: str) -> ProviderUser:
        try:
            return self.verify_token(token)
        except InvalidToken:
            raise InvalidToken("Invalid access token")
