"""
Client for the external identity provider (phone/email OTP, Google OAuth).

The provider owns credentials and OTP delivery; this app only asks it to
send and verify codes and then keeps its own user row keyed by the
provider's user id.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from dishfinder.config import get_settings

logger = logging.getLogger(__name__)


class AuthProviderError(Exception):
    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class ProviderUser:
    id: str
    phone: Optional[str] = None
    email: Optional[str] = None


class AuthProviderClient:
    def __init__(self, base_url: str, api_key: str = "", timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    @property
    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        return headers

    async def _post(self, path: str, payload: Dict[str, Any], params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}{path}", json=payload, params=params, headers=self._headers
                )
        except httpx.HTTPError as e:
            logger.error(f"Auth provider request to {path} failed: {e}")
            raise AuthProviderError("Authentication service unavailable. Please try again.", 503)

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get("msg") or body.get("error_description") or body.get("error") or "Authentication failed."
            raise AuthProviderError(message, response.status_code)

        return response.json() if response.content else {}

    @staticmethod
    def _parse_user(body: Dict[str, Any]) -> ProviderUser:
        user = body.get("user") or {}
        if not user.get("id"):
            raise AuthProviderError("User not found after verification.", 500)
        return ProviderUser(id=str(user["id"]), phone=user.get("phone") or None, email=user.get("email") or None)

    async def send_otp(self, phone: Optional[str] = None, email: Optional[str] = None) -> None:
        if not phone and not email:
            raise AuthProviderError("Phone number or email is required.", 400)
        payload = {"phone": phone} if phone else {"email": email}
        await self._post("/auth/v1/otp", payload)

    async def verify_otp(self, token: str, phone: Optional[str] = None, email: Optional[str] = None) -> ProviderUser:
        if phone:
            payload = {"type": "sms", "phone": phone, "token": token}
        elif email:
            payload = {"type": "email", "email": email, "token": token}
        else:
            raise AuthProviderError("Phone number or email is required.", 400)
        body = await self._post("/auth/v1/verify", payload)
        return self._parse_user(body)

    def oauth_url(self, provider: str, redirect_to: str) -> str:
        query = urlencode({
            "provider": provider,
            "redirect_to": redirect_to,
            "access_type": "offline",
            "prompt": "consent",
        })
        return f"{self.base_url}/auth/v1/authorize?{query}"

    async def exchange_code(self, code: str) -> ProviderUser:
        body = await self._post("/auth/v1/token", {"auth_code": code}, params={"grant_type": "pkce"})
        return self._parse_user(body)


def get_auth_provider() -> AuthProviderClient:
    settings = get_settings()
    return AuthProviderClient(settings.AUTH_PROVIDER_URL, settings.AUTH_PROVIDER_API_KEY)
