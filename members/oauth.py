"""
OAuth2 provider profiles.

The client completes the provider's login flow and hands the backend a
provider access token; the backend exchanges it for the userinfo payload and
maps the provider-specific attributes onto a ``SocialProfile``.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from bookshelf.errors import AuthorizationError, UpstreamError, ValidationError
from utilities.config import config
from .models import SocialProfile, SocialProvider

logger = structlog.get_logger(__name__)

USERINFO_ENDPOINTS: Dict[SocialProvider, str] = {
    SocialProvider.KAKAO: "https://kapi.kakao.com/v2/user/me",
    SocialProvider.NAVER: "https://openapi.naver.com/v1/nid/me",
    SocialProvider.GOOGLE: "https://openidconnect.googleapis.com/v1/userinfo",
}


def parse_provider(value: str) -> SocialProvider:
    try:
        return SocialProvider(value.lower())
    except ValueError:
        raise ValidationError("UNSUPPORTED_PROVIDER", provider=value)


class OAuthAttributes:
    """Maps provider userinfo payloads to SocialProfile."""

    @staticmethod
    def of(provider: SocialProvider, attributes: Dict[str, Any]) -> SocialProfile:
        if provider is SocialProvider.KAKAO:
            return OAuthAttributes._of_kakao(attributes)
        if provider is SocialProvider.NAVER:
            return OAuthAttributes._of_naver(attributes)
        if provider is SocialProvider.GOOGLE:
            return OAuthAttributes._of_google(attributes)
        raise ValidationError("UNSUPPORTED_PROVIDER", provider=str(provider))

    @staticmethod
    def _build(provider: SocialProvider, social_id: Any, email: Optional[str], nickname: Optional[str]) -> SocialProfile:
        if social_id in (None, ""):
            raise AuthorizationError("INVALID_SOCIAL_TOKEN", provider=provider.value)
        return SocialProfile(
            provider=provider,
            social_id=str(social_id),
            email=email or None,
            nickname=nickname or None,
        )

    @staticmethod
    def _of_kakao(attributes: Dict[str, Any]) -> SocialProfile:
        account = attributes.get("kakao_account") or {}
        profile = account.get("profile") or {}
        properties = attributes.get("properties") or {}
        return OAuthAttributes._build(
            SocialProvider.KAKAO,
            attributes.get("id"),
            account.get("email"),
            profile.get("nickname") or properties.get("nickname"),
        )

    @staticmethod
    def _of_naver(attributes: Dict[str, Any]) -> SocialProfile:
        response = attributes.get("response") or {}
        return OAuthAttributes._build(
            SocialProvider.NAVER,
            response.get("id"),
            response.get("email"),
            response.get("nickname") or response.get("name"),
        )

    @staticmethod
    def _of_google(attributes: Dict[str, Any]) -> SocialProfile:
        return OAuthAttributes._build(
            SocialProvider.GOOGLE,
            attributes.get("sub"),
            attributes.get("email"),
            attributes.get("name"),
        )


class OAuthUserInfoClient:
    """Fetches userinfo from the identity providers."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_config = {
            "timeout": timeout or config.oauth_request_timeout,
            "headers": {"User-Agent": config.get_user_agent(), "Accept": "application/json"},
        }
        if transport is not None:
            self.client_config["transport"] = transport

    async def fetch_profile(self, provider: SocialProvider, access_token: str) -> SocialProfile:
        """
        Exchange a provider access token for the caller's profile.

        Raises:
            AuthorizationError: the provider refused the token
            UpstreamError: the provider was unreachable or answered garbage
        """
        url = USERINFO_ENDPOINTS[provider]
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            async with httpx.AsyncClient(**self.client_config) as client:
                response = await client.get(url, headers=headers)
            if response.status_code in (401, 403):
                logger.warning("Provider rejected access token", provider=provider.value)
                raise AuthorizationError("INVALID_SOCIAL_TOKEN", provider=provider.value)
            response.raise_for_status()
            attributes = response.json()
        except httpx.HTTPError as e:
            logger.error("Userinfo request failed", provider=provider.value, error=str(e))
            raise UpstreamError("FAIL_REQUEST_USER_INFO", provider=provider.value) from e
        except ValueError as e:
            logger.error("Malformed userinfo response", provider=provider.value, error=str(e))
            raise UpstreamError("FAIL_REQUEST_USER_INFO", provider=provider.value) from e

        if not isinstance(attributes, dict):
            raise UpstreamError("FAIL_REQUEST_USER_INFO", provider=provider.value)
        return OAuthAttributes.of(provider, attributes)
