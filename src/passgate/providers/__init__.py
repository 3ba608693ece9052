"""Identity provider registry — pluggable federated login backends.

Learn: The AuthService never branches on provider names. It asks the
registry for an OAuth-capable or assertion-capable provider, and the
registry answers with an instance or raises BadRequest:

    provider = registry.oauth("github")
    url = provider.authorize_url(state)

Only providers listed in PASSGATE_ENABLED_PROVIDERS are built, and their
credentials are validated at startup by Settings.
"""

from typing import Optional

import httpx

from passgate.config import Settings
from passgate.errors import BadRequest
from passgate.providers.base import (
    AssertionProvider,
    FederatedProfile,
    IdentityProvider,
    OAuthProvider,
    normalize_login_id,
)
from passgate.providers.firebase import FirebaseAssertionProvider
from passgate.providers.github import GithubOAuthProvider

__all__ = [
    "AssertionProvider",
    "FederatedProfile",
    "IdentityProvider",
    "OAuthProvider",
    "ProviderRegistry",
    "build_providers",
    "normalize_login_id",
]


class ProviderRegistry:
    """Enabled providers, looked up by name and capability."""

    def __init__(self, providers: Optional[list[IdentityProvider]] = None):
        self._providers: dict[str, IdentityProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: IdentityProvider) -> None:
        self._providers[provider.name] = provider

    def names(self) -> list[str]:
        return sorted(self._providers)

    def oauth(self, name: str) -> OAuthProvider:
        provider = self._providers.get(name)
        if not isinstance(provider, OAuthProvider):
            raise BadRequest(f"Unsupported OAuth provider '{name}'")
        return provider

    def assertion(self, name: str) -> AssertionProvider:
        provider = self._providers.get(name)
        if not isinstance(provider, AssertionProvider):
            raise BadRequest(f"Unsupported assertion provider '{name}'")
        return provider


def build_providers(
    cfg: Settings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderRegistry:
    """Build the registry for the providers enabled in settings."""
    registry = ProviderRegistry()
    if "github" in cfg.enabled_providers:
        registry.register(
            GithubOAuthProvider(
                cfg.github_client_id,
                cfg.github_client_secret,
                cfg.github_redirect_uri,
                scope=cfg.github_scope,
                timeout=cfg.provider_timeout_seconds,
                transport=transport,
            )
        )
    if "firebase" in cfg.enabled_providers:
        registry.register(
            FirebaseAssertionProvider(
                cfg.firebase_project_id,
                timeout=cfg.provider_timeout_seconds,
            )
        )
    return registry
