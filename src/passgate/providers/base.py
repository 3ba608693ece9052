"""Identity provider base — pluggable federated login backends.

Learn: passgate doesn't authenticate federated users itself. It delegates
to the provider and gets back a FederatedProfile: who the provider says
this is. Two shapes of provider exist:

1. OAuthProvider — authorization-code flow. We build the authorize URL,
   the browser comes back with ?code=..., we exchange it server-side.
2. AssertionProvider — the client already holds a signed assertion
   (e.g. a Firebase ID token) and we verify it.

Each provider also proposes a login_id for brand-new accounts
(login_id_hint), since naming conventions differ per provider.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

LOGIN_ID_BASE_MAX = 40
_DISALLOWED = re.compile(r"[^a-z0-9_]")


@dataclass(frozen=True)
class FederatedProfile:
    """What a provider tells us about the signed-in account.

    Learn: subject is the provider's stable account id (GitHub numeric id,
    Firebase uid) — never the username or email, which can change.
    """

    provider: str
    subject: str
    username: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None


def normalize_login_id(base: str) -> str:
    """Lowercase, map anything outside [a-z0-9_] to '_', cap the length."""
    return _DISALLOWED.sub("_", base.lower())[:LOGIN_ID_BASE_MAX]


class IdentityProvider(ABC):
    """Common surface of every federated provider."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier, e.g. 'github', 'firebase'."""

    @abstractmethod
    def login_id_hint(self, profile: FederatedProfile) -> str:
        """Un-normalized login_id candidate for a first-time account."""

    def display_name_for(self, profile: FederatedProfile, login_id: str) -> str:
        return (profile.display_name or profile.username or login_id)[:50]


class OAuthProvider(IdentityProvider):
    """Authorization-code flow provider."""

    @abstractmethod
    def authorize_url(self, state: str) -> str:
        """URL to send the browser to. Must embed `state` verbatim."""

    @abstractmethod
    async def resolve_identity(self, code: str) -> FederatedProfile:
        """Exchange the code and fetch the profile.

        Raises BadGateway on any upstream failure.
        """


class AssertionProvider(IdentityProvider):
    """Verified-assertion provider."""

    @abstractmethod
    async def resolve_identity(self, assertion: str) -> FederatedProfile:
        """Verify the assertion. Raises Unauthorized if it doesn't check out."""
