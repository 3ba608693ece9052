"""GitHub OAuth (authorization code) provider.

Learn: Three upstream calls per callback:
1. POST /login/oauth/access_token — code → GitHub access token
2. GET /user — stable numeric id, login, display name
3. GET /user/emails — primary verified email (best-effort)

Every call has a bounded timeout. A timeout, transport error or non-2xx
from steps 1-2 becomes BadGateway. Step 3 is optional metadata: users
may hide their email or deny the scope, so any failure there yields None.
"""

from typing import Any, Optional
from urllib.parse import urlencode

import httpx
import structlog

from passgate.errors import BadGateway
from passgate.providers.base import FederatedProfile, OAuthProvider

logger = structlog.get_logger()

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
USER_URL = "https://api.github.com/user"
EMAILS_URL = "https://api.github.com/user/emails"

API_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
    "User-Agent": "passgate",
}


class GithubOAuthProvider(OAuthProvider):
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        scope: str = "read:user user:email",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.timeout = timeout
        self._transport = transport  # tests inject httpx.MockTransport

    @property
    def name(self) -> str:
        return "github"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def authorize_url(self, state: str) -> str:
        query = urlencode({
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": state,
        })
        return f"{AUTHORIZE_URL}?{query}"

    def login_id_hint(self, profile: FederatedProfile) -> str:
        return f"gh_{profile.username or profile.subject}"

    async def resolve_identity(self, code: str) -> FederatedProfile:
        async with self._client() as client:
            access_token = await self._exchange_code(client, code)
            user = await self._fetch_user(client, access_token)
            email = await self._fetch_primary_email(client, access_token)

        return FederatedProfile(
            provider=self.name,
            subject=str(user["id"]),
            username=str(user["login"]),
            email=email or (str(user["email"]) if user.get("email") else None),
            display_name=str(user["name"]) if user.get("name") else None,
        )

    # ─── Upstream calls ──────────────────────────────────

    async def _exchange_code(self, client: httpx.AsyncClient, code: str) -> str:
        body = await self._request_json(
            client,
            "POST",
            TOKEN_URL,
            step="token_exchange",
            headers={"Accept": "application/json"},
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "redirect_uri": self.redirect_uri,
            },
        )
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            # GitHub answers 200 with {"error": "bad_verification_code"} etc.
            logger.warning(
                "github.token_missing",
                error=body.get("error") if isinstance(body, dict) else None,
            )
            raise BadGateway("GitHub token not issued")
        return str(token)

    async def _fetch_user(self, client: httpx.AsyncClient, access_token: str) -> dict:
        body = await self._request_json(
            client,
            "GET",
            USER_URL,
            step="profile",
            headers={**API_HEADERS, "Authorization": f"Bearer {access_token}"},
        )
        if not isinstance(body, dict) or "id" not in body or "login" not in body:
            raise BadGateway("GitHub profile fetch failed")
        return body

    async def _fetch_primary_email(
        self, client: httpx.AsyncClient, access_token: str
    ) -> Optional[str]:
        try:
            body = await self._request_json(
                client,
                "GET",
                EMAILS_URL,
                step="emails",
                headers={**API_HEADERS, "Authorization": f"Bearer {access_token}"},
            )
        except BadGateway:
            return None

        if not isinstance(body, list):
            return None
        for entry in body:
            if isinstance(entry, dict) and entry.get("primary") and entry.get("verified"):
                email = entry.get("email")
                return str(email) if email else None
        return None

    async def _request_json(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        step: str,
        **kwargs: Any,
    ) -> Any:
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException:
            logger.warning("github.timeout", step=step, timeout=self.timeout)
            raise BadGateway(f"GitHub {step} timed out")
        except httpx.HTTPError as e:
            logger.warning("github.transport_error", step=step, error=str(e))
            raise BadGateway(f"GitHub {step} failed")

        if not response.is_success:
            logger.warning("github.bad_status", step=step, status=response.status_code)
            raise BadGateway(f"GitHub {step} failed")

        try:
            return response.json()
        except ValueError:
            raise BadGateway(f"GitHub {step} returned invalid JSON")
