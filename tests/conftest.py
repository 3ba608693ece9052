"""Test fixtures — isolated SQLite database, in-memory Redis, fake upstreams.

Learn: Testing pattern for async SQLAlchemy + FastAPI + Redis:

1. Env vars are set BEFORE passgate is imported: Settings() validates
   secrets at import time and the engine URL is read once.
2. Each test gets its own in-memory SQLite database (aiosqlite, one
   shared connection) with the schema created from the
   ORM metadata. get_db is overridden to hand out sessions on it.
3. Redis is replaced by InMemoryRedis, installed as passgate.cache._redis
   so both get_redis() and the health check see it.
4. Identity providers are the real classes pointed at fakes: GitHub gets
   an httpx.MockTransport, Firebase gets a local RSA key instead of
   Google's JWKS endpoint.

The app's lifespan never runs under ASGITransport, so nothing here
touches a real network service.
"""

import os

os.environ.update({
    "PASSGATE_DATABASE_URL": "sqlite+aiosqlite://",
    "PASSGATE_REDIS_URL": "redis://localhost:6379/15",
    "PASSGATE_JWT_ACCESS_SECRET": "test-access-secret-0123456789abcdef",
    "PASSGATE_JWT_REFRESH_SECRET": "test-refresh-secret-0123456789abcdef",
    "PASSGATE_ENABLED_PROVIDERS": '["github", "firebase"]',
    "PASSGATE_GITHUB_CLIENT_ID": "test-client-id",
    "PASSGATE_GITHUB_CLIENT_SECRET": "test-client-secret",
    "PASSGATE_GITHUB_REDIRECT_URI": "http://test/api/v1/auth/oauth/github/callback",
    "PASSGATE_FIREBASE_PROJECT_ID": "passgate-test",
    "PASSGATE_BCRYPT_ROUNDS": "4",
    "PASSGATE_ENVIRONMENT": "development",
})

import time  # noqa: E402
import uuid  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import Optional  # noqa: E402

import httpx  # noqa: E402
import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from passgate import cache  # noqa: E402
from passgate.auth.dependencies import get_providers  # noqa: E402
from passgate.db.engine import build_engine, get_db  # noqa: E402
from passgate.db.models import Base  # noqa: E402
from passgate.main import app  # noqa: E402
from passgate.providers import ProviderRegistry  # noqa: E402
from passgate.providers.firebase import (  # noqa: E402
    ISSUER_PREFIX,
    FirebaseAssertionProvider,
)
from passgate.providers.github import (  # noqa: E402
    EMAILS_URL,
    TOKEN_URL,
    USER_URL,
    GithubOAuthProvider,
)

FIREBASE_PROJECT_ID = "passgate-test"
PASSWORD = "secure_password_123"


def unique(prefix: str = "user") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


# ═══════════════════════════════════════════════════════════
# Redis double
# ═══════════════════════════════════════════════════════════


class InMemoryRedis:
    """The subset of redis.asyncio.Redis passgate uses (decode_responses=True).

    TTLs are recorded but never expire on their own; tests that need an
    expired key delete it.
    """

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value, ex: Optional[int] = None) -> bool:
        self.data[key] = str(value)
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def getdel(self, key: str) -> Optional[str]:
        self.ttls.pop(key, None)
        return self.data.pop(key, None)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            self.ttls.pop(key, None)
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def ping(self) -> bool:
        return True


# ═══════════════════════════════════════════════════════════
# Fake upstreams
# ═══════════════════════════════════════════════════════════


class FakeGithub:
    """Scriptable stand-in for github.com + api.github.com.

    Register an authorization code with add_code(); the token exchange
    maps it to an access token and /user returns the profile.
    """

    def __init__(self):
        self.profiles: dict[str, dict] = {}  # access token → /user body
        self.emails: dict[str, list] = {}  # access token → /user/emails body
        self.codes: dict[str, str] = {}  # code → access token
        self.token_status = 200
        self.user_status = 200
        self.emails_status = 200
        self.errors: dict[str, Exception] = {}  # url → transport error to raise
        self.calls: list[str] = []

    def add_code(
        self,
        *,
        github_id: int,
        login: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> str:
        code = uuid.uuid4().hex
        token = f"gho_{uuid.uuid4().hex}"
        self.codes[code] = token
        self.profiles[token] = {"id": github_id, "login": login, "name": name, "email": None}
        self.emails[token] = (
            [{"email": email, "primary": True, "verified": True}] if email else []
        )
        return code

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url).split("?")[0]
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]

        if url == TOKEN_URL:
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"message": "boom"})
            form = dict(httpx.QueryParams(request.content.decode()))
            token = self.codes.get(form.get("code", ""))
            if token is None:
                return httpx.Response(200, json={"error": "bad_verification_code"})
            return httpx.Response(200, json={"access_token": token, "token_type": "bearer"})

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if url == USER_URL:
            if self.user_status != 200:
                return httpx.Response(self.user_status)
            if token not in self.profiles:
                return httpx.Response(401, json={"message": "Bad credentials"})
            return httpx.Response(200, json=self.profiles[token])
        if url == EMAILS_URL:
            if self.emails_status != 200:
                return httpx.Response(self.emails_status)
            return httpx.Response(200, json=self.emails.get(token, []))
        return httpx.Response(404)


class FirebaseSigner:
    """Mints Firebase-shaped ID tokens with a local RSA key.

    jwks_client mimics PyJWKClient.get_signing_key_from_jwt, so the real
    FirebaseAssertionProvider verifies against our public key.
    """

    def __init__(self, project_id: str = FIREBASE_PROJECT_ID):
        self.project_id = project_id
        self.private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        public_key = self.private_key.public_key()
        self.jwks_client = SimpleNamespace(
            get_signing_key_from_jwt=lambda token: SimpleNamespace(key=public_key)
        )

    def id_token(
        self,
        sub: str,
        *,
        email: Optional[str] = None,
        name: Optional[str] = None,
        lifetime: int = 3600,
        private_key=None,
        **overrides,
    ) -> str:
        now = int(time.time())
        claims = {
            "iss": f"{ISSUER_PREFIX}{self.project_id}",
            "aud": self.project_id,
            "sub": sub,
            "iat": now,
            "exp": now + lifetime,
            "auth_time": now,
        }
        if email:
            claims["email"] = email
            claims["email_verified"] = True
        if name:
            claims["name"] = name
        claims.update(overrides)
        return jwt.encode(
            claims,
            private_key or self.private_key,
            algorithm="RS256",
            headers={"kid": "test-key"},
        )


# ═══════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════


@pytest_asyncio.fixture()
async def session_factory():
    """Fresh in-memory database per test, schema built from the models.

    Tests that arrange or inspect rows open short-lived sessions from this
    factory and commit before the next request.
    """
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture()
def fake_redis(monkeypatch):
    redis = InMemoryRedis()
    monkeypatch.setattr(cache, "_redis", redis)
    return redis


@pytest.fixture()
def fake_github():
    return FakeGithub()


@pytest.fixture(scope="session")
def firebase_signer():
    return FirebaseSigner()


@pytest.fixture()
def providers(fake_github, firebase_signer):
    return ProviderRegistry([
        GithubOAuthProvider(
            "test-client-id",
            "test-client-secret",
            "http://test/api/v1/auth/oauth/github/callback",
            timeout=2.0,
            transport=httpx.MockTransport(fake_github.handler),
        ),
        FirebaseAssertionProvider(
            FIREBASE_PROJECT_ID, jwks_client=firebase_signer.jwks_client
        ),
    ])


@pytest_asyncio.fixture()
async def client(session_factory, fake_redis, providers):
    """HTTP client against the app with DB, Redis and providers swapped out.

    Learn: Auth is NOT overridden — tests register/login through the API
    and send real Bearer tokens, since the token pipeline is what's under
    test here.
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_providers] = lambda: providers

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def register_user(client):
    """Factory: register a fresh local account, return the token response JSON."""

    async def _register(login_id: Optional[str] = None, password: str = PASSWORD, **extra):
        body = {
            "login_id": login_id or unique(),
            "password": password,
            "display_name": extra.pop("display_name", "Test User"),
            **extra,
        }
        r = await client.post("/api/v1/auth/register", json=body)
        assert r.status_code == 201, r.text
        return r.json()

    return _register
