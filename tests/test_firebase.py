"""Firebase ID token sign-in tests.

Learn: FirebaseSigner (conftest) holds a local RSA key and hands the
provider a jwks_client that resolves to its public key, so the real
RS256/aud/iss/exp checks run without reaching Google.
"""

import uuid
from urllib.parse import parse_qs, urlparse

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from passgate.errors import Unauthorized
from passgate.providers import FederatedProfile
from passgate.providers.firebase import FirebaseAssertionProvider


def _sub() -> str:
    return uuid.uuid4().hex[:28]


async def firebase_login(client, id_token: str):
    return await client.post("/api/v1/auth/firebase", json={"id_token": id_token})


# ═══════════════════════════════════════════════════════════
# API
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_firebase_login_creates_account(client, firebase_signer):
    token = firebase_signer.id_token(_sub(), email="Jane.Doe@gmail.com", name="Jane Doe")
    r = await firebase_login(client, token)
    assert r.status_code == 200
    data = r.json()
    assert data["user"]["login_id"] == "g_jane_doe"
    assert data["user"]["display_name"] == "Jane Doe"

    me = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"}
    )
    assert me.json()["providers"] == ["firebase"]


@pytest.mark.asyncio
async def test_firebase_login_without_email(client, firebase_signer):
    sub = _sub()
    r = await firebase_login(client, firebase_signer.id_token(sub))
    assert r.status_code == 200
    assert r.json()["user"]["login_id"] == f"fb_{sub[:8]}"


@pytest.mark.asyncio
async def test_firebase_login_is_stable_per_subject(client, firebase_signer):
    sub = _sub()
    first = await firebase_login(client, firebase_signer.id_token(sub, email="x@example.com"))
    # Email changed upstream; the subject decides
    second = await firebase_login(client, firebase_signer.id_token(sub, email="y@example.com"))
    assert first.json()["user"]["uid"] == second.json()["user"]["uid"]


@pytest.mark.asyncio
async def test_firebase_and_github_accounts_are_separate(client, firebase_signer, fake_github):
    """Federated accounts are keyed by (provider, subject), never merged by email."""
    fb = await firebase_login(
        client, firebase_signer.id_token(_sub(), email="same@example.com")
    )

    code = fake_github.add_code(github_id=4242, login="same", email="same@example.com")
    start = await client.get("/api/v1/auth/oauth/github")
    state = parse_qs(urlparse(start.json()["url"]).query)["state"][0]
    gh = await client.get(
        "/api/v1/auth/oauth/github/callback", params={"code": code, "state": state}
    )

    assert gh.status_code == 200
    assert fb.json()["user"]["uid"] != gh.json()["user"]["uid"]


@pytest.mark.asyncio
async def test_firebase_wrong_audience(client, firebase_signer):
    token = firebase_signer.id_token(_sub(), aud="someone-elses-project")
    r = await firebase_login(client, token)
    assert r.status_code == 401
    assert r.json()["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_firebase_wrong_issuer(client, firebase_signer):
    token = firebase_signer.id_token(_sub(), iss="https://accounts.example.com")
    r = await firebase_login(client, token)
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_firebase_expired_token(client, firebase_signer):
    token = firebase_signer.id_token(_sub(), lifetime=-3600)
    r = await firebase_login(client, token)
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_firebase_foreign_signature(client, firebase_signer):
    other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    token = firebase_signer.id_token(_sub(), private_key=other_key)
    r = await firebase_login(client, token)
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_firebase_missing_id_token(client):
    r = await client.post("/api/v1/auth/firebase", json={})
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════
# Provider
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_provider_returns_profile(firebase_signer):
    provider = FirebaseAssertionProvider(
        "passgate-test", jwks_client=firebase_signer.jwks_client
    )
    sub = _sub()
    profile = await provider.resolve_identity(
        firebase_signer.id_token(sub, email="a@b.io", name="A B")
    )
    assert profile == FederatedProfile(
        provider="firebase", subject=sub, email="a@b.io", display_name="A B"
    )


@pytest.mark.asyncio
async def test_provider_rejects_future_auth_time(firebase_signer):
    provider = FirebaseAssertionProvider(
        "passgate-test", jwks_client=firebase_signer.jwks_client, leeway=0
    )
    token = firebase_signer.id_token(_sub(), auth_time=2**40)
    with pytest.raises(Unauthorized):
        await provider.resolve_identity(token)


@pytest.mark.asyncio
@pytest.mark.parametrize("auth_time", ["yesterday", [1], {"t": 1}, True])
async def test_provider_rejects_non_numeric_auth_time(firebase_signer, auth_time):
    provider = FirebaseAssertionProvider(
        "passgate-test", jwks_client=firebase_signer.jwks_client
    )
    token = firebase_signer.id_token(_sub(), auth_time=auth_time)
    with pytest.raises(Unauthorized):
        await provider.resolve_identity(token)


@pytest.mark.asyncio
async def test_firebase_login_non_numeric_auth_time(client, firebase_signer):
    token = firebase_signer.id_token(_sub(), auth_time="yesterday")
    r = await firebase_login(client, token)
    assert r.status_code == 401
    assert r.json()["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_provider_ignores_unverified_email(firebase_signer):
    provider = FirebaseAssertionProvider(
        "passgate-test", jwks_client=firebase_signer.jwks_client
    )
    sub = _sub()
    profile = await provider.resolve_identity(
        firebase_signer.id_token(sub, email="mallory@example.com", email_verified=False)
    )
    assert profile.email is None
    assert provider.login_id_hint(profile) == f"fb_{sub[:8]}"


@pytest.mark.asyncio
async def test_firebase_login_unverified_email_not_stored(client, firebase_signer):
    sub = _sub()
    token = firebase_signer.id_token(sub, email="mallory@example.com", email_verified=False)
    r = await firebase_login(client, token)
    assert r.status_code == 200
    assert r.json()["user"]["login_id"] == f"fb_{sub[:8]}"

    me = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {r.json()['access_token']}"}
    )
    assert me.json()["email"] is None


@pytest.mark.asyncio
async def test_provider_rejects_garbage(firebase_signer):
    provider = FirebaseAssertionProvider(
        "passgate-test", jwks_client=firebase_signer.jwks_client
    )
    with pytest.raises(Unauthorized):
        await provider.resolve_identity("definitely-not-a-jwt")


def test_login_id_hint():
    provider = FirebaseAssertionProvider("p", jwks_client=object())
    assert provider.login_id_hint(
        FederatedProfile(provider="firebase", subject="abcdefghijk", email="bob@x.io")
    ) == "g_bob"
    assert provider.login_id_hint(
        FederatedProfile(provider="firebase", subject="abcdefghijk")
    ) == "fb_abcdefgh"
