"""Provider registry and login_id normalization."""

import pytest

from passgate.config import Settings
from passgate.errors import BadRequest
from passgate.providers import (
    ProviderRegistry,
    build_providers,
    normalize_login_id,
)
from passgate.providers.firebase import FirebaseAssertionProvider
from passgate.providers.github import GithubOAuthProvider


def _settings(**overrides) -> Settings:
    return Settings(
        jwt_access_secret="a" * 32,
        jwt_refresh_secret="b" * 32,
        **overrides,
    )


def test_build_providers_only_enabled():
    registry = build_providers(_settings(enabled_providers=["github"]))
    assert registry.names() == ["github"]
    assert isinstance(registry.oauth("github"), GithubOAuthProvider)
    with pytest.raises(BadRequest):
        registry.assertion("firebase")


def test_build_providers_both():
    registry = build_providers(_settings())
    assert registry.names() == ["firebase", "github"]
    assert isinstance(registry.assertion("firebase"), FirebaseAssertionProvider)


def test_registry_checks_capability():
    registry = build_providers(_settings())
    with pytest.raises(BadRequest):
        registry.oauth("firebase")
    with pytest.raises(BadRequest):
        registry.assertion("github")


def test_registry_unknown_name():
    with pytest.raises(BadRequest, match="gitlab"):
        ProviderRegistry().oauth("gitlab")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("gh_OctoCat", "gh_octocat"),
        ("g_jane.doe+tag", "g_jane_doe_tag"),
        ("gh_Ünïcode-Name", "gh__n_code_name"),
        ("x" * 60, "x" * 40),
    ],
)
def test_normalize_login_id(raw, expected):
    assert normalize_login_id(raw) == expected
