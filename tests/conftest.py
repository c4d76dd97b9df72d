"""Shared pytest fixtures for roomledger tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_oidc_jwks_cache():
    """Reset global JWKS cache to avoid cross-test contamination.

    The OIDC JWKS cache is a module-level global that persists between tests.
    """
    import roomledger.api.auth as auth_module

    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0
    yield
    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0


@pytest.fixture(autouse=True)
def tasks_client():
    """Fresh inline TasksClient per test; post-commit tasks are recorded, not sent."""
    from roomledger.tasks.client import TasksClient, set_tasks_client

    client = TasksClient(backend="inline")
    set_tasks_client(client)
    yield client
    set_tasks_client(None)


@pytest.fixture
def oidc_env():
    """OIDC environment variables matching helpers._create_token defaults."""
    return {
        "OIDC_ISSUER": "https://auth.example.com",
        "OIDC_AUDIENCE": "roomledger-api",
        "OIDC_JWKS_URL": "https://auth.example.com/.well-known/jwks.json",
    }


@pytest.fixture(scope="session")
def rsa_keypair():
    """RSA key pair for signing test JWTs (generated once per session)."""
    from .helpers import _generate_rsa_keypair

    return _generate_rsa_keypair()


@pytest.fixture
def jwks(rsa_keypair):
    from .helpers import _create_jwks

    _, public_key = rsa_keypair
    return _create_jwks(public_key)


@pytest.fixture
def mock_jwks_fetch(jwks):
    """Serve the test JWKS instead of fetching it over HTTP."""
    from unittest.mock import patch

    with patch("roomledger.api.auth._fetch_jwks", return_value=jwks) as mock:
        yield mock


@pytest.fixture
def api_client():
    """Factory for a public-app TestClient authenticated as user_id.

    `role` is the user's grant on every hotel ("guest" means no grant).
    Token verification is bypassed; test_auth.py and test_rbac.py cover it.
    """
    from contextlib import ExitStack
    from unittest.mock import patch

    from fastapi.testclient import TestClient

    from roomledger.api.auth import CurrentUser, get_current_user
    from roomledger.api.factory import create_app

    stack = ExitStack()

    def _make(role: str = "guest", user_id: str = "guest-1") -> TestClient:
        app = create_app(role="public")
        app.dependency_overrides[get_current_user] = lambda: CurrentUser(
            id=user_id, external_subject=f"sub-{user_id}", email=None, name=None
        )
        stack.enter_context(patch("roomledger.api.rbac._hotel_exists", return_value=True))
        stack.enter_context(
            patch(
                "roomledger.api.rbac._get_user_role_for_hotel",
                return_value=None if role == "guest" else role,
            )
        )
        return TestClient(app)

    yield _make
    stack.close()
