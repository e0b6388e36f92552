"""
Tests for POST /token-hook: claim injection, expiry enforcement (fail-closed) and
fail-open behaviour when the client lookup fails.
"""
import time
from unittest.mock import patch

import httpx
import pytest

from hydra_sidecar.errors import ExpiredClientError, UpstreamError
from hydra_sidecar.token_hook import ClientInfo, build_claims, current_time, parse_client_info


def _hook_body(client_id="c1", where="request"):
    body = {"session": {}, "request": {"granted_scopes": ["api.read"]}}
    body[where]["client_id"] = client_id
    return body


def test_metadata_copied_into_claims(client, fake_admin):
    fake_admin.add("c1", metadata={"org_id": "acme", "tier": "premium"})
    r = client.post("/token-hook", json=_hook_body())
    assert r.status_code == 200
    assert r.json() == {"session": {"access_token": {"org_id": "acme", "tier": "premium"}}}


def test_metadata_is_not_filtered_or_transformed(client, fake_admin):
    metadata = {"Org-ID": "acme", "limits": {"rpm": 100}, "flags": [True, None], "n": 1.5}
    fake_admin.add("c1", metadata=metadata)
    r = client.post("/token-hook", json=_hook_body())
    assert r.json()["session"]["access_token"] == metadata
    assert list(r.json()["session"]["access_token"]) == list(metadata)


def test_client_id_falls_back_to_session(client, fake_admin):
    fake_admin.add("c1", metadata={"tier": "gold"})
    r = client.post("/token-hook", json=_hook_body(where="session"))
    assert r.json()["session"]["access_token"] == {"tier": "gold"}


def test_request_client_id_takes_precedence(client, fake_admin):
    fake_admin.add("from-request", metadata={"src": "request"})
    fake_admin.add("from-session", metadata={"src": "session"})
    body = {"session": {"client_id": "from-session"}, "request": {"client_id": "from-request"}}
    r = client.post("/token-hook", json=body)
    assert r.json()["session"]["access_token"] == {"src": "request"}


def test_null_granted_scopes_accepted(client, fake_admin):
    fake_admin.add("c1", metadata={"tier": "gold"})
    r = client.post("/token-hook", json={"request": {"client_id": "c1", "granted_scopes": None}})
    assert r.status_code == 200
    assert r.json()["session"]["access_token"] == {"tier": "gold"}


def test_expired_client_rejected(client, fake_admin):
    fake_admin.add("c1", metadata={"tier": "gold"}, expires_at=int(time.time()) - 86400)
    r = client.post("/token-hook", json=_hook_body())
    assert r.status_code == 403
    assert r.json() == {"error": "access_denied", "error_description": "client has expired"}


def test_future_expiry_allowed(client, fake_admin):
    fake_admin.add("c1", metadata={"tier": "gold"}, expires_at=int(time.time()) + 86400)
    r = client.post("/token-hook", json=_hook_body())
    assert r.status_code == 200
    assert r.json()["session"]["access_token"] == {"tier": "gold"}


def test_expiry_boundary(client, fake_admin):
    fake_admin.add("c1", metadata={"tier": "gold"}, expires_at=1_700_000_000)
    with patch("hydra_sidecar.token_hook.current_time", return_value=1_700_000_000):
        assert client.post("/token-hook", json=_hook_body()).status_code == 200
    with patch("hydra_sidecar.token_hook.current_time", return_value=1_700_000_001):
        assert client.post("/token-hook", json=_hook_body()).status_code == 403


def test_clock_uses_whole_seconds():
    with patch("hydra_sidecar.token_hook.time") as clock:
        clock.time.return_value = 1_700_000_000.9
        now = current_time()
    assert now == 1_700_000_000
    # Still within the expiry second
    assert not ClientInfo(metadata={}, secret_expires_at=1_700_000_000).is_expired(now)


def test_zero_expiry_never_expires(client, fake_admin):
    fake_admin.add("c1", metadata={"tier": "gold"}, expires_at=0)
    with patch("hydra_sidecar.token_hook.current_time", return_value=4_000_000_000):
        assert client.post("/token-hook", json=_hook_body()).status_code == 200


def test_lookup_network_failure_fails_open(client, fake_admin):
    fake_admin.fail_with = httpx.ConnectError("connection refused")
    r = client.post("/token-hook", json=_hook_body())
    assert r.status_code == 200
    assert r.json() == {"session": {"access_token": {}}}


def test_lookup_timeout_fails_open(client, fake_admin):
    fake_admin.fail_with = httpx.ReadTimeout("timed out")
    r = client.post("/token-hook", json=_hook_body())
    assert r.status_code == 200
    assert r.json()["session"]["access_token"] == {}


def test_unknown_client_fails_open(client, fake_admin):
    r = client.post("/token-hook", json=_hook_body("missing"))
    assert r.status_code == 200
    assert r.json()["session"]["access_token"] == {}


def test_upstream_error_fails_open(client, fake_admin):
    fake_admin.add("c1", metadata={"tier": "gold"})
    fake_admin.status_overrides[("GET", "/admin/clients/c1")] = 500
    r = client.post("/token-hook", json=_hook_body())
    assert r.status_code == 200
    assert r.json()["session"]["access_token"] == {}


def test_malformed_client_body_fails_open(client, fake_admin):
    fake_admin.add("c1", metadata="not-an-object", expires_at=1)
    r = client.post("/token-hook", json=_hook_body())
    assert r.status_code == 200
    assert r.json()["session"]["access_token"] == {}


def test_missing_client_id_returns_empty_claims_without_lookup(client, fake_admin):
    r = client.post("/token-hook", json={"session": {}, "request": {}})
    assert r.status_code == 200
    assert r.json()["session"]["access_token"] == {}
    assert fake_admin.requests == []


def test_lookup_uses_hook_timeout(client, fake_admin):
    fake_admin.add("c1")
    with patch("hydra_sidecar.token_hook.TOKEN_HOOK_TIMEOUT_SECONDS", 1.5):
        client.post("/token-hook", json=_hook_body())
    timeout = fake_admin.requests[0].extensions["timeout"]
    assert timeout["read"] == 1.5


def test_malformed_hook_body(client, fake_admin):
    r = client.post("/token-hook", content=b"not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    r = client.post("/token-hook", json={"session": "x"})
    assert r.status_code == 400


def test_build_claims_rejects_expired():
    with pytest.raises(ExpiredClientError):
        build_claims("c1", ClientInfo(metadata={"a": 1}, secret_expires_at=100), now=101)
    assert build_claims("c1", ClientInfo(metadata={"a": 1}, secret_expires_at=100), now=100) == {"a": 1}
    assert build_claims("c1", None, now=101) == {}


def test_parse_client_info():
    info = parse_client_info({"metadata": None, "client_secret_expires_at": None})
    assert info == ClientInfo(metadata={}, secret_expires_at=0)
    with pytest.raises(UpstreamError):
        parse_client_info({"metadata": [], "client_secret_expires_at": 0})
    with pytest.raises(UpstreamError):
        parse_client_info({"metadata": {}, "client_secret_expires_at": "soon"})
