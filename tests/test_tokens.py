from __future__ import annotations

import base64
import json
import sys
import time
from datetime import timedelta
from pathlib import Path

import jwt
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from marketplace.errors import Unauthenticated
from marketplace.models import Identity, Role
from marketplace.tokens import TokenIssuer

SECRET = "token-tests-secret-with-enough-length"


@pytest.fixture()
def issuer() -> TokenIssuer:
    return TokenIssuer(SECRET)


def test_issued_token_round_trips_identity(issuer: TokenIssuer) -> None:
    token = issuer.issue("profile-123", Role.CONTRACTOR)

    identity = issuer.verify(token)

    assert identity == Identity(subject_id="profile-123", role=Role.CONTRACTOR)


def test_default_lifetime_is_one_day(issuer: TokenIssuer) -> None:
    token = issuer.issue("profile-123", Role.CLIENT)
    claims = jwt.decode(token, SECRET, algorithms=["HS256"])

    assert claims["exp"] - claims["iat"] == 24 * 60 * 60
    assert issuer.max_age == 24 * 60 * 60


def test_expired_token_is_rejected(issuer: TokenIssuer) -> None:
    now = int(time.time())
    token = jwt.encode(
        {"sub": "profile-123", "role": "client", "iat": now - 100, "exp": now - 10},
        SECRET,
        algorithm="HS256",
    )

    with pytest.raises(Unauthenticated):
        issuer.verify(token)


def test_token_signed_with_other_secret_is_rejected(issuer: TokenIssuer) -> None:
    forged = TokenIssuer("a-completely-different-signing-secret").issue("profile-123", Role.ADMIN)

    with pytest.raises(Unauthenticated):
        issuer.verify(forged)


def test_tampered_claims_are_rejected(issuer: TokenIssuer) -> None:
    header, payload, signature = issuer.issue("profile-123", Role.CLIENT).split(".")
    claims = json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))
    claims["role"] = "admin"
    forged_payload = base64.urlsafe_b64encode(json.dumps(claims).encode("utf-8")).rstrip(b"=").decode("ascii")

    with pytest.raises(Unauthenticated):
        issuer.verify(".".join([header, forged_payload, signature]))


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_malformed_tokens_are_rejected(issuer: TokenIssuer, token: str) -> None:
    with pytest.raises(Unauthenticated):
        issuer.verify(token)


def test_unknown_role_claim_is_rejected(issuer: TokenIssuer) -> None:
    now = int(time.time())
    token = jwt.encode(
        {"sub": "profile-123", "role": "superuser", "iat": now, "exp": now + 60},
        SECRET,
        algorithm="HS256",
    )

    with pytest.raises(Unauthenticated):
        issuer.verify(token)


def test_issuer_requires_secret_and_positive_ttl() -> None:
    with pytest.raises(ValueError):
        TokenIssuer("")
    with pytest.raises(ValueError):
        TokenIssuer(SECRET, ttl=timedelta(0))
