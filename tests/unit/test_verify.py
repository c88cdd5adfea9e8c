import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from messenger.auth.verify import InvalidCredential, auth_dependency, verify_token


def test_verify_token_reads_sub(make_token):
    assert verify_token(make_token("alice")) == "alice"


def test_verify_token_falls_back_to_id_claim(make_token):
    assert verify_token(make_token("bob", claim="id")) == "bob"


@pytest.mark.parametrize("token", [None, "", "garbage"])
def test_verify_token_rejects_missing_or_malformed(token):
    with pytest.raises(InvalidCredential):
        verify_token(token)


def test_verify_token_rejects_expired(make_token):
    with pytest.raises(InvalidCredential):
        verify_token(make_token("alice", expires_in=-10))


def test_verify_token_rejects_wrong_signature(make_token):
    with pytest.raises(InvalidCredential):
        verify_token(make_token("alice", secret="another-secret-entirely"))


def test_verify_token_requires_user_claim(make_token):
    with pytest.raises(InvalidCredential, match="missing user id"):
        verify_token(make_token("alice", claim="email"))


def test_auth_dependency_maps_to_401():
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="garbage")

    with pytest.raises(HTTPException) as exc_info:
        auth_dependency(credentials)

    assert exc_info.value.status_code == 401
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}
