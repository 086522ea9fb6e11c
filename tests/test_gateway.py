from datetime import timedelta

import pytest

from realtime.errors import AuthTimeout, InvalidToken, MissingToken
from realtime.gateway import ConnectionGateway
from realtime.tokens import JWTTokenService


@pytest.mark.parametrize("token", [None, "", "   "])
async def test_missing_token(store, tokens, token):
    gateway = ConnectionGateway(tokens, store)
    with pytest.raises(MissingToken):
        await gateway.admit(token)


async def test_valid_token_resolves_identity(store, tokens):
    gateway = ConnectionGateway(tokens, store)
    user = await gateway.admit(tokens.issue("u1"))
    assert user.id == "u1"
    assert user.username == "user_u1"


async def test_bad_signature_rejected(store, tokens):
    gateway = ConnectionGateway(tokens, store)
    forged = JWTTokenService(secret="someone-else").issue("u1")
    with pytest.raises(InvalidToken):
        await gateway.admit(forged)


async def test_expired_token_rejected(store, tokens):
    gateway = ConnectionGateway(tokens, store)
    expired = tokens.issue("u1", expires_in=timedelta(seconds=-10))
    with pytest.raises(InvalidToken):
        await gateway.admit(expired)


async def test_deleted_user_rejected(store, tokens):
    gateway = ConnectionGateway(tokens, store)
    with pytest.raises(InvalidToken):
        await gateway.admit(tokens.issue("ghost"))


async def test_storage_failure_rejects(store, tokens):
    store.failing.add("find_user_by_id")
    gateway = ConnectionGateway(tokens, store)
    with pytest.raises(InvalidToken):
        await gateway.admit(tokens.issue("u1"))


async def test_slow_identity_lookup_times_out(store, tokens):
    store.delays["find_user_by_id"] = 0.5
    gateway = ConnectionGateway(tokens, store, timeout=0.05)
    with pytest.raises(AuthTimeout):
        await gateway.admit(tokens.issue("u1"))
