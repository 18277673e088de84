import os
import sys

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from voteop.config import Settings
from voteop.crypto import OperatorKey, Signer
from voteop.service import VoteService
from voteop.store import VoteStore

# Well-known development accounts (Hardhat/Anvil accounts #0 and #1).
OPERATOR_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OPERATOR_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
SUBMITTER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
SUBMITTER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


def sign_digest(private_key: str, digest: bytes) -> str:
    signed = Account.sign_message(encode_defunct(primitive=digest), private_key=private_key)
    return "0x" + bytes(signed.signature).hex()


@pytest.fixture
def operator_signer():
    return Signer(OperatorKey.from_hex(OPERATOR_KEY))


@pytest.fixture
def store(tmp_path):
    s = VoteStore(str(tmp_path / "votes.db"))
    s.initialize()
    yield s
    s.close()


@pytest.fixture
def service(operator_signer, store):
    return VoteService(operator_signer, store)


def _settings(tmp_path, **overrides):
    values = dict(operator_private_key=OPERATOR_KEY, db_path=str(tmp_path / "app.db"))
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def make_client(tmp_path):
    def _make(**overrides):
        app = create_app(_settings(tmp_path, **overrides))
        app.config.update(TESTING=True)
        return app.test_client()

    return _make


@pytest.fixture
def client(make_client):
    return make_client()
