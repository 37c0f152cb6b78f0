import json

import click
import pytest
from eth_account import Account

from minisafe.auth import KeyfileSigner, load_keyfile_signer
from minisafe.signatures import recover_ecdsa_signer

from conftest import DATA_HASH, eip712_signature


@pytest.fixture
def keyfile(tmp_path, accounts):
    path = tmp_path / "key.json"
    path.write_text(
        json.dumps(Account.encrypt(accounts[0].key, "secret", kdf="pbkdf2", iterations=2))
    )
    return str(path)


def test_sign_safe_tx_hash(keyfile, accounts):
    signer = KeyfileSigner(keyfile, password="secret")
    signature = signer.sign_safe_tx_hash(DATA_HASH)
    assert signature == eip712_signature(accounts[0])
    assert recover_ecdsa_signer(signature.data, DATA_HASH) == accounts[0].address


def test_password_prompt(keyfile, accounts, monkeypatch):
    prompts = []

    def fake_getpass(prompt, stream=None):
        prompts.append(prompt)
        return "secret"

    monkeypatch.setattr("minisafe.auth.getpass", fake_getpass)
    signer = load_keyfile_signer(keyfile)
    assert signer.account.address == accounts[0].address
    assert prompts == [f"[{keyfile}] password: "]


def test_missing_keyfile():
    with pytest.raises(click.ClickException):
        load_keyfile_signer(None)


def test_wrong_password(keyfile):
    with pytest.raises(ValueError):
        KeyfileSigner(keyfile, password="wrong")
