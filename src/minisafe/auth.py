import logging
import sys
from getpass import getpass
from typing import TYPE_CHECKING, Optional

import click
from hexbytes import HexBytes

from .console import make_status_logger
from .models import ECDSASignature

if TYPE_CHECKING:
    from eth_account.signers.local import LocalAccount


logger = logging.getLogger(__name__)
status = make_status_logger(logger)


class KeyfileSigner:
    """Owner key held in an encrypted JSON keyfile."""

    account: "LocalAccount"

    def __init__(self, keyfile: str, password: Optional[str] = None):
        from eth_account import Account

        self.keyfile = keyfile
        if password is None:
            password = getpass(prompt=f"[{keyfile}] password: ", stream=sys.stderr)
        with status("Decrypting keyfile..."):
            with click.open_file(keyfile) as kf:
                privkey = Account.decrypt(kf.read(), password=password)
        self.account = Account.from_key(privkey)

    def __repr__(self):
        return f"keyfile: {self.keyfile} ({self.account.address})"

    def sign_safe_tx_hash(self, safetx_hash: bytes) -> ECDSASignature:
        with status("Signing Safe transaction hash..."):
            signed = self.account.unsafe_sign_hash(bytes(safetx_hash))
        signature = ECDSASignature(
            signer=self.account.address, data=HexBytes(signed.signature)
        )
        logger.info(f"Signed {HexBytes(safetx_hash).to_0x_hex()}")
        return signature


def load_keyfile_signer(
    keyfile: Optional[str], password: Optional[str] = None
) -> KeyfileSigner:
    if keyfile is None:
        raise click.ClickException("No keyfile supplied.")
    signer = KeyfileSigner(keyfile, password=password)
    logger.info(f"Using signer {signer}")
    return signer
