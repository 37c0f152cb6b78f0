import asyncio
import json
import logging
import shutil
import sys
import typing
from types import TracebackType
from typing import (
    Optional,
)

import click
from hexbytes import (
    HexBytes,
)
from rich.prompt import Confirm
from rich.traceback import Traceback

from . import params
from .account_state import get_owners, get_threshold
from .auth import load_keyfile_signer
from .console import (
    SAFE_DEBUG,
    activate_logging,
    console,
    get_json_data_renderable,
    get_output_console,
    make_status_logger,
    print_safe_deploy_info,
    print_safetx,
    print_signatures,
    print_version,
)
from .constants import DEFAULT_SAFE_SINGLETON_ADDRESS
from .deployment import calculate_safe_address
from .eip712 import safe_tx_from_typed_data, safe_tx_typed_data
from .errors import SafeError
from .models import (
    FullSafeTransaction,
    MetaTransaction,
    SafeDeploymentConfig,
    Signature,
    ValidationContext,
)
from .provider import close_provider, make_provider
from .signatures import decode_safe_signatures, encode_safe_signatures
from .transactions import build_safe_transaction
from .util import hash_eip712_data
from .validation import validate_signatures_for_safe

# ┌───────┐
# │ Setup │
# └───────┘

logger = logging.getLogger(__name__)
status = make_status_logger(logger)


def handle_crash(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_traceback: TracebackType | None,
) -> None:
    if not SAFE_DEBUG:
        console.print(f"[bold]{exc_type.__name__}[/bold]: {exc_value}")
    else:
        rich_traceback = Traceback.from_exception(
            exc_type,
            exc_value,
            exc_traceback,
            suppress=[click],
            show_locals=True,
        )
        console.print(rich_traceback)


def load_safetx(
    txfile: typing.TextIO,
) -> tuple[dict[str, typing.Any], FullSafeTransaction]:
    try:
        typed_data = json.loads(txfile.read())
        return typed_data, safe_tx_from_typed_data(typed_data)
    except (ValueError, KeyError, TypeError) as exc:
        raise click.ClickException(f"Invalid Safe transaction file: {exc}") from exc


def load_signatures(
    sigfiles: typing.Sequence[str], safetx_hash: HexBytes
) -> tuple[list[Signature], list[str]]:
    signatures: list[Signature] = []
    paths: list[str] = []
    for sigfile in sigfiles:
        with open(sigfile, "r") as sf:
            sigbytes = HexBytes(sf.read().strip())
        try:
            decoded = decode_safe_signatures(sigbytes, safetx_hash)
        except SafeError as exc:
            raise click.ClickException(f"{sigfile}: {exc}") from exc
        signatures.extend(decoded)
        paths.extend([sigfile] * len(decoded))
    return signatures, paths


# ┌──────┐
# │ Main │
# └──────┘


@click.group(
    context_settings=dict(
        show_default=True,
        max_content_width=shutil.get_terminal_size().columns,
        help_option_names=["-h", "--help"],
    ),
)
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="print version info and exit",
)
def main():
    """A Safe multisig protocol engine on the command line."""
    sys.excepthook = handle_crash
    if SAFE_DEBUG:
        activate_logging()


# ┌──────────┐
# │ Commands │
# └──────────┘


@main.command()
@params.build_safetx
@params.safe_address
@params.output_file
@params.common
def build(
    calls: tuple[MetaTransaction, ...],
    chain_id: Optional[int],
    delegatecall: bool,
    output: typing.TextIO | None,
    rpc: Optional[str],
    safe_address: str,
    safe_nonce: Optional[int],
) -> None:
    """Build a Safe transaction as EIP-712 JSON."""
    if not rpc and (chain_id is None or safe_nonce is None):
        raise click.ClickException(
            "Missing --chain-id or --safe-nonce and no RPC URL provided."
        )

    async def run() -> FullSafeTransaction:
        provider = make_provider(rpc)
        try:
            return await build_safe_transaction(
                provider,
                safe_address,
                list(calls),
                delegatecall=delegatecall,
                nonce=safe_nonce,
                chain_id=chain_id,
            )
        finally:
            await close_provider(provider)

    with status("Building Safe transaction..."):
        try:
            tx = asyncio.run(run())
        except SafeError as exc:
            raise click.ClickException(str(exc)) from exc
    output_console = get_output_console(output)
    output_console.print(get_json_data_renderable(safe_tx_typed_data(tx)))


@main.command()
@click.argument("txfile", type=click.File("r"), required=True)
@params.sigfile
@params.output_file
@params.common
def encode_signatures(
    output: typing.TextIO | None,
    sigfiles: list[str],
    txfile: typing.TextIO,
) -> None:
    """Pack signatures into the bytes expected by execTransaction."""
    if not sigfiles:
        raise click.ClickException("No signature files provided.")
    typed_data, _ = load_safetx(txfile)
    signatures, _ = load_signatures(sigfiles, hash_eip712_data(typed_data))
    encoded = encode_safe_signatures(signatures)
    output_console = get_output_console(output)
    output_console.print(encoded.to_0x_hex())


@main.command()
@click.argument("txfile", type=click.File("r"), required=True)
@params.common
def hash(txfile: typing.TextIO) -> None:
    """Compute hash of Safe transaction."""
    safetx_json = txfile.read()
    safetx_data = json.loads(safetx_json)
    safetx_hash = hash_eip712_data(safetx_data)
    output_console = get_output_console()
    output_console.print(safetx_hash.to_0x_hex())


@main.command()
@params.deployment
@params.output_file
@params.common
def precompute(
    custom_proxy_factory: Optional[str],
    custom_singleton: Optional[str],
    fallback: Optional[str],
    output: typing.TextIO | None,
    owners: list[str],
    salt_nonce: int,
    threshold: int,
    without_events: bool,
):
    """Compute a Safe address offline."""
    overrides: dict[str, typing.Any] = {}
    if custom_singleton:
        overrides["singleton"] = custom_singleton
    elif without_events:
        overrides["singleton"] = DEFAULT_SAFE_SINGLETON_ADDRESS
    if custom_proxy_factory:
        overrides["proxy_factory"] = custom_proxy_factory
    if fallback:
        overrides["fallback_handler"] = fallback
    try:
        config = SafeDeploymentConfig(
            owners=tuple(owners),
            threshold=threshold,
            salt_nonce=salt_nonce,
            **overrides,
        )
    except SafeError as exc:
        raise click.ClickException(str(exc)) from exc
    address = calculate_safe_address(config)
    console.line()
    print_safe_deploy_info(config, address)
    if not output:
        console.line()
    output_console = get_output_console(output)
    output_console.print(address)


@main.command()
@params.authentication
@params.output_file
@params.force
@click.argument("txfile", type=click.File("r"), required=True)
@params.common
def sign(
    force: bool,
    keyfile: str,
    output: typing.TextIO | None,
    txfile: typing.TextIO,
):
    """Sign a Safe transaction."""
    with status("Loading Safe transaction..."):
        typed_data, tx = load_safetx(txfile)
        safetx_hash = hash_eip712_data(typed_data)

    console.line()
    print_safetx(tx, safetx_hash)

    console.line()
    if not force and not Confirm.ask("Sign Safe transaction?", default=False):
        raise click.Abort()

    signer = load_keyfile_signer(keyfile)
    signature = signer.sign_safe_tx_hash(safetx_hash)

    output_console = get_output_console(output)
    output_console.print(signature.data.to_0x_hex())


@main.command()
@params.rpc(click.option, required=True)
@click.option(
    "--executor",
    metavar="ADDRESS",
    help="account that will submit the transaction",
)
@click.argument("txfile", type=click.File("r"), required=True)
@params.sigfile
@params.common
def verify(
    executor: Optional[str],
    rpc: str,
    sigfiles: list[str],
    txfile: typing.TextIO,
):
    """Verify signatures against the Safe's owners and threshold.

    Exits with status 1 when the signatures do not meet the threshold.
    """
    if not sigfiles:
        raise click.ClickException("No signature files provided.")
    typed_data, tx = load_safetx(txfile)
    safetx_hash = hash_eip712_data(typed_data)
    signatures, paths = load_signatures(sigfiles, safetx_hash)

    async def run():
        provider = make_provider(rpc)
        try:
            owners, threshold = await asyncio.gather(
                get_owners(tx.safe_address).call(provider),
                get_threshold(tx.safe_address).call(provider),
            )
            validation = await validate_signatures_for_safe(
                provider,
                tx.safe_address,
                ValidationContext(data_hash=safetx_hash, safe_address=tx.safe_address),
                signatures,
                owners=owners,
                threshold=threshold,
                executor=executor,
            )
        finally:
            await close_provider(provider)
        return owners, threshold, validation

    with status("Validating signatures..."):
        try:
            owners, threshold, validation = asyncio.run(run())
        except SafeError as exc:
            raise click.ClickException(str(exc)) from exc

    console.line()
    print_safetx(tx, safetx_hash)
    console.line()
    print_signatures(validation, owners, threshold, paths)
    if not validation.valid:
        sys.exit(1)
