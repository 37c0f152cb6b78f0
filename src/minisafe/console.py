import logging
import os
import sys
import typing
from importlib.metadata import version
from typing import TYPE_CHECKING, Any, Optional, Sequence

from click import Context, Parameter
from rich.console import Console
from rich.theme import Theme

from .constants import (
    DEFAULT_FALLBACK_ADDRESS,
    DEFAULT_PROXYFACTORY_ADDRESS,
    DEFAULT_SAFE_SINGLETON_ADDRESS,
    DEFAULT_SAFEL2_SINGLETON_ADDRESS,
)
from .models import (
    ApprovedHashSignature,
    ContractSignature,
    FullSafeTransaction,
    Operation,
    SafeDeploymentConfig,
    SafeSignaturesValidation,
)
from .util import hexbytes_json_encoder

if TYPE_CHECKING:
    from eth_typing import ChecksumAddress
    from hexbytes import HexBytes
    from rich.console import RenderableType
    from rich.panel import Panel
    from rich.table import Table


logger = logging.getLogger(__name__)

# Constants
JSON_INDENT_LEVEL = 2
SAFE_DEBUG = True if "SAFE_DEBUG" in os.environ else False

SYMBOL_CHECK = "✔"
SYMBOL_CROSS = "✘"

console = Console(
    stderr=True,
    theme=Theme(
        {
            "ok": "green",
            "danger": "red",
            "caution": "yellow",
            "secondary": "dim",
            "panel_ok": "green bold italic",
            "panel_danger": "red bold italic",
        }
    ),
)


def activate_logging():
    from rich.logging import RichHandler

    if SAFE_DEBUG:
        level = logging.NOTSET
    else:
        level = logging.INFO
    format = "<%(name)s.%(funcName)s> %(message)s"
    logging.basicConfig(
        level=level,
        format=format,
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=SAFE_DEBUG)],
    )


def get_json_data_renderable(data: dict[str, Any]) -> "RenderableType":
    from rich.json import JSON

    return JSON.from_data(
        data,
        default=hexbytes_json_encoder,
        indent=JSON_INDENT_LEVEL,
    )


def get_kvtable(
    *args: dict[str, "RenderableType"], draw_divider: bool = True
) -> "Table":
    from rich.box import Box
    from rich.table import Table
    from rich.text import Text

    custom_box: Box = Box(
        "    \n"  # top
        "    \n"  # head
        "    \n"  # head_row
        "    \n"  # mid
        " ── \n"  # row
        "    \n"  # foot_row
        "    \n"  # foot
        "    \n"  # bottom
    )
    table = Table(
        show_edge=False,
        show_header=False,
        box=custom_box,
    )
    table.add_column("Field", justify="right", style="bold", no_wrap=True)
    table.add_column("Value", no_wrap=False)
    for idx, arg in enumerate(args):
        for key, val in arg.items():
            # Wrap all strings in a Text with overflow.
            if isinstance(val, str):
                table.add_row(key, Text.from_markup(val, overflow="fold"))
            else:
                table.add_row(key, val)
        if len(args) > 1 and idx < len(args) - 1:
            if draw_divider:
                table.add_section()
            else:
                table.add_row("", "")
    return table


def get_output_console(output: Optional[typing.TextIO] = None) -> Console:
    """Return a Console suitable for printing results.

    The Console must not insert hard wraps, which Rich normally inserts by
    default. This is important when piping or writing text-encoded data to a
    file such as a hexadecimal string or a JSON object.
    """
    return Console(file=output if output else sys.stdout, soft_wrap=True)


def get_panel(
    title: str, subtitle: str, renderable: "RenderableType", **kwargs: Any
) -> "Panel":
    from rich.box import ROUNDED
    from rich.panel import Panel

    base_config = dict(
        title=title,
        title_align="left",
        subtitle=subtitle,
        subtitle_align="right",
        border_style="bold italic",
        padding=(1, 1),
    )
    base_config.update(**kwargs)
    return Panel(renderable, box=ROUNDED, **base_config)  # pyright: ignore[reportArgumentType]


def make_status_logger(logger: logging.Logger):
    def status_logger(message: str):
        logger.info(message, stacklevel=2)
        return console.status(message)

    return status_logger


def print_kvtable(
    title: str,
    subtitle: str,
    *args: dict[str, "RenderableType"],
    draw_divider: bool = True,
) -> None:
    table = get_kvtable(*args, draw_divider=draw_divider)
    console.print(get_panel(title, subtitle, table))


def _canonical(address: str, *canonical: str, label: str = "CANONICAL") -> str:
    if address in canonical:
        return f"{address} [ok]{SYMBOL_CHECK} {label}[/ok]"
    return address


def print_safe_deploy_info(
    config: SafeDeploymentConfig, safe_address: "ChecksumAddress"
) -> None:
    print_kvtable(
        "Safe Deployment Parameters",
        "",
        {
            "Proxy Factory": _canonical(
                config.proxy_factory, DEFAULT_PROXYFACTORY_ADDRESS
            ),
            "Singleton": _canonical(
                config.singleton,
                DEFAULT_SAFE_SINGLETON_ADDRESS,
                DEFAULT_SAFEL2_SINGLETON_ADDRESS,
            ),
            "Salt Nonce": str(config.salt_nonce),
        },
        {
            f"Owners({len(config.owners)})": ", ".join(config.owners),
            "Threshold": str(config.threshold),
            "Fallback Handler": _canonical(
                config.fallback_handler, DEFAULT_FALLBACK_ADDRESS, label="DEFAULT"
            ),
        },
        {
            "Safe Address": f"{safe_address}",
        },
    )


def print_safetx(tx: FullSafeTransaction, safetx_hash: "HexBytes") -> None:
    table_data: list[dict[str, "RenderableType"]] = [
        {
            "Safe Address": tx.safe_address,
            "Chain ID": str(tx.chain_id),
            "Safe Nonce": str(tx.nonce),
            "To Address": tx.to,
            "Operation": f"{int(tx.operation)} ({Operation(tx.operation).name})",
            "Value": f"{tx.value} Wei",
            "Safe Tx Gas": str(tx.safe_tx_gas),
            "Data": tx.data.to_0x_hex(),
        }
    ]
    if tx.gas_price > 0:
        table_data.append(
            {
                "Base Gas": str(tx.base_gas),
                "Gas Price": str(tx.gas_price),
                "Gas Token": tx.gas_token,
                "Refund Receiver": tx.refund_receiver,
            }
        )
    table_data.append({"SafeTx Hash": safetx_hash.to_0x_hex()})
    print_kvtable("Safe Transaction", "", *table_data)


def print_signatures(
    validation: SafeSignaturesValidation,
    owners: Sequence[str],
    threshold: int,
    paths: Optional[Sequence[str]] = None,
) -> None:
    rows: list[dict[str, "RenderableType"]] = []
    for idx, result in enumerate(validation.results):
        signature = result.signature
        row: dict[str, "RenderableType"] = {}
        if paths is not None:
            row["File"] = paths[idx]
        if isinstance(signature, ApprovedHashSignature):
            row["Type"] = "Approved Hash"
        elif isinstance(signature, ContractSignature):
            row["Type"] = "Contract Signature"
        else:
            row["Type"] = "ECDSA Signature"
        row["Signer"] = signature.signer + (
            f" [ok]{SYMBOL_CHECK} VALID[/ok]"
            if result.valid
            else f" [danger]{SYMBOL_CROSS} INVALID[/danger]"
        )
        if result.validated_signer is not None:
            owner = (
                f" [ok]{SYMBOL_CHECK} OWNER[/ok]"
                if result.validated_signer in owners
                else f" [danger]{SYMBOL_CROSS} OWNER[/danger]"
            )
            row["Recovered"] = result.validated_signer + owner
        if result.error is not None:
            row["Error"] = str(result.error)
        rows.append(row)
    if validation.valid:
        summary = f"[{SYMBOL_CHECK} EXECUTABLE]"
        border_style = "panel_ok"
    else:
        summary = f"[{SYMBOL_CROSS} INSUFFICIENT SIGNATURES (threshold {threshold})]"
        border_style = "panel_danger"
    console.print(
        get_panel(
            "Signatures",
            summary,
            get_kvtable(*rows, draw_divider=True),
            border_style=border_style,
        )
    )


def print_version(ctx: Context, param: Parameter, value: Optional[bool]) -> None:
    if not value or ctx.resilient_parsing:
        return

    get_output_console().print(f"minisafe v{version('minisafe')}", highlight=False)
    ctx.exit()
