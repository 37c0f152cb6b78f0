import dataclasses
from typing import Any, Callable, Iterable, Optional, TypeVar, Union

import click
from click import Command
from click_option_group import optgroup

from .console import SAFE_DEBUG, activate_logging
from .constants import DEPLOY_SAFE_VERSION
from .models import MetaTransaction
from .util import to_checksum_address

FC = TypeVar("FC", bound=Callable[..., Any] | Command)

Decorator = Callable[[FC], FC]


def verbose_callback(
    ctx: click.Context, opt: click.Option, value: Optional[bool]
) -> Optional[Any]:
    if value and not SAFE_DEBUG:
        activate_logging()
    return None


class CallParamType(click.ParamType):
    """A call given as `ADDRESS[:VALUE[:DATA]]`, value in Wei."""

    name = "call"

    def convert(
        self, value: Any, param: Optional[click.Parameter], ctx: Optional[click.Context]
    ) -> MetaTransaction:
        if isinstance(value, MetaTransaction):
            return value
        to, _, rest = str(value).partition(":")
        value_str, _, data = rest.partition(":")
        try:
            return MetaTransaction(
                to=to_checksum_address(to),
                value=int(value_str) if value_str else 0,
                data=data or "0x",  # pyright: ignore[reportArgumentType]
            )
        except ValueError as exc:
            self.fail(f"invalid call '{value}': {exc}", param, ctx)


# ┌─────────────┐
# │ Option Info │
# └─────────────┘


@dataclasses.dataclass(kw_only=True)
class OptionInfo:
    args: Iterable[str]
    help: str
    # defaults should match click.Option
    metavar: Optional[str] = None
    type: Optional[Union[click.types.ParamType, Any]] = None


def make_option(
    option: OptionInfo, cls: Decorator[Any] = click.option, **overrides: Any
) -> Decorator[FC]:
    info = dataclasses.asdict(option)
    info.update(**overrides)
    args = info.pop("args")
    return cls(*args, **info)


chain_id_option_info = OptionInfo(
    args=["--chain-id"],
    help="the chain ID to use",
    type=int,
    metavar="ID",
)


# ┌─────────┐
# │ Options │
# └─────────┘


def rpc(
    decorator: Callable[..., Callable[[FC], FC]], required: bool = False
) -> Callable[[FC], FC]:
    return decorator(
        "--rpc",
        "-r",
        required=required,
        envvar="SAFE_RPC",
        metavar="URL",
        show_envvar=True,
        help="HTTP JSON-RPC endpoint",
    )


authentication = click.option(
    "--keyfile",
    "-k",
    type=click.Path(exists=True),
    required=True,
    help="local Ethereum keyfile",
)


def build_safetx(f: FC) -> FC:
    for option in reversed(
        [
            click.option(
                "--call",
                "calls",
                type=CallParamType(),
                required=True,
                multiple=True,
                metavar="ADDRESS[:VALUE[:DATA]]",
                help="add a call (repeat option to batch via MultiSendCallOnly)",
            ),
            click.option(
                "--delegatecall",
                is_flag=True,
                default=False,
                help="execute a single call as a delegatecall",
            ),
            optgroup.group("Build offline"),
            make_option(chain_id_option_info, cls=optgroup.option),
            optgroup.option("--safe-nonce", type=int, help="Safe nonce"),
            optgroup.group("Build online"),
            rpc(optgroup.option),
        ]
    ):
        f = option(f)
    return f


def common(f: FC) -> FC:
    for option in reversed(
        [
            click.option(
                "--verbose",
                "-v",
                is_flag=True,
                expose_value=False,
                is_eager=True,
                help="print informational messages",
                callback=verbose_callback,
            ),
        ]
    ):
        f = option(f)
    return f


def deployment(f: FC) -> FC:
    for option in reversed(
        [
            optgroup.group(
                "Deployment settings",
            ),
            optgroup.option(
                "--salt-nonce",
                type=int,
                default=0,
                metavar="UINT256",
                help="nonce used to generate CREATE2 salt",
            ),
            optgroup.option(
                "--without-events",
                is_flag=True,
                default=False,
                help="use implementation that does not emit events",
            ),
            optgroup.option(
                "--custom-singleton",
                metavar="ADDRESS",
                help=f"use a non-canonical Singleton {DEPLOY_SAFE_VERSION}",
            ),
            optgroup.option(
                "--custom-proxy-factory",
                metavar="ADDRESS",
                help=f"use a non-canonical SafeProxyFactory {DEPLOY_SAFE_VERSION}",
            ),
            optgroup.group(
                "Initialization settings",
            ),
            optgroup.option(
                "--owner",
                "owners",
                required=True,
                multiple=True,
                metavar="ADDRESS",
                type=str,
                help="add an owner (repeat option to add more)",
            ),
            optgroup.option(
                "--threshold",
                type=int,
                default=1,
                help="number of required confirmations",
            ),
            optgroup.option(
                "--fallback",
                metavar="ADDRESS",
                help="custom Fallback Handler address",
            ),
        ]
    ):
        f = option(f)
    return f


force = click.option(
    "--force",
    "-f",
    is_flag=True,
    default=False,
    help="skip confirmation prompts",
)

output_file = click.option(
    "--output", "-o", type=click.File(mode="w"), help="write output to FILENAME"
)

safe_address = click.option(
    "--safe",
    "safe_address",
    metavar="ADDRESS",
    required=True,
    help="Safe account address",
)

sigfile = click.argument(
    "sigfiles",
    metavar="[SIGFILE]...",
    type=click.Path(exists=True),
    nargs=-1,
)
