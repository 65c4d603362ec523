#!/usr/bin/env python3
"""
Command line entry point for market operations.

    augmented-ops call --ctl 0xController --cmd getPrice DAI
    augmented-ops call --ctl 0xController --cmd 'OracleRouter@PRICE_ORACLE.getAssetPrice' 0xToken
    augmented-ops call --ctl 0xController --cmd setMintRate --compatible --wait-tx 1.5
"""

import argparse
import asyncio
import logging
import sys
from typing import Any, List, Optional, Union

from . import __version__
from .chain import ChainClient
from .config import Settings, load_pool_config, setup_logging
from .constants import DEFAULT_POOL_NAME
from .contracts import ContractTypes
from .dispatch import CallParams, CommandContext, EncodedCall, run_command
from .errors import CommandError, ResolutionError
from .registry import DeploymentRegistry
from .utils import falsy_or_zero_address, is_hex_prefixed

logger = logging.getLogger(__name__)


def parse_role(value: str) -> Union[int, str]:
    """Numeric roles become ints, anything else stays a role name"""
    value = value.strip()
    if is_hex_prefixed(value):
        return int(value, 16)
    if value.isdigit():
        return int(value)
    return value


def parse_roles(values: Optional[List[str]]) -> List[Union[int, str]]:
    roles: List[Union[int, str]] = []
    for value in values or []:
        roles.extend(parse_role(item) for item in value.split(',') if item.strip())
    return roles


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='augmented-ops', description='Augmented market operations')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--network', help='Network name used for deployment database lookups')
    parser.add_argument('--rpc-url', help='JSON-RPC endpoint')
    subparsers = parser.add_subparsers(dest='task', required=True)

    call = subparsers.add_parser('call', help='Invokes a configuration command')
    call.add_argument('--ctl', required=True, help='Address of MarketAddressController')
    call.add_argument('--cmd', required=True, help='Name of command or OBJECT.function')
    call.add_argument('--static', action='store_true', help='Make this call as static')
    call.add_argument('--compatible', action='store_true', help='Use backward compatible mode')
    call.add_argument('--wait-tx', action='store_true', help='Wait for mutable tx')
    call.add_argument('--encode', action='store_true', help='Return encoded call')
    call.add_argument('--roles', action='append', help='Roles required, comma separated names or numbers')
    call.add_argument('--gas-limit', type=int, help='Gas limit')
    call.add_argument('args', nargs='*', help='Command arguments')
    return parser


async def call_cmd(settings: Settings, ns: argparse.Namespace) -> Any:
    """Run one dispatcher command"""
    params = CallParams(
        use_static=ns.static,
        compatible=ns.compatible,
        encode=ns.encode,
        args=list(ns.args),
        wait_tx=ns.wait_tx,
        gas_limit=ns.gas_limit,
    )
    params.validate()
    if params.encode and params.use_static:
        logger.warning("Flag --static is ignored with the flag --encode")

    if falsy_or_zero_address(ns.ctl):
        raise ResolutionError("Unknown MarketAddressController")

    chain = await ChainClient.connect(settings)
    ctx = CommandContext.create(
        chain,
        ns.ctl,
        DeploymentRegistry.from_file(settings.deployment_db, settings.network),
        ContractTypes(settings.artifacts_dir, w3=chain.w3),
        load_pool_config(DEFAULT_POOL_NAME, settings),
        params,
        roles=parse_roles(ns.roles),
    )
    return await run_command(ctx, ns.cmd)


def main(argv: Optional[List[str]] = None) -> int:
    ns = build_parser().parse_args(argv)

    settings = Settings.from_env()
    if ns.network:
        settings.network = ns.network
    if ns.rpc_url:
        settings.rpc_url = ns.rpc_url
    setup_logging(settings)

    try:
        result = asyncio.run(call_cmd(settings, ns))
    except CommandError as e:
        logger.error(f"Command failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if isinstance(result, EncodedCall):
        print(f"\nEncoded call:\n\n{result}\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
