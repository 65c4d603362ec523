"""
Command alias table.

A command is either a qualified call ('OBJECT.function') or one of the
aliases below. An alias is a DirectCall, which forwards the command
arguments to a fixed qualified name under a fixed role, or a CustomCommand,
which prepares its own arguments before calling.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from ..access_flags import AccessFlags, resolve_roles, role_name
from ..chain import ChainClient
from ..config import PoolConfiguration
from ..constants import ZERO_ADDRESS
from ..contracts import ContractHandle, ContractTypes
from ..errors import CommandError, InvalidArgumentError, ResolutionError
from ..registry import DeploymentRegistry
from ..utils import falsy_or_zero_address, is_hex_prefixed, split_array
from .arguments import ArgumentPreparer, prepare_mint_rate
from .invocation import CallParams, InvocationEngine
from .name_resolver import NameResolver, split_qualified_name

logger = logging.getLogger(__name__)

Role = Union[int, str]


def qualified_name(type_id: str, instance_id: Role, fn_name: str) -> str:
    """Build 'TYPE@ROLE.function' or 'TYPE@0xADDRESS.function'"""
    instance = instance_id if isinstance(instance_id, str) else role_name(instance_id)
    return f"{type_id}@{instance}.{fn_name}"


@dataclass
class CommandContext:
    """Everything a command needs during one invocation"""
    chain: ChainClient
    ac: ContractHandle
    contracts: ContractTypes
    resolver: NameResolver
    preparer: ArgumentPreparer
    engine: InvocationEngine
    params: CallParams
    args: List[Any] = field(default_factory=list)
    roles: List[Role] = field(default_factory=list)

    @classmethod
    def create(cls, chain: ChainClient, ctl: str, registry: DeploymentRegistry, contracts: ContractTypes,
               pool_config: PoolConfiguration, params: CallParams,
               roles: Optional[Sequence[Role]] = None) -> "CommandContext":
        if falsy_or_zero_address(ctl):
            raise ResolutionError("Unknown MarketAddressController")
        ac = contracts.get('MarketAccessController', ctl)
        return cls(
            chain=chain,
            ac=ac,
            contracts=contracts,
            resolver=NameResolver(chain, ac, registry, contracts, pool_config),
            preparer=ArgumentPreparer(chain, ac, contracts),
            engine=InvocationEngine(chain, ac),
            params=params,
            args=list(params.args),
            roles=list(roles or []),
        )

    async def call_contract(self, roles: Sequence[Role], contract: ContractHandle, fn_name: str,
                            args: Sequence[Any]) -> Any:
        return await self.engine.invoke(resolve_roles(roles), contract, fn_name, self.params.with_args(args))

    async def call_qualified(self, cmd: str, roles: Sequence[Role], args: Sequence[Any]) -> Any:
        obj_name, fn_name = split_qualified_name(cmd)
        contract = await self.resolver.resolve(obj_name)
        return await self.call_contract(roles, contract, fn_name, args)

    async def call(self, cmd: str, args: Sequence[Any], role: Optional[int] = None) -> Any:
        logger.info(f"Call alias: {cmd} {list(args)}")
        return await self.call_qualified(cmd, [] if role is None else [role], args)


@dataclass(frozen=True)
class DirectCall:
    """Forward the command arguments to a qualified function"""
    qualified_name: str
    role: int = 0

    async def run(self, ctx: CommandContext) -> Any:
        return await ctx.call(self.qualified_name, ctx.args, self.role)


@dataclass(frozen=True)
class CustomCommand:
    """Run a handler that prepares its own call"""
    handler: Callable[[CommandContext], Awaitable[Any]]

    async def run(self, ctx: CommandContext) -> Any:
        return await self.handler(ctx)


def _require_args(ctx: CommandContext, count: int, usage: str) -> None:
    if len(ctx.args) < count:
        raise InvalidArgumentError(f"Expected arguments: {usage}")


async def get_price(ctx: CommandContext) -> Any:
    _require_args(ctx, 1, "TOKEN [TOKEN ...]")
    tokens = await ctx.preparer.find_price_tokens(ctx.args)
    if len(ctx.args) > 1:
        return await ctx.call(qualified_name('OracleRouter', AccessFlags.PRICE_ORACLE, 'getAssetsPrices'), [tokens])
    return await ctx.call(qualified_name('OracleRouter', AccessFlags.PRICE_ORACLE, 'getAssetPrice'), tokens)


async def get_price_source(ctx: CommandContext) -> Any:
    _require_args(ctx, 1, "TOKEN [TOKEN ...]")
    tokens = await ctx.preparer.find_price_tokens(ctx.args)
    if len(ctx.args) > 1:
        return await ctx.call(qualified_name('OracleRouter', AccessFlags.PRICE_ORACLE, 'getAssetSources'), [tokens])
    return await ctx.call(qualified_name('OracleRouter', AccessFlags.PRICE_ORACLE, 'getSourceOfAsset'), tokens)


async def set_price_source(ctx: CommandContext) -> Any:
    _require_args(ctx, 2, "TOKEN SOURCE [TOKEN SOURCE ...]")
    tokens, sources = split_array(2, ctx.args)
    return await ctx.call(
        qualified_name('OracleRouter', AccessFlags.PRICE_ORACLE, 'setAssetSources'),
        [await ctx.preparer.find_price_tokens(tokens, True), sources],
        AccessFlags.ORACLE_ADMIN,
    )


async def set_static_price(ctx: CommandContext) -> Any:
    _require_args(ctx, 2, "TOKEN PRICE [TOKEN PRICE ...]")
    tokens, prices = split_array(2, ctx.args)
    oracle = ctx.contracts.get('OracleRouter', await ctx.chain.read(ctx.ac, 'getPriceOracle'))
    fallback = await ctx.chain.read(oracle, 'getFallbackOracle')
    price_tokens = await ctx.preparer.find_price_tokens(tokens, True)
    if len(price_tokens) > 1:
        return await ctx.call(
            qualified_name('StaticPriceOracle', fallback, 'setAssetPrices'),
            [price_tokens, prices],
            AccessFlags.ORACLE_ADMIN,
        )
    return await ctx.call(
        qualified_name('StaticPriceOracle', fallback, 'setAssetPrice'),
        [price_tokens[0], prices[0]],
        AccessFlags.ORACLE_ADMIN,
    )


async def add_reward_provider(ctx: CommandContext) -> Any:
    _require_args(ctx, 2, "POOL_NAME PROVIDER [TOKEN]")
    pool = ctx.contracts.get('IManagedRewardPool', await ctx.preparer.named_pool_address(ctx.args[0]))
    token = ctx.args[2] if len(ctx.args) > 2 and ctx.args[2] else ZERO_ADDRESS
    return await ctx.call_contract([AccessFlags.REWARD_CONFIG_ADMIN], pool, 'addRewardProvider', [ctx.args[1], token])


def parse_meltdown_date(value: str) -> int:
    """Unix timestamp from a 0x-prefixed number or an ISO date; naive dates are UTC"""
    if is_hex_prefixed(value):
        return int(value, 16)
    try:
        date = datetime.fromisoformat(value)
    except ValueError:
        raise InvalidArgumentError(f"Invalid date: {value}") from None
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    return int(date.timestamp())


async def set_meltdown(ctx: CommandContext) -> Any:
    _require_args(ctx, 2, "POOL_NAME DATE")
    pool = ctx.contracts.get('PermitFreezerRewardPool', await ctx.preparer.named_pool_address(ctx.args[0]))

    timestamp = parse_meltdown_date(str(ctx.args[1]))
    if timestamp == 0:
        logger.info("Meltdown date: never")
    else:
        logger.info(f"Meltdown date: {datetime.fromtimestamp(timestamp, tz=timezone.utc)}")

    return await ctx.call_contract([AccessFlags.REWARD_CONFIG_ADMIN], pool, 'setMeltDownAt', [timestamp])


async def set_mint_rate(ctx: CommandContext) -> Any:
    _require_args(ctx, 1, "RATE")
    return await ctx.call(
        qualified_name('RewardBoosterImpl', AccessFlags.REWARD_CONTROLLER, 'updateBaseline'),
        [prepare_mint_rate(ctx.args[0])],
        AccessFlags.REWARD_RATE_ADMIN,
    )


async def set_mint_rate_and_shares(ctx: CommandContext) -> Any:
    _require_args(ctx, 1, "RATE [POOL SHARE% ...]")
    pools, shares = await ctx.preparer.prepare_pool_names_and_shares(ctx.args[1:])
    return await ctx.call(
        qualified_name('RewardBoosterImpl', AccessFlags.REWARD_CONTROLLER, 'setBaselinePercentagesAndRate'),
        [pools, shares, prepare_mint_rate(ctx.args[0])],
        AccessFlags.REWARD_RATE_ADMIN,
    )


async def register_ref_code(ctx: CommandContext) -> Any:
    _require_args(ctx, 2, "CODE OWNER [CODE OWNER ...]")
    codes, owners = split_array(2, ctx.args)
    return await ctx.call(
        qualified_name('ReferralRewardPoolV1Impl', AccessFlags.REFERRAL_REGISTRY, 'registerShortCodes'),
        [codes, owners],
        AccessFlags.REFERRAL_ADMIN,
    )


COMMAND_ALIASES: Dict[str, Union[DirectCall, CustomCommand]] = {
    'setCooldownForAll': DirectCall(
        qualified_name('StakeConfiguratorImpl', AccessFlags.STAKE_CONFIGURATOR, 'setCooldownForAll'),
        AccessFlags.STAKE_ADMIN,
    ),
    'getPrice': CustomCommand(get_price),
    'getPriceSource': CustomCommand(get_price_source),
    'setPriceSource': CustomCommand(set_price_source),
    'setStaticPrice': CustomCommand(set_static_price),
    'addRewardProvider': CustomCommand(add_reward_provider),
    'setMeltdown': CustomCommand(set_meltdown),
    'setMintRate': CustomCommand(set_mint_rate),
    'setMintRateAndShares': CustomCommand(set_mint_rate_and_shares),
    'registerRefCode': CustomCommand(register_ref_code),
}


async def run_command(ctx: CommandContext, cmd: str) -> Any:
    """Run a qualified call or a command alias"""
    if '.' in cmd:
        return await ctx.call_qualified(cmd, ctx.roles, ctx.args)

    alias = COMMAND_ALIASES.get(cmd)
    if alias is None:
        raise CommandError(f"Unknown command: {cmd}")
    return await alias.run(ctx)
