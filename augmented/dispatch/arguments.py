"""
Argument preparation for dispatcher commands.

Command line arguments arrive as strings. This module turns them into typed
call arguments: percentages, mint rates, token symbols resolved to pricing
keys, reward pool names resolved to addresses, and ABI driven coercion of
everything else.

Token descriptions and pool names are fetched at most once per command and
kept in explicit caches owned by the ArgumentPreparer.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_utils import to_bytes, to_checksum_address

from ..access_flags import AccessFlags
from ..chain import ChainClient
from ..constants import PERCENTAGE_DECIMALS, RATE_DECIMALS
from ..contracts import ContractHandle, ContractTypes
from ..errors import InvalidArgumentError, ResolutionError
from ..utils import falsy_or_zero_address, is_hex_prefixed, is_valid_address, parse_units

logger = logging.getLogger(__name__)


def prepare_percentage(value: Any, strict: bool) -> int:
    """
    Parse a percentage into basis points.

    "5.25%" -> 525. Without a '%' sign the value is rejected in strict mode,
    otherwise it is read as a plain integer.
    """
    value = str(value)
    pos = value.find('%')
    if pos > 0:
        return parse_units(value[:pos], PERCENTAGE_DECIMALS)
    if strict:
        raise InvalidArgumentError(f"Not a percentage: {value}")
    try:
        return int(value)
    except ValueError:
        raise InvalidArgumentError(f"Not a number: {value}") from None


def prepare_mint_rate(value: Any) -> str:
    """Scale a decimal rate by 10^18; 0x-prefixed values are already scaled"""
    value = str(value)
    if is_hex_prefixed(value):
        return value
    return str(parse_units(value, RATE_DECIMALS))


def as_record(components: Sequence[Dict[str, Any]], values: Sequence[Any]) -> Dict[str, Any]:
    """Name the fields of a decoded tuple after its ABI components"""
    return {component['name']: value for component, value in zip(components, values)}


def _split_list(value: str) -> List[Any]:
    text = value.strip()
    if text.startswith('['):
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidArgumentError(f"Invalid list argument: {value}") from e
    if not text:
        return []
    return [item.strip() for item in text.split(',')]


def int_bounds(abi_type: str) -> Tuple[int, int]:
    """Inclusive range of an intN or uintN type; the width defaults to 256"""
    unsigned = abi_type.startswith('u')
    bits = int(abi_type[4 if unsigned else 3:] or 256)
    if unsigned:
        return 0, 2**bits - 1
    return -2**(bits - 1), 2**(bits - 1) - 1


def coerce_value(abi_type: str, value: Any, components: Optional[Sequence[Dict[str, Any]]] = None) -> Any:
    """Convert one command line value to the Python type expected for abi_type"""
    if abi_type.endswith(']'):
        inner = abi_type[:abi_type.rindex('[')]
        items = _split_list(value) if isinstance(value, str) else list(value)
        return [coerce_value(inner, item, components) for item in items]

    if abi_type == 'tuple':
        fields = list(components or [])
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise InvalidArgumentError(f"Invalid tuple argument: {value}") from e
        if isinstance(value, dict):
            missing = [field['name'] for field in fields if field['name'] not in value]
            if missing:
                raise InvalidArgumentError(f"Missing tuple fields: {', '.join(missing)}")
            value = [value[field['name']] for field in fields]
        if not isinstance(value, (list, tuple)):
            raise InvalidArgumentError(f"Invalid tuple argument: {value}")
        if len(value) != len(fields):
            raise InvalidArgumentError(f"Expected {len(fields)} tuple fields, got {len(value)}")
        return tuple(
            coerce_value(field['type'], item, field.get('components'))
            for field, item in zip(fields, value)
        )

    if abi_type.startswith(('uint', 'int')):
        if isinstance(value, int) and not isinstance(value, bool):
            number = value
        else:
            text = str(value).strip()
            try:
                number = int(text, 16) if is_hex_prefixed(text) else int(text)
            except ValueError:
                raise InvalidArgumentError(f"Invalid {abi_type} value: {value}") from None
        low, high = int_bounds(abi_type)
        if not low <= number <= high:
            raise InvalidArgumentError(f"Value out of range for {abi_type}: {value}")
        return number

    if abi_type == 'bool':
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ('true', '1', 'yes'):
            return True
        if text in ('false', '0', 'no'):
            return False
        raise InvalidArgumentError(f"Invalid bool value: {value}")

    if abi_type == 'address':
        if not is_valid_address(value):
            raise InvalidArgumentError(f"Invalid address: {value}")
        return to_checksum_address(value)

    if abi_type == 'string':
        return str(value)

    if abi_type.startswith('bytes'):
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if is_hex_prefixed(value):
            return to_bytes(hexstr=value)
        raise InvalidArgumentError(f"Invalid {abi_type} value: {value}")

    return value


def coerce_arguments(inputs: Sequence[Dict[str, Any]], args: Sequence[Any]) -> List[Any]:
    """Convert an argument list according to a function's ABI inputs"""
    if len(inputs) != len(args):
        raise InvalidArgumentError(f"Expected {len(inputs)} arguments, got {len(args)}: {list(args)}")
    return [coerce_value(item['type'], value, item.get('components')) for item, value in zip(inputs, args)]


async def singleton_contract(chain: ChainClient, ac: ContractHandle, contracts: ContractTypes,
                             type_name: str, flag: int) -> ContractHandle:
    """Typed handle for the address the access controller holds for a flag"""
    address = await chain.read(ac, 'getAddress', flag)
    if falsy_or_zero_address(address):
        raise ResolutionError(f"No address is set for {type_name} in the access controller")
    return contracts.get(type_name, address)


class TokenCache:
    """Token descriptions from the data helper, fetched once per command"""

    def __init__(self, chain: ChainClient, ac: ContractHandle, contracts: ContractTypes):
        self.chain = chain
        self.ac = ac
        self.contracts = contracts
        self._tokens: Optional[List[Dict[str, Any]]] = None

    @property
    def populated(self) -> bool:
        return self._tokens is not None

    async def get(self) -> List[Dict[str, Any]]:
        if self._tokens is None:
            dp = await singleton_contract(
                self.chain, self.ac, self.contracts, 'ProtocolDataProvider', AccessFlags.DATA_HELPER
            )
            tokens, token_count = await self.chain.read(dp, 'getAllTokenDescriptions', True)
            components = dp.function_abi('getAllTokenDescriptions')['outputs'][0]['components']
            self._tokens = [as_record(components, token) for token in tokens[:token_count]]
            logger.debug(f"Fetched {len(self._tokens)} token descriptions")
        return self._tokens


class PoolNameCache:
    """Lower-cased reward pool name to pool address, built once per command"""

    def __init__(self, chain: ChainClient, ac: ContractHandle, contracts: ContractTypes):
        self.chain = chain
        self.ac = ac
        self.contracts = contracts
        self._by_names: Optional[Dict[str, str]] = None

    @property
    def populated(self) -> bool:
        return self._by_names is not None

    async def _pool_name(self, address: str) -> str:
        pool = self.contracts.get('IManagedRewardPool', address)
        return await self.chain.read(pool, 'getPoolName')

    async def get(self) -> Dict[str, str]:
        if self._by_names is None:
            rc = await singleton_contract(
                self.chain, self.ac, self.contracts, 'RewardConfiguratorImpl', AccessFlags.REWARD_CONFIGURATOR
            )
            pools = await self.chain.read(rc, 'list')
            names = await asyncio.gather(*(self._pool_name(addr) for addr in pools))

            by_names: Dict[str, str] = {}
            for addr, name in zip(pools, names):
                key = name.lower()
                if key in by_names:
                    logger.warning(f"Duplicate pool name: {name} {addr} {by_names[key]}")
                    continue
                by_names[key] = to_checksum_address(addr)
            logger.info(f"Reward pools by name: {by_names}")
            self._by_names = by_names
        return self._by_names


class ArgumentPreparer:
    """Resolves symbolic command arguments for one command invocation"""

    def __init__(self, chain: ChainClient, ac: ContractHandle, contracts: ContractTypes):
        self.chain = chain
        self.ac = ac
        self.contracts = contracts
        self.tokens = TokenCache(chain, ac, contracts)
        self.pools = PoolNameCache(chain, ac, contracts)

    async def find_price_tokens(self, names: Sequence[Any], warn: bool = False) -> List[str]:
        """Resolve token symbols or addresses to their pricing keys"""
        return [await self.find_price_token(name, warn) for name in names]

    async def find_price_token(self, name: Any, warn: bool = False) -> str:
        name = str(name)
        if not name or not falsy_or_zero_address(name):
            return name

        tokens = await self.tokens.get()
        key = name.lower()
        matched = [token for token in tokens if token['tokenSymbol'].lower() == key]
        if not matched:
            raise ResolutionError(f"Unknown token name: {name}")
        if len(matched) > 1:
            raise ResolutionError(f"Ambiguous token name: {name}", [token['token'] for token in matched])

        price_key = matched[0]['priceToken']
        if falsy_or_zero_address(price_key):
            raise ResolutionError(f"Token has no pricing token: {name}")

        shared = [token['tokenSymbol'] for token in tokens if token['priceToken'].lower() == price_key.lower()]
        if warn and len(shared) > 1:
            logger.warning(f"Same price is used for: {shared}")

        return to_checksum_address(price_key)

    async def prepare_pool_names_and_shares(self, args: Sequence[Any]) -> Tuple[List[str], List[int]]:
        """Turn [pool, share, pool, share, ...] into pool addresses and basis points"""
        if len(args) % 2 != 0:
            raise InvalidArgumentError(f"Pools and shares must come in pairs: {list(args)}")

        pools: List[str] = []
        shares: List[int] = []
        for i in range(0, len(args), 2):
            addr = str(args[i])
            if falsy_or_zero_address(addr):
                by_names = await self.pools.get()
                addr = by_names.get(addr.lower(), '')
                if falsy_or_zero_address(addr):
                    raise ResolutionError(f"Unknown pool name: {args[i]}")
            pools.append(addr)
            shares.append(prepare_percentage(args[i + 1], True))
        return pools, shares

    async def named_pool_address(self, name: str) -> str:
        """Ask the reward configurator for a pool registered under a name"""
        rc = await singleton_contract(
            self.chain, self.ac, self.contracts, 'RewardConfiguratorImpl', AccessFlags.REWARD_CONFIGURATOR
        )
        pool_addrs = await self.chain.read(rc, 'getNamedRewardPools', [name])
        pool_addr = pool_addrs[0] if pool_addrs else None
        if falsy_or_zero_address(pool_addr):
            raise ResolutionError(f"Unknown pool name: {name}")
        return to_checksum_address(pool_addr)
