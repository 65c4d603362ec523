"""
Integration test scaffolding.

Bootstraps a TestEnv from a running development chain and wraps test
groups in evm_snapshot / evm_revert so every group starts from the same
chain state.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional

from .access_flags import AccessFlags
from .chain import ChainClient
from .config import Settings, load_pool_config
from .constants import DEFAULT_POOL_NAME
from .contracts import ContractHandle, ContractTypes
from .dispatch.arguments import TokenCache, singleton_contract
from .errors import CommandError, ConfigurationError
from .registry import DeploymentRegistry
from .utils import falsy_or_zero_address

logger = logging.getLogger(__name__)

REQUIRED_TOKENS = ('DAI', 'USDC', 'AAVE', 'WETH')


@dataclass
class TestEnv:
    """Handles shared by the tests of one suite"""
    __test__ = False

    chain: ChainClient
    deployer: str
    users: List[str]
    address_provider: ContractHandle
    helpers_contract: ContractHandle
    oracle: ContractHandle
    registry: Optional[ContractHandle] = None
    tokens: Dict[str, ContractHandle] = field(default_factory=dict)


async def initialize_test_env(chain: ChainClient, settings: Settings, registry: DeploymentRegistry,
                              contracts: ContractTypes, ctl: Optional[str] = None,
                              token_symbols=REQUIRED_TOKENS) -> TestEnv:
    """Build a TestEnv from the deployment database and the access controller"""
    signers = await chain.signers()
    if not signers:
        raise ConfigurationError("No signers available on the test chain")
    deployer, users = signers[0], signers[1:]

    if ctl is None:
        record = registry.lookup_by_key('MarketAccessController')
        if record is None:
            raise ConfigurationError("MarketAccessController is not deployed")
        ctl = record['address']
    ac = contracts.get('MarketAccessController', ctl)

    registry_handle = None
    if settings.mainnet_fork:
        reg_addr = load_pool_config(DEFAULT_POOL_NAME, settings).provider_registry_for('main')
        if not falsy_or_zero_address(reg_addr):
            registry_handle = contracts.get('AddressesProviderRegistry', reg_addr)
    else:
        record = registry.lookup_by_key('AddressesProviderRegistry')
        if record is not None:
            registry_handle = contracts.get('AddressesProviderRegistry', record['address'])

    oracle = contracts.get('OracleRouter', await chain.read(ac, 'getPriceOracle'))
    helpers = await singleton_contract(chain, ac, contracts, 'ProtocolDataProvider', AccessFlags.DATA_HELPER)

    descriptions = await TokenCache(chain, ac, contracts).get()
    tokens: Dict[str, ContractHandle] = {}
    for symbol in token_symbols:
        found = next((desc for desc in descriptions if desc['tokenSymbol'] == symbol), None)
        if found is None or falsy_or_zero_address(found['token']):
            logger.error(f"Known tokens: {[desc['tokenSymbol'] for desc in descriptions]}")
            raise CommandError(f"Missing token {symbol}")
        tokens[symbol] = contracts.get('MintableERC20', found['token'])

    return TestEnv(
        chain=chain,
        deployer=deployer,
        users=users,
        address_provider=ac,
        helpers_contract=helpers,
        oracle=oracle,
        registry=registry_handle,
        tokens=tokens,
    )


async def evm_snapshot(chain: ChainClient) -> str:
    snapshot_id = await chain.rpc('evm_snapshot')
    logger.debug(f"Snapshot taken: {snapshot_id}")
    return snapshot_id


async def evm_revert(chain: ChainClient, snapshot_id: str) -> None:
    reverted = await chain.rpc('evm_revert', [snapshot_id])
    if not reverted:
        raise CommandError(f"Failed to revert to snapshot {snapshot_id}")
    logger.debug(f"Reverted to snapshot: {snapshot_id}")


@asynccontextmanager
async def suite_snapshot(chain: ChainClient) -> AsyncIterator[str]:
    """Revert the chain to its state at entry once the suite finishes"""
    snapshot_id = await evm_snapshot(chain)
    try:
        yield snapshot_id
    finally:
        await evm_revert(chain, snapshot_id)
