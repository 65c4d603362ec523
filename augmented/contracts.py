"""
Contract types and handles.

A ContractHandle wraps a web3 contract bound to a deployed address. It
encodes calls and decodes raw return data without a connection, so encoded
calls can be produced offline. ContractTypes maps the contract ids used in
the deployment database to ABIs loaded from hardhat artifacts, falling back
to the interface ABIs bundled with this package.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from eth_utils import collapse_if_tuple, to_checksum_address
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from .errors import ConfigurationError, InvalidArgumentError, ResolutionError

logger = logging.getLogger(__name__)

BUNDLED_ABI_DIR = Path(__file__).parent / 'abi'

# Contract id -> artifact name
CONTRACT_TYPES: Dict[str, str] = {
    'MarketAccessController': 'MarketAccessController',
    'AddressesProviderRegistry': 'AddressesProviderRegistry',
    'LendingPoolImpl': 'LendingPool',
    'LendingPoolConfiguratorImpl': 'LendingPoolConfigurator',
    'ProtocolDataProvider': 'ProtocolDataProvider',
    'OracleRouter': 'OracleRouter',
    'StaticPriceOracle': 'StaticPriceOracle',
    'MockPriceOracle': 'MockPriceOracle',
    'LendingRateOracle': 'LendingRateOracle',
    'StakeConfiguratorImpl': 'StakeConfigurator',
    'StakeTokenImpl': 'StakeToken',
    'RewardConfiguratorImpl': 'RewardConfigurator',
    'RewardBoosterImpl': 'RewardBooster',
    'ReferralRewardPoolV1Impl': 'ReferralRewardPoolV1',
    'PermitFreezerRewardPool': 'PermitFreezerRewardPool',
    'TeamRewardPool': 'TeamRewardPool',
    'TokenWeightedRewardPoolImpl': 'TokenWeightedRewardPool',
    'IManagedRewardPool': 'IManagedRewardPool',
    'DepositTokenImpl': 'DepositToken',
    'DelegationAwareDepositTokenImpl': 'DelegationAwareDepositToken',
    'StableDebtTokenImpl': 'StableDebtToken',
    'VariableDebtTokenImpl': 'VariableDebtToken',
    'TreasuryImpl': 'Treasury',
    'WETHGateway': 'WETHGateway',
    'WETHMocked': 'WETH9Mocked',
    'MintableERC20': 'MintableERC20',
    'MintableDelegationERC20': 'MintableDelegationERC20',
}

STATIC_MUTABILITY = ('view', 'pure')


def _output_types(fn_abi: Dict[str, Any]) -> List[str]:
    return [collapse_if_tuple(item) for item in fn_abi.get('outputs', [])]


def function_signature(fn_abi: Dict[str, Any]) -> str:
    inputs = ','.join(collapse_if_tuple(item) for item in fn_abi.get('inputs', []))
    return f"{fn_abi['name']}({inputs})"


class ContractHandle:
    """A typed web3 contract bound to an address"""

    def __init__(self, type_name: str, address: str, abi: List[Dict[str, Any]],
                 w3: Optional[AsyncWeb3] = None):
        self.type_name = type_name
        self.w3 = w3 if w3 is not None else AsyncWeb3()
        self.contract = self.w3.eth.contract(address=to_checksum_address(address), abi=abi)

    def __repr__(self) -> str:
        return f"{self.type_name}@{self.address}"

    @property
    def address(self) -> str:
        return self.contract.address

    @property
    def abi(self) -> List[Dict[str, Any]]:
        return self.contract.abi

    def function_abi(self, name: str) -> Dict[str, Any]:
        """
        Find a function fragment by name or by full signature.

        Raises ResolutionError when the function is unknown or the name is
        overloaded and not disambiguated by a signature.
        """
        if '(' in name:
            try:
                return self.contract.get_function_by_signature(name.replace(' ', '')).abi
            except (ValueError, Web3Exception):
                raise ResolutionError(f"Unknown function: {self.type_name}.{name}") from None

        matched = self.contract.find_functions_by_name(name)
        if not matched:
            raise ResolutionError(f"Unknown function: {self.type_name}.{name}")
        if len(matched) > 1:
            raise ResolutionError(
                f"Ambiguous function name: {self.type_name}.{name}",
                [function_signature(fn.abi) for fn in matched],
            )
        return matched[0].abi

    def is_static(self, name: str) -> bool:
        return self.function_abi(name).get('stateMutability') in STATIC_MUTABILITY

    def encode(self, name: str, args: Sequence[Any]) -> str:
        """Return 0x-prefixed call data for typed arguments"""
        signature = function_signature(self.function_abi(name))
        try:
            return self.contract.encode_abi(signature, args=list(args))
        except (TypeError, ValueError, Web3Exception) as e:
            raise InvalidArgumentError(f"Cannot encode {self.type_name}.{signature}: {e}") from e

    def decode(self, name: str, data: bytes) -> Any:
        """Decode return data; a single output is unwrapped"""
        types = _output_types(self.function_abi(name))
        if not types:
            return None
        values = self.w3.codec.decode(types, bytes(data))
        if len(values) == 1:
            return values[0]
        return values


class ContractTypes:
    """Type-name to contract handle constructors"""

    def __init__(self, artifacts_dir: Optional[str] = None, types: Optional[Dict[str, str]] = None,
                 w3: Optional[AsyncWeb3] = None):
        # Handles only need the codec; a provider-less instance is enough offline
        self.w3 = w3 if w3 is not None else AsyncWeb3()
        self.artifacts_dir = Path(artifacts_dir) if artifacts_dir else None
        self.types = dict(CONTRACT_TYPES if types is None else types)
        self._artifact_index: Optional[Dict[str, Path]] = None
        self._abis: Dict[str, List[Dict[str, Any]]] = {}

    def _index_artifacts(self) -> Dict[str, Path]:
        if self._artifact_index is None:
            self._artifact_index = {}
            if self.artifacts_dir is not None and self.artifacts_dir.is_dir():
                for path in self.artifacts_dir.rglob('*.json'):
                    if path.name.endswith('.dbg.json'):
                        continue
                    self._artifact_index.setdefault(path.stem, path)
                logger.debug(f"Indexed {len(self._artifact_index)} artifacts in {self.artifacts_dir}")
        return self._artifact_index

    def load_abi(self, artifact_name: str) -> List[Dict[str, Any]]:
        """Load an ABI from artifacts, then from the bundled interfaces"""
        if artifact_name in self._abis:
            return self._abis[artifact_name]

        path = self._index_artifacts().get(artifact_name)
        if path is None:
            bundled = BUNDLED_ABI_DIR / f"{artifact_name}.json"
            if not bundled.exists():
                raise ConfigurationError(f"No ABI artifact found for {artifact_name}")
            path = bundled

        with path.open('r', encoding='utf-8') as f:
            data = json.load(f)
        abi = data['abi'] if isinstance(data, dict) else data
        self._abis[artifact_name] = abi
        return abi

    def getter(self, type_name: str) -> Optional[Callable[[str], ContractHandle]]:
        """Return a constructor for the type, None when the type is unknown"""
        artifact_name = self.types.get(type_name)
        if artifact_name is None:
            return None

        def construct(address: str) -> ContractHandle:
            return ContractHandle(type_name, address, self.load_abi(artifact_name), self.w3)

        return construct

    def get(self, type_name: str, address: str) -> ContractHandle:
        fn = self.getter(type_name)
        if fn is None:
            raise ResolutionError(f"Unknown type name: {type_name}")
        return fn(address)
