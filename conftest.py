"""
Shared fixtures: an in-memory chain that answers eth_call requests from
registered handlers and records sent transactions.
"""

from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Tuple

import eth_abi
import pytest
from eth_utils import collapse_if_tuple, function_signature_to_4byte_selector, to_checksum_address

from augmented.chain import ChainClient
from augmented.config import PoolConfiguration
from augmented.contracts import ContractHandle, ContractTypes, function_signature
from augmented.errors import RevertError
from augmented.registry import DeploymentRegistry


def _address(byte: str) -> str:
    return to_checksum_address('0x' + byte * 20)


ADDRESSES = SimpleNamespace(
    ac=_address('11'),
    signer=_address('55'),
    user=_address('56'),
    oracle=_address('aa'),
    fallback_oracle=_address('ab'),
    data_helper=_address('dd'),
    reward_configurator=_address('cc'),
    reward_controller=_address('c1'),
    registry=_address('e1'),
    pool_a=_address('a1'),
    pool_b=_address('a2'),
    pool_c=_address('a3'),
    dai=_address('d1'),
    usdc=_address('d2'),
    weth=_address('d3'),
    ag_dai=_address('d4'),
    price_key=_address('f1'),
)


def _selector(fn_abi: Dict[str, Any]) -> str:
    return function_signature_to_4byte_selector(function_signature(fn_abi)).hex()


@dataclass
class SentTx:
    to: str
    data: str
    gas_limit: Optional[int]


class FakeChain(ChainClient):
    """ChainClient whose calls are served by registered Python handlers"""

    def __init__(self, signer: str = ADDRESSES.signer):
        super().__init__(w3=None)
        self.signer = signer
        self.handlers: Dict[Tuple[str, str], Tuple[Dict[str, Any], Any]] = {}
        self.reverts: Dict[Tuple[str, str], str] = {}
        self.calls: List[Tuple[str, str]] = []
        self.sent: List[SentTx] = []
        self.waited: List[str] = []
        self.rpc_calls: List[Tuple[str, list]] = []
        self.rpc_results: Dict[str, Any] = {}

    def respond(self, contract: ContractHandle, fn_name: str, result: Any) -> None:
        """Answer calls of fn_name with a value or with a handler taking the call arguments"""
        fn_abi = contract.function_abi(fn_name)
        self.handlers[(contract.address.lower(), _selector(fn_abi))] = (fn_abi, result)

    def revert_on(self, contract: ContractHandle, fn_name: str, message: str = 'execution reverted') -> None:
        fn_abi = contract.function_abi(fn_name)
        self.reverts[(contract.address.lower(), _selector(fn_abi))] = message

    def forward_with_roles(self, ac: ContractHandle) -> None:
        """Let callWithRoles calls on ac reach the registered target handlers"""
        def call_with_roles(params):
            return [self._dispatch(call_addr, '0x' + call_data.hex()) for _, _, call_addr, call_data in params]
        self.respond(ac, 'callWithRoles', call_with_roles)

    def _dispatch(self, to: str, data: str) -> bytes:
        key = (to.lower(), data[2:10])
        if key in self.reverts:
            raise RevertError(self.reverts[key])
        if key not in self.handlers:
            raise RevertError(f"No handler for {to} {data[:10]}")

        fn_abi, result = self.handlers[key]
        input_types = [collapse_if_tuple(item) for item in fn_abi['inputs']]
        args = eth_abi.decode(input_types, bytes.fromhex(data[10:]))
        value = result(*args) if callable(result) else result

        output_types = [collapse_if_tuple(item) for item in fn_abi['outputs']]
        if len(output_types) == 1:
            value = [value]
        return eth_abi.encode(output_types, list(value or []))

    async def signer_address(self) -> str:
        return self.signer

    async def signers(self) -> List[str]:
        return [self.signer, ADDRESSES.user]

    async def call(self, to: str, data: str, gas_limit: Optional[int] = None) -> bytes:
        self.calls.append((to, data))
        return self._dispatch(to, data)

    async def send(self, to: str, data: str, gas_limit: Optional[int] = None) -> str:
        key = (to.lower(), data[2:10])
        self.sent.append(SentTx(to, data, gas_limit))
        if key in self.reverts:
            raise RevertError(self.reverts[key])
        return '0x%064x' % len(self.sent)

    async def wait(self, tx_hash: str, timeout: float = 0) -> Dict[str, Any]:
        self.waited.append(tx_hash)
        return {'status': 1, 'gasUsed': 50000, 'transactionHash': tx_hash}

    async def rpc(self, method: str, params: Optional[list] = None) -> Any:
        self.rpc_calls.append((method, params or []))
        return self.rpc_results.get(method)

    def sent_to(self, contract: ContractHandle) -> List[Tuple[str, tuple]]:
        """Decode the transactions sent to a contract as (function name, args)"""
        by_selector = {
            _selector(item): item for item in contract.abi if item.get('type') == 'function'
        }
        decoded = []
        for tx in self.sent:
            if tx.to.lower() != contract.address.lower():
                continue
            fn_abi = by_selector[tx.data[2:10]]
            types = [collapse_if_tuple(item) for item in fn_abi['inputs']]
            decoded.append((fn_abi['name'], eth_abi.decode(types, bytes.fromhex(tx.data[10:]))))
        return decoded


@pytest.fixture
def addresses() -> SimpleNamespace:
    return ADDRESSES


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def contracts() -> ContractTypes:
    return ContractTypes()


@pytest.fixture
def ac(contracts: ContractTypes) -> ContractHandle:
    return contracts.get('MarketAccessController', ADDRESSES.ac)


@pytest.fixture
def registry_data() -> Dict[str, Any]:
    return {
        'OracleRouter': {'localhost': {'address': ADDRESSES.oracle, 'deployer': ADDRESSES.signer}},
        'localhost': {
            'instance': {
                _address('b1'): {'id': 'PermitFreezerRewardPool', 'verify': {'args': '[]'}},
            },
            'external': {
                _address('b2'): {'id': 'TeamPool', 'verify': {'impl': _address('b1')}},
            },
        },
    }


@pytest.fixture
def registry(registry_data: Dict[str, Any]) -> DeploymentRegistry:
    return DeploymentRegistry(registry_data, 'localhost')


@pytest.fixture
def pool_config() -> PoolConfiguration:
    return PoolConfiguration(name='Augmented', provider_registry={'main': ADDRESSES.registry})


@pytest.fixture
def role_addresses(chain: FakeChain, ac: ContractHandle) -> Dict[int, str]:
    """Addresses the access controller reports per flag; tests add entries"""
    bound: Dict[int, str] = {}
    chain.respond(ac, 'getAddress', lambda flag: bound.get(flag, '0x' + '00' * 20))
    return bound


def token_description(token: str, symbol: str, price_token: str) -> tuple:
    zero = '0x' + '00' * 20
    return (token, zero, price_token, zero, symbol, zero, 18, 1, True, False)


@pytest.fixture
def make_token() -> Callable[..., tuple]:
    return token_description
