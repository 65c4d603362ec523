"""
Resolution of symbolic object references to contract handles.

Supported references:
- AC / ACCESS_CONTROLLER: the access controller itself
- REGISTRY: the addresses provider registry
- TYPE@0xADDRESS: a typed contract at an explicit address
- TYPE@ROLE: a typed contract at the address the controller holds for ROLE
- KEY: a contract recorded in the deployment database
"""

import logging
from typing import Tuple

from ..access_flags import role_flag
from ..chain import ChainClient
from ..config import PoolConfiguration
from ..contracts import ContractHandle, ContractTypes
from ..errors import ResolutionError, UnknownRoleError
from ..registry import DeploymentRegistry
from ..utils import falsy_or_zero_address

logger = logging.getLogger(__name__)

ACCESS_CONTROLLER_NAMES = ('AC', 'ACCESS_CONTROLLER')
REGISTRY_NAME = 'REGISTRY'
REGISTRY_TYPE = 'AddressesProviderRegistry'


def split_qualified_name(cmd: str) -> Tuple[str, str]:
    """Split 'OBJECT.function' at the first dot"""
    pos = cmd.find('.')
    if pos < 0:
        raise ResolutionError(f"Not a qualified name: {cmd}")
    return cmd[:pos], cmd[pos + 1:]


class NameResolver:
    """Resolves object references for one access controller"""

    def __init__(self, chain: ChainClient, ac: ContractHandle, registry: DeploymentRegistry,
                 contracts: ContractTypes, pool_config: PoolConfiguration):
        self.chain = chain
        self.ac = ac
        self.registry = registry
        self.contracts = contracts
        self.pool_config = pool_config

    async def resolve(self, reference: str) -> ContractHandle:
        """Return exactly one contract handle for the reference or raise ResolutionError"""
        if reference in ACCESS_CONTROLLER_NAMES:
            return self.ac

        if reference == REGISTRY_NAME:
            return self._resolve_registry()

        pos = reference.find('@')
        if pos < 0:
            return self._resolve_key(reference)

        type_name = reference[:pos]
        addr_name = reference[pos + 1:]

        if addr_name[:2] != '0x':
            flag = role_flag(addr_name)
            if flag == 0:
                raise UnknownRoleError(f"Unknown role: {addr_name}")
            addr_name = await self.chain.read(self.ac, 'getAddress', flag)
            logger.debug(f"Role {reference[pos + 1:]} is held by {addr_name}")

        if falsy_or_zero_address(addr_name):
            raise ResolutionError(f"Invalid address: {addr_name}")

        fn = self.contracts.getter(type_name)
        if fn is None:
            raise ResolutionError(f"Unknown type name: {type_name}")
        return fn(addr_name)

    def _resolve_registry(self) -> ContractHandle:
        record = self.registry.lookup_by_key(REGISTRY_TYPE)
        if record is not None:
            return self.contracts.get(REGISTRY_TYPE, record['address'])

        reg_addr = self.pool_config.provider_registry_for(self.registry.network)
        if falsy_or_zero_address(reg_addr):
            raise ResolutionError("Registry was not found")
        return self.contracts.get(REGISTRY_TYPE, reg_addr)

    def _resolve_key(self, key: str) -> ContractHandle:
        record = self.registry.lookup_by_key(key)
        if record is not None:
            fn = self.contracts.getter(key)
            if fn is None:
                raise ResolutionError(f"Unsupported type name: {key}")
            return fn(record['address'])

        found = [
            (addr, desc) for addr, desc in self.registry.list_external_records()
            if desc.get('id') == key and not falsy_or_zero_address((desc.get('verify') or {}).get('impl'))
        ]
        if not found:
            raise ResolutionError(f"Unknown object name: {key}")
        if len(found) > 1:
            raise ResolutionError(f"Ambiguous object name: {key}", [addr for addr, _ in found])

        addr, desc = found[0]
        instance = self.registry.lookup_instance(desc['verify']['impl'])
        if instance is None:
            raise ResolutionError(f"Unknown impl address: {key}")

        fn = self.contracts.getter(instance.get('id', ''))
        if fn is None:
            raise ResolutionError(f"Unsupported type name: {instance.get('id')}")
        return fn(addr)
