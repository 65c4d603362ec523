"""
Role gated invocation of contract functions.

Three call paths, selected in order:
1. No role required: the target is called directly.
2. Compatible mode: the signer becomes temporary admin, grants itself the
   roles, calls the target, and always renounces the temporary admin.
3. Otherwise the call is wrapped into a callWithRoles batch executed by the
   access controller.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from eth_utils import to_bytes

from ..chain import ChainClient
from ..constants import TEMPORARY_ADMIN_DURATION
from ..contracts import STATIC_MUTABILITY, ContractHandle, function_signature
from ..errors import UnsupportedModeError
from .arguments import coerce_arguments

logger = logging.getLogger(__name__)


@dataclass
class CallParams:
    """Flags and arguments of a single call"""
    use_static: bool = False
    compatible: bool = False
    encode: bool = False
    args: List[Any] = field(default_factory=list)
    wait_tx: bool = False
    gas_limit: Optional[int] = None

    def with_args(self, args: Optional[Sequence[Any]]) -> "CallParams":
        return replace(self, args=list(args or []))

    def validate(self) -> None:
        if self.encode and self.compatible:
            raise UnsupportedModeError("Flag --compatible is not supported with the flag --encode")


@dataclass(frozen=True)
class EncodedCall:
    """Call data prepared for offline signing"""
    to: str
    data: str

    def __str__(self) -> str:
        return f'{{\n\tto: "{self.to}",\n\tdata: "{self.data}"\n}}'


@asynccontextmanager
async def temporary_admin(chain: ChainClient, ac: ContractHandle, user: str) -> AsyncIterator[None]:
    """Hold the temporary admin designation for the body, renouncing it on every exit path"""
    logger.info("Grant temporary admin")
    await chain.write(ac, 'setTemporaryAdmin', user, TEMPORARY_ADMIN_DURATION)
    try:
        yield
    finally:
        logger.info("Renounce temporary admin")
        await chain.write(ac, 'renounceTemporaryAdmin')


class InvocationEngine:
    """Executes calls against contracts governed by one access controller"""

    def __init__(self, chain: ChainClient, ac: ContractHandle):
        self.chain = chain
        self.ac = ac

    async def invoke(self, required_roles: int, contract: ContractHandle, fn_name: str,
                     params: CallParams) -> Any:
        """
        Call fn_name on contract, acquiring required_roles when non-zero.

        Returns:
            Decoded result for static calls, the receipt (wait_tx) or the
            transaction hash for mutable calls, or an EncodedCall when
            params.encode is set
        """
        params.validate()

        fn_abi = contract.function_abi(fn_name)
        signature = function_signature(fn_abi)
        use_static = params.use_static or fn_abi.get('stateMutability') in STATIC_MUTABILITY
        args = coerce_arguments(fn_abi['inputs'], params.args)

        logger.info(f"Call {'static' if use_static else 'mutable'}: {contract.address} {fn_abi['name']} {args}")
        call_data = contract.encode(signature, args)

        if required_roles == 0:
            if params.encode:
                return self._encoded(contract.address, call_data)
            return await self._call_direct(contract, signature, call_data, use_static, params)

        if params.compatible:
            user = await self.chain.signer_address()
            async with temporary_admin(self.chain, self.ac, user):
                logger.info("Grant roles")
                await self.chain.write(self.ac, 'grantRoles', user, required_roles)
                return await self._call_direct(contract, signature, call_data, use_static, params)

        ac_args = [(required_roles, 0, contract.address, to_bytes(hexstr=call_data))]

        if params.encode:
            return self._encoded(self.ac.address, self.ac.encode('callWithRoles', [ac_args]))

        if use_static:
            results = await self.chain.read(self.ac, 'callWithRoles', ac_args)
            result = contract.decode(signature, results[0])
            logger.info(f"Result: {result}")
            return result

        tx_hash = await self.chain.send(self.ac.address, self.ac.encode('callWithRoles', [ac_args]), params.gas_limit)
        return await self._handle_tx(tx_hash, params)

    async def _call_direct(self, contract: ContractHandle, signature: str, call_data: str,
                           use_static: bool, params: CallParams) -> Any:
        if use_static:
            raw = await self.chain.call(contract.address, call_data, params.gas_limit)
            result = contract.decode(signature, raw)
            logger.info(f"Result: {result}")
            return result

        tx_hash = await self.chain.send(contract.address, call_data, params.gas_limit)
        return await self._handle_tx(tx_hash, params)

    async def _handle_tx(self, tx_hash: str, params: CallParams) -> Any:
        if not params.wait_tx:
            return tx_hash
        receipt: Dict[str, Any] = await self.chain.wait(tx_hash)
        logger.info(f"Gas used: {receipt['gasUsed']}")
        return receipt

    def _encoded(self, to: str, data: str) -> EncodedCall:
        encoded = EncodedCall(to, data)
        logger.debug(f"Encoded call: {encoded.to} {encoded.data}")
        return encoded
