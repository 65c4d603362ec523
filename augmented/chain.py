"""
Chain client: Web3 connection, signer and transaction helpers.
"""

import logging
from typing import Any, Dict, List, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError
from web3.types import RPCEndpoint

from .config import Settings
from .contracts import ContractHandle
from .errors import CommandError, ConfigurationError, RevertError

logger = logging.getLogger(__name__)

RECEIPT_TIMEOUT = 300


class ChainClient:
    """Async wrapper around Web3 used by every command"""

    def __init__(self, w3: AsyncWeb3, account: Optional[LocalAccount] = None):
        self.w3 = w3
        self.account = account

    @classmethod
    async def connect(cls, settings: Settings) -> "ChainClient":
        """Connect to the configured RPC endpoint"""
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.rpc_url, request_kwargs={'timeout': 30}))
        if not await w3.is_connected():
            raise ConfigurationError(f"Could not connect to RPC URL: {settings.rpc_url}")
        logger.info(f"Connected to blockchain at {settings.rpc_url}")

        account = None
        if settings.private_key:
            try:
                account = Account.from_key(settings.private_key)
            except ValueError as e:
                raise ConfigurationError(f"Invalid PRIVATE_KEY: {e}") from e
            logger.info(f"Using signer account: {account.address}")
        return cls(w3, account)

    async def default_sender(self) -> Optional[str]:
        """Local key address, or the first account managed by the node"""
        if self.account is not None:
            return self.account.address
        accounts = await self.w3.eth.accounts
        return accounts[0] if accounts else None

    async def signer_address(self) -> str:
        sender = await self.default_sender()
        if sender is None:
            raise ConfigurationError("No signer available: set PRIVATE_KEY")
        return sender

    async def signers(self) -> List[str]:
        """All accounts managed by the node, local key first"""
        accounts = list(await self.w3.eth.accounts)
        if self.account is not None:
            accounts = [self.account.address] + [a for a in accounts if a != self.account.address]
        return accounts

    async def call(self, to: str, data: str, gas_limit: Optional[int] = None) -> bytes:
        """Execute a read-only call and return raw return data; no signer is needed"""
        tx: Dict[str, Any] = {'to': to, 'data': data}
        sender = await self.default_sender()
        if sender is not None:
            tx['from'] = sender
        if gas_limit:
            tx['gas'] = gas_limit
        try:
            return bytes(await self.w3.eth.call(tx))
        except ContractLogicError as e:
            raise RevertError(e.message or str(e)) from e

    async def send(self, to: str, data: str, gas_limit: Optional[int] = None) -> str:
        """Sign and send a transaction, returning its hash"""
        sender = await self.signer_address()
        tx: Dict[str, Any] = {'from': sender, 'to': to, 'data': data}
        try:
            tx['gas'] = gas_limit or await self.w3.eth.estimate_gas(tx)
            if self.account is None:
                tx_hash = await self.w3.eth.send_transaction(tx)
            else:
                tx['nonce'] = await self.w3.eth.get_transaction_count(sender, 'pending')
                tx['chainId'] = await self.w3.eth.chain_id
                tx['gasPrice'] = await self.w3.eth.gas_price
                signed = self.account.sign_transaction(tx)
                tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except ContractLogicError as e:
            raise RevertError(e.message or str(e)) from e

        tx_hex = AsyncWeb3.to_hex(tx_hash)
        logger.info(f"Transaction sent: {tx_hex}")
        return tx_hex

    async def wait(self, tx_hash: str, timeout: float = RECEIPT_TIMEOUT) -> Dict[str, Any]:
        """Wait for one confirmation; a failed transaction raises RevertError"""
        receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        if receipt['status'] != 1:
            raise RevertError(f"Transaction reverted: {tx_hash}", tx_hash)
        return dict(receipt)

    async def read(self, contract: ContractHandle, fn_name: str, *args: Any) -> Any:
        """Call a view function with typed arguments"""
        data = contract.encode(fn_name, args)
        return contract.decode(fn_name, await self.call(contract.address, data))

    async def write(self, contract: ContractHandle, fn_name: str, *args: Any,
                    gas_limit: Optional[int] = None) -> Dict[str, Any]:
        """Send a transaction with typed arguments and wait for it"""
        data = contract.encode(fn_name, args)
        return await self.wait(await self.send(contract.address, data, gas_limit))

    async def rpc(self, method: str, params: Optional[list] = None) -> Any:
        """Raw JSON-RPC request, for node specific methods"""
        response = await self.w3.provider.make_request(RPCEndpoint(method), params or [])
        if response.get('error'):
            raise CommandError(f"RPC {method} failed: {response['error']}")
        return response.get('result')
