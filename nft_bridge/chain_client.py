#!/usr/bin/env python3
"""
Chain Client Module - Python Implementation
One client per ledger: read calls, signed transactions, code retrieval and deployment
"""

import asyncio
from collections import OrderedDict
from typing import Any, Dict, Optional, Sequence, Tuple, Union
from dataclasses import dataclass

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from web3 import AsyncWeb3
from web3.providers import AsyncHTTPProvider
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from .bridge_lib import BridgeLogger, BridgeUtils, ChainEndpoint, ChainRole
from .errors import (
    AddressNotAContract, ConstructorArgumentMismatch, DeploymentReverted,
    GasEstimationFailed, LedgerError, RemoteCallReverted
)
from .interface import ContractInterfaceDescriptor, coerce_arguments

DEFAULT_RPC_TIMEOUT = 30.0
DEFAULT_RECEIPT_TIMEOUT = 120.0
GAS_ESTIMATION_BUFFER = 1.2
CONTRACT_CACHE_SIZE = 128


@dataclass(frozen=True)
class TransactionHandle:
    """A transaction accepted by the node (not necessarily included yet)"""
    tx_hash: str
    chain_role: ChainRole
    function_name: str
    nonce: int


class ChainClient:
    """Read connection plus signing identity for one ledger.

    Submissions (nonce read, gas estimate, sign, broadcast) are serialized by a
    per-client lock so one signing identity never has two transactions racing
    for the same nonce. Read calls never take the lock.
    """

    contract_cache_size = CONTRACT_CACHE_SIZE

    def __init__(self, endpoint: ChainEndpoint, web3: Optional[AsyncWeb3] = None,
                 rpc_timeout: float = DEFAULT_RPC_TIMEOUT,
                 receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
                 gas_buffer: float = GAS_ESTIMATION_BUFFER):
        self.endpoint = endpoint
        self.role = endpoint.role
        self.receipt_timeout = receipt_timeout
        self.gas_buffer = gas_buffer
        self.w3 = web3 or AsyncWeb3(AsyncHTTPProvider(
            endpoint.rpc_url,
            request_kwargs={"timeout": rpc_timeout}
        ))
        # Never let the key surface in a traceback
        try:
            self.account: LocalAccount = Account.from_key(endpoint.private_key)
        except Exception:
            raise ValueError("Invalid private key format (key not shown for security)") from None
        self._submission_lock = asyncio.Lock()
        self._chain_id: Optional[int] = None
        self._contracts: "OrderedDict[Tuple[str, int], Any]" = OrderedDict()

    @property
    def address(self) -> str:
        return self.account.address

    @property
    def chain_name(self) -> str:
        return self.role.name

    # ============================================================================
    # READS
    # ============================================================================

    async def read_call(self, address: str, descriptor: ContractInterfaceDescriptor,
                        function_name: str, args: Sequence[Any]) -> Any:
        """Execute a state-non-mutating call"""
        fragment = descriptor.validate_call(function_name, args)
        contract_fn = self._contract_function(address, descriptor, fragment.name,
                                              coerce_arguments(fragment.input_types, args))

        BridgeLogger.debug(f"[{self.chain_name}] call {fragment.signature} on {address}")
        try:
            return await contract_fn.call()
        except ContractLogicError as e:
            raise RemoteCallReverted(f"{fragment.signature} reverted on {address}: {e}", self.chain_name) from e
        except (Web3Exception, ValueError) as e:
            raise RemoteCallReverted(f"{fragment.signature} failed on {address}: {e}", self.chain_name) from e

    async def get_code(self, address: str) -> bytes:
        """Return deployed bytecode, failing if the address holds none"""
        code = await self.w3.eth.get_code(to_checksum_address(address))
        if not code:
            raise AddressNotAContract(f"No contract code at {address}", self.chain_name)
        return bytes(code)

    async def get_block_number(self) -> int:
        return await self.w3.eth.block_number

    # ============================================================================
    # SUBMISSIONS
    # ============================================================================

    async def send_transaction(self, address: str, descriptor: ContractInterfaceDescriptor,
                               function_name: str, args: Sequence[Any]) -> TransactionHandle:
        """Estimate gas, sign and broadcast a state-changing call.

        Returns once the node accepts the transaction; use wait_for_receipt
        to await inclusion.
        """
        fragment = descriptor.validate_call(function_name, args)
        contract_fn = self._contract_function(address, descriptor, fragment.name,
                                              coerce_arguments(fragment.input_types, args))

        async with self._submission_lock:
            nonce = await self.w3.eth.get_transaction_count(self.address, "pending")
            gas = await self._estimate_gas(contract_fn, fragment.signature, GasEstimationFailed)
            tx_params = await self._tx_params(nonce, gas)

            BridgeLogger.debug(f"[{self.chain_name}] send {fragment.signature} to {address} "
                               f"(nonce={nonce}, gas={gas})")
            try:
                tx = await contract_fn.build_transaction(tx_params)
                tx_hash = await self._sign_and_send(tx)
            except (Web3Exception, ValueError) as e:
                raise RemoteCallReverted(f"{fragment.signature} rejected on {address}: {e}", self.chain_name) from e

        BridgeLogger.debug(f"[{self.chain_name}] {fragment.name} accepted: {tx_hash}")
        return TransactionHandle(tx_hash=tx_hash, chain_role=self.role,
                                 function_name=fragment.name, nonce=nonce)

    async def wait_for_receipt(self, handle: Union[TransactionHandle, str],
                               timeout: Optional[float] = None) -> Any:
        """Wait until the transaction is included; a failed status raises RemoteCallReverted"""
        tx_hash = handle.tx_hash if isinstance(handle, TransactionHandle) else handle
        receipt = await self._await_receipt(tx_hash, timeout)
        if receipt["status"] != 1:
            raise RemoteCallReverted(f"Transaction {tx_hash} reverted", self.chain_name)
        return receipt

    async def deploy_contract(self, descriptor: ContractInterfaceDescriptor,
                              bytecode: Union[str, bytes],
                              constructor_args: Sequence[Any]) -> str:
        """Deploy bytecode and return the new contract address"""
        expected = descriptor.constructor_arity()
        if len(constructor_args) != expected:
            raise ConstructorArgumentMismatch(expected, len(constructor_args))
        if not bytecode:
            raise DeploymentReverted("No bytecode to deploy", self.chain_name)

        input_types = descriptor.constructor.input_types if descriptor.constructor else ()
        values = coerce_arguments(input_types, constructor_args)
        factory = self.w3.eth.contract(abi=descriptor.to_abi(), bytecode=BridgeUtils.to_hex(bytecode))
        constructor = factory.constructor(*values)

        async with self._submission_lock:
            nonce = await self.w3.eth.get_transaction_count(self.address, "pending")
            gas = await self._estimate_gas(constructor, "constructor", GasEstimationFailed)
            tx_params = await self._tx_params(nonce, gas)

            BridgeLogger.debug(f"[{self.chain_name}] deploy contract (nonce={nonce}, gas={gas})")
            try:
                tx = await constructor.build_transaction(tx_params)
                tx_hash = await self._sign_and_send(tx)
            except (Web3Exception, ValueError) as e:
                raise DeploymentReverted(f"Deployment rejected: {e}", self.chain_name) from e

        BridgeLogger.info(f"[{self.chain_name}] Deployment transaction submitted: {tx_hash}")
        try:
            receipt = await self._await_receipt(tx_hash, None)
        except LedgerError as e:
            raise DeploymentReverted(str(e), self.chain_name) from e

        contract_address = receipt.get("contractAddress")
        if receipt["status"] != 1 or not contract_address:
            raise DeploymentReverted(f"Deployment transaction {tx_hash} failed", self.chain_name)
        return to_checksum_address(contract_address)

    # ============================================================================
    # HELPERS
    # ============================================================================

    def _contract_function(self, address: str, descriptor: ContractInterfaceDescriptor,
                           function_name: str, values: Sequence[Any]):
        checksum = to_checksum_address(address)
        key = (checksum, hash(descriptor))
        contract = self._contracts.get(key)
        if contract is None:
            contract = self.w3.eth.contract(address=checksum, abi=descriptor.to_abi())
            self._contracts[key] = contract
            while len(self._contracts) > self.contract_cache_size:
                self._contracts.popitem(last=False)
        else:
            self._contracts.move_to_end(key)
        return contract.functions[function_name](*values)

    async def _estimate_gas(self, buildable, label: str, error_cls) -> int:
        try:
            estimate = await buildable.estimate_gas({"from": self.address})
        except (Web3Exception, ValueError) as e:
            raise error_cls(f"Gas estimation failed for {label}: {e}", self.chain_name) from e
        return int(estimate * self.gas_buffer)

    async def _tx_params(self, nonce: int, gas: int) -> Dict[str, Any]:
        if self._chain_id is None:
            self._chain_id = await self.w3.eth.chain_id
        return {
            "from": self.address,
            "nonce": nonce,
            "gas": gas,
            "chainId": self._chain_id,
        }

    async def _sign_and_send(self, tx: Dict[str, Any]) -> str:
        signed = self.account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return BridgeUtils.to_hex(tx_hash)

    async def _await_receipt(self, tx_hash: str, timeout: Optional[float]):
        try:
            return await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout or self.receipt_timeout
            )
        except TimeExhausted as e:
            raise LedgerError(f"Transaction {tx_hash} not mined in time", self.chain_name) from e

    def __repr__(self) -> str:
        return f"ChainClient(role={self.chain_name}, rpc_url={self.endpoint.rpc_url!r}, account={self.address})"


__all__ = ['ChainClient', 'TransactionHandle', 'DEFAULT_RPC_TIMEOUT', 'DEFAULT_RECEIPT_TIMEOUT']
