#!/usr/bin/env python3
"""
Contract Invoker Module - Python Implementation
Descriptor-driven call dispatch on top of one chain client
"""

from typing import Any, Optional, Sequence

from .bridge_lib import BridgeLogger, ChainRole
from .chain_client import ChainClient
from .interface import ContractInterfaceDescriptor


class ContractInvoker:
    """Single call-shape-validated entry point for one chain"""

    def __init__(self, client: ChainClient):
        self.client = client

    @property
    def chain_role(self) -> ChainRole:
        return self.client.role

    @staticmethod
    def supports_function(descriptor: ContractInterfaceDescriptor, function_name: str) -> bool:
        return descriptor.supports_function(function_name)

    async def invoke(self, descriptor: ContractInterfaceDescriptor, address: str,
                     function_name: str, args: Sequence[Any],
                     mutating: Optional[bool] = None) -> Any:
        """Route to a read call or a transaction.

        Validation happens here, before the client is touched, so a bad call
        shape never costs a round-trip. When `mutating` is None it is taken
        from the fragment's declared mutability.
        """
        fragment = descriptor.validate_call(function_name, args)
        if mutating is None:
            mutating = not fragment.read_only

        if mutating:
            BridgeLogger.debug(f"[{self.chain_role.name}] invoke {fragment.signature} as transaction")
            return await self.client.send_transaction(address, descriptor, function_name, args)

        BridgeLogger.debug(f"[{self.chain_role.name}] invoke {fragment.signature} as call")
        return await self.client.read_call(address, descriptor, function_name, args)


__all__ = ['ContractInvoker']
