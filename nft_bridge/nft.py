#!/usr/bin/env python3
"""
NFT Module - Python Implementation
ERC-721 operations on one bound contract, issued through the contract invoker
"""

from typing import Optional

from .bridge_lib import BridgeLogger, BridgeUtils
from .chain_client import TransactionHandle
from .interface import ContractInterfaceDescriptor
from .invoker import ContractInvoker

OWNER_OF = "ownerOf"
TOKEN_URI = "tokenURI"
MINT = "mint"
SET_TOKEN_URI = "setTokenURI"
GET_BASE_URI = "getBaseURI"
SET_BASE_URI = "setBaseURI"


class NftGateway:
    """NFT contract on one chain"""

    def __init__(self, invoker: ContractInvoker, descriptor: ContractInterfaceDescriptor, address: str):
        self.invoker = invoker
        self.descriptor = descriptor
        self.address = address

    @property
    def chain_name(self) -> str:
        return self.invoker.chain_role.name

    async def owner_of(self, token_id: int) -> str:
        return await self.invoker.invoke(self.descriptor, self.address, OWNER_OF, [token_id], mutating=False)

    async def is_owner(self, owner_address: str, token_id: int) -> bool:
        """Case-insensitive ownership check"""
        owner = await self.owner_of(token_id)
        return BridgeUtils.same_address(owner, owner_address)

    async def is_minted(self, token_id: int) -> bool:
        owner = await self.owner_of(token_id)
        return not BridgeUtils.is_zero_address(owner)

    async def get_nft_metadata(self, token_id: int) -> str:
        """Token URI of `token_id`"""
        return await self.invoker.invoke(self.descriptor, self.address, TOKEN_URI, [token_id], mutating=False)

    async def get_base_uri(self) -> str:
        return await self.invoker.invoke(self.descriptor, self.address, GET_BASE_URI, [], mutating=False)

    async def mint(self, owner_address: str, token_id: int) -> TransactionHandle:
        BridgeLogger.info(f"[{self.chain_name}] Minting token {token_id} to {owner_address} on {self.address}")
        return await self.invoker.invoke(self.descriptor, self.address, MINT,
                                         [owner_address, token_id], mutating=True)

    async def set_token_uri(self, token_id: int, token_uri: str) -> TransactionHandle:
        BridgeLogger.info(f"[{self.chain_name}] Setting token {token_id} URI on {self.address}")
        return await self.invoker.invoke(self.descriptor, self.address, SET_TOKEN_URI,
                                         [token_id, token_uri], mutating=True)

    async def set_base_uri(self, base_uri: str) -> TransactionHandle:
        BridgeLogger.info(f"[{self.chain_name}] Setting base URI on {self.address}")
        return await self.invoker.invoke(self.descriptor, self.address, SET_BASE_URI,
                                         [base_uri], mutating=True)

    async def wait(self, handle: TransactionHandle, timeout: Optional[float] = None):
        return await self.invoker.client.wait_for_receipt(handle, timeout)


__all__ = ['NftGateway', 'OWNER_OF', 'TOKEN_URI', 'MINT', 'SET_TOKEN_URI', 'GET_BASE_URI', 'SET_BASE_URI']
