#!/usr/bin/env python3
"""
Bridge Orchestrator Module - Python Implementation
Login/sync, metadata push-back, deploy-and-register and generic invocation flows

Nothing here is persisted between requests: every flow re-reads both ledgers
and derives the token state from them, so each flow can be replayed safely.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from dataclasses import dataclass, field

from .bridge_lib import BridgeLogger, BridgeUtils, ChainRole
from .chain_client import ChainClient, TransactionHandle
from .code_source import CodeSource
from .errors import (
    BindingNotFound, CodeSourceUnavailable, GasEstimationFailed, InvalidArgument,
    LedgerError, RemoteCallReverted
)
from .invoker import ContractInvoker
from .nft import NftGateway
from .registry import ContractBinding, ContractRegistry


class SyncState(Enum):
    """Per-token bridge states"""
    OWNERSHIP_REJECTED = "ownership_rejected"
    ALREADY_MINTED = "already_minted"
    MINTED = "minted"
    URI_SET = "uri_set"


@dataclass(frozen=True)
class TokenIdentity:
    """One token, identified by its L1 contract"""
    contract_address: str
    token_id: int

    def __post_init__(self):
        if isinstance(self.token_id, bool) or not isinstance(self.token_id, int) or self.token_id < 0:
            raise InvalidArgument("uint256", self.token_id)

    @property
    def key(self) -> Tuple[str, int]:
        return self.contract_address.lower(), self.token_id


@dataclass(frozen=True)
class OwnershipClaim:
    token: TokenIdentity
    claimed_owner: str


@dataclass(frozen=True)
class SyncResult:
    owner_address: str
    l1_address: str
    l2_address: str
    token_id: int
    minted_now: bool
    token_uri: str = ""
    state: SyncState = SyncState.ALREADY_MINTED
    tx_hashes: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        base_uri, token_part = BridgeUtils.split_token_uri(self.token_uri)
        return {
            "ownerAddress": self.owner_address,
            "l1NftAddress": self.l1_address,
            "l2NftAddress": self.l2_address,
            "tokenId": self.token_id,
            "mintedNow": self.minted_now,
            "tokenUri": self.token_uri,
            "baseUri": base_uri,
            "tokenPart": token_part,
            "txHashes": list(self.tx_hashes),
        }


@dataclass(frozen=True)
class OwnershipRejected:
    """Claim did not match the L1 owner (a normal outcome, not an error)"""
    claimed_owner: str
    actual_owner: str
    l1_address: str
    token_id: int

    @property
    def state(self) -> SyncState:
        return SyncState.OWNERSHIP_REJECTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "Not the owner of the NFT",
            "ownerAddress": self.claimed_owner,
            "l1NftAddress": self.l1_address,
            "tokenId": self.token_id,
        }


@dataclass(frozen=True)
class MetadataPushResult:
    l1_address: str
    l2_address: str
    token_id: int
    token_uri: str
    tx_hash: str

    def to_dict(self) -> Dict[str, Any]:
        base_uri, token_part = BridgeUtils.split_token_uri(self.token_uri)
        return {
            "l1NftAddress": self.l1_address,
            "l2NftAddress": self.l2_address,
            "tokenId": self.token_id,
            "tokenUri": self.token_uri,
            "baseUri": base_uri,
            "tokenPart": token_part,
            "txHash": self.tx_hash,
        }


@dataclass(frozen=True)
class InvokeResult:
    chain_role: ChainRole
    contract_address: str
    function_name: str
    mutating: bool
    result: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"message": "Successfull", "result": _jsonable(self.result)}


@dataclass(frozen=True)
class UnsupportedFunction:
    """Function absent from the bound interface (a normal outcome, not an error)"""
    chain_role: ChainRole
    contract_address: str
    function_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"message": "Unsupported function", "functionName": self.function_name}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return BridgeUtils.to_hex(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class SyncJournal:
    """Last completed saga step per token.

    mint and setTokenURI are two independent submissions; a token whose last
    step is MINTED never had its URI written and is picked up by reconcile.
    """
    steps: Dict[Tuple[str, int], Tuple[TokenIdentity, SyncState, Optional[str]]] = field(default_factory=dict)

    def record(self, token: TokenIdentity, state: SyncState, tx_hash: Optional[str] = None):
        self.steps[token.key] = (token, state, tx_hash)
        BridgeLogger.info(f"Journal: token {token.token_id} of {token.contract_address} → {state.value}"
                          + (f" ({tx_hash})" if tx_hash else ""))

    def last_step(self, token: TokenIdentity) -> Optional[SyncState]:
        entry = self.steps.get(token.key)
        return entry[1] if entry else None

    def pending_uri(self) -> List[TokenIdentity]:
        return [token for token, state, _ in self.steps.values() if state is SyncState.MINTED]


class TransferWatchRegistrar(ABC):
    """Event-ingestion collaborator notified when a contract gets bound"""

    @abstractmethod
    async def register(self, binding: ContractBinding) -> None:
        ...


class BridgeOrchestrator:
    """L1 → L2 NFT bridge flows"""

    def __init__(self, l1_client: ChainClient, l2_client: ChainClient, registry: ContractRegistry,
                 code_source: Optional[CodeSource] = None, journal: Optional[SyncJournal] = None,
                 watch_registrar: Optional[TransferWatchRegistrar] = None,
                 wait_for_receipts: bool = False):
        self.clients = {ChainRole.L1: l1_client, ChainRole.L2: l2_client}
        self.invokers = {role: ContractInvoker(client) for role, client in self.clients.items()}
        self.registry = registry
        self.code_source = code_source
        self.journal = journal or SyncJournal()
        self.watch_registrar = watch_registrar
        self.wait_for_receipts = wait_for_receipts

    # ============================================================================
    # FLOW A: LOGIN AND SYNC
    # ============================================================================

    async def login_and_sync(self, claimed_owner: str, l1_nft_address: str,
                             token_id: int) -> Union[SyncResult, OwnershipRejected]:
        """Verify an L1 ownership claim and mirror the token on L2"""
        BridgeLogger.step(f"Login and sync: token {token_id} of {l1_nft_address} for {claimed_owner}")

        binding = await self._binding(ChainRole.L1, l1_nft_address)
        claim = OwnershipClaim(TokenIdentity(binding.l1_address, token_id), claimed_owner)
        l1 = self._gateway(ChainRole.L1, binding)

        # Ownership gate: nothing touches L2 until the claim is confirmed
        actual_owner = await l1.owner_of(token_id)
        if not BridgeUtils.same_address(actual_owner, claim.claimed_owner):
            BridgeLogger.warning(f"Ownership rejected: {claimed_owner} is not the owner of token {token_id}")
            return OwnershipRejected(claimed_owner, actual_owner, binding.l1_address, token_id)
        BridgeLogger.success(f"Ownership confirmed for token {token_id}")

        token_uri = await l1.get_nft_metadata(token_id)
        BridgeLogger.info(f"L1 token URI: {token_uri}")

        l2 = self._gateway(ChainRole.L2, binding)
        if await self._is_minted(l2, token_id):
            BridgeLogger.info(f"Token {token_id} already minted on L2 at {binding.l2_address}")
            return SyncResult(claimed_owner, binding.l1_address, binding.l2_address, token_id,
                              minted_now=False, token_uri=token_uri, state=SyncState.ALREADY_MINTED)

        try:
            mint_handle = await l2.mint(claimed_owner, token_id)
            # setTokenURI only estimates against a mined token
            await l2.wait(mint_handle)
        except (RemoteCallReverted, GasEstimationFailed) as e:
            # A concurrent sync may have minted between our read and our submission
            if await self._is_minted(l2, token_id):
                BridgeLogger.warning(f"Mint of token {token_id} lost a race, token is already on L2: {e}")
                return SyncResult(claimed_owner, binding.l1_address, binding.l2_address, token_id,
                                  minted_now=False, token_uri=token_uri, state=SyncState.ALREADY_MINTED)
            raise
        self.journal.record(claim.token, SyncState.MINTED, mint_handle.tx_hash)

        try:
            uri_handle = await l2.set_token_uri(token_id, token_uri)
            await self._confirm(l2, uri_handle)
        except LedgerError:
            BridgeLogger.error(f"Token {token_id} minted but URI not set; run reconcile to finish")
            raise
        self.journal.record(claim.token, SyncState.URI_SET, uri_handle.tx_hash)

        BridgeLogger.success(f"Token {token_id} mirrored to {binding.l2_address}")
        return SyncResult(claimed_owner, binding.l1_address, binding.l2_address, token_id,
                          minted_now=True, token_uri=token_uri, state=SyncState.URI_SET,
                          tx_hashes=(mint_handle.tx_hash, uri_handle.tx_hash))

    # ============================================================================
    # FLOW B: METADATA PUSH-BACK
    # ============================================================================

    async def update_l1_from_l2(self, l2_nft_address: str, token_id: int) -> MetadataPushResult:
        """Copy the L2 token URI back to the bound L1 contract"""
        TokenIdentity(l2_nft_address, token_id)  # rejects negative ids
        BridgeLogger.step(f"Pushing metadata of token {token_id} from L2 {l2_nft_address} to L1")

        binding = await self._binding(ChainRole.L2, l2_nft_address)
        token_uri = await self._gateway(ChainRole.L2, binding).get_nft_metadata(token_id)

        l1 = self._gateway(ChainRole.L1, binding)
        handle = await l1.set_token_uri(token_id, token_uri)
        await self._confirm(l1, handle)

        BridgeLogger.success(f"L1 token {token_id} URI updated: {handle.tx_hash}")
        return MetadataPushResult(binding.l1_address, binding.l2_address, token_id, token_uri, handle.tx_hash)

    # ============================================================================
    # FLOW C: DEPLOY AND REGISTER
    # ============================================================================

    async def deploy_and_register(self, l1_nft_address: str,
                                  constructor_args: Sequence[Any]) -> ContractBinding:
        """Deploy an L1 contract's bytecode to L2 and bind the pair (idempotent)"""
        BridgeLogger.step(f"Deploy and register {l1_nft_address}")

        existing = await self.registry.find_by_l1(l1_nft_address)
        if existing:
            BridgeLogger.info(f"Binding already registered: {existing.l1_address} → {existing.l2_address}")
            return existing

        if self.code_source is None:
            raise CodeSourceUnavailable("No code source configured for deployments")
        descriptor, bytecode = await self.code_source.fetch(l1_nft_address)

        l2_address = await self.clients[ChainRole.L2].deploy_contract(descriptor, bytecode, list(constructor_args))
        BridgeLogger.success(f"Mirror contract deployed on L2: {l2_address}")

        binding = await self.registry.create(l1_nft_address, l2_address, descriptor, bytecode)
        if not BridgeUtils.same_address(binding.l2_address, l2_address):
            BridgeLogger.warning(f"{l1_nft_address} was registered concurrently; "
                                 f"keeping {binding.l2_address}, {l2_address} is unused")
            return binding

        if self.watch_registrar is not None:
            await self.watch_registrar.register(binding)
        return binding

    # ============================================================================
    # FLOW D: GENERIC INVOCATION
    # ============================================================================

    async def generic_invoke(self, chain_role: Union[ChainRole, int, str], contract_address: str,
                             function_name: str, args: Sequence[Any]) -> Union[InvokeResult, UnsupportedFunction]:
        """Call any function declared by a bound contract's interface"""
        role = ChainRole.parse(chain_role)
        binding = await self._binding(role, contract_address)
        descriptor = binding.descriptor

        if not ContractInvoker.supports_function(descriptor, function_name):
            BridgeLogger.warning(f"Unsupported function {function_name} on {role.name} {contract_address}")
            return UnsupportedFunction(role, contract_address, function_name)

        fragment = descriptor.function(function_name)
        address = binding.l1_address if role is ChainRole.L1 else binding.l2_address
        result = await self.invokers[role].invoke(descriptor, address, function_name, list(args),
                                                  mutating=not fragment.read_only)
        if isinstance(result, TransactionHandle):
            if self.wait_for_receipts:
                await self.clients[role].wait_for_receipt(result)
            result = result.tx_hash
        return InvokeResult(role, address, function_name, not fragment.read_only, result)

    # ============================================================================
    # RECONCILIATION
    # ============================================================================

    async def reconcile(self, l1_nft_address: str, token_id: int) -> Optional[MetadataPushResult]:
        """Finish a mirror whose URI step never landed; None when already consistent"""
        BridgeLogger.step(f"Reconciling token {token_id} of {l1_nft_address}")
        binding = await self._binding(ChainRole.L1, l1_nft_address)
        token = TokenIdentity(binding.l1_address, token_id)

        l2 = self._gateway(ChainRole.L2, binding)
        if not await self._is_minted(l2, token_id):
            BridgeLogger.info(f"Token {token_id} not minted on L2, nothing to reconcile")
            return None

        l1_uri = await self._gateway(ChainRole.L1, binding).get_nft_metadata(token_id)
        try:
            l2_uri = await l2.get_nft_metadata(token_id)
        except RemoteCallReverted:
            l2_uri = None

        if l2_uri == l1_uri:
            BridgeLogger.success(f"Token {token_id} already consistent")
            if self.journal.last_step(token) is SyncState.MINTED:
                self.journal.record(token, SyncState.URI_SET)
            return None

        handle = await l2.set_token_uri(token_id, l1_uri)
        await self._confirm(l2, handle)
        self.journal.record(token, SyncState.URI_SET, handle.tx_hash)
        return MetadataPushResult(binding.l1_address, binding.l2_address, token_id, l1_uri, handle.tx_hash)

    async def reconcile_pending(self) -> List[MetadataPushResult]:
        """Reconcile every token the journal saw minted without a URI"""
        results = []
        for token in self.journal.pending_uri():
            result = await self.reconcile(token.contract_address, token.token_id)
            if result:
                results.append(result)
        return results

    # ============================================================================
    # HELPERS
    # ============================================================================

    async def _binding(self, role: ChainRole, address: str) -> ContractBinding:
        if role is ChainRole.L1:
            binding = await self.registry.find_by_l1(address)
        else:
            binding = await self.registry.find_by_l2(address)
        if binding is None:
            raise BindingNotFound(address, role.name)
        return binding

    def _gateway(self, role: ChainRole, binding: ContractBinding) -> NftGateway:
        address = binding.l1_address if role is ChainRole.L1 else binding.l2_address
        return NftGateway(self.invokers[role], binding.descriptor, address)

    @staticmethod
    async def _is_minted(gateway: NftGateway, token_id: int) -> bool:
        # OpenZeppelin ERC-721 reverts ownerOf for nonexistent tokens
        try:
            return await gateway.is_minted(token_id)
        except RemoteCallReverted:
            return False

    async def _confirm(self, gateway: NftGateway, handle: TransactionHandle):
        if self.wait_for_receipts:
            await gateway.wait(handle)


__all__ = [
    'SyncState', 'TokenIdentity', 'OwnershipClaim', 'SyncResult', 'OwnershipRejected',
    'MetadataPushResult', 'InvokeResult', 'UnsupportedFunction', 'SyncJournal',
    'TransferWatchRegistrar', 'BridgeOrchestrator'
]
