"""
Shared fixtures: ABI samples, an in-process ledger fake and a stub AsyncWeb3
"""

import asyncio
import hashlib
from typing import Any, Dict, List, Optional, Tuple

import pytest
from web3.exceptions import ContractLogicError

from nft_bridge import (
    ZERO_ADDRESS, ChainClient, ChainEndpoint, ChainRole, ContractBinding,
    ContractInterfaceDescriptor, InMemoryContractRegistry, RemoteCallReverted,
    TransactionHandle
)

# Well-known throwaway key from the eth-account documentation
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"

L1_NFT = "0xAAAaaAaAaaAaaaAaAaaaAAaAaAaaaAaaaAAaaAAA".lower()
L2_NFT = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
OWNER = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
TOKEN_URI = "ipfs://bafy-collection/5.json"

ERC721_ABI: List[Dict[str, Any]] = [
    {"type": "constructor", "stateMutability": "nonpayable",
     "inputs": [{"name": "name_", "type": "string"}, {"name": "symbol_", "type": "string"}]},
    {"type": "function", "name": "ownerOf", "stateMutability": "view",
     "inputs": [{"name": "tokenId", "type": "uint256"}],
     "outputs": [{"name": "", "type": "address"}]},
    {"type": "function", "name": "tokenURI", "stateMutability": "view",
     "inputs": [{"name": "tokenId", "type": "uint256"}],
     "outputs": [{"name": "", "type": "string"}]},
    {"type": "function", "name": "getBaseURI", "stateMutability": "view",
     "inputs": [], "outputs": [{"name": "", "type": "string"}]},
    {"type": "function", "name": "mint", "stateMutability": "nonpayable",
     "inputs": [{"name": "to", "type": "address"}, {"name": "tokenId", "type": "uint256"}],
     "outputs": []},
    {"type": "function", "name": "setTokenURI", "stateMutability": "nonpayable",
     "inputs": [{"name": "tokenId", "type": "uint256"}, {"name": "uri", "type": "string"}],
     "outputs": []},
    {"type": "function", "name": "setBaseURI", "stateMutability": "nonpayable",
     "inputs": [{"name": "baseURI", "type": "string"}], "outputs": []},
    {"type": "event", "name": "Transfer", "anonymous": False,
     "inputs": [{"name": "from", "type": "address", "indexed": True},
                {"name": "to", "type": "address", "indexed": True},
                {"name": "tokenId", "type": "uint256", "indexed": True}]},
]


def run(coro):
    return asyncio.run(coro)


# ============================================================================
# LEDGER FAKE (stands in for a ChainClient)
# ============================================================================

class FakeChainClient:
    """In-process ERC-721 ledger that records every call it receives"""

    def __init__(self, role: ChainRole, revert_unminted: bool = False):
        self.role = role
        self.revert_unminted = revert_unminted
        self.owners: Dict[Tuple[str, int], str] = {}
        self.uris: Dict[Tuple[str, int], str] = {}
        self.calls: List[Tuple[str, str, str, tuple]] = []
        self.deployments: List[Tuple[Any, str, tuple]] = []
        self.receipts_awaited: List[str] = []
        self.fail_next: Dict[str, Exception] = {}
        self.before_submit = None
        self._nonce = 0

    # -- seeding -------------------------------------------------------
    def set_owner(self, address: str, token_id: int, owner: str):
        self.owners[(address.lower(), token_id)] = owner

    def set_uri(self, address: str, token_id: int, uri: str):
        self.uris[(address.lower(), token_id)] = uri

    # -- inspection ----------------------------------------------------
    def names(self, kind: Optional[str] = None) -> List[str]:
        return [name for k, _, name, _ in self.calls if kind is None or k == kind]

    @property
    def submissions(self) -> List[str]:
        return self.names("send")

    # -- ChainClient surface -------------------------------------------
    async def read_call(self, address, descriptor, function_name, args):
        descriptor.validate_call(function_name, args)
        self.calls.append(("call", address.lower(), function_name, tuple(args)))
        key = (address.lower(), int(args[0])) if args else None
        if function_name == "ownerOf":
            if key not in self.owners and self.revert_unminted:
                raise RemoteCallReverted("ERC721: invalid token ID", self.role.name)
            return self.owners.get(key, ZERO_ADDRESS)
        if function_name == "tokenURI":
            return self.uris.get(key, "")
        if function_name == "getBaseURI":
            return "ipfs://bafy-collection"
        return None

    async def send_transaction(self, address, descriptor, function_name, args):
        descriptor.validate_call(function_name, args)
        self.calls.append(("send", address.lower(), function_name, tuple(args)))
        if self.before_submit:
            self.before_submit(function_name)
        if function_name in self.fail_next:
            raise self.fail_next.pop(function_name)
        if function_name == "mint":
            key = (address.lower(), int(args[1]))
            if key in self.owners and self.owners[key] != ZERO_ADDRESS:
                raise RemoteCallReverted("ERC721: token already minted", self.role.name)
            self.owners[key] = args[0]
        elif function_name == "setTokenURI":
            self.uris[(address.lower(), int(args[0]))] = args[1]
        nonce = self._nonce
        self._nonce += 1
        tx_hash = "0x" + hashlib.sha256(f"{self.role.name}:{nonce}".encode()).hexdigest()
        return TransactionHandle(tx_hash=tx_hash, chain_role=self.role,
                                 function_name=function_name, nonce=nonce)

    async def wait_for_receipt(self, handle, timeout=None):
        self.receipts_awaited.append(handle.tx_hash)
        return {"status": 1}

    async def deploy_contract(self, descriptor, bytecode, constructor_args):
        address = "0x" + f"{len(self.deployments) + 1:040x}"
        self.deployments.append((descriptor, bytecode, tuple(constructor_args)))
        return address

    async def get_code(self, address):
        return bytes.fromhex("6080604052")


class TripwireWeb3:
    """AsyncWeb3 replacement that fails the test on any use"""

    def __getattr__(self, name):
        raise AssertionError(f"RPC issued: w3.{name} was accessed")


# ============================================================================
# STUB AsyncWeb3 (exercises the real ChainClient without a node)
# ============================================================================

class _Awaitable:
    def __init__(self, value):
        self.value = value

    def __await__(self):
        if False:
            yield
        return self.value


class StubContractCall:
    def __init__(self, stub: 'StubWeb3', address: Optional[str], name: str, args: tuple):
        self.stub = stub
        self.address = address
        self.name = name
        self.args = args

    async def call(self):
        self.stub.log.append(("call", self.name, self.args))
        if self.name in self.stub.reverts:
            raise ContractLogicError("execution reverted")
        return self.stub.call_results.get(self.name)

    async def estimate_gas(self, transaction=None):
        self.stub.log.append(("estimate", self.name))
        await asyncio.sleep(0)
        if self.stub.fail_estimate:
            raise ContractLogicError("execution reverted: cannot estimate")
        return 100_000

    async def build_transaction(self, transaction=None):
        tx = {
            "value": 0,
            "gas": transaction["gas"],
            "gasPrice": 1_000_000_000,
            "nonce": transaction["nonce"],
            "chainId": transaction["chainId"],
            "data": "0x",
        }
        if self.address:
            tx["to"] = self.address
        return tx


class StubContract:
    def __init__(self, stub: 'StubWeb3', address: Optional[str]):
        self.stub = stub
        self.address = address
        self.functions = self

    def __getitem__(self, name):
        return lambda *args: StubContractCall(self.stub, self.address, name, args)

    def constructor(self, *args):
        self.stub.log.append(("constructor", args))
        return StubContractCall(self.stub, None, "constructor", args)


class StubEth:
    def __init__(self, stub: 'StubWeb3'):
        self.stub = stub

    def contract(self, address=None, abi=None, bytecode=None):
        return StubContract(self.stub, address)

    @property
    def chain_id(self):
        return _Awaitable(1337)

    @property
    def block_number(self):
        return _Awaitable(42)

    async def get_transaction_count(self, address, block_identifier=None):
        self.stub.log.append(("nonce", self.stub.nonce))
        await asyncio.sleep(0)
        return self.stub.nonce

    async def send_raw_transaction(self, raw):
        await asyncio.sleep(0)
        self.stub.log.append(("send", self.stub.nonce))
        self.stub.nonce += 1
        return hashlib.sha256(bytes(raw)).digest()

    async def wait_for_transaction_receipt(self, tx_hash, timeout=None):
        return {"status": self.stub.receipt_status, "contractAddress": self.stub.contract_address}

    async def get_code(self, address):
        return self.stub.code


class StubWeb3:
    def __init__(self):
        self.log: List[tuple] = []
        self.nonce = 0
        self.fail_estimate = False
        self.reverts = set()
        self.call_results: Dict[str, Any] = {}
        self.receipt_status = 1
        self.contract_address = "0x3333333333333333333333333333333333333333"
        self.code = b""
        self.eth = StubEth(self)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def descriptor() -> ContractInterfaceDescriptor:
    return ContractInterfaceDescriptor.parse(ERC721_ABI)


@pytest.fixture
def binding(descriptor) -> ContractBinding:
    return ContractBinding(L1_NFT, L2_NFT, descriptor, "0x6080604052")


@pytest.fixture
def registry(binding) -> InMemoryContractRegistry:
    return InMemoryContractRegistry([binding])


@pytest.fixture
def l1() -> FakeChainClient:
    client = FakeChainClient(ChainRole.L1)
    client.set_owner(L1_NFT, 5, OWNER)
    client.set_uri(L1_NFT, 5, TOKEN_URI)
    return client


@pytest.fixture
def l2() -> FakeChainClient:
    return FakeChainClient(ChainRole.L2)


@pytest.fixture
def stub_web3() -> StubWeb3:
    return StubWeb3()


@pytest.fixture
def stub_client(stub_web3) -> ChainClient:
    return ChainClient(ChainEndpoint(ChainRole.L2, "http://localhost:8545", TEST_PRIVATE_KEY), web3=stub_web3)


@pytest.fixture
def tripwire_client() -> ChainClient:
    return ChainClient(ChainEndpoint(ChainRole.L1, "http://localhost:8545", TEST_PRIVATE_KEY), web3=TripwireWeb3())
