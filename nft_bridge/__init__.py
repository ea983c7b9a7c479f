#!/usr/bin/env python3
"""
NFT Bridge - Python Package
Mirrors NFT ownership and metadata from an L1 ledger to an L2 ledger
"""

from .bridge_lib import (
    ZERO_ADDRESS, ChainRole, ChainEndpoint, BridgeConfig, BridgeLogger,
    BridgeEnvironment, BridgeUtils
)
from .errors import (
    BridgeError, BridgeValidationError, MalformedInterface, FunctionNotFound,
    ArgumentCountMismatch, ConstructorArgumentMismatch, InvalidArgument,
    InvalidChainType, BindingNotFound, LedgerError, GasEstimationFailed,
    RemoteCallReverted, DeploymentReverted, AddressNotAContract,
    CodeSourceUnavailable
)
from .interface import (
    FunctionFragment, ConstructorFragment, EventFragment,
    ContractInterfaceDescriptor, coerce_arguments
)
from .chain_client import ChainClient, TransactionHandle
from .invoker import ContractInvoker
from .registry import (
    ContractBinding, ContractRegistry, InMemoryContractRegistry, JsonFileContractRegistry
)
from .code_source import CodeSource, ArtifactCodeSource, ExplorerCodeSource
from .nft import NftGateway
from .orchestrator import (
    SyncState, TokenIdentity, OwnershipClaim, SyncResult, OwnershipRejected,
    MetadataPushResult, InvokeResult, UnsupportedFunction, SyncJournal,
    TransferWatchRegistrar, BridgeOrchestrator
)

# Version info
__version__ = "1.0.0"

# Export all main classes and functions
__all__ = [
    # Core classes
    'ZERO_ADDRESS', 'ChainRole', 'ChainEndpoint', 'BridgeConfig', 'BridgeLogger',
    'BridgeEnvironment', 'BridgeUtils',

    # Errors
    'BridgeError', 'BridgeValidationError', 'MalformedInterface', 'FunctionNotFound',
    'ArgumentCountMismatch', 'ConstructorArgumentMismatch', 'InvalidArgument',
    'InvalidChainType', 'BindingNotFound', 'LedgerError', 'GasEstimationFailed',
    'RemoteCallReverted', 'DeploymentReverted', 'AddressNotAContract',
    'CodeSourceUnavailable',

    # Contract invocation
    'FunctionFragment', 'ConstructorFragment', 'EventFragment',
    'ContractInterfaceDescriptor', 'coerce_arguments', 'ChainClient',
    'TransactionHandle', 'ContractInvoker', 'NftGateway',

    # Registry and code sources
    'ContractBinding', 'ContractRegistry', 'InMemoryContractRegistry',
    'JsonFileContractRegistry', 'CodeSource', 'ArtifactCodeSource', 'ExplorerCodeSource',

    # Orchestration
    'SyncState', 'TokenIdentity', 'OwnershipClaim', 'SyncResult', 'OwnershipRejected',
    'MetadataPushResult', 'InvokeResult', 'UnsupportedFunction', 'SyncJournal',
    'TransferWatchRegistrar', 'BridgeOrchestrator'
]
