#!/usr/bin/env python3
"""
Bridge Errors - Python Implementation
Typed failures raised by the contract invocation layer and the bridge flows
"""

from typing import Optional


class BridgeError(Exception):
    """Base class for every bridge failure"""


class BridgeValidationError(BridgeError, ValueError):
    """Request rejected before any network call was made"""


class MalformedInterface(BridgeValidationError):
    """ABI entries could not be parsed into an interface descriptor"""


class FunctionNotFound(BridgeValidationError):
    """Requested function is not declared by the contract interface"""

    def __init__(self, function_name: str):
        super().__init__(f"Function {function_name} not found in the ABI")
        self.function_name = function_name


class ArgumentCountMismatch(BridgeValidationError):
    """Argument list length differs from the declared inputs"""

    def __init__(self, function_name: str, expected: int, received: int):
        super().__init__(
            f"Invalid number of arguments for function {function_name}: "
            f"expected {expected}, got {received}"
        )
        self.function_name = function_name
        self.expected = expected
        self.received = received


class ConstructorArgumentMismatch(BridgeValidationError):
    """Constructor argument count differs from the declared constructor inputs"""

    def __init__(self, expected: int, received: int):
        super().__init__(f"Invalid constructor arguments: expected {expected}, got {received}")
        self.expected = expected
        self.received = received


class InvalidArgument(BridgeValidationError):
    """Argument value cannot be converted to its declared ABI type"""

    def __init__(self, abi_type: str, value):
        super().__init__(f"Invalid value for {abi_type}: {value!r}")
        self.abi_type = abi_type
        self.value = value


class InvalidChainType(BridgeValidationError):
    """Chain role is neither L1 nor L2"""

    def __init__(self, value):
        super().__init__(f"Invalid chain type: {value!r}")
        self.value = value


class BindingNotFound(BridgeError, LookupError):
    """No registered binding for the given contract address"""

    def __init__(self, address: str, role: str = "L1"):
        super().__init__(f"No contract binding registered for {role} address {address}")
        self.address = address
        self.role = role


class LedgerError(BridgeError):
    """Failure reported by a ledger node"""

    def __init__(self, message: str, chain: Optional[str] = None):
        super().__init__(f"[{chain}] {message}" if chain else message)
        self.chain = chain


class GasEstimationFailed(LedgerError):
    """Node could not estimate gas for a submission"""


class RemoteCallReverted(LedgerError):
    """Ledger rejected the execution of a call or transaction"""


class DeploymentReverted(LedgerError):
    """Contract deployment failed on-chain"""


class AddressNotAContract(LedgerError):
    """No code is deployed at the address"""


class CodeSourceUnavailable(BridgeError):
    """ABI or bytecode for an L1 contract could not be retrieved"""


__all__ = [
    'BridgeError', 'BridgeValidationError', 'MalformedInterface', 'FunctionNotFound',
    'ArgumentCountMismatch', 'ConstructorArgumentMismatch', 'InvalidArgument',
    'InvalidChainType', 'BindingNotFound', 'LedgerError', 'GasEstimationFailed',
    'RemoteCallReverted', 'DeploymentReverted', 'AddressNotAContract',
    'CodeSourceUnavailable'
]
