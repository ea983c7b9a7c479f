#!/usr/bin/env python3
"""
Bridge Library - Python Implementation
Shared configuration, logging and helpers for the L1 → L2 NFT bridge
"""

import os
import sys
from typing import Any, Optional, Dict, Tuple, Union
from dataclasses import dataclass
from enum import Enum

from .errors import InvalidChainType

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class ChainRole(Enum):
    """Ledger roles"""
    L1 = 0
    L2 = 1

    @classmethod
    def parse(cls, value: Union['ChainRole', int, str]) -> 'ChainRole':
        """Parse a chain role from an enum, a numeric id or a name like "L2" """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidChainType(value)
        if isinstance(value, int):
            for role in cls:
                if role.value == value:
                    return role
            raise InvalidChainType(value)
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls.parse(int(text))
            try:
                return cls[text.upper()]
            except KeyError:
                raise InvalidChainType(value) from None
        raise InvalidChainType(value)


@dataclass(frozen=True)
class ChainEndpoint:
    """One ledger: RPC address plus the signing identity used on it"""
    role: ChainRole
    rpc_url: str
    private_key: str

    def __repr__(self) -> str:
        return f"ChainEndpoint(role={self.role.name}, rpc_url={self.rpc_url!r}, private_key='***')"


@dataclass
class BridgeConfig:
    """Bridge configuration from environment"""
    l1_rpc: str
    l2_rpc: str
    private_key: str
    # Optional fields (must come after required fields)
    registry_path: str = "bindings.json"
    artifacts_dir: Optional[str] = None
    explorer_api_url: Optional[str] = None
    explorer_api_key: Optional[str] = None
    rpc_timeout: float = 30.0
    receipt_timeout: float = 120.0
    wait_for_receipts: bool = False

    def endpoint(self, role: ChainRole) -> ChainEndpoint:
        """Build the endpoint for a chain role"""
        rpc_url = self.l1_rpc if role is ChainRole.L1 else self.l2_rpc
        return ChainEndpoint(role=role, rpc_url=rpc_url, private_key=self.private_key)

    def __repr__(self) -> str:
        return (f"BridgeConfig(l1_rpc={self.l1_rpc!r}, l2_rpc={self.l2_rpc!r}, "
                f"private_key='***', registry_path={self.registry_path!r})")


class BridgeLogger:
    """Colored logging for bridge operations, written to stderr"""

    # ANSI color codes
    GREEN = '\033[0;32m'
    YELLOW = '\033[1;33m'
    RED = '\033[0;31m'
    BLUE = '\033[0;34m'
    CYAN = '\033[0;36m'
    NC = '\033[0m'  # No Color

    @classmethod
    def step(cls, msg: str):
        print(f"{cls.GREEN}[STEP]{cls.NC} {msg}", file=sys.stderr)

    @classmethod
    def info(cls, msg: str):
        print(f"{cls.YELLOW}[INFO]{cls.NC} {msg}", file=sys.stderr)

    @classmethod
    def success(cls, msg: str):
        print(f"{cls.GREEN}[SUCCESS]{cls.NC} {msg}", file=sys.stderr)

    @classmethod
    def error(cls, msg: str):
        print(f"{cls.RED}[ERROR]{cls.NC} {msg}", file=sys.stderr)

    @classmethod
    def warning(cls, msg: str):
        print(f"{cls.CYAN}[WARNING]{cls.NC} {msg}", file=sys.stderr)

    @classmethod
    def debug(cls, msg: str):
        if os.environ.get('DEBUG') == '1':
            print(f"{cls.BLUE}[DEBUG]{cls.NC} {msg}", file=sys.stderr)


class BridgeEnvironment:
    """Environment management for the bridge service"""

    # Primary variable first, then the names older deployments used
    RPC_VARIABLES = {
        ChainRole.L1: ("L1_RPC_URL", "ALCHEMY_ENDPOINT_L1"),
        ChainRole.L2: ("L2_RPC_URL", "ALCHEMY_ENDPOINT_L2"),
    }

    @staticmethod
    def load_environment(env_file: Optional[str] = None) -> BridgeConfig:
        """Load bridge configuration from the .env file and process environment"""
        BridgeLogger.step("Loading bridge environment")

        BridgeEnvironment._load_env_file(env_file)

        l1_rpc = BridgeEnvironment._first_env(BridgeEnvironment.RPC_VARIABLES[ChainRole.L1])
        l2_rpc = BridgeEnvironment._first_env(BridgeEnvironment.RPC_VARIABLES[ChainRole.L2])
        private_key = os.environ.get('PRIVATE_KEY')

        # Validate we got all required data
        if not l1_rpc:
            raise ValueError("L1 RPC endpoint not configured (set L1_RPC_URL)")
        if not l2_rpc:
            raise ValueError("L2 RPC endpoint not configured (set L2_RPC_URL)")
        if not private_key:
            raise ValueError("Signing key not configured (set PRIVATE_KEY)")

        config = BridgeConfig(
            l1_rpc=l1_rpc,
            l2_rpc=l2_rpc,
            private_key=private_key,
            registry_path=os.environ.get('NFT_BRIDGE_REGISTRY', 'bindings.json'),
            artifacts_dir=os.environ.get('NFT_BRIDGE_ARTIFACTS') or None,
            explorer_api_url=os.environ.get('EXPLORER_API_URL') or None,
            explorer_api_key=os.environ.get('EXPLORER_API_KEY') or None,
            rpc_timeout=BridgeEnvironment._float_env('RPC_TIMEOUT', 30.0),
            receipt_timeout=BridgeEnvironment._float_env('RECEIPT_TIMEOUT', 120.0),
            wait_for_receipts=os.environ.get('WAIT_FOR_RECEIPTS', '0').lower() in ('1', 'true', 'yes'),
        )

        BridgeLogger.success("Bridge environment loaded")
        BridgeLogger.info(f"L1 RPC: {config.l1_rpc}")
        BridgeLogger.info(f"L2 RPC: {config.l2_rpc}")
        BridgeLogger.debug(f"Registry: {config.registry_path}")

        return config

    @staticmethod
    def _first_env(names: Tuple[str, ...]) -> Optional[str]:
        for name in names:
            value = os.environ.get(name)
            if value:
                return value.strip()
        return None

    @staticmethod
    def _float_env(name: str, default: float) -> float:
        raw = os.environ.get(name)
        if not raw:
            return default
        try:
            return float(raw)
        except ValueError:
            raise ValueError(f"{name} must be a number, got {raw!r}") from None

    @staticmethod
    def _load_env_file(env_path: Optional[str] = None):
        """Load .env file variables into environment (process values win)"""
        env_path = env_path or os.path.join(os.getcwd(), '.env')
        if os.path.exists(env_path):
            BridgeLogger.debug(f"Loading .env file from {env_path}")
            with open(env_path, 'r') as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith('#') and '=' in line:
                        key, value = line.split('=', 1)
                        os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))
            BridgeLogger.debug("✅ .env file loaded successfully")
        else:
            BridgeLogger.debug("No .env file found")

    @staticmethod
    def print_config(config: BridgeConfig):
        """Print bridge configuration with the signing key masked"""
        print("", file=sys.stderr)
        BridgeLogger.info("========== BRIDGE CONFIGURATION ==========")
        BridgeLogger.info("Networks:")
        BridgeLogger.info(f"  • L1 ({ChainRole.L1.value}): {config.l1_rpc}")
        BridgeLogger.info(f"  • L2 ({ChainRole.L2.value}): {config.l2_rpc}")
        BridgeLogger.info(f"Signing key: {BridgeUtils.mask_secret(config.private_key)}")
        BridgeLogger.info(f"Registry: {config.registry_path}")
        BridgeLogger.info(f"Artifacts: {config.artifacts_dir or 'Not configured'}")
        BridgeLogger.info(f"Explorer: {config.explorer_api_url or 'Not configured'}")
        BridgeLogger.info("==========================================")
        print("", file=sys.stderr)


class BridgeUtils:
    """Utility functions for bridge operations"""

    @staticmethod
    def same_address(a: Optional[str], b: Optional[str]) -> bool:
        """Case-insensitive address comparison"""
        if not a or not b:
            return False
        return a.lower() == b.lower()

    @staticmethod
    def is_zero_address(address: Optional[str]) -> bool:
        return not address or address.lower() == ZERO_ADDRESS

    @staticmethod
    def split_token_uri(token_uri: str) -> Tuple[str, str]:
        """Split a token URI into (base_uri, token_part) on the last '/'"""
        base_uri, sep, token_part = token_uri.rpartition('/')
        if not sep:
            return "", token_uri
        return base_uri, token_part

    @staticmethod
    def to_hex(value) -> str:
        """Render HexBytes / bytes / str as a 0x-prefixed hex string"""
        if isinstance(value, (bytes, bytearray)):
            text = bytes(value).hex()
        else:
            text = str(value)
        return text if text.startswith('0x') else f"0x{text}"

    @staticmethod
    def mask_secret(secret: str) -> str:
        if len(secret) <= 10:
            return "***"
        return f"{secret[:6]}…{secret[-4:]}"

    @staticmethod
    def binding_summary(binding) -> Dict[str, Any]:
        """JSON-friendly view of a contract binding"""
        return {
            "l1Address": binding.l1_address,
            "l2Address": binding.l2_address,
            "functions": len(binding.descriptor.functions),
        }


__all__ = [
    'ZERO_ADDRESS', 'ChainRole', 'ChainEndpoint', 'BridgeConfig', 'BridgeLogger',
    'BridgeEnvironment', 'BridgeUtils'
]
