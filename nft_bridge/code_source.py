#!/usr/bin/env python3
"""
Code Source Module - Python Implementation
Where deploy-and-register gets the interface and bytecode of an L1 contract
"""

import asyncio
import json
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import requests

from .bridge_lib import BridgeLogger, BridgeUtils
from .chain_client import ChainClient
from .errors import CodeSourceUnavailable, MalformedInterface
from .interface import ContractInterfaceDescriptor

EXPLORER_TIMEOUT = 15


class CodeSource(ABC):
    """Code-introspection collaborator"""

    @abstractmethod
    async def fetch(self, l1_address: str) -> Tuple[ContractInterfaceDescriptor, str]:
        """Return (descriptor, bytecode) for an L1 contract"""


class ArtifactCodeSource(CodeSource):
    """Compiler artifacts on disk, one `<address>.json` per contract.

    Accepts Hardhat style (`"bytecode": "0x..."`) and Foundry style
    (`"bytecode": {"object": "0x..."}`) artifacts.
    """

    def __init__(self, directory: str):
        self.directory = directory

    def _artifact_path(self, l1_address: str) -> Optional[str]:
        for name in (l1_address, l1_address.lower()):
            path = os.path.join(self.directory, f"{name}.json")
            if os.path.exists(path):
                return path
        return None

    async def fetch(self, l1_address):
        path = self._artifact_path(l1_address)
        if not path:
            raise CodeSourceUnavailable(f"No artifact for {l1_address} in {self.directory}")

        with open(path, 'r') as f:
            artifact: Dict[str, Any] = json.load(f)

        bytecode = artifact.get("bytecode")
        if isinstance(bytecode, dict):
            bytecode = bytecode.get("object")
        if not bytecode:
            raise CodeSourceUnavailable(f"Artifact {path} has no bytecode")

        descriptor = ContractInterfaceDescriptor.parse(artifact)
        BridgeLogger.debug(f"Loaded artifact for {l1_address} from {path}")
        return descriptor, BridgeUtils.to_hex(bytecode)


class ExplorerCodeSource(CodeSource):
    """Verified ABI from an Etherscan-compatible API, bytecode from the L1 node"""

    def __init__(self, api_url: str, l1_client: ChainClient, api_key: Optional[str] = None,
                 timeout: int = EXPLORER_TIMEOUT):
        self.api_url = api_url
        self.api_key = api_key
        self.l1_client = l1_client
        self.timeout = timeout

    def _get_abi(self, l1_address: str) -> str:
        params = {"module": "contract", "action": "getabi", "address": l1_address}
        if self.api_key:
            params["apikey"] = self.api_key

        BridgeLogger.debug(f"Fetching ABI for {l1_address} from {self.api_url}")
        try:
            response = requests.get(self.api_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise CodeSourceUnavailable(f"Explorer request failed for {l1_address}: {e}") from e

        if str(payload.get("status")) != "1":
            raise CodeSourceUnavailable(
                f"Explorer has no verified ABI for {l1_address}: {payload.get('result') or payload.get('message')}"
            )
        return payload["result"]

    async def fetch(self, l1_address):
        raw_abi = await asyncio.to_thread(self._get_abi, l1_address)
        try:
            descriptor = ContractInterfaceDescriptor.parse(raw_abi)
        except MalformedInterface as e:
            raise CodeSourceUnavailable(f"Explorer returned a malformed ABI for {l1_address}: {e}") from e
        bytecode = await self.l1_client.get_code(l1_address)
        return descriptor, BridgeUtils.to_hex(bytecode)


__all__ = ['CodeSource', 'ArtifactCodeSource', 'ExplorerCodeSource']
