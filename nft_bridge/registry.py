#!/usr/bin/env python3
"""
Contract Registry Module - Python Implementation
Bindings between an L1 contract, its L2 mirror and the shared interface/bytecode
"""

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, replace

from .bridge_lib import BridgeLogger, BridgeUtils
from .interface import ContractInterfaceDescriptor


@dataclass(frozen=True)
class ContractBinding:
    """Registered L1 → L2 contract pair"""
    l1_address: str
    l2_address: str
    descriptor: ContractInterfaceDescriptor
    bytecode: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "l1Address": self.l1_address,
            "l2Address": self.l2_address,
            "abi": self.descriptor.to_abi(),
            "byteCode": self.bytecode,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ContractBinding':
        return cls(
            l1_address=data["l1Address"],
            l2_address=data["l2Address"],
            descriptor=ContractInterfaceDescriptor.parse(data["abi"]),
            bytecode=data.get("byteCode", ""),
        )


def _key(address: str) -> str:
    return address.lower()


class ContractRegistry(ABC):
    """Lookup/insert service for contract bindings (keyed by L1 address)"""

    @abstractmethod
    async def create(self, l1_address: str, l2_address: str,
                     descriptor: ContractInterfaceDescriptor, bytecode: str) -> ContractBinding:
        """Store a binding; an existing binding for l1_address is returned unchanged"""

    @abstractmethod
    async def update_abi(self, l1_address: str, descriptor: ContractInterfaceDescriptor,
                         bytecode: str) -> Optional[ContractBinding]:
        """Replace the interface and bytecode of an existing binding"""

    @abstractmethod
    async def update_l2_address(self, l1_address: str, l2_address: str) -> Optional[ContractBinding]:
        """Point an existing binding at a redeployed L2 contract"""

    @abstractmethod
    async def find_all(self) -> List[ContractBinding]:
        ...

    @abstractmethod
    async def find_by_l1(self, l1_address: str) -> Optional[ContractBinding]:
        ...

    @abstractmethod
    async def find_by_l2(self, l2_address: str) -> Optional[ContractBinding]:
        ...


class InMemoryContractRegistry(ContractRegistry):
    """Process-local registry"""

    def __init__(self, bindings: Optional[List[ContractBinding]] = None):
        self._bindings: Dict[str, ContractBinding] = {}
        self._lock = asyncio.Lock()
        for binding in bindings or []:
            self._bindings.setdefault(_key(binding.l1_address), binding)

    async def create(self, l1_address, l2_address, descriptor, bytecode):
        async with self._lock:
            existing = self._bindings.get(_key(l1_address))
            if existing:
                BridgeLogger.debug(f"Binding for {l1_address} already exists, keeping {existing.l2_address}")
                return existing
            binding = ContractBinding(l1_address, l2_address, descriptor, BridgeUtils.to_hex(bytecode))
            self._store(_key(l1_address), binding)
            return binding

    async def update_abi(self, l1_address, descriptor, bytecode):
        async with self._lock:
            existing = self._bindings.get(_key(l1_address))
            if not existing:
                return None
            updated = replace(existing, descriptor=descriptor, bytecode=BridgeUtils.to_hex(bytecode))
            self._store(_key(l1_address), updated)
            return updated

    async def update_l2_address(self, l1_address, l2_address):
        async with self._lock:
            existing = self._bindings.get(_key(l1_address))
            if not existing:
                return None
            updated = replace(existing, l2_address=l2_address)
            self._store(_key(l1_address), updated)
            return updated

    async def find_all(self):
        return list(self._bindings.values())

    async def find_by_l1(self, l1_address):
        return self._bindings.get(_key(l1_address))

    async def find_by_l2(self, l2_address):
        for binding in self._bindings.values():
            if BridgeUtils.same_address(binding.l2_address, l2_address):
                return binding
        return None

    def _store(self, key: str, binding: ContractBinding):
        """Persist first, then publish; a failed write leaves memory untouched"""
        bindings = dict(self._bindings)
        bindings[key] = binding
        self._persist(bindings)
        self._bindings = bindings

    def _persist(self, bindings: Dict[str, ContractBinding]):
        """Hook for durable subclasses; called with the lock held"""


class JsonFileContractRegistry(InMemoryContractRegistry):
    """Registry persisted as one JSON document"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(self._load(path))

    @staticmethod
    def _load(path: str) -> List[ContractBinding]:
        if not os.path.exists(path):
            BridgeLogger.debug(f"No registry file at {path}, starting empty")
            return []
        with open(path, 'r') as f:
            data = json.load(f)
        bindings = [ContractBinding.from_dict(entry) for entry in data.get("bindings", {}).values()]
        BridgeLogger.debug(f"Loaded {len(bindings)} binding(s) from {path}")
        return bindings

    def _persist(self, bindings):
        document = {"bindings": {key: binding.to_dict() for key, binding in bindings.items()}}
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


__all__ = ['ContractBinding', 'ContractRegistry', 'InMemoryContractRegistry', 'JsonFileContractRegistry']
