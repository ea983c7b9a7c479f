#!/usr/bin/env python3
"""
Contract Interface Module - Python Implementation
Parsed, validated view of a contract ABI: function, constructor and event fragments
"""

import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from dataclasses import dataclass

from eth_utils import is_address, to_checksum_address

from .errors import MalformedInterface, FunctionNotFound, ArgumentCountMismatch, InvalidArgument

READ_ONLY_MUTABILITY = ("view", "pure")
NAMED_ENTRY_TYPES = ("function", "event", "error")
KNOWN_ENTRY_TYPES = ("function", "constructor", "event", "error", "fallback", "receive")


@dataclass(frozen=True)
class FunctionFragment:
    """Callable function declared by the ABI"""
    name: str
    input_types: Tuple[str, ...]
    mutability: str
    output_types: Tuple[str, ...] = ()

    @property
    def read_only(self) -> bool:
        return self.mutability in READ_ONLY_MUTABILITY

    @property
    def arity(self) -> int:
        return len(self.input_types)

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.input_types)})"


@dataclass(frozen=True)
class ConstructorFragment:
    """Constructor inputs declared by the ABI"""
    input_types: Tuple[str, ...]
    mutability: str = "nonpayable"


@dataclass(frozen=True)
class EventFragment:
    """Event declared by the ABI"""
    name: str
    input_types: Tuple[str, ...]


Fragment = Union[FunctionFragment, ConstructorFragment, EventFragment]


class ContractInterfaceDescriptor:
    """Immutable, validated contract interface.

    Functions are resolved by name only; when the ABI declares overloads the
    first declared fragment wins.
    """

    def __init__(self, fragments: Sequence[Fragment], raw_abi: Sequence[Mapping[str, Any]]):
        self._fragments: Tuple[Fragment, ...] = tuple(fragments)
        self._raw_abi: Tuple[Dict[str, Any], ...] = tuple(dict(entry) for entry in raw_abi)
        self._functions: Dict[str, FunctionFragment] = {}
        for fragment in self._fragments:
            if isinstance(fragment, FunctionFragment) and fragment.name not in self._functions:
                self._functions[fragment.name] = fragment
        self._constructor: Optional[ConstructorFragment] = next(
            (f for f in self._fragments if isinstance(f, ConstructorFragment)), None
        )
        self._hash: Optional[int] = None

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @classmethod
    def parse(cls, raw_abi_entries: Union[str, Mapping[str, Any], Sequence[Any]]) -> 'ContractInterfaceDescriptor':
        """Parse raw ABI entries, a JSON document, or a compiler artifact with an "abi" key"""
        entries = cls._unwrap(raw_abi_entries)

        fragments: List[Fragment] = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                raise MalformedInterface(f"ABI entry #{index} is not an object")

            entry_type = entry.get("type")
            if not entry_type or not isinstance(entry_type, str):
                raise MalformedInterface(f"ABI entry #{index} has no type")
            if entry_type not in KNOWN_ENTRY_TYPES:
                raise MalformedInterface(f"ABI entry #{index} has unknown type {entry_type!r}")

            name = entry.get("name")
            if entry_type in NAMED_ENTRY_TYPES and (not name or not isinstance(name, str)):
                raise MalformedInterface(f"ABI {entry_type} entry #{index} has no name")

            input_types = cls._parse_params(entry.get("inputs", []), entry_type, index)

            if entry_type == "function":
                output_types = cls._parse_params(entry.get("outputs", []), entry_type, index)
                fragments.append(FunctionFragment(
                    name=name,
                    input_types=input_types,
                    mutability=cls._mutability(entry),
                    output_types=output_types,
                ))
            elif entry_type == "constructor":
                fragments.append(ConstructorFragment(input_types=input_types, mutability=cls._mutability(entry)))
            elif entry_type == "event":
                fragments.append(EventFragment(name=name, input_types=input_types))

        return cls(fragments, entries)

    @staticmethod
    def _unwrap(raw) -> List[Any]:
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as e:
                raise MalformedInterface(f"ABI is not valid JSON: {e}") from e
        if isinstance(raw, Mapping):
            if "abi" not in raw:
                raise MalformedInterface("ABI document has no 'abi' key")
            raw = raw["abi"]
        if not isinstance(raw, (list, tuple)):
            raise MalformedInterface("ABI payload must be an array")
        return list(raw)

    @staticmethod
    def _parse_params(params, entry_type: str, index: int) -> Tuple[str, ...]:
        if params is None:
            return ()
        if not isinstance(params, (list, tuple)):
            raise MalformedInterface(f"ABI {entry_type} entry #{index} has malformed inputs")
        types = []
        for param in params:
            if not isinstance(param, Mapping) or not isinstance(param.get("type"), str) or not param["type"]:
                raise MalformedInterface(f"ABI {entry_type} entry #{index} has malformed inputs")
            types.append(ContractInterfaceDescriptor._canonical_type(param))
        return tuple(types)

    @staticmethod
    def _canonical_type(param: Mapping[str, Any]) -> str:
        """Expand tuple components so the type string is usable in signatures"""
        abi_type = param["type"]
        if abi_type.startswith("tuple"):
            components = param.get("components") or []
            inner = ",".join(ContractInterfaceDescriptor._canonical_type(c) for c in components)
            return f"({inner}){abi_type[len('tuple'):]}"
        return abi_type

    @staticmethod
    def _mutability(entry: Mapping[str, Any]) -> str:
        mutability = entry.get("stateMutability")
        if mutability:
            return mutability
        # Legacy (pre-0.4.16) ABI flags
        if entry.get("constant"):
            return "view"
        if entry.get("payable"):
            return "payable"
        return "nonpayable"

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def fragments(self) -> Tuple[Fragment, ...]:
        return self._fragments

    @property
    def functions(self) -> Tuple[FunctionFragment, ...]:
        return tuple(f for f in self._fragments if isinstance(f, FunctionFragment))

    @property
    def events(self) -> Tuple[EventFragment, ...]:
        return tuple(f for f in self._fragments if isinstance(f, EventFragment))

    @property
    def constructor(self) -> Optional[ConstructorFragment]:
        return self._constructor

    def supports_function(self, name: str) -> bool:
        """True iff a function fragment is named exactly `name`"""
        return name in self._functions

    def function(self, name: str) -> FunctionFragment:
        try:
            return self._functions[name]
        except KeyError:
            raise FunctionNotFound(name) from None

    def constructor_arity(self) -> int:
        return len(self._constructor.input_types) if self._constructor else 0

    def validate_call(self, function_name: str, args: Sequence[Any]) -> FunctionFragment:
        """Check the call shape against the declared inputs"""
        fragment = self.function(function_name)
        if len(args) != fragment.arity:
            raise ArgumentCountMismatch(function_name, fragment.arity, len(args))
        return fragment

    def to_abi(self) -> List[Dict[str, Any]]:
        """Raw ABI entries, as accepted by web3"""
        return [dict(entry) for entry in self._raw_abi]

    def to_json(self) -> str:
        return json.dumps(self.to_abi())

    def __eq__(self, other) -> bool:
        if not isinstance(other, ContractInterfaceDescriptor):
            return NotImplemented
        return self._raw_abi == other._raw_abi

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(self.to_json())
        return self._hash

    def __repr__(self) -> str:
        return (f"ContractInterfaceDescriptor(functions={len(self._functions)}, "
                f"constructor_arity={self.constructor_arity()})")


def coerce_arguments(input_types: Sequence[str], args: Sequence[Any]) -> List[Any]:
    """Convert loosely typed arguments (e.g. CLI strings) to the values web3 expects"""
    return [_coerce(abi_type, value) for abi_type, value in zip(input_types, args)]


def _coerce(abi_type: str, value: Any) -> Any:
    if abi_type == "address":
        if not isinstance(value, str) or not is_address(value):
            raise InvalidArgument(abi_type, value)
        return to_checksum_address(value)

    if abi_type.startswith(("uint", "int")) and not abi_type.endswith("]"):
        if isinstance(value, bool):
            raise InvalidArgument(abi_type, value)
        if isinstance(value, int):
            number = value
        elif isinstance(value, str):
            text = value.strip()
            try:
                number = int(text, 16) if text.lower().startswith("0x") else int(text)
            except ValueError:
                raise InvalidArgument(abi_type, value) from None
        else:
            raise InvalidArgument(abi_type, value)
        if abi_type.startswith("uint") and number < 0:
            raise InvalidArgument(abi_type, value)
        return number

    if abi_type == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "1"):
            return True
        if isinstance(value, str) and value.strip().lower() in ("false", "0"):
            return False
        if value in (0, 1):
            return bool(value)
        raise InvalidArgument(abi_type, value)

    return value


__all__ = [
    'FunctionFragment', 'ConstructorFragment', 'EventFragment', 'Fragment',
    'ContractInterfaceDescriptor', 'coerce_arguments'
]
