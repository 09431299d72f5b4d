from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal, Mapping, Optional

from visitor_stats.storage import UNKNOWN_ADDRESS


INTERNAL_ADDRESS = "internal address (not a real visitor)"

AddressClass = Literal["private", "public"]

_PRIVATE_PATTERN = re.compile(
    r"^(127\.|192\.168\.|10\.|172\.(1[6-9]|2[0-9]|3[0-1])\.|::1$|localhost)",
    flags=re.IGNORECASE,
)


@dataclass
class RequestMetadata:
    """The parts of an inbound request that identify the caller."""

    headers: Mapping[str, str] = field(default_factory=dict)
    peer_address: Optional[str] = None
    socket_address: Optional[str] = None

    def header(self, name: str) -> Optional[str]:
        value = self.headers.get(name)
        if value is not None:
            return value
        lowered = name.lower()
        for key, candidate in self.headers.items():
            if key.lower() == lowered:
                return candidate
        return None


@dataclass
class ResolvedAddress:
    raw: str
    classification: AddressClass

    @property
    def is_private(self) -> bool:
        return self.classification == "private"

    @property
    def address(self) -> str:
        """Address safe to persist; internal addresses are never stored."""
        if self.is_private:
            return INTERNAL_ADDRESS
        return self.raw


def _first_present(*candidates: Optional[str]) -> Optional[str]:
    for candidate in candidates:
        cleaned = (candidate or "").strip()
        if cleaned:
            return cleaned
    return None


class AddressResolver:
    def resolve(self, metadata: RequestMetadata) -> str:
        forwarded = (metadata.header("X-Forwarded-For") or "").strip()
        if forwarded:
            # Closest-to-client entry comes first in the proxy chain.
            first = forwarded.split(",")[0].strip()
            if first:
                return first

        resolved = _first_present(
            metadata.header("X-Real-IP"),
            metadata.peer_address,
            metadata.socket_address,
        )
        return resolved or UNKNOWN_ADDRESS

    @staticmethod
    def classify(address: str) -> AddressClass:
        if _PRIVATE_PATTERN.match(address.strip()):
            return "private"
        return "public"

    def resolve_visitor(self, metadata: RequestMetadata) -> ResolvedAddress:
        raw = self.resolve(metadata)
        return ResolvedAddress(raw=raw, classification=self.classify(raw))
