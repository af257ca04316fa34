"""Abstract interfaces for the stores and services the reconcilers consume."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from .config import ConfigFile, parse_config


@dataclass(frozen=True)
class IPReservation:
    """An elastic IP block held in the external registry."""

    id: str
    address: str
    cidr: int
    tags: Tuple[str, ...] = field(default_factory=tuple)
    facility: Optional[str] = None

    @property
    def cidr_string(self) -> str:
        return f"{self.address}/{self.cidr}"


class DocumentStore(ABC):
    """Holds the serialized MetalLB document."""

    @abstractmethod
    def get(self) -> str:
        """Return the raw document text."""

    @abstractmethod
    def patch(self, text: str) -> None:
        """Replace the document text using a merge-patch of its single field."""

    def load(self) -> ConfigFile:
        return parse_config(self.get())

    def save(self, config: ConfigFile) -> None:
        self.patch(config.to_bytes().decode("utf-8"))


class PeerResolver(ABC):
    @abstractmethod
    def resolve(self, provider_id: str) -> Sequence[str]:
        """Return the BGP peer addresses reachable from the node."""


class ReservationRegistry(ABC):
    """IP reservations scoped to a single project."""

    @abstractmethod
    def list(self) -> Sequence[IPReservation]:
        """Return every reservation in scope."""

    @abstractmethod
    def request(self, tags: Sequence[str]) -> Optional[IPReservation]:
        """Request a single address, failing fast if approval is required."""

    @abstractmethod
    def remove(self, reservation_id: str) -> None:
        """Delete a reservation."""


class ServiceStore(ABC):
    @abstractmethod
    def get(self, namespace: str, name: str):
        """Return the latest version of a Service."""

    @abstractmethod
    def update(self, service) -> None:
        """Write ``service`` back, rejecting stale versions."""
