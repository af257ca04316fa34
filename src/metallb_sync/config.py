"""Data structures for the MetalLB configuration document.

MetalLB (in ConfigMap mode) reads a single YAML document holding its BGP peers
and address pools.  The classes below mirror that document closely enough to
round-trip it, and expose the small set of idempotent mutations the
reconcilers need.  Every mutation reports whether it actually changed the
document so callers can skip writes when nothing moved.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import yaml

from .exceptions import ConfigParseError

HOSTNAME_KEY = "kubernetes.io/hostname"


@dataclass
class SelectorRequirement:
    """A single ``match-expressions`` entry of a node selector."""

    key: str
    operator: str
    values: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "operator": self.operator, "values": list(self.values)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SelectorRequirement":
        return cls(
            key=str(data["key"]),
            operator=str(data["operator"]),
            values=[str(v) for v in _list(data, "values")],
        )


@dataclass
class NodeSelector:
    """Restricts a peer to the nodes matching labels and expressions."""

    match_labels: Dict[str, str] = field(default_factory=dict)
    match_expressions: List[SelectorRequirement] = field(default_factory=list)

    @classmethod
    def for_hostname(cls, node_name: str) -> "NodeSelector":
        return cls(match_labels={HOSTNAME_KEY: node_name})

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.match_labels:
            data["match-labels"] = dict(self.match_labels)
        if self.match_expressions:
            data["match-expressions"] = [e.to_dict() for e in self.match_expressions]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeSelector":
        labels = _mapping(data, "match-labels")
        expressions = _entries(data, "match-expressions")
        return cls(
            match_labels={str(k): str(v) for k, v in labels.items()},
            match_expressions=[SelectorRequirement.from_dict(e) for e in expressions],
        )


@dataclass
class Peer:
    """BGP peer definition.

    Attributes
    ----------
    my_asn:
        Local Autonomous System Number MetalLB announces from.
    asn:
        The remote peer's ASN.
    addr:
        The remote peer address.
    node_selectors:
        Nodes allowed to open this session.  An empty list means every node.
    """

    my_asn: int
    asn: int
    addr: str
    node_selectors: List[NodeSelector] = field(default_factory=list)
    port: Optional[int] = None
    hold_time: Optional[str] = None
    router_id: Optional[str] = None
    source_address: Optional[str] = None
    password: Optional[str] = None

    def same_session(self, other: "Peer") -> bool:
        """Return True when ``other`` targets the same address and nodes."""

        if self.addr != other.addr:
            return False
        if len(self.node_selectors) != len(other.node_selectors):
            return False
        return all(ns in other.node_selectors for ns in self.node_selectors)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "my-asn": self.my_asn,
            "peer-asn": self.asn,
            "peer-address": self.addr,
        }
        optional = (
            ("peer-port", self.port),
            ("hold-time", self.hold_time),
            ("router-id", self.router_id),
            ("source-address", self.source_address),
            ("password", self.password),
        )
        for key, value in optional:
            if value is not None:
                data[key] = value
        if self.node_selectors:
            data["node-selectors"] = [ns.to_dict() for ns in self.node_selectors]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Peer":
        port = data.get("peer-port")
        return cls(
            my_asn=int(data["my-asn"]),
            asn=int(data["peer-asn"]),
            addr=str(data["peer-address"]),
            node_selectors=[
                NodeSelector.from_dict(ns) for ns in _entries(data, "node-selectors")
            ],
            port=int(port) if port is not None else None,
            hold_time=data.get("hold-time"),
            router_id=data.get("router-id"),
            source_address=data.get("source-address"),
            password=data.get("password"),
        )


@dataclass
class AddressPool:
    """Named set of addresses MetalLB may hand out."""

    name: str
    protocol: str
    addresses: List[str] = field(default_factory=list)
    auto_assign: Optional[bool] = None
    avoid_buggy_ips: Optional[bool] = None
    bgp_advertisements: Optional[List[Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "protocol": self.protocol,
            "addresses": list(self.addresses),
        }
        if self.auto_assign is not None:
            data["auto-assign"] = self.auto_assign
        if self.avoid_buggy_ips is not None:
            data["avoid-buggy-ips"] = self.avoid_buggy_ips
        if self.bgp_advertisements is not None:
            data["bgp-advertisements"] = self.bgp_advertisements
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AddressPool":
        return cls(
            name=str(data["name"]),
            protocol=str(data.get("protocol", "bgp")),
            addresses=[str(a) for a in _list(data, "addresses")],
            auto_assign=data.get("auto-assign"),
            avoid_buggy_ips=data.get("avoid-buggy-ips"),
            bgp_advertisements=data.get("bgp-advertisements"),
        )


@dataclass
class ConfigFile:
    """In-memory MetalLB configuration document."""

    peers: List[Peer] = field(default_factory=list)
    pools: List[AddressPool] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Peers
    # ------------------------------------------------------------------
    def add_peer(self, peer: Peer) -> bool:
        if any(existing.same_session(peer) for existing in self.peers):
            return False
        self.peers.append(peer)
        return True

    def remove_peer_by_selector(self, selector: NodeSelector) -> bool:
        kept = [p for p in self.peers if selector not in p.node_selectors]
        removed = len(kept) != len(self.peers)
        self.peers = kept
        return removed

    def node_names(self) -> List[str]:
        """Hostnames referenced by peer node selectors, in document order."""

        names: List[str] = []
        for peer in self.peers:
            for selector in peer.node_selectors:
                name = selector.match_labels.get(HOSTNAME_KEY)
                if name is not None and name not in names:
                    names.append(name)
        return names

    # ------------------------------------------------------------------
    # Address pools
    # ------------------------------------------------------------------
    def pool_for_address(self, addr: str) -> Optional[AddressPool]:
        return next((p for p in self.pools if addr in p.addresses), None)

    def add_address_pool(self, pool: AddressPool) -> bool:
        """Map the addresses of ``pool``.

        Returns False, leaving the document untouched, if any of the addresses
        is already mapped.  A pool that shares its name with an existing one is
        merged into it so pool names stay unique.
        """

        if any(self.pool_for_address(addr) for addr in pool.addresses):
            return False
        existing = next((p for p in self.pools if p.name == pool.name), None)
        if existing is not None:
            existing.addresses.extend(pool.addresses)
        else:
            self.pools.append(pool)
        return True

    def remove_address_pool_by_address(self, addr: str) -> bool:
        pool = self.pool_for_address(addr)
        if pool is None:
            return False
        pool.addresses = [a for a in pool.addresses if a != addr]
        if not pool.addresses:
            self.pools.remove(pool)
        return True

    def service_addresses(self) -> List[str]:
        return [addr for pool in self.pools for addr in pool.addresses]

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.peers:
            data["peers"] = [p.to_dict() for p in self.peers]
        if self.pools:
            data["address-pools"] = [p.to_dict() for p in self.pools]
        data.update(self.extra)
        return data

    def to_bytes(self) -> bytes:
        return yaml.safe_dump(self.to_dict(), sort_keys=False).encode("utf-8")


def _list(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise ConfigParseError(f"'{key}' must be a list")
    return value


def _mapping(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigParseError(f"'{key}' must be a mapping")
    return value


def _entries(data: Dict[str, Any], key: str) -> Iterable[Dict[str, Any]]:
    entries = _list(data, key)
    for entry in entries:
        if not isinstance(entry, dict):
            raise ConfigParseError(f"'{key}' entries must be mappings")
        yield entry


def parse_config(raw: bytes | str) -> ConfigFile:
    """Parse the YAML document MetalLB stores under its ConfigMap key."""

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigParseError(f"invalid MetalLB config: {exc}") from exc

    if data is None:
        return ConfigFile()
    if not isinstance(data, dict):
        raise ConfigParseError("MetalLB config must be a mapping")

    try:
        peers = [Peer.from_dict(entry) for entry in _entries(data, "peers")]
        pools = [AddressPool.from_dict(entry) for entry in _entries(data, "address-pools")]
    except ConfigParseError:
        raise
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise ConfigParseError(f"invalid MetalLB config entry: {exc!r}") from exc

    extra = {k: v for k, v in data.items() if k not in ("peers", "address-pools")}
    return ConfigFile(peers=peers, pools=pools, extra=extra)
