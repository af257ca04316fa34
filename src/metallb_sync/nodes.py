"""Keep MetalLB BGP peers in line with cluster node membership."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from .base import DocumentStore, PeerResolver
from .config import ConfigFile, NodeSelector, Peer
from .exceptions import LoadBalancerSyncError, MissingProviderIDError
from .modes import UpdateMode

LOG = logging.getLogger(__name__)


def add_node_peer(
    config: ConfigFile,
    node_name: str,
    local_asn: int,
    peer_asn: int,
    peers: Iterable[str],
    password: Optional[str] = None,
) -> bool:
    """Ensure ``node_name`` has a peer entry for each address in ``peers``."""

    changed = False
    for addr in peers:
        peer = Peer(
            my_asn=local_asn,
            asn=peer_asn,
            addr=addr,
            node_selectors=[NodeSelector.for_hostname(node_name)],
            password=password,
        )
        if config.add_peer(peer):
            changed = True
    return changed


def remove_node_peer(config: ConfigFile, node_name: str) -> bool:
    return config.remove_peer_by_selector(NodeSelector.for_hostname(node_name))


class NodeReconciler:
    """Add, remove or sync per-node BGP peers in the MetalLB document."""

    def __init__(
        self,
        store: DocumentStore,
        resolver: PeerResolver,
        local_asn: int,
        peer_asn: int,
        *,
        password: Optional[str] = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._local_asn = local_asn
        self._peer_asn = peer_asn
        self._password = password

    def reconcile(self, nodes: Sequence, mode: UpdateMode) -> bool:
        """Apply ``mode`` for ``nodes``; return True if the document was written."""

        LOG.debug("reconciling %d nodes, mode=%s", len(nodes), mode.value)
        config = self._store.load()

        if mode is UpdateMode.REMOVE:
            changed = self._remove(config, nodes)
        elif mode is UpdateMode.ADD:
            changed = self._add(config, nodes)
        elif mode is UpdateMode.SYNC:
            changed = self._sync(config, nodes)
        else:
            raise ValueError(f"unsupported update mode {mode!r}")

        if not changed:
            LOG.debug("no change to MetalLB config, not updating")
            return False

        LOG.info("MetalLB peers changed, updating config")
        self._store.save(config)
        return True

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------
    def _remove(self, config: ConfigFile, nodes: Sequence) -> bool:
        changed = False
        for node in nodes:
            name = node.metadata.name
            if remove_node_peer(config, name):
                LOG.debug("removed peers for node %s", name)
                changed = True
            else:
                LOG.debug("no peers to remove for node %s", name)
        return changed

    def _add(self, config: ConfigFile, nodes: Sequence) -> bool:
        changed = False
        for node in nodes:
            if self._add_node(config, node):
                changed = True
        return changed

    def _sync(self, config: ConfigFile, nodes: Sequence) -> bool:
        wanted = {node.metadata.name for node in nodes}
        changed = False

        for name in config.node_names():
            if name not in wanted:
                LOG.debug("removing node %s from MetalLB config", name)
                remove_node_peer(config, name)
                changed = True

        present = set(config.node_names())
        for node in nodes:
            if node.metadata.name in present:
                continue
            if self._add_node(config, node):
                changed = True
        return changed

    def _add_node(self, config: ConfigFile, node) -> bool:
        name = node.metadata.name
        provider_id = node.spec.provider_id if node.spec else None
        if not provider_id:
            raise MissingProviderIDError(name)

        peers = self._resolve(name, provider_id)
        if not peers:
            return False

        changed = add_node_peer(
            config,
            name,
            self._local_asn,
            self._peer_asn,
            peers,
            password=self._password,
        )
        LOG.debug("node %s peers %s, changed=%s", name, peers, changed)
        return changed

    def _resolve(self, name: str, provider_id: str) -> List[str]:
        try:
            peers = list(self._resolver.resolve(provider_id))
        except LoadBalancerSyncError as exc:
            LOG.error("could not get BGP peer addresses for node %s: %s", name, exc)
            return []
        if not peers:
            LOG.error("no BGP peer addresses found for node %s", name)
        return peers
