"""Batch events consumed by the reconciler registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from metallb_sync.modes import UpdateMode


@dataclass(frozen=True)
class NodesChanged:
    """A batch of nodes together with how they relate to the desired state.

    With ``UpdateMode.SYNC`` the batch must hold every node in the cluster.
    """

    nodes: Sequence
    mode: UpdateMode


@dataclass(frozen=True)
class ServicesChanged:
    services: Sequence
    mode: UpdateMode
