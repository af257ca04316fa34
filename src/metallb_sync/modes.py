"""Reconciliation modes."""

from __future__ import annotations

from enum import Enum


class UpdateMode(Enum):
    """How a batch of objects relates to the desired state.

    ``ADD`` and ``REMOVE`` are incremental: the batch is a delta.  ``SYNC``
    treats the batch as the complete desired set and prunes everything else.
    """

    ADD = "add"
    REMOVE = "remove"
    SYNC = "sync"
