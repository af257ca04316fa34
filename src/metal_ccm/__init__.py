"""Event dispatch for the load balancer reconcilers.

Event sources (the cluster watcher, tests, or any other controller loop)
publish :class:`NodesChanged` / :class:`ServicesChanged` batches to a
:class:`ReconcilerRegistry`, which forwards them to every registered
reconciler adapter.
"""

from .events import NodesChanged, ServicesChanged  # noqa: F401
from .registry import ReconcilerRegistry  # noqa: F401

__all__ = [
    "NodesChanged",
    "ReconcilerRegistry",
    "ServicesChanged",
]
