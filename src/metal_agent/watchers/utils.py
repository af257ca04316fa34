from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Tuple


def node_key(node) -> str:
    return node.metadata.name


def service_key(svc) -> str:
    return f"{svc.metadata.namespace}/{svc.metadata.name}"


def index(objects: Iterable, key: Callable[[object], str]) -> Dict[str, object]:
    return {key(obj): obj for obj in objects}


def _provider_id(node) -> Optional[str]:
    return node.spec.provider_id if node.spec else None


def node_labels(node) -> Dict[str, str]:
    return dict(node.metadata.labels or {})


def node_changed(old, new) -> bool:
    return (_provider_id(old), node_labels(old)) != (_provider_id(new), node_labels(new))


def service_changed(old, new) -> bool:
    return (old.spec.type, old.spec.load_balancer_ip) != (
        new.spec.type,
        new.spec.load_balancer_ip,
    )


def diff(
    previous: Dict[str, object],
    current: Dict[str, object],
    changed: Callable[[object, object], bool],
) -> Tuple[List[object], List[object]]:
    """Return ``(added_or_changed, removed)`` between two snapshots."""

    added = [
        obj
        for key, obj in current.items()
        if key not in previous or changed(previous[key], obj)
    ]
    removed = [obj for key, obj in previous.items() if key not in current]
    return added, removed
