"""Correlation tags linking Services to the IP reservations they own.

Reservations carry no foreign key back to the cluster.  Instead each one is
tagged with the provider scope tag plus a tag derived from the owning Service's
``namespace/name``; ownership is always rediscovered by filtering on tags.
"""

from __future__ import annotations

import base64
import hashlib
from typing import Iterable, List, Optional, Sequence

from .base import IPReservation

PROVIDER_TAG = "usage=cloud-provider-equinix-metal-auto"
SERVICE_TAG_PREFIX = "service="


def service_rep(svc) -> str:
    """Return ``namespace/name`` for ``svc`` (empty for None)."""

    if svc is None:
        return ""
    return f"{svc.metadata.namespace}/{svc.metadata.name}"


def service_tag(svc) -> str:
    if svc is None:
        return ""
    digest = hashlib.sha256(service_rep(svc).encode("utf-8")).digest()
    return SERVICE_TAG_PREFIX + base64.b64encode(digest).decode("ascii")


def reservation_by_all_tags(
    tags: Sequence[str], reservations: Iterable[IPReservation]
) -> Optional[IPReservation]:
    """Return the first reservation carrying every tag in ``tags``."""

    wanted = set(tags)
    return next((r for r in reservations if wanted.issubset(r.tags)), None)


def reservations_by_any_tags(
    tags: Sequence[str], reservations: Iterable[IPReservation]
) -> List[IPReservation]:
    wanted = set(tags)
    return [r for r in reservations if wanted.intersection(r.tags)]
