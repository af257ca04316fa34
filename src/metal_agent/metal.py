"""Equinix Metal API client.

Only the handful of endpoints the reconcilers need are wrapped: project IP
reservations, device BGP neighbours and the instance metadata service.  The
module also provides the :class:`ReservationRegistry` and
:class:`PeerResolver` implementations backed by this client.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from metallb_sync.base import IPReservation, PeerResolver, ReservationRegistry
from metallb_sync.exceptions import PeerLookupError, RegistryError

LOG = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.equinix.com/metal/v1/"
METADATA_URL = "https://metadata.platformequinix.com/metadata"
IP_DESCRIPTION = "Equinix Metal Kubernetes CCM auto-generated for Load Balancer"
PROVIDER_PREFIXES = ("equinixmetal://", "packet://")
USER_AGENT = "metal-metallb-sync"


class MetalAPIError(RegistryError):
    """An Equinix Metal API call failed."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def device_id_from_provider_id(provider_id: str) -> str:
    """Strip the provider scheme from a node's ``spec.providerID``."""

    if not provider_id:
        raise PeerLookupError("provider ID cannot be empty")
    if "://" not in provider_id:
        return provider_id
    for prefix in PROVIDER_PREFIXES:
        if provider_id.startswith(prefix):
            device_id = provider_id[len(prefix):]
            if device_id:
                return device_id
    raise PeerLookupError(f"provider ID '{provider_id}' is not an Equinix Metal device")


def _reservation_from_json(data: Dict[str, Any]) -> IPReservation:
    facility = data.get("facility")
    if isinstance(facility, dict):
        facility = facility.get("code")
    return IPReservation(
        id=str(data["id"]),
        address=str(data["address"]),
        cidr=int(data["cidr"]),
        tags=tuple(data.get("tags") or ()),
        facility=facility,
    )


class MetalClient:
    """Thin wrapper around the Equinix Metal REST API."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "X-Auth-Token": token,
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            }
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = self._base_url + path
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            raise MetalAPIError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            errors = (body.get("errors") if isinstance(body, dict) else None) or []
            detail = "; ".join(str(e) for e in errors) or response.reason
            raise MetalAPIError(
                f"{method} {path} returned {response.status_code}: {detail}",
                status=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return None
        try:
            data = response.json()
        except ValueError as exc:
            raise MetalAPIError(
                f"{method} {path} returned an undecodable body: {exc}",
                status=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise MetalAPIError(
                f"{method} {path} returned {type(data).__name__}, expected an object",
                status=response.status_code,
            )
        return data

    # ------------------------------------------------------------------
    # IP reservations
    # ------------------------------------------------------------------
    def list_ip_reservations(self, project_id: str) -> List[IPReservation]:
        data = self._request("GET", f"projects/{project_id}/ips")
        entries = (data or {}).get("ip_addresses") or []
        return [_reservation_from_json(e) for e in entries if e.get("address")]

    def request_ip_reservation(
        self,
        project_id: str,
        *,
        tags: Sequence[str],
        facility: Optional[str],
        quantity: int = 1,
        fail_on_approval_required: bool = True,
    ) -> Optional[IPReservation]:
        body: Dict[str, Any] = {
            "type": "public_ipv4",
            "quantity": quantity,
            "details": IP_DESCRIPTION,
            "tags": list(tags),
            "fail_on_approval_required": fail_on_approval_required,
        }
        if facility:
            body["facility"] = facility
        data = self._request("POST", f"projects/{project_id}/ips", json=body)
        if not data or not data.get("address"):
            # pending reservations have no address yet
            return None
        return _reservation_from_json(data)

    def delete_ip_reservation(self, reservation_id: str) -> None:
        self._request("DELETE", f"ips/{reservation_id}")

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------
    def list_bgp_neighbors(self, device_id: str) -> List[Dict[str, Any]]:
        data = self._request("GET", f"devices/{device_id}/bgp/neighbors")
        return list((data or {}).get("bgp_neighbors") or [])


class MetalReservationRegistry(ReservationRegistry):
    """Reservations of a single Equinix Metal project."""

    def __init__(self, client: MetalClient, project_id: str, facility: Optional[str]) -> None:
        self._client = client
        self._project_id = project_id
        self._facility = facility

    def list(self) -> List[IPReservation]:
        return self._client.list_ip_reservations(self._project_id)

    def request(self, tags: Sequence[str]) -> Optional[IPReservation]:
        LOG.debug("requesting IP reservation in %s with tags %s", self._facility, tags)
        return self._client.request_ip_reservation(
            self._project_id,
            tags=tags,
            facility=self._facility,
            fail_on_approval_required=True,
        )

    def remove(self, reservation_id: str) -> None:
        self._client.delete_ip_reservation(reservation_id)


class MetalPeerResolver(PeerResolver):
    """Resolve a node's IPv4 BGP peers from its device BGP neighbours."""

    def __init__(self, client: MetalClient) -> None:
        self._client = client

    def resolve(self, provider_id: str) -> List[str]:
        device_id = device_id_from_provider_id(provider_id)
        peers: List[str] = []
        for neighbor in self._client.list_bgp_neighbors(device_id):
            if neighbor.get("address_family") == 6:
                continue
            for addr in neighbor.get("peer_ips") or []:
                if addr not in peers:
                    peers.append(addr)
        return peers


def get_metadata_facility(
    session: Optional[requests.Session] = None,
    url: str = METADATA_URL,
    timeout: float = 10.0,
) -> str:
    """Return the facility code of the machine we are running on."""

    http = session or requests.Session()
    try:
        response = http.get(url, timeout=timeout)
        response.raise_for_status()
        facility = response.json().get("facility")
    except (requests.RequestException, ValueError) as exc:
        raise MetalAPIError(f"error reading metadata from {url}: {exc}") from exc
    if not facility:
        raise MetalAPIError(f"metadata at {url} has no facility")
    return str(facility)
