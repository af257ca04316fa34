from unittest.mock import MagicMock

import pytest
import requests

from fakes import MemoryDocumentStore, make_node

from metal_agent.metal import (
    MetalAPIError,
    MetalClient,
    MetalPeerResolver,
    MetalReservationRegistry,
    device_id_from_provider_id,
    get_metadata_facility,
)
from metallb_sync.exceptions import PeerLookupError, RegistryError
from metallb_sync.modes import UpdateMode
from metallb_sync.nodes import NodeReconciler
from metallb_sync.tagging import PROVIDER_TAG


def response(status: int = 200, payload=None, reason: str = "OK"):
    resp = MagicMock()
    resp.status_code = status
    resp.reason = reason
    resp.content = b"{}" if payload is not None else b""
    resp.json.return_value = payload
    return resp


def build_client(*responses):
    session = MagicMock()
    session.request.side_effect = list(responses)
    client = MetalClient("token", base_url="https://metal.example/v1", session=session)
    return client, session


def test_client_sets_auth_header():
    client, session = build_client()

    session.headers.update.assert_called_once()
    headers = session.headers.update.call_args[0][0]
    assert headers["X-Auth-Token"] == "token"


def test_list_ip_reservations():
    payload = {
        "ip_addresses": [
            {"id": "r1", "address": "147.75.0.1", "cidr": 32, "tags": [PROVIDER_TAG], "facility": {"code": "ny5"}},
            {"id": "r2", "address": "147.75.0.8", "cidr": 29},
        ]
    }
    client, session = build_client(response(payload=payload))

    reservations = client.list_ip_reservations("proj")

    method, url = session.request.call_args[0]
    assert (method, url) == ("GET", "https://metal.example/v1/projects/proj/ips")
    assert [r.cidr_string for r in reservations] == ["147.75.0.1/32", "147.75.0.8/29"]
    assert reservations[0].tags == (PROVIDER_TAG,)
    assert reservations[0].facility == "ny5"
    assert reservations[1].tags == ()


def test_request_reservation_fails_fast():
    payload = {"id": "r3", "address": "147.75.0.3", "cidr": 32, "tags": ["a", "b"]}
    client, session = build_client(response(status=201, payload=payload))
    registry = MetalReservationRegistry(client, "proj", "ny5")

    reservation = registry.request(["a", "b"])

    body = session.request.call_args[1]["json"]
    assert body["quantity"] == 1
    assert body["fail_on_approval_required"] is True
    assert body["facility"] == "ny5"
    assert body["tags"] == ["a", "b"]
    assert reservation.address == "147.75.0.3"


def test_pending_reservation_returns_none():
    client, _ = build_client(response(status=201, payload={"id": "r4", "state": "pending"}))

    assert MetalReservationRegistry(client, "proj", None).request(["a"]) is None


def test_api_errors_become_registry_errors():
    client, _ = build_client(
        response(status=422, payload={"errors": ["approval required"]}, reason="Unprocessable")
    )

    with pytest.raises(RegistryError) as excinfo:
        client.request_ip_reservation("proj", tags=["a"], facility="ny5")

    assert excinfo.value.status == 422
    assert "approval required" in str(excinfo.value)


def test_connection_errors_become_registry_errors():
    session = MagicMock()
    session.request.side_effect = requests.ConnectionError("refused")
    client = MetalClient("token", session=session)

    with pytest.raises(MetalAPIError):
        client.list_ip_reservations("proj")


def test_remove_reservation():
    client, session = build_client(response(status=204))

    MetalReservationRegistry(client, "proj", None).remove("r1")

    method, url = session.request.call_args[0]
    assert (method, url) == ("DELETE", "https://metal.example/v1/ips/r1")


def test_resolver_returns_ipv4_peer_addresses():
    payload = {
        "bgp_neighbors": [
            {"address_family": 4, "peer_ips": ["169.254.255.1", "169.254.255.2"]},
            {"address_family": 6, "peer_ips": ["fc00::1"]},
        ]
    }
    client, session = build_client(response(payload=payload))

    peers = MetalPeerResolver(client).resolve("equinixmetal://abc-123")

    assert peers == ["169.254.255.1", "169.254.255.2"]
    assert session.request.call_args[0][1].endswith("devices/abc-123/bgp/neighbors")


@pytest.mark.parametrize(
    "provider_id,expected",
    [
        ("equinixmetal://abc", "abc"),
        ("packet://abc", "abc"),
        ("abc", "abc"),
    ],
)
def test_device_id_from_provider_id(provider_id, expected):
    assert device_id_from_provider_id(provider_id) == expected


@pytest.mark.parametrize("provider_id", ["", "aws://abc", "equinixmetal://"])
def test_device_id_rejects_foreign_ids(provider_id):
    with pytest.raises(PeerLookupError):
        device_id_from_provider_id(provider_id)


def test_metadata_facility():
    session = MagicMock()
    session.get.return_value.json.return_value = {"facility": "da11"}

    assert get_metadata_facility(session=session) == "da11"

    session.get.return_value.json.return_value = {}
    with pytest.raises(MetalAPIError):
        get_metadata_facility(session=session)


def html_response(status: int = 200, reason: str = "OK"):
    resp = response(status=status, reason=reason)
    resp.content = b"<html>maintenance</html>"
    resp.json.side_effect = requests.JSONDecodeError("Expecting value", "<html>", 0)
    return resp


def test_undecodable_body_becomes_registry_error():
    client, _ = build_client(html_response())

    with pytest.raises(MetalAPIError) as excinfo:
        client.list_bgp_neighbors("abc-123")

    assert excinfo.value.status == 200


def test_non_object_body_becomes_registry_error():
    client, _ = build_client(response(payload=["147.75.0.1"]))

    with pytest.raises(MetalAPIError):
        client.list_ip_reservations("proj")


@pytest.mark.parametrize(
    "resp",
    [
        response(status=500, payload=["boom"], reason="Server Error"),
        html_response(status=502, reason="Bad Gateway"),
    ],
)
def test_error_bodies_fall_back_to_reason(resp):
    client, _ = build_client(resp)

    with pytest.raises(MetalAPIError) as excinfo:
        client.delete_ip_reservation("r1")

    assert excinfo.value.status == resp.status_code
    assert resp.reason in str(excinfo.value)


def test_node_with_undecodable_neighbours_is_skipped():
    client, _ = build_client(html_response())
    store = MemoryDocumentStore()
    reconciler = NodeReconciler(store, MetalPeerResolver(client), local_asn=65000, peer_asn=65530)

    assert reconciler.reconcile([make_node("n1")], UpdateMode.ADD) is False
    assert store.patches == []
