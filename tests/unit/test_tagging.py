import base64
import hashlib

from fakes import make_service

from metallb_sync.base import IPReservation
from metallb_sync.tagging import (
    PROVIDER_TAG,
    reservation_by_all_tags,
    reservations_by_any_tags,
    service_rep,
    service_tag,
)


def test_service_tag_format():
    svc = make_service("ns", "svc1")
    digest = hashlib.sha256(b"ns/svc1").digest()

    assert service_rep(svc) == "ns/svc1"
    assert service_tag(svc) == "service=" + base64.b64encode(digest).decode()


def test_service_tag_is_stable_and_distinct():
    a = make_service("ns", "a")
    b = make_service("ns", "b")
    other_ns = make_service("other", "a")

    assert service_tag(a) == service_tag(make_service("ns", "a"))
    assert len({service_tag(a), service_tag(b), service_tag(other_ns)}) == 3


def test_service_tag_of_none_is_empty():
    assert service_rep(None) == ""
    assert service_tag(None) == ""


def test_reservation_filters():
    tag = service_tag(make_service("ns", "a"))
    owned = IPReservation(id="1", address="1.1.1.1", cidr=32, tags=(PROVIDER_TAG, tag))
    foreign = IPReservation(id="2", address="2.2.2.2", cidr=32, tags=(tag,))
    scoped = IPReservation(id="3", address="3.3.3.3", cidr=32, tags=(PROVIDER_TAG,))
    reservations = [foreign, scoped, owned]

    assert reservation_by_all_tags([tag, PROVIDER_TAG], reservations) is owned
    assert reservation_by_all_tags(["service=missing", PROVIDER_TAG], reservations) is None
    assert reservations_by_any_tags([PROVIDER_TAG], reservations) == [scoped, owned]
