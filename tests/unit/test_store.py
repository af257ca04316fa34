from unittest.mock import MagicMock

import pytest
from kubernetes.client import V1ConfigMap
from kubernetes.client.exceptions import ApiException

from fakes import make_service

from metallb_sync.config import ConfigFile, NodeSelector, Peer
from metallb_sync.exceptions import DocumentStoreError, ServiceUpdateError
from metallb_sync.store import (
    MERGE_PATCH,
    ConfigMapStore,
    KubeServiceStore,
    parse_configmap_ref,
)


def test_parse_configmap_ref():
    assert parse_configmap_ref("metallb-system:config") == ("metallb-system", "config")

    for bad in ("config", ":config", "metallb-system:", ""):
        with pytest.raises(ValueError):
            parse_configmap_ref(bad)


def test_load_reads_config_key():
    core = MagicMock()
    core.read_namespaced_config_map.return_value = V1ConfigMap(
        data={"config": "peers:\n- {my-asn: 1, peer-asn: 2, peer-address: 10.0.0.1}\n"}
    )
    store = ConfigMapStore(core, "metallb-system", "config")

    cfg = store.load()

    core.read_namespaced_config_map.assert_called_once_with("config", "metallb-system")
    assert cfg.peers[0].addr == "10.0.0.1"


def test_get_missing_configmap_raises():
    core = MagicMock()
    core.read_namespaced_config_map.side_effect = ApiException(status=404, reason="Not Found")

    with pytest.raises(DocumentStoreError):
        ConfigMapStore(core, "metallb-system", "config").get()


def test_get_missing_key_raises():
    core = MagicMock()
    core.read_namespaced_config_map.return_value = V1ConfigMap(data={"other": ""})

    with pytest.raises(DocumentStoreError):
        ConfigMapStore(core, "metallb-system", "config").get()


def test_save_sends_merge_patch_of_config_field():
    core = MagicMock()
    store = ConfigMapStore(core, "metallb-system", "config")
    cfg = ConfigFile()
    cfg.add_peer(
        Peer(my_asn=65000, asn=65530, addr="10.0.0.1", node_selectors=[NodeSelector.for_hostname("n1")])
    )

    store.save(cfg)

    args, kwargs = core.patch_namespaced_config_map.call_args
    assert args[0] == "config"
    assert args[1] == "metallb-system"
    assert args[2] == {"data": {"config": cfg.to_bytes().decode()}}
    assert kwargs["_content_type"] == MERGE_PATCH


def test_patch_failure_raises():
    core = MagicMock()
    core.patch_namespaced_config_map.side_effect = ApiException(status=409, reason="Conflict")

    with pytest.raises(DocumentStoreError):
        ConfigMapStore(core, "metallb-system", "config").patch("{}\n")


def test_service_store_round_trip():
    core = MagicMock()
    svc = make_service("ns", "web")
    core.read_namespaced_service.return_value = svc
    store = KubeServiceStore(core)

    latest = store.get("ns", "web")
    latest.spec.load_balancer_ip = "147.75.0.1"
    store.update(latest)

    core.read_namespaced_service.assert_called_once_with("web", "ns")
    core.replace_namespaced_service.assert_called_once_with("web", "ns", latest)


def test_service_store_conflict_raises():
    core = MagicMock()
    core.replace_namespaced_service.side_effect = ApiException(status=409, reason="Conflict")

    with pytest.raises(ServiceUpdateError):
        KubeServiceStore(core).update(make_service("ns", "web"))

    core.read_namespaced_service.side_effect = ApiException(status=404, reason="Not Found")
    with pytest.raises(ServiceUpdateError):
        KubeServiceStore(core).get("ns", "web")
