"""Kubernetes-backed stores for the MetalLB document and Services."""

from __future__ import annotations

import logging
from typing import Tuple

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from .base import DocumentStore, ServiceStore
from .exceptions import DocumentStoreError, ServiceUpdateError

LOG = logging.getLogger(__name__)

CONFIG_KEY = "config"
MERGE_PATCH = "application/merge-patch+json"


def parse_configmap_ref(ref: str) -> Tuple[str, str]:
    """Split ``namespace:name``; both parts are required."""

    namespace, sep, name = ref.partition(":")
    if not sep or not namespace or not name:
        raise ValueError(f"ConfigMap reference must be 'namespace:name', got '{ref}'")
    return namespace, name


class ConfigMapStore(DocumentStore):
    """MetalLB document held under the ``config`` key of a ConfigMap."""

    def __init__(self, core: client.CoreV1Api, namespace: str, name: str) -> None:
        self._core = core
        self.namespace = namespace
        self.name = name

    def __repr__(self) -> str:
        return f"ConfigMapStore({self.namespace}:{self.name})"

    def get(self) -> str:
        try:
            cm = self._core.read_namespaced_config_map(self.name, self.namespace)
        except ApiException as exc:
            raise DocumentStoreError(
                f"unable to get MetalLB configmap {self.namespace}:{self.name}: {exc.status} {exc.reason}"
            ) from exc

        data = cm.data or {}
        if CONFIG_KEY not in data:
            raise DocumentStoreError(f"configmap data has no property '{CONFIG_KEY}'")
        return data[CONFIG_KEY]

    def patch(self, text: str) -> None:
        body = {"data": {CONFIG_KEY: text}}
        LOG.debug("patching configmap %s:%s:\n%s", self.namespace, self.name, text)
        try:
            self._core.patch_namespaced_config_map(
                self.name,
                self.namespace,
                body,
                _content_type=MERGE_PATCH,
            )
        except ApiException as exc:
            raise DocumentStoreError(
                f"failed to patch configmap {self.namespace}:{self.name}: {exc.status} {exc.reason}"
            ) from exc


class KubeServiceStore(ServiceStore):
    """Read-modify-write access to Services."""

    def __init__(self, core: client.CoreV1Api) -> None:
        self._core = core

    def get(self, namespace: str, name: str) -> client.V1Service:
        try:
            return self._core.read_namespaced_service(name, namespace)
        except ApiException as exc:
            raise ServiceUpdateError(
                f"failed to get latest for service {namespace}/{name}: {exc.status} {exc.reason}"
            ) from exc

    def update(self, service: client.V1Service) -> None:
        namespace, name = service.metadata.namespace, service.metadata.name
        try:
            self._core.replace_namespaced_service(name, namespace, service)
        except ApiException as exc:
            raise ServiceUpdateError(
                f"failed to update service {namespace}/{name}: {exc.status} {exc.reason}"
            ) from exc
