"""YAML configuration loader for the MetalLB sync agent.

Values are read from the ``driver`` section of the YAML file and can be
overridden by ``METAL_*`` environment variables; any setting present in the
environment wins over the file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Sequence

import yaml

from metallb_sync.selectors import LabelSelector, parse_selector
from metallb_sync.store import parse_configmap_ref

from .metal import DEFAULT_BASE_URL

ENV_API_KEY = "METAL_API_KEY"
ENV_PROJECT_ID = "METAL_PROJECT_ID"
ENV_FACILITY = "METAL_FACILITY_NAME"
ENV_LOADBALANCER = "METAL_LB"
ENV_LOCAL_ASN = "METAL_LOCAL_ASN"
ENV_PEER_ASN = "METAL_PEER_ASN"
ENV_BGP_PASS = "METAL_BGP_PASS"
ENV_BGP_NODE_SELECTOR = "METAL_BGP_NODE_SELECTOR"
ENV_BASE_URL = "METAL_BASE_URL"

DEFAULT_LOADBALANCER = "metallb-system:config"
DEFAULT_LOCAL_ASN = 65000
DEFAULT_PEER_ASN = 65530


@dataclass
class DriverConfig:
    api_key: str
    project_id: str
    facility: Optional[str]
    loadbalancer: str = DEFAULT_LOADBALANCER
    configmap_enable: bool = True
    local_asn: int = DEFAULT_LOCAL_ASN
    peer_asn: int = DEFAULT_PEER_ASN
    bgp_pass: Optional[str] = None
    bgp_node_selector: str = ""
    base_url: str = DEFAULT_BASE_URL

    @property
    def configmap(self) -> tuple[str, str]:
        return parse_configmap_ref(self.loadbalancer)

    @property
    def node_selector(self) -> LabelSelector:
        return parse_selector(self.bgp_node_selector)

    def describe(self) -> List[str]:
        """Startup summary with secrets masked."""

        return [
            "API key: '<masked>'" if self.api_key else "API key: ''",
            f"project ID: '{self.project_id}'",
            f"facility: '{self.facility or ''}'",
            f"load balancer config: '{self.loadbalancer}'"
            if self.configmap_enable
            else "load balancer config: disabled",
            f"local ASN: '{self.local_asn}'",
            f"peer ASN: '{self.peer_asn}'",
            "BGP password: '<masked>'" if self.bgp_pass else "BGP password: ''",
            f"BGP node selector: '{self.bgp_node_selector}'",
        ]


@dataclass
class WatcherConfig:
    type: str
    interval: float = 60.0
    options: dict = field(default_factory=dict)


@dataclass
class AgentConfig:
    driver: DriverConfig
    watchers: Sequence[WatcherConfig] = field(default_factory=list)


def _pick(env: Mapping[str, str], name: str, section: dict, key: str, default=None):
    value = env.get(name)
    if value:
        return value
    return section.get(key, default)


def _as_int(value, label: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{label} must be a number, was {value!r}") from exc


def _parse_driver(
    section: dict,
    env: Mapping[str, str],
    facility_lookup: Optional[Callable[[], str]],
) -> DriverConfig:
    api_key = _pick(env, ENV_API_KEY, section, "api_key")
    if not api_key:
        raise ValueError(f"environment variable {ENV_API_KEY!r} is required")
    project_id = _pick(env, ENV_PROJECT_ID, section, "project_id")
    if not project_id:
        raise ValueError(f"environment variable {ENV_PROJECT_ID!r} is required")

    facility = _pick(env, ENV_FACILITY, section, "facility")
    if not facility and facility_lookup is not None:
        facility = facility_lookup()

    loadbalancer = _pick(env, ENV_LOADBALANCER, section, "loadbalancer") or DEFAULT_LOADBALANCER
    configmap_enable = bool(section.get("configmap_enable", True))
    if configmap_enable:
        parse_configmap_ref(str(loadbalancer))

    selector = str(_pick(env, ENV_BGP_NODE_SELECTOR, section, "bgp_node_selector", "") or "")
    try:
        parse_selector(selector)
    except ValueError as exc:
        raise ValueError(f"BGP node selector must be a valid Kubernetes selector: {exc}") from exc

    bgp_pass = _pick(env, ENV_BGP_PASS, section, "bgp_pass")

    return DriverConfig(
        api_key=str(api_key),
        project_id=str(project_id),
        facility=str(facility) if facility else None,
        loadbalancer=str(loadbalancer),
        configmap_enable=configmap_enable,
        local_asn=_as_int(
            _pick(env, ENV_LOCAL_ASN, section, "local_asn", DEFAULT_LOCAL_ASN), ENV_LOCAL_ASN
        ),
        peer_asn=_as_int(
            _pick(env, ENV_PEER_ASN, section, "peer_asn", DEFAULT_PEER_ASN), ENV_PEER_ASN
        ),
        bgp_pass=str(bgp_pass) if bgp_pass else None,
        bgp_node_selector=selector,
        base_url=str(_pick(env, ENV_BASE_URL, section, "base_url", DEFAULT_BASE_URL)),
    )


def _parse_watchers(entries: Iterable[dict]) -> List[WatcherConfig]:
    watchers: List[WatcherConfig] = []
    for entry in entries:
        options = entry.get("options", {})
        if not isinstance(options, dict):
            raise ValueError("watcher 'options' must be a mapping if provided")
        watchers.append(
            WatcherConfig(
                type=str(entry["type"]),
                interval=float(entry.get("interval", 60.0)),
                options=options,
            )
        )
    return watchers


def load_config(
    path: Optional[Path],
    environ: Optional[Mapping[str, str]] = None,
    facility_lookup: Optional[Callable[[], str]] = None,
) -> AgentConfig:
    """Load the agent configuration.

    ``path`` may be None to configure the agent from the environment alone.
    ``facility_lookup`` is called when no facility is configured, normally
    to ask the metadata service.
    """

    env = os.environ if environ is None else environ
    data: dict = {}
    if path is not None:
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError("Agent configuration must be a mapping")

    driver_section = data.get("driver", {})
    if not isinstance(driver_section, dict):
        raise ValueError("'driver' section must be a mapping")
    driver = _parse_driver(driver_section, env, facility_lookup)

    watchers_section = data.get("watchers", [{"type": "kube"}])
    if not isinstance(watchers_section, list):
        raise ValueError("'watchers' section must be a list")
    watchers = _parse_watchers(watchers_section)

    return AgentConfig(driver=driver, watchers=watchers)
