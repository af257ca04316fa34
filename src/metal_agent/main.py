"""Entry point for the standalone MetalLB sync agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from kubernetes import client, config as kube_config
from kubernetes.config.config_exception import ConfigException

from metal_ccm import ReconcilerRegistry
from metal_ccm.reconcilers import build_loadbalancer_adapter
from metallb_sync.driver import LoadBalancerDriver
from metallb_sync.store import ConfigMapStore, KubeServiceStore

from .config import AgentConfig, WatcherConfig, load_config
from .metal import (
    MetalClient,
    MetalPeerResolver,
    MetalReservationRegistry,
    get_metadata_facility,
)
from .watchers import ClusterWatcher

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def _load_kube_config() -> None:
    try:
        kube_config.load_incluster_config()
        LOG.info("Loaded in-cluster Kubernetes config")
    except ConfigException:
        kube_config.load_kube_config()
        LOG.info("Loaded kubeconfig")


def build_driver(cfg: AgentConfig, core: client.CoreV1Api) -> LoadBalancerDriver:
    drv = cfg.driver
    metal = MetalClient(drv.api_key, base_url=drv.base_url)

    store = None
    if drv.configmap_enable:
        namespace, name = drv.configmap
        store = ConfigMapStore(core, namespace, name)

    return LoadBalancerDriver(
        MetalReservationRegistry(metal, drv.project_id, drv.facility),
        KubeServiceStore(core),
        MetalPeerResolver(metal),
        local_asn=drv.local_asn,
        peer_asn=drv.peer_asn,
        store=store,
        configmap_enable=drv.configmap_enable,
        bgp_pass=drv.bgp_pass,
        node_selector=drv.node_selector,
    )


def _build_watcher(
    watcher_cfg: WatcherConfig,
    registry: ReconcilerRegistry,
    core: client.CoreV1Api,
    stop_event: Event,
) -> ClusterWatcher:
    if watcher_cfg.type != "kube":
        raise ValueError(f"unsupported watcher type '{watcher_cfg.type}'")
    return ClusterWatcher(
        registry,
        core,
        interval=float(watcher_cfg.options.get("interval", watcher_cfg.interval)),
        stop_event=stop_event,
        resync_every=int(watcher_cfg.options.get("resync_every", 10)),
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the MetalLB sync agent")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the agent configuration file (environment only if omitted)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single full sync and exit",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    cfg = load_config(args.config, facility_lookup=get_metadata_facility)
    for line in cfg.driver.describe():
        LOG.info(line)

    _load_kube_config()
    core = client.CoreV1Api()

    registry = ReconcilerRegistry()
    registry.register("loadbalancer", build_loadbalancer_adapter(build_driver(cfg, core)))

    stop_event = Event()
    watchers = [_build_watcher(w, registry, core, stop_event) for w in cfg.watchers]

    # initial pass in the foreground; its outcome is the --once exit status
    failed = 0
    for watcher in watchers:
        try:
            watcher.poll()
        except Exception:  # pragma: no cover
            LOG.exception("initial cluster poll failed")
            failed += 1

    if args.once:
        return 1 if failed else 0

    if not watchers:
        LOG.warning("no watchers configured; agent will idle")
    for watcher in watchers:
        watcher.start()

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, stopping %d watcher(s)", signum, len(watchers))
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    while not stop_event.wait(1.0):
        if watchers and not any(w.is_alive() for w in watchers):  # pragma: no cover
            LOG.error("all cluster watchers exited, stopping")
            stop_event.set()

    for watcher in watchers:
        watcher.join()

    LOG.info("MetalLB sync agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
