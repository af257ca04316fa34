"""MetalLB / Equinix Metal elastic IP reconciliation.

This package keeps two independently owned stores in step with the cluster:

* the MetalLB configuration document (BGP peers per node and one address pool
  per LoadBalancer Service), held in a ConfigMap; and
* the elastic IP reservations of the Equinix Metal project, linked back to
  their Services only through tags.

Each pass reads fresh state, computes the changes in memory and writes the
document at most once.  Every operation is idempotent, so re-running a pass
after a failure is always safe.

The driver exposed via :class:`metallb_sync.driver.LoadBalancerDriver` wires
the reconcilers together; the stores, the registry and the peer resolver are
passed in so the diff logic can be tested without any API.
"""

from .driver import LoadBalancerDriver  # noqa: F401
from .modes import UpdateMode  # noqa: F401

__all__ = ["LoadBalancerDriver", "UpdateMode"]
