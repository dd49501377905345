#!/usr/bin/env python3
"""
Prometheus metrics for the Vault status operator
"""

import logging
from typing import Mapping, Optional

from prometheus_client import Counter, Gauge, Histogram, Info

from replicas import ReplicaState
from status import ClusterStatus

logger = logging.getLogger(__name__)

# Reconcile loop metrics
status_ticks = Counter(
    "vault_status_ticks_total",
    "Total number of status probe cycles",
    ["namespace", "cluster"],
)

status_errors = Counter(
    "vault_status_errors_total",
    "Total number of errors during status probe cycles",
    ["namespace", "cluster", "error_type"],
)

status_tick_duration = Histogram(
    "vault_status_tick_duration_seconds",
    "Time spent probing a Vault cluster and committing its status",
    ["namespace", "cluster"],
)

# Cluster state metrics
cluster_initialized = Gauge(
    "vault_cluster_initialized",
    "Whether the Vault cluster is initialized",
    ["namespace", "cluster"],
)

cluster_sealed_nodes = Gauge(
    "vault_cluster_sealed_nodes",
    "Number of sealed Vault replicas",
    ["namespace", "cluster"],
)

cluster_active_node_present = Gauge(
    "vault_cluster_active_node_present",
    "Whether an active Vault replica was found",
    ["namespace", "cluster"],
)

cluster_replicas = Gauge(
    "vault_cluster_replicas",
    "Number of Vault replicas by observed state",
    ["namespace", "cluster", "state"],
)

# Operator info
operator_info = Info(
    "vault_status_operator",
    "Vault status operator information",
)


def init_metrics():
    """Initialize operator metrics"""
    operator_info.info(
        {
            "version": "v1alpha1",
            "name": "vault-status-operator",
            "description": "Vault cluster status reconciler",
        }
    )
    logger.info("Prometheus metrics initialized")


def record_tick(namespace: str, cluster_name: str, duration: float):
    """Record a completed probe cycle"""
    status_ticks.labels(namespace=namespace, cluster=cluster_name).inc()
    status_tick_duration.labels(namespace=namespace, cluster=cluster_name).observe(duration)


def record_error(namespace: str, cluster_name: str, error_type: str):
    """Record a probe cycle error"""
    status_errors.labels(
        namespace=namespace, cluster=cluster_name, error_type=error_type
    ).inc()


def update_cluster_metrics(
    namespace: str,
    cluster_name: str,
    status: ClusterStatus,
    states: Optional[Mapping[str, ReplicaState]],
):
    """
    Update gauges from the latest aggregate status and replica states

    ``states`` is None when replicas could not be listed; the per-state
    replica counts are then left as they were.
    """
    cluster_initialized.labels(namespace=namespace, cluster=cluster_name).set(
        1 if status.initialized else 0
    )
    cluster_sealed_nodes.labels(namespace=namespace, cluster=cluster_name).set(
        len(status.sealed_nodes)
    )
    cluster_active_node_present.labels(namespace=namespace, cluster=cluster_name).set(
        1 if status.active_node else 0
    )
    if states is None:
        return
    for state in ReplicaState:
        count = sum(1 for s in states.values() if s is state)
        cluster_replicas.labels(
            namespace=namespace, cluster=cluster_name, state=state.value
        ).set(count)


def forget_cluster(namespace: str, cluster_name: str):
    """Drop gauge series of a cluster that is no longer monitored"""
    for gauge in (cluster_initialized, cluster_sealed_nodes, cluster_active_node_present):
        try:
            gauge.remove(namespace, cluster_name)
        except KeyError:
            pass
    for state in ReplicaState:
        try:
            cluster_replicas.remove(namespace, cluster_name, state.value)
        except KeyError:
            pass
