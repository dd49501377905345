#!/usr/bin/env python3

import kopf
import kubernetes
import logging
import time
from dataclasses import replace
from typing import Callable, Optional, Set, Tuple

from clients import (
    StatusConflict,
    StatusNotFound,
    StatusStoreError,
    VaultStatusStore,
    list_vault_replica_addresses,
)
from config import CRD_GROUP, CRD_VERSION, CRD_PLURAL, STATUS_INTERVAL
from metrics import forget_cluster, record_error, record_tick, update_cluster_metrics
from replicas import probe_replicas
from status import ClusterStatus, active_nodes, aggregate_status
from vault_api import VaultAPIError, VaultClient, vault_service_address

logger = logging.getLogger(__name__)

# (namespace, name) of every VaultService with a running monitor
monitored_clusters: Set[Tuple[str, str]] = set()


class VaultStatusMonitor:
    """
    Periodically probes one Vault cluster and writes its aggregate status

    A monitor is one-shot: once ``run`` returns it is not restarted, a new
    VaultService gets a new monitor. The status it holds is the last one
    successfully committed and is only replaced after a successful write.
    """

    def __init__(
        self,
        name: str,
        namespace: str,
        store: VaultStatusStore,
        core_v1: kubernetes.client.CoreV1Api,
        service_client: Optional[VaultClient] = None,
        client_factory: Callable[[str], VaultClient] = VaultClient,
        interval: float = STATUS_INTERVAL,
    ):
        self.name = name
        self.namespace = namespace
        self.store = store
        self.core_v1 = core_v1
        self.client_factory = client_factory
        self.interval = interval
        # Bound once for the lifetime of the monitor, not per tick
        self.service_client = service_client or client_factory(
            vault_service_address(name, namespace)
        )
        self.status = ClusterStatus()

    async def run(self, stopped) -> None:
        """
        Tick every ``interval`` seconds until ``stopped`` is set

        ``stopped`` is checked only while waiting between ticks; a tick in
        progress always runs to completion.
        """
        logger.info(f"Started monitoring VaultService {self.namespace}/{self.name}")
        try:
            while not stopped:
                await stopped.wait(self.interval)
                if stopped:
                    break

                start_time = time.time()
                try:
                    await self.tick()
                except Exception as e:
                    logger.error(
                        f"Unexpected error monitoring VaultService {self.namespace}/{self.name}: {e}",
                        exc_info=True,
                    )
                    record_error(self.namespace, self.name, "unknown")
                record_tick(self.namespace, self.name, time.time() - start_time)
        finally:
            await self.service_client.close()
            logger.info(f"Stopped monitoring VaultService {self.namespace}/{self.name}")

    async def tick(self) -> Optional[ClusterStatus]:
        """Probe once and commit; returns the committed status or None"""
        try:
            initialized = await self.service_client.init_status()
        except VaultAPIError as e:
            logger.error(f"Failed getting the init status of VaultService {self.namespace}/{self.name}: {e}")
            record_error(self.namespace, self.name, "init_status")
            return None

        states = None
        try:
            addresses = await list_vault_replica_addresses(self.core_v1, self.name, self.namespace)
        except StatusStoreError as e:
            logger.error(f"Failed to update replica status of VaultService {self.namespace}/{self.name}: {e}")
            record_error(self.namespace, self.name, "discovery")
            status = replace(self.status, initialized=initialized)
        else:
            states = await probe_replicas(addresses, self.client_factory)
            status = aggregate_status(initialized, states)

            actives = active_nodes(states)
            if len(actives) > 1:
                logger.warning(
                    f"VaultService {self.namespace}/{self.name} has {len(actives)} active replicas "
                    f"{actives}, reporting the last one: {status.active_node}"
                )

        logger.debug(f"Aggregated status of VaultService {self.namespace}/{self.name}: {status}")

        try:
            await self.store.update_status(self.name, status)
        except StatusConflict as e:
            logger.warning(f"Status update skipped, will retry next tick: {e}")
            record_error(self.namespace, self.name, "conflict")
            return None
        except StatusNotFound as e:
            logger.error(f"Failed updating the status of VaultService {self.namespace}/{self.name}: {e}")
            record_error(self.namespace, self.name, "not_found")
            return None
        except StatusStoreError as e:
            logger.error(f"Failed updating the status of VaultService {self.namespace}/{self.name}: {e}")
            record_error(self.namespace, self.name, "transport")
            return None

        self.status = status
        update_cluster_metrics(self.namespace, self.name, status, states)
        return status


@kopf.daemon(CRD_GROUP, CRD_VERSION, CRD_PLURAL)
async def monitor_vault_status(name, namespace, stopped, **kwargs):
    """Monitor a VaultService and keep its status current until it goes away"""
    monitor = VaultStatusMonitor(
        name,
        namespace,
        store=VaultStatusStore(kubernetes.client.CustomObjectsApi(), namespace),
        core_v1=kubernetes.client.CoreV1Api(),
    )
    monitored_clusters.add((namespace, name))
    try:
        await monitor.run(stopped)
    finally:
        monitored_clusters.discard((namespace, name))
        forget_cluster(namespace, name)
