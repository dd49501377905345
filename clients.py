#!/usr/bin/env python3

import asyncio
import kubernetes
import logging
import os
from pathlib import Path
from typing import Dict, List

from kubernetes.client.rest import ApiException

from config import CRD_GROUP, CRD_VERSION, CRD_PLURAL, label_selector, vault_pod_labels
from status import ClusterStatus
from vault_api import vault_pod_address

logger = logging.getLogger(__name__)


class StatusStoreError(Exception):
    """The VaultService status could not be read or written"""


class StatusNotFound(StatusStoreError):
    """The VaultService no longer exists"""


class StatusConflict(StatusStoreError):
    """The VaultService changed between read and write"""


class StatusTransportError(StatusStoreError):
    """The Kubernetes API call failed for another reason"""


def setup_kubernetes_client():
    """Load kubeconfig if present, otherwise fall back to in-cluster config"""
    kubeconfig_path = os.environ.get("KUBECONFIG", "~/.kube/config")
    kubeconfig_file = Path(os.path.expanduser(kubeconfig_path))

    if kubeconfig_file.exists():
        logger.info(f"Kubeconfig file found: {kubeconfig_file}")
        try:
            kubernetes.config.load_kube_config(config_file=str(kubeconfig_file))
            logger.info("Loaded kubeconfig")
            return
        except kubernetes.config.ConfigException as e:
            logger.warning(f"Failed to load kubeconfig: {e}")
    else:
        logger.info(f"Kubeconfig file not found: {kubeconfig_file}")

    if not os.environ.get("KUBERNETES_SERVICE_HOST") or not os.environ.get("KUBERNETES_SERVICE_PORT"):
        logger.error("KUBERNETES_SERVICE_HOST and KUBERNETES_SERVICE_PORT not set, in-cluster config will fail")

    # Raises ConfigException, which aborts operator startup
    kubernetes.config.load_incluster_config()
    logger.info("Loaded in-cluster config")


def _store_error(e: Exception, action: str, name: str, namespace: str) -> StatusStoreError:
    if isinstance(e, ApiException):
        if e.status == 404:
            return StatusNotFound(f"VaultService {namespace}/{name} not found while {action}")
        if e.status == 409:
            return StatusConflict(f"VaultService {namespace}/{name} was modified concurrently while {action}")
        return StatusTransportError(f"Failed {action} VaultService {namespace}/{name}: HTTP {e.status} {e.reason}")
    return StatusTransportError(f"Failed {action} VaultService {namespace}/{name}: {type(e).__name__}: {e}")


class VaultStatusStore:
    """Read-modify-write access to the status of one VaultService"""

    def __init__(self, custom_objects_api: kubernetes.client.CustomObjectsApi, namespace: str):
        self.api = custom_objects_api
        self.namespace = namespace

    async def get(self, name: str) -> Dict:
        """Get the full VaultService object"""
        try:
            return await asyncio.to_thread(
                self.api.get_namespaced_custom_object,
                group=CRD_GROUP,
                version=CRD_VERSION,
                namespace=self.namespace,
                plural=CRD_PLURAL,
                name=name,
            )
        except Exception as e:
            raise _store_error(e, "reading", name, self.namespace) from e

    async def update_status(self, name: str, status: ClusterStatus) -> Dict:
        """
        Replace the status of a VaultService

        The latest object is read first and only its status is overwritten,
        so concurrent edits to other fields survive. The resourceVersion of
        the read makes the write conditional: if the object changed in
        between, the API server rejects it and StatusConflict is raised.
        """
        vault = await self.get(name)
        vault["status"] = status.to_dict()
        try:
            updated = await asyncio.to_thread(
                self.api.replace_namespaced_custom_object_status,
                group=CRD_GROUP,
                version=CRD_VERSION,
                namespace=self.namespace,
                plural=CRD_PLURAL,
                name=name,
                body=vault,
            )
        except Exception as e:
            raise _store_error(e, "updating status of", name, self.namespace) from e
        logger.debug(f"Updated status of VaultService {self.namespace}/{name}: {vault['status']}")
        return updated


async def list_vault_replica_addresses(
    core_v1: kubernetes.client.CoreV1Api, name: str, namespace: str
) -> List[str]:
    """Addresses of the running Vault pods of a VaultService, in listing order"""
    # TODO: pods of two replica sets can co-exist during an upgrade; both are probed
    selector = label_selector(vault_pod_labels(name))
    try:
        pods = await asyncio.to_thread(
            core_v1.list_namespaced_pod, namespace, label_selector=selector
        )
    except Exception as e:
        raise StatusTransportError(
            f"Failed listing pods for VaultService {namespace}/{name}: {type(e).__name__}: {e}"
        ) from e

    addresses = []
    for pod in pods.items:
        if pod.status is None or pod.status.phase != "Running" or not pod.status.pod_ip:
            continue
        address = vault_pod_address(pod.status.pod_ip)
        if address not in addresses:
            addresses.append(address)
    return addresses
