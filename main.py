#!/usr/bin/env python3

import kopf
import logging

from prometheus_client import start_http_server

from clients import setup_kubernetes_client
from config import METRICS_PORT
from metrics import init_metrics
# Importing the handlers module registers the VaultService daemon with kopf
from vaultservice_handlers import monitor_vault_status, monitored_clusters  # noqa: F401

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_):
    settings.posting.level = logging.WARNING
    setup_kubernetes_client()
    init_metrics()
    if METRICS_PORT:
        start_http_server(METRICS_PORT)
        logger.info(f"Serving Prometheus metrics on port {METRICS_PORT}")
    logger.info("Starting vault status operator")


@kopf.on.probe(id="monitored_clusters")
def monitored_clusters_probe(**kwargs):
    return len(monitored_clusters)


if __name__ == "__main__":
    kopf.run()
