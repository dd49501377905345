#!/usr/bin/env python3
"""
Operator configuration read from the environment
"""

import os
from typing import Dict

# VaultService custom resource coordinates
CRD_GROUP = "vault.security.coreos.com"
CRD_VERSION = "v1alpha1"
CRD_PLURAL = "vaultservices"

# Vault listener
VAULT_PORT = int(os.environ.get("VAULT_PORT", "8200"))
VAULT_SCHEME = os.environ.get("VAULT_SCHEME", "http")

# Seconds between two status probes of the same cluster
STATUS_INTERVAL = float(os.environ.get("STATUS_INTERVAL", "10"))

# Upper bound for every HTTP call made against Vault
REQUEST_TIMEOUT = float(os.environ.get("REQUEST_TIMEOUT", "5"))

# Prometheus exporter port, 0 disables it
METRICS_PORT = int(os.environ.get("METRICS_PORT", "9090"))


def vault_pod_labels(name: str) -> Dict[str, str]:
    """Labels carried by every Vault pod of a VaultService"""
    return {"app": "vault", "vault_cluster": name}


def label_selector(labels: Dict[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))
