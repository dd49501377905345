#!/usr/bin/env python3
"""
Per-replica health probing for Vault clusters
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, Iterable

from vault_api import VaultAPIError, VaultClient, VaultHealth

logger = logging.getLogger(__name__)


class ReplicaState(Enum):
    ACTIVE = "Active"
    SEALED = "Sealed"
    STANDBY_UNSEALED = "StandbyUnsealed"
    UNREACHABLE = "Unreachable"


def classify_health(health: VaultHealth) -> ReplicaState:
    """Sealed takes precedence over whatever standby reports"""
    if health.sealed:
        return ReplicaState.SEALED
    if health.initialized and not health.standby:
        return ReplicaState.ACTIVE
    return ReplicaState.STANDBY_UNSEALED


async def probe_replica(
    address: str, client_factory: Callable[[str], VaultClient] = VaultClient
) -> ReplicaState:
    """Ask one replica for its own health; never raises on Vault errors"""
    try:
        async with client_factory(address) as client:
            health = await client.health()
    except VaultAPIError as e:
        logger.warning(f"Replica {address} unreachable: {e}")
        return ReplicaState.UNREACHABLE
    return classify_health(health)


async def probe_replicas(
    addresses: Iterable[str], client_factory: Callable[[str], VaultClient] = VaultClient
) -> Dict[str, ReplicaState]:
    """
    Probe every replica concurrently

    The returned dict preserves the order of ``addresses`` whatever order
    the probes complete in, so later folding is deterministic.
    """
    ordered = list(dict.fromkeys(addresses))
    results = await asyncio.gather(
        *(probe_replica(address, client_factory) for address in ordered)
    )
    return dict(zip(ordered, results))
