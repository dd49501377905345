#!/usr/bin/env python3
"""
Aggregate status of a Vault cluster as stored in the VaultService resource
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple

from replicas import ReplicaState


@dataclass(frozen=True)
class ClusterStatus:
    initialized: bool = False
    active_node: str = ""
    sealed_nodes: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict:
        """Serialize to the shape written under .status"""
        return {
            "initialized": self.initialized,
            "activeNode": self.active_node,
            "sealedNodes": list(self.sealed_nodes),
        }


def active_nodes(states: Mapping[str, ReplicaState]) -> List[str]:
    """All replicas reporting themselves active, in enumeration order"""
    return [address for address, state in states.items() if state is ReplicaState.ACTIVE]


def aggregate_status(initialized: bool, states: Mapping[str, ReplicaState]) -> ClusterStatus:
    """
    Fold per-replica states into a ClusterStatus

    Sealed replicas are listed in enumeration order. If several replicas
    claim to be active the last one wins; this does not prove leadership.
    Standby and unreachable replicas appear in neither field.
    """
    active_node = ""
    sealed_nodes = []
    for address, state in states.items():
        if state is ReplicaState.SEALED:
            sealed_nodes.append(address)
        elif state is ReplicaState.ACTIVE:
            active_node = address
    return ClusterStatus(
        initialized=initialized,
        active_node=active_node,
        sealed_nodes=tuple(sealed_nodes),
    )
