#!/usr/bin/env python3
"""
Minimal async client for the Vault sys status API
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from config import REQUEST_TIMEOUT, VAULT_PORT, VAULT_SCHEME

logger = logging.getLogger(__name__)

# Vault answers /sys/health with a role specific status code (429 standby,
# 503 sealed, 501 uninitialized, ...). Asking for 299 everywhere keeps the
# body parseable for every role.
HEALTH_PARAMS = {
    "uninitcode": 299,
    "sealedcode": 299,
    "standbycode": 299,
    "drsecondarycode": 299,
    "performancestandbycode": 299,
}


class VaultAPIError(Exception):
    """Vault could not be queried"""


class VaultConnectionError(VaultAPIError):
    """Vault is unreachable or did not answer in time"""


class VaultProtocolError(VaultAPIError):
    """Vault answered with something we cannot interpret"""


@dataclass(frozen=True)
class VaultHealth:
    initialized: bool
    sealed: bool
    standby: bool


def vault_service_address(name: str, namespace: str) -> str:
    """Address of the Kubernetes service fronting a Vault cluster"""
    return f"{VAULT_SCHEME}://{name}.{namespace}.svc:{VAULT_PORT}"


def vault_pod_address(pod_ip: str) -> str:
    """Address of a single Vault replica; IPv6 literals are bracketed"""
    try:
        if ipaddress.ip_address(pod_ip).version == 6:
            pod_ip = f"[{pod_ip}]"
    except ValueError:
        pass
    return f"{VAULT_SCHEME}://{pod_ip}:{VAULT_PORT}"


def _require_bool(data: Dict[str, Any], field: str, path: str) -> bool:
    value = data.get(field)
    if not isinstance(value, bool):
        raise VaultProtocolError(f"{path}: field '{field}' missing or not a boolean: {value!r}")
    return value


class VaultClient:
    """Client bound to one Vault address"""

    def __init__(
        self,
        address: str,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.address = address
        try:
            self._client = httpx.AsyncClient(
                base_url=address,
                timeout=timeout,
                follow_redirects=False,
                transport=transport,
            )
        except httpx.InvalidURL as e:
            raise VaultConnectionError(f"{address}: invalid address: {e}") from e

    async def __aenter__(self) -> "VaultClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            resp = await self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise VaultConnectionError(f"{self.address}{path}: timed out") from e
        except httpx.TransportError as e:
            raise VaultConnectionError(f"{self.address}{path}: {type(e).__name__}: {e}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # Undecodable bodies, redirect/protocol oddities
            raise VaultProtocolError(f"{self.address}{path}: {type(e).__name__}: {e}") from e

        if not resp.is_success:
            raise VaultProtocolError(f"{self.address}{path}: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise VaultProtocolError(f"{self.address}{path}: invalid JSON") from e
        if not isinstance(data, dict):
            raise VaultProtocolError(f"{self.address}{path}: unexpected payload {data!r}")
        return data

    async def init_status(self) -> bool:
        """Return whether the Vault cluster has been initialized"""
        data = await self._get_json("/v1/sys/init")
        return _require_bool(data, "initialized", "/v1/sys/init")

    async def health(self) -> VaultHealth:
        """Return the health report of the node this client is bound to"""
        data = await self._get_json("/v1/sys/health", params=HEALTH_PARAMS)
        health = VaultHealth(
            initialized=_require_bool(data, "initialized", "/v1/sys/health"),
            sealed=_require_bool(data, "sealed", "/v1/sys/health"),
            standby=_require_bool(data, "standby", "/v1/sys/health"),
        )
        logger.debug(f"Health of {self.address}: {health}")
        return health
