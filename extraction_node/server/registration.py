"""
Registers the node with the coordinator and keeps it in the healthy pool
with periodic heartbeats.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from extraction_node.exceptions import RegistrationError
from extraction_node.models.config import NodeConfig

log = logging.getLogger(__name__)

GIGABYTE = 1073741824


def _as_number(value: Any) -> float:
    """Reads a coordinator counter; anything non-numeric counts as zero."""
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class CoordinatorClient:
    """
    Async client for the coordinator's node API.
    """

    def __init__(self, config: NodeConfig, http: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self.node_id: Optional[str] = None
        self._http = http
        self._owns_http = http is None
        self._heartbeat_task: Optional[asyncio.Task] = None

    async def _get_http(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=30, connect=10)
            )
            self._owns_http = True
        return self._http

    async def register(self, base_url: str) -> str:
        """
        Registers this node under its public base URL.

        Returns:
            The node id assigned by the coordinator.

        Raises:
            RegistrationError: If the coordinator rejects the registration.
        """
        body: Dict[str, Any] = {
            "name": self.config.node_name,
            "baseUrl": base_url,
            "nodeType": self.config.node_type,
            "region": self.config.region,
        }
        if self.config.bandwidth_limit_gb:
            body["bandwidthLimitGB"] = self.config.bandwidth_limit_gb

        http = await self._get_http()
        async with http.post(
            f"{self.config.coordinator_url}/api/nodes/register", json=body
        ) as r:
            if not r.ok:
                text = await r.text()
                raise RegistrationError(f"Registration failed ({r.status}): {text}")
            data = await r.json(content_type=None)

        node_id = data.get("nodeId") if isinstance(data, dict) else None
        if not node_id:
            raise RegistrationError("Coordinator response did not include a nodeId.")

        self.node_id = node_id
        log.info(f"Registered as node {node_id} ({self.config.node_name})")
        return node_id

    async def send_heartbeat(self, base_url: str) -> bool:
        """Sends one heartbeat. Failures are logged and reported as False."""
        if not self.node_id:
            return False

        try:
            http = await self._get_http()
            async with http.post(
                f"{self.config.coordinator_url}/api/nodes/heartbeat",
                json={"nodeId": self.node_id, "baseUrl": base_url},
            ) as r:
                if not r.ok:
                    log.warning(f"[yellow]Heartbeat failed: HTTP {r.status}[/yellow]")
                    return False
                data = await r.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            log.warning(f"[yellow]Heartbeat error:[/yellow] {e}")
            return False

        if not isinstance(data, dict):
            data = {}
        limit = _as_number(data.get("bandwidthLimitBytes"))
        if limit > 0:
            used_gb = _as_number(data.get("bytesServed")) / GIGABYTE
            log.info(f"Heartbeat OK, bandwidth: {used_gb:.2f}/{limit / GIGABYTE:.0f} GB")
        else:
            log.debug("Heartbeat OK")
        return True

    async def _heartbeat_loop(self, base_url: str) -> None:
        while True:
            await self.send_heartbeat(base_url)
            await asyncio.sleep(self.config.heartbeat_interval)

    def start_heartbeat(self, base_url: str) -> asyncio.Task:
        """Starts the heartbeat loop, sending the first heartbeat immediately."""
        if self._heartbeat_task and not self._heartbeat_task.done():
            self._heartbeat_task.cancel()
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(base_url))
        return self._heartbeat_task

    async def stop_heartbeat(self) -> None:
        """Stops the heartbeat loop if it is running."""
        task, self._heartbeat_task = self._heartbeat_task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def close(self) -> None:
        """Stops heartbeats and closes the session if this client created it."""
        await self.stop_heartbeat()
        if self._owns_http and self._http and not self._http.closed:
            await self._http.close()
