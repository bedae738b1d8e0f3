"""
Node Container Control

Starts, stops, locates and time-shifts the node process that backs a chain
session. The session only depends on the NodeController protocol; the
Docker implementation below is the default.

Time shifting relies on the node image running nodeos under libfaketime
with FAKETIME_NO_CACHE set, so rewriting the faketime control file moves
the process clock on its next read.
"""

import asyncio
from typing import Any, Protocol

import docker
import structlog

from .config import HarnessConfig, get_harness_config
from .errors import NodeControllerError, PortInUseError

logger = structlog.get_logger(__name__)

PORT_LABEL = "chain-harness.port"


class NodeController(Protocol):
    """Lifecycle and clock control for node instances keyed by host port."""

    async def start(self, port: int) -> None:
        """Launch a fresh node instance bound to port."""
        ...

    async def stop(self, port: int) -> None:
        """Stop and remove the node instance bound to port."""
        ...

    async def resolve_address(self, port: int) -> str:
        """Return a network address at which the instance is reachable."""
        ...

    async def jump_time(self, port: int, offset_seconds: int) -> None:
        """Set the instance clock to its baseline plus offset_seconds."""
        ...


class DockerNodeController:
    """
    NodeController backed by the local Docker daemon.

    One container per port, named "<prefix>-<port>", publishing the node's
    RPC port on the host port. Docker SDK calls are blocking, so each one
    runs in a worker thread.
    """

    def __init__(
        self,
        config: HarnessConfig | None = None,
        client: Any = None,
    ) -> None:
        self.config = config or get_harness_config()
        self._client = client

    @property
    def client(self) -> Any:
        """Docker client, created from the environment on first use."""
        if self._client is None:
            try:
                self._client = docker.from_env()
            except docker.errors.DockerException as e:
                raise NodeControllerError(f"Docker is not available: {e}") from e
        return self._client

    def container_name(self, port: int) -> str:
        return f"{self.config.container_name_prefix}-{port}"

    def _get_container(self, port: int) -> Any:
        try:
            return self.client.containers.get(self.container_name(port))
        except docker.errors.NotFound as e:
            raise NodeControllerError(
                f"No node container for port {port} ({self.container_name(port)})"
            ) from e

    # ==================== Lifecycle ====================

    def _start_sync(self, port: int) -> None:
        name = self.container_name(port)

        # A container left over from a crashed run would hold the name
        try:
            stale = self.client.containers.get(name)
            logger.warning("removing_stale_node_container", container=name)
            stale.remove(force=True)
        except docker.errors.NotFound:
            pass

        try:
            self.client.containers.run(
                self.config.node_image,
                name=name,
                detach=True,
                ports={f"{self.config.node_rpc_container_port}/tcp": port},
                labels={PORT_LABEL: str(port)},
                environment={
                    "FAKETIME_TIMESTAMP_FILE": self.config.faketime_file,
                    "FAKETIME_NO_CACHE": "1",
                },
            )
        except docker.errors.APIError as e:
            if "port is already allocated" in str(e) or "address already in use" in str(e):
                raise PortInUseError(f"Host port {port} is already in use", port=port) from e
            raise NodeControllerError(f"Failed to start node container {name}: {e}") from e

        logger.info("node_container_started", container=name, port=port)

    def _stop_sync(self, port: int) -> None:
        container = self._get_container(port)
        try:
            container.stop(timeout=10)
            container.remove()
        except docker.errors.APIError as e:
            raise NodeControllerError(
                f"Failed to stop node container {container.name}: {e}"
            ) from e
        logger.info("node_container_removed", container=container.name, port=port)

    def _resolve_address_sync(self, port: int) -> str:
        container = self._get_container(port)
        container.reload()
        settings = container.attrs.get("NetworkSettings", {})
        address: str = settings.get("IPAddress") or ""
        if not address:
            for network in (settings.get("Networks") or {}).values():
                if network.get("IPAddress"):
                    address = network["IPAddress"]
                    break
        return address or self.config.rpc_host

    def _jump_time_sync(self, port: int, offset_seconds: int) -> None:
        if offset_seconds < 0:
            raise NodeControllerError("Time offset cannot be negative")
        container = self._get_container(port)
        result = container.exec_run(
            ["sh", "-c", f"echo '+{offset_seconds}s' > {self.config.faketime_file}"]
        )
        if result.exit_code != 0:
            output = result.output.decode(errors="replace") if result.output else ""
            raise NodeControllerError(
                f"Failed to set clock offset on {container.name}: {output.strip()}"
            )
        logger.debug("node_clock_offset_set", container=container.name, offset_seconds=offset_seconds)

    async def start(self, port: int) -> None:
        await asyncio.to_thread(self._start_sync, port)

    async def stop(self, port: int) -> None:
        await asyncio.to_thread(self._stop_sync, port)

    async def resolve_address(self, port: int) -> str:
        return await asyncio.to_thread(self._resolve_address_sync, port)

    async def jump_time(self, port: int, offset_seconds: int) -> None:
        await asyncio.to_thread(self._jump_time_sync, port, offset_seconds)
