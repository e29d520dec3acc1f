"""
Network discovery of Pixoo devices.

Unlike the write-only device link, discovery needs a readable reply: each
candidate endpoint receives Device/GetDeviceInfo and the JSON body is checked
against a configurable "looks like a Pixoo" heuristic.
"""

import threading
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Any, Optional

import requests
from pydantic import BaseModel, Field

from pixoo_commander.config import DiscoverySettings, Endpoint
from pixoo_commander.device_link import JSON_HEADERS
from pixoo_commander.exceptions import ConfigurationError
from pixoo_commander.logging_config import get_logger
from pixoo_commander.protocol import GetDeviceInfo

logger = get_logger(__name__)


class DiscoveredDevice(BaseModel):
    """A device that answered the discovery probe."""

    address: str
    port: int
    path: str
    name: str
    model: str
    size: int
    response: dict[str, Any] = Field(default_factory=dict)
    discovered_at: datetime = Field(default_factory=datetime.now)

    @property
    def endpoint(self) -> Endpoint:
        """Endpoint the device answered on."""
        return Endpoint(port=self.port, path=self.path)


class DeviceScanner:
    """
    Probes address ranges concurrently for Pixoo devices.

    One scan runs at a time per scanner; a scan requested while another is in
    progress returns the devices discovered so far instead of starting over.
    """

    def __init__(
        self,
        settings: Optional[DiscoverySettings] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize scanner.

        Args:
            settings: Candidate endpoints, timeouts and classification policy
            session: HTTP session to use (a new requests.Session if None)
        """
        self._settings = settings or DiscoverySettings()
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()
        self._discovered: dict[str, DiscoveredDevice] = {}
        self._scanning = False
        self._lock = threading.Lock()

    @property
    def settings(self) -> DiscoverySettings:
        """Discovery policy."""
        return self._settings

    @property
    def is_scanning(self) -> bool:
        """Check if a scan is in progress."""
        with self._lock:
            return self._scanning

    @property
    def discovered_devices(self) -> list[DiscoveredDevice]:
        """Devices found by the current or most recent scan (order is not meaningful)."""
        with self._lock:
            return list(self._discovered.values())

    def clear(self) -> None:
        """Forget all discovered devices."""
        with self._lock:
            self._discovered.clear()

    # Classification

    def looks_like_pixoo(self, response: Any) -> bool:
        """
        Decide whether a probe reply came from a Pixoo.

        Args:
            response: Parsed JSON body

        Returns:
            True if the body is a mapping holding at least the configured
            number of indicator keys
        """
        if not isinstance(response, Mapping):
            return False
        present = sum(1 for key in self._settings.indicator_keys if key in response)
        return present >= self._settings.indicator_threshold

    def extract_name(self, response: Mapping) -> str:
        """First non-empty name field, else the default name."""
        for key in self._settings.name_keys:
            value = response.get(key)
            if value:
                return str(value)
        return self._settings.default_name

    def extract_model(self, response: Mapping) -> str:
        """First non-empty model field, else the default model."""
        for key in self._settings.device_model_keys:
            value = response.get(key)
            if value:
                return str(value)
        return self._settings.default_model

    def extract_size(self, model: str) -> int:
        """Panel size from a size token in the model string, else the default."""
        for token in self._settings.size_tokens:
            if str(token) in model:
                return token
        return self._settings.default_size

    # Probing

    def probe(self, address: str) -> Optional[DiscoveredDevice]:
        """
        Probe one address on every candidate endpoint.

        Stops at the first endpoint whose reply is readable JSON that passes
        the classifier. Network errors, error statuses and unparseable bodies
        just move on to the next endpoint.

        Args:
            address: Host to probe

        Returns:
            DiscoveredDevice, or None if no endpoint qualified
        """
        payload = GetDeviceInfo().to_payload()

        for endpoint in self._settings.endpoints:
            url = endpoint.url(address)
            try:
                with self._session.post(
                    url,
                    json=payload,
                    headers=JSON_HEADERS,
                    timeout=self._settings.probe_timeout,
                ) as response:
                    if not response.ok:
                        continue
                    data = response.json()
            except requests.RequestException:
                continue
            except ValueError:
                logger.debug(f"Non-JSON reply from {url}")
                continue

            if not self.looks_like_pixoo(data):
                continue

            model = self.extract_model(data)
            device = DiscoveredDevice(
                address=address,
                port=endpoint.port,
                path=endpoint.path,
                name=self.extract_name(data),
                model=model,
                size=self.extract_size(model),
                response=dict(data),
            )
            logger.info(f"Found Pixoo device at {address}:{endpoint}: {device.name}")
            return device

        return None

    def scan_range(self, base_address: str, count: int = 254, start: int = 1) -> list[DiscoveredDevice]:
        """
        Probe ``base.start`` .. ``base.(start + count - 1)`` concurrently.

        A host that fails or times out never aborts the batch.

        Args:
            base_address: First three octets, e.g. "192.168.1"
            count: Number of consecutive host numbers to probe
            start: First host number

        Returns:
            Discovered devices (order is not meaningful)

        Raises:
            ConfigurationError: If base_address is empty
        """
        base_address = (base_address or "").strip().rstrip(".")
        if not base_address:
            raise ConfigurationError("Could not determine network range to scan")

        with self._lock:
            if self._scanning:
                logger.info("Scan already in progress")
                return list(self._discovered.values())
            self._scanning = True
            self._discovered.clear()

        addresses = [f"{base_address}.{host}" for host in range(start, start + max(0, count))]
        logger.info(f"Scanning {len(addresses)} addresses in {base_address}.x")

        try:
            if addresses:
                workers = min(self._settings.max_workers, len(addresses))
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="PixooScan") as pool:
                    futures = {pool.submit(self.probe, address): address for address in addresses}
                    for future in as_completed(futures):
                        try:
                            device = future.result()
                        except Exception as e:
                            logger.debug(f"Probe of {futures[future]} failed: {e}")
                            continue
                        if device is not None:
                            with self._lock:
                                self._discovered[device.address] = device
        finally:
            with self._lock:
                self._scanning = False

        devices = self.discovered_devices
        logger.info(f"Scan completed. Found {len(devices)} Pixoo devices.")
        return devices

    def scan_common_ranges(self) -> list[DiscoveredDevice]:
        """Scan the configured common /24 ranges, stopping at the first with a device."""
        for base_address in self._settings.common_ranges:
            devices = self.scan_range(base_address)
            if devices:
                logger.info(f"Found {len(devices)} devices in {base_address}.x")
                return devices
        return []

    def close(self) -> None:
        """Release the HTTP session if this scanner created it."""
        if self._owns_session:
            self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
