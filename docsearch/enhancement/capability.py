"""Device capability gate for the semantic layer.

Decides once per session whether the runtime is suitable for loading an
embedding model. Signals may be supplied by the caller (e.g. client hints
forwarded by a front end) or read from the local host.
"""

import importlib.util
import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import psutil
import structlog

logger = structlog.get_logger("capability_gate")


class ConnectionSpeed(str, Enum):
    """Estimated connection class."""
    SLOW = "slow"
    FAST = "fast"
    UNKNOWN = "unknown"


@dataclass
class DeviceSignals:
    """Raw capability signals.

    ``has_webassembly`` reports whether the sandboxed inference runtime is
    available. ``device_memory_gb`` is a direct memory reading; when it is
    missing, ``hardware_concurrency`` (logical cores) is used as a proxy.
    ``effective_type``/``downlink_mbps`` follow the Network Information API
    vocabulary (``slow-2g``, ``2g``, ``3g``, ``4g``).
    """

    has_webassembly: bool
    device_memory_gb: Optional[float] = None
    hardware_concurrency: Optional[int] = None
    effective_type: Optional[str] = None
    downlink_mbps: Optional[float] = None


@dataclass
class DeviceCapability:
    """Outcome of a capability check."""

    has_webassembly: bool
    estimated_memory_gb: float
    connection_speed: ConnectionSpeed
    is_supported: bool
    reason: Optional[str] = None


def estimate_memory(signals: DeviceSignals) -> float:
    """Memory in GB, falling back to a logical-core heuristic."""
    if signals.device_memory_gb is not None:
        return float(signals.device_memory_gb)

    cores = signals.hardware_concurrency or 0
    if cores >= 4:
        return 4.0
    if cores >= 2:
        return 2.0
    return 1.0


def estimate_connection_speed(signals: DeviceSignals) -> ConnectionSpeed:
    """Classify the connection from its effective type and downlink."""
    if signals.effective_type is None:
        return ConnectionSpeed.UNKNOWN

    effective_type = signals.effective_type.lower()
    if effective_type in ("slow-2g", "2g"):
        return ConnectionSpeed.SLOW
    if effective_type == "3g" and (signals.downlink_mbps or 0.0) < 1.5:
        return ConnectionSpeed.SLOW
    return ConnectionSpeed.FAST


def detect_local_signals() -> DeviceSignals:
    """Read capability signals from the local host.

    The inference runtime counts as available when sentence-transformers
    is importable; connection speed is left unknown.
    """
    has_runtime = importlib.util.find_spec("sentence_transformers") is not None

    memory_gb: Optional[float] = None
    try:
        memory_gb = psutil.virtual_memory().total / (1024 ** 3)
    except (OSError, RuntimeError) as e:
        logger.warning("Failed to read system memory", error=str(e))

    return DeviceSignals(
        has_webassembly=has_runtime,
        device_memory_gb=memory_gb,
        hardware_concurrency=os.cpu_count(),
    )


class CapabilityGate:
    """Evaluates capability at most once per session.

    Parameters
    - min_memory_gb: Minimum estimated memory required to load the model
    - signals_provider: Called when ``check`` is invoked without signals
    """

    def __init__(
        self,
        min_memory_gb: float = 2.0,
        signals_provider: Callable[[], DeviceSignals] = detect_local_signals,
    ):
        self.min_memory_gb = min_memory_gb
        self.signals_provider = signals_provider
        self._capability: Optional[DeviceCapability] = None

    @property
    def capability(self) -> Optional[DeviceCapability]:
        """Result of the session's check, or ``None`` before it ran."""
        return self._capability

    def check(self, signals: Optional[DeviceSignals] = None) -> DeviceCapability:
        """Run the check once; later calls return the first result."""
        if self._capability is not None:
            return self._capability

        if signals is None:
            signals = self.signals_provider()

        self._capability = self._evaluate(signals)
        logger.info(
            "Capability check completed",
            supported=self._capability.is_supported,
            has_webassembly=self._capability.has_webassembly,
            estimated_memory_gb=self._capability.estimated_memory_gb,
            connection_speed=self._capability.connection_speed.value,
            reason=self._capability.reason,
        )
        return self._capability

    def _evaluate(self, signals: DeviceSignals) -> DeviceCapability:
        capability = DeviceCapability(
            has_webassembly=signals.has_webassembly,
            estimated_memory_gb=0.0,
            connection_speed=ConnectionSpeed.UNKNOWN,
            is_supported=False,
        )

        if not signals.has_webassembly:
            capability.reason = "WebAssembly not supported"
            return capability

        capability.estimated_memory_gb = estimate_memory(signals)
        if capability.estimated_memory_gb < self.min_memory_gb:
            capability.reason = (
                f"Insufficient memory ({capability.estimated_memory_gb:g}GB "
                f"< {self.min_memory_gb:g}GB required)"
            )
            return capability

        capability.connection_speed = estimate_connection_speed(signals)
        if capability.connection_speed is ConnectionSpeed.SLOW:
            capability.reason = "Slow connection detected - skipping AI enhancement"
            return capability

        capability.is_supported = True
        return capability
