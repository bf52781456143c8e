"""Tests for the device capability gate."""

from docsearch.enhancement.capability import (
    CapabilityGate,
    ConnectionSpeed,
    DeviceSignals,
    detect_local_signals,
    estimate_connection_speed,
    estimate_memory,
)


def test_webassembly_is_required():
    capability = CapabilityGate().check(DeviceSignals(has_webassembly=False, device_memory_gb=16))

    assert not capability.is_supported
    assert capability.reason == "WebAssembly not supported"


def test_insufficient_memory():
    capability = CapabilityGate(min_memory_gb=2).check(DeviceSignals(has_webassembly=True, device_memory_gb=1))

    assert not capability.is_supported
    assert capability.reason == "Insufficient memory (1GB < 2GB required)"


def test_memory_heuristic_from_cores():
    assert estimate_memory(DeviceSignals(True, hardware_concurrency=8)) == 4
    assert estimate_memory(DeviceSignals(True, hardware_concurrency=2)) == 2
    assert estimate_memory(DeviceSignals(True, hardware_concurrency=1)) == 1
    assert estimate_memory(DeviceSignals(True)) == 1
    assert estimate_memory(DeviceSignals(True, device_memory_gb=0.5, hardware_concurrency=16)) == 0.5


def test_connection_speed():
    assert estimate_connection_speed(DeviceSignals(True)) is ConnectionSpeed.UNKNOWN
    assert estimate_connection_speed(DeviceSignals(True, effective_type="2g")) is ConnectionSpeed.SLOW
    assert estimate_connection_speed(DeviceSignals(True, effective_type="slow-2g")) is ConnectionSpeed.SLOW
    assert estimate_connection_speed(DeviceSignals(True, effective_type="3g", downlink_mbps=1.0)) is ConnectionSpeed.SLOW
    assert estimate_connection_speed(DeviceSignals(True, effective_type="3g", downlink_mbps=5.0)) is ConnectionSpeed.FAST
    assert estimate_connection_speed(DeviceSignals(True, effective_type="4g")) is ConnectionSpeed.FAST


def test_slow_connection_blocks():
    capability = CapabilityGate().check(
        DeviceSignals(has_webassembly=True, device_memory_gb=8, effective_type="2g")
    )

    assert not capability.is_supported
    assert capability.connection_speed is ConnectionSpeed.SLOW


def test_unknown_connection_proceeds():
    capability = CapabilityGate().check(DeviceSignals(has_webassembly=True, hardware_concurrency=4))

    assert capability.is_supported
    assert capability.estimated_memory_gb == 4
    assert capability.connection_speed is ConnectionSpeed.UNKNOWN
    assert capability.reason is None


def test_check_runs_once():
    calls = []

    def provider():
        calls.append(1)
        return DeviceSignals(has_webassembly=True, device_memory_gb=8)

    gate = CapabilityGate(signals_provider=provider)
    first = gate.check()
    second = gate.check(DeviceSignals(has_webassembly=False))

    assert first is second
    assert second.is_supported
    assert len(calls) == 1
    assert gate.capability is first


def test_detect_local_signals():
    signals = detect_local_signals()

    assert isinstance(signals.has_webassembly, bool)
    assert signals.device_memory_gb is None or signals.device_memory_gb > 0
    assert signals.effective_type is None
