"""Mock telemetry generator for alert engine development."""

import random
from datetime import datetime, timezone

from .models.telemetry import TelemetryValue


def random_reading(base: float, spread: float) -> float:
    """Generate a realistic sensor reading around a base value."""
    return round(random.gauss(base, spread), 2)


def generate_mock_telemetry() -> dict[str, TelemetryValue]:
    """Generate one telemetry snapshot for an industrial device."""
    return {
        "temperature": random_reading(65, 12),
        "humidity": random_reading(45, 10),
        "pressure": random_reading(101.3, 1.5),
        "vibration": max(0.0, random_reading(2.5, 1.2)),
        "battery": min(100.0, max(0.0, random_reading(80, 15))),
        "online": random.random() > 0.02,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class MockTelemetryFetcher:
    """TelemetryFetcher returning random readings, for dev mode."""

    def __init__(self, missing_rate: float = 0.05):
        self.missing_rate = missing_rate

    async def latest(self, device_id: str, tenant_id: str) -> dict[str, TelemetryValue]:
        # Occasionally no data, like a device that has not reported yet
        if random.random() < self.missing_rate:
            return {}
        return generate_mock_telemetry()
