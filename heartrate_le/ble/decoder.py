"""
Heart Rate Measurement (0x2A37) payload decoding.

Flags byte layout:
    bit 0   heart rate value is UINT16 (set) or UINT8 (clear)
    bit 1   sensor contact detected
    bit 2   sensor contact status supported
    bit 3   energy expended present (UINT16, kilojoules)
    bit 4   RR intervals present (UINT16 pairs, 1/1024 s)
"""

from dataclasses import dataclass, field
from typing import List, Optional

from heartrate_le.ble.errors import InvalidFrameError

__all__ = ["HeartRateReading", "decode_heart_rate_measurement"]

FLAG_VALUE_UINT16 = 0x01
FLAG_SENSOR_CONTACT_DETECTED = 0x02
FLAG_SENSOR_CONTACT_SUPPORTED = 0x04
FLAG_ENERGY_EXPENDED = 0x08
FLAG_RR_INTERVALS = 0x10

RR_INTERVAL_UNITS_PER_SECOND = 1024


@dataclass(frozen=True)
class HeartRateReading:
    """One decoded heart rate measurement."""

    beats_per_minute: int
    sensor_contact: Optional[bool] = None  # None when the sensor does not report contact
    energy_expended: Optional[int] = None
    rr_intervals_ms: List[float] = field(default_factory=list)


def decode_heart_rate_measurement(data: bytes) -> HeartRateReading:
    """
    Decode a Heart Rate Measurement notification payload.

    Fields the flags byte announces beyond the heart rate value are decoded when present;
    a frame cut short after the value still yields a reading without those fields, and
    unrecognised trailing bytes are ignored.

    Parameters:
        data (bytes): Raw characteristic value as delivered by the notification.

    Returns:
        HeartRateReading: The decoded measurement.

    Raises:
        InvalidFrameError: If the payload is empty or too short for the heart rate value.
    """
    data = bytes(data)
    if not data:
        raise InvalidFrameError("Heart rate measurement payload is empty")

    flags = data[0]
    offset = 1

    if flags & FLAG_VALUE_UINT16:
        if len(data) < offset + 2:
            raise InvalidFrameError(
                f"Heart rate measurement too short for UINT16 value: {len(data)} bytes"
            )
        beats_per_minute = int.from_bytes(data[offset : offset + 2], "little")
        offset += 2
    else:
        if len(data) < offset + 1:
            raise InvalidFrameError(
                f"Heart rate measurement too short for UINT8 value: {len(data)} bytes"
            )
        beats_per_minute = data[offset]
        offset += 1

    sensor_contact = None
    if flags & FLAG_SENSOR_CONTACT_SUPPORTED:
        sensor_contact = bool(flags & FLAG_SENSOR_CONTACT_DETECTED)

    energy_expended = None
    truncated = False
    if flags & FLAG_ENERGY_EXPENDED:
        if len(data) < offset + 2:
            # Optional fields that did not fit are reported as absent
            truncated = True
        else:
            energy_expended = int.from_bytes(data[offset : offset + 2], "little")
            offset += 2

    rr_intervals_ms: List[float] = []
    if flags & FLAG_RR_INTERVALS and not truncated:
        # A dangling odd byte is not a full interval; ignore it
        while len(data) >= offset + 2:
            raw = int.from_bytes(data[offset : offset + 2], "little")
            rr_intervals_ms.append(raw * 1000.0 / RR_INTERVAL_UNITS_PER_SECOND)
            offset += 2

    return HeartRateReading(
        beats_per_minute=beats_per_minute,
        sensor_contact=sensor_contact,
        energy_expended=energy_expended,
        rr_intervals_ms=rr_intervals_ms,
    )
