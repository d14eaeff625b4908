"""
# A library for reading heart rate monitors over Bluetooth Low Energy

Connect to a paired peripheral that exposes the standard Heart Rate GATT service, subscribe to
its Heart Rate Measurement notifications and receive decoded readings:

```
from heartrate_le import HeartRateMonitor

with HeartRateMonitor() as monitor:
    monitor.reading_events.subscribe(lambda reading: print(reading.beats_per_minute))
    result = monitor.connect("AA:BB:CC:DD:EE:FF")
```

Events are also published through pubsub:

- heartrate.connection.status - sent when the session connects or disconnects
  (monitor, connected, name)
- heartrate.reading - sent for every decoded measurement (monitor, reading)
"""

from heartrate_le.util import DeferredExecution

# Created before the ble package is imported; every monitor delivers events through it
publishingThread = DeferredExecution("publishing")

from heartrate_le.ble import (  # noqa: E402
    BLEError,
    ConnectionFailure,
    ConnectionResult,
    ConnectionStatus,
    ConnectionSuccess,
    DeviceInfo,
    ErrorKind,
    HeartRateMonitor,
    HeartRateReading,
    InvalidFrameError,
    decode_heart_rate_measurement,
)

__all__ = [
    "BLEError",
    "ConnectionFailure",
    "ConnectionResult",
    "ConnectionStatus",
    "ConnectionSuccess",
    "DeviceInfo",
    "ErrorKind",
    "HeartRateMonitor",
    "HeartRateReading",
    "InvalidFrameError",
    "decode_heart_rate_measurement",
    "publishingThread",
]
