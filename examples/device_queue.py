#!/usr/bin/env python3
"""Example: serialize lifecycle calls per device and keep going after a rejected one."""

from pyloadlynx import CurrentPoint, CurveKind, DeviceQueues, ProfileStore
from pyloadlynx.errors import ValidationFailed


def main() -> None:
    stores = {name: ProfileStore(device_id=name) for name in ("load-a", "load-b")}

    with DeviceQueues() as queues:
        bad = queues.submit(
            "load-a",
            stores["load-a"].apply,
            CurveKind.CURRENT_CH1,
            [CurrentPoint(raw=100, dac_code=70000, measured_ma=20)],
        )
        good = queues.submit(
            "load-a",
            stores["load-a"].commit,
            CurveKind.CURRENT_CH1,
            [CurrentPoint(raw=100, dac_code=700, measured_ma=20), CurrentPoint(raw=20000, dac_code=14000, measured_ma=4010)],
        )
        other = queues.submit("load-b", stores["load-b"].reset, "all")

        try:
            bad.result()
        except ValidationFailed as e:
            print(f"load-a apply rejected: {[str(i) for i in e.issues]}")
        print(f"load-a commit ok: {good.result().current_ch1}")
        print(f"load-b reset ok: {other.result() == stores['load-b'].factory}")


if __name__ == "__main__":
    main()
