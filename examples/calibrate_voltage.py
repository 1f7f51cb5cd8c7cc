#!/usr/bin/env python3
"""Example: capture voltage points into a draft, apply, commit and survive a reboot."""

import sys

from pyloadlynx import CalMode, CurveKind, Draft, ProfileStore, TelemetrySample, VoltagePoint, preview
from pyloadlynx.errors import PreconditionError, ValidationFailed


def main() -> None:
    store = ProfileStore(device_id="bench-1")
    draft = Draft()

    # (raw sample read from telemetry, value measured on the reference meter in mV)
    captures = [(1000, 1236), (12000, 14870), (24000, 29750), (12010, 14880)]

    try:
        with store.calibration_session(CalMode.VOLTAGE):
            for raw, mv in captures:
                draft.capture(CurveKind.V_LOCAL, VoltagePoint(raw=raw, measured_mv=mv))

            issues = draft.validate()
            if issues:
                for issue in issues:
                    print(f"draft issue: {issue}", file=sys.stderr)
                sys.exit(1)

            sample = TelemetrySample(raw_v_local=18000, raw_v_remote=18000)
            print("preview (draft):", preview(draft.curves(), store.mode, sample))

            draft.sync(store, CurveKind.V_LOCAL, commit=True)
            print("preview (ram):  ", preview(store.ram, store.mode, sample))

        print(f"mode after session: {store.mode.value}")
        store.reboot()
        print(f"after reboot: source={store.source.value} v_local={store.ram.v_local}")
    except ValidationFailed as e:
        for issue in e.issues:
            print(f"rejected: {issue}", file=sys.stderr)
        sys.exit(1)
    except PreconditionError as e:
        print(f"Precondition failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
