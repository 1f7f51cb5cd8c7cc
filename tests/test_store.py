"""Tests for the ProfileStore lifecycle: apply, commit, reset, mode selection, reboot."""

import threading

import pytest

from pyloadlynx import (
    CalibrationProfile,
    CalMode,
    CurrentPoint,
    CurveKind,
    EepromFile,
    ProfileSource,
    ProfileStore,
    TransportError,
    ValidationFailed,
    VoltagePoint,
)


@pytest.fixture
def store() -> ProfileStore:
    return ProfileStore(device_id="load-a")


def test_boot_state_is_factory(store: ProfileStore) -> None:
    assert store.ram == store.factory
    assert store.eeprom is None
    assert store.mode is CalMode.OFF
    assert store.source is ProfileSource.FACTORY_DEFAULT
    assert store.active.to_dict() == {"source": "factory-default", "fmt_version": 1, "hw_rev": 42}


def test_max_points_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ProfileStore(max_points=0)


def test_apply_normalizes_into_ram(store: ProfileStore) -> None:
    ram = store.apply(
        CurveKind.V_LOCAL,
        [VoltagePoint(raw=2000, measured_mv=2480), VoltagePoint(raw=1000, measured_mv=1240)],
    )
    assert ram.v_local == (VoltagePoint(1000, 1240), VoltagePoint(2000, 2480))
    assert store.ram is ram
    assert store.eeprom is None
    assert store.source is ProfileSource.USER_CALIBRATED
    assert store.ram.v_remote == store.factory.v_remote


def test_apply_is_all_or_nothing(store: ProfileStore) -> None:
    before = store.ram
    with pytest.raises(ValidationFailed) as exc_info:
        store.apply(
            CurveKind.CURRENT_CH1,
            [CurrentPoint(raw=0, dac_code=70_000, measured_ma=0), CurrentPoint(raw=10, dac_code=1, measured_ma=-5)],
        )
    paths = [i.path for i in exc_info.value.issues]
    assert "current_ch1_points[0].dac_code" in paths
    assert "current_ch1_points" in paths
    assert store.ram is before
    assert store.source is ProfileSource.FACTORY_DEFAULT


def test_apply_empty_is_rejected(store: ProfileStore) -> None:
    with pytest.raises(ValidationFailed) as exc_info:
        store.apply(CurveKind.V_REMOTE, [])
    assert exc_info.value.issues[0].message == "points must contain 1..5 items"


def test_apply_without_commit_is_lost_on_reboot(store: ProfileStore, voltage_points) -> None:
    store.apply(CurveKind.V_LOCAL, voltage_points)
    store.reboot()
    assert store.ram == store.factory
    assert store.source is ProfileSource.FACTORY_DEFAULT


def test_commit_survives_reboot(store: ProfileStore, voltage_points, current_points) -> None:
    store.apply(CurveKind.CURRENT_CH1, current_points)
    ram = store.commit(CurveKind.V_LOCAL, voltage_points)
    # Commit persists the whole RAM profile, including the earlier Apply.
    assert store.eeprom == ram
    assert ram.current_ch1 == tuple(current_points)
    store.select_mode(CalMode.VOLTAGE)
    assert store.reboot() == ram
    assert store.mode is CalMode.OFF
    assert store.source is ProfileSource.USER_CALIBRATED


def test_failed_commit_leaves_eeprom(store: ProfileStore, voltage_points) -> None:
    store.commit(CurveKind.V_LOCAL, voltage_points)
    snapshot = store.eeprom
    with pytest.raises(ValidationFailed):
        store.commit(CurveKind.V_LOCAL, [VoltagePoint(raw=1, measured_mv=5), VoltagePoint(raw=2, measured_mv=5.5)])
    assert store.eeprom is snapshot


def test_apply_retry_converges(store: ProfileStore, voltage_points) -> None:
    store.apply(CurveKind.V_LOCAL, voltage_points)
    first_ram, first_source = store.ram, store.source
    # Same points again, reordered and with a repeated capture.
    store.apply(CurveKind.V_LOCAL, [voltage_points[2], voltage_points[0], voltage_points[1], voltage_points[0]])
    assert store.ram == first_ram
    assert store.source is first_source


def test_commit_retry_converges(store: ProfileStore, current_points) -> None:
    store.commit(CurveKind.CURRENT_CH2, current_points)
    first_ram, first_eeprom = store.ram, store.eeprom
    store.commit(CurveKind.CURRENT_CH2, list(reversed(current_points)) + [current_points[1]])
    assert store.ram == first_ram
    assert store.eeprom == first_eeprom
    assert store.source is ProfileSource.USER_CALIBRATED


def test_reset_all(store: ProfileStore, voltage_points) -> None:
    store.commit(CurveKind.V_LOCAL, voltage_points)
    ram = store.reset()
    assert ram == store.factory
    assert store.eeprom is None
    assert store.source is ProfileSource.FACTORY_DEFAULT
    store.reboot()
    assert store.ram == store.factory


def test_reset_single_curve_back_to_factory(store: ProfileStore, voltage_points) -> None:
    store.commit(CurveKind.V_LOCAL, voltage_points)
    store.reset(CurveKind.V_LOCAL)
    assert store.ram == store.factory
    assert store.eeprom is None
    assert store.source is ProfileSource.FACTORY_DEFAULT


def test_reset_single_curve_keeps_other_calibration(store: ProfileStore, voltage_points, current_points) -> None:
    store.commit(CurveKind.V_LOCAL, voltage_points)
    store.commit(CurveKind.CURRENT_CH2, current_points)
    ram = store.reset("v_local")
    assert ram.v_local == store.factory.v_local
    assert ram.current_ch2 == tuple(current_points)
    assert store.eeprom == ram
    assert store.source is ProfileSource.USER_CALIBRATED
    assert store.reboot() == ram


def test_reset_applied_curve_equal_to_factory_counts_as_factory(store: ProfileStore) -> None:
    # Applying the factory points explicitly still leaves nothing diverging.
    store.apply(CurveKind.CURRENT_CH1, list(store.factory.current_ch1))
    assert store.source is ProfileSource.USER_CALIBRATED
    store.reset(CurveKind.V_REMOTE)
    assert store.source is ProfileSource.FACTORY_DEFAULT


def test_reset_unknown_curve(store: ProfileStore) -> None:
    with pytest.raises(ValueError):
        store.reset("bogus")


def test_select_mode_is_exclusive(store: ProfileStore) -> None:
    assert store.select_mode("current_ch1") is CalMode.CURRENT_CH1
    assert store.select_mode(CalMode.VOLTAGE) is CalMode.VOLTAGE
    assert store.mode is CalMode.VOLTAGE
    store.end_session()
    assert store.mode is CalMode.OFF


def test_calibration_session_returns_to_off_on_error(store: ProfileStore) -> None:
    with pytest.raises(RuntimeError):
        with store.calibration_session(CalMode.CURRENT_CH2) as s:
            assert s.mode is CalMode.CURRENT_CH2
            raise RuntimeError("operator aborted")
    assert store.mode is CalMode.OFF


def test_store_context_manager_ends_session() -> None:
    with ProfileStore() as store:
        store.select_mode(CalMode.VOLTAGE)
    assert store.mode is CalMode.OFF


def test_to_dict(store: ProfileStore, voltage_points) -> None:
    store.select_mode(CalMode.VOLTAGE)
    store.apply(CurveKind.V_REMOTE, voltage_points)
    data = store.to_dict()
    assert data["device_id"] == "load-a"
    assert data["mode"] == "voltage"
    assert data["active"]["source"] == "user-calibrated"
    assert data["eeprom"] is None
    assert data["ram"]["v_remote_points"][1] == {"raw": 10_000, "measured_mv": 12_450}


def test_concurrent_applies_leave_consistent_ram(store: ProfileStore) -> None:
    def worker(offset: int) -> None:
        for i in range(20):
            store.apply(
                CurveKind.V_LOCAL,
                [VoltagePoint(raw=0, measured_mv=0), VoltagePoint(raw=1000 + offset, measured_mv=1000 + i)],
            )

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(store.ram.v_local) == 2
    assert store.ram.v_remote == store.factory.v_remote


class TestPersistentStorage:
    """Test a store backed by an EEPROM image on disk."""

    def test_commit_writes_image(self, tmp_path, voltage_points) -> None:
        storage = EepromFile(tmp_path / "cal.bin")
        store = ProfileStore(storage=storage)
        ram = store.commit(CurveKind.V_LOCAL, voltage_points)
        assert storage.load() == ram

        restarted = ProfileStore(storage=EepromFile(tmp_path / "cal.bin"))
        assert restarted.ram == ram
        assert restarted.source is ProfileSource.USER_CALIBRATED

    def test_reset_all_erases_image(self, tmp_path, voltage_points) -> None:
        storage = EepromFile(tmp_path / "cal.bin")
        store = ProfileStore(storage=storage)
        store.commit(CurveKind.V_LOCAL, voltage_points)
        store.reset()
        assert not storage.path.exists()

    def test_reboot_reloads_image(self, tmp_path, voltage_points) -> None:
        storage = EepromFile(tmp_path / "cal.bin")
        store = ProfileStore(storage=storage)
        other = ProfileStore(storage=storage)
        other.commit(CurveKind.V_LOCAL, voltage_points)
        assert store.ram == store.factory
        store.reboot()
        assert store.ram.v_local == tuple(voltage_points)

    def test_explicit_eeprom_snapshot(self) -> None:
        eeprom = CalibrationProfile.factory_default().with_curve(
            CurveKind.V_LOCAL, [VoltagePoint(raw=100, measured_mv=130)]
        )
        store = ProfileStore(eeprom=eeprom)
        assert store.ram == eeprom
        assert store.source is ProfileSource.USER_CALIBRATED

    def test_measured_beyond_i32_is_rejected_before_writing(self, tmp_path) -> None:
        storage = EepromFile(tmp_path / "cal.bin")
        store = ProfileStore(storage=storage)
        with pytest.raises(ValidationFailed) as exc_info:
            store.commit(CurveKind.V_LOCAL, [VoltagePoint(raw=0, measured_mv=0), VoltagePoint(raw=10, measured_mv=2**31)])
        assert [i.path for i in exc_info.value.issues] == ["v_local_points[1].measured_mv"]
        assert not storage.path.exists()
        assert store.ram == store.factory

    def test_max_points_limited_by_blob_slots(self, tmp_path) -> None:
        with pytest.raises(ValueError, match="EEPROM slots"):
            ProfileStore(max_points=6, storage=EepromFile(tmp_path / "cal.bin"))
        assert ProfileStore(max_points=6).max_points == 6

    def test_write_failure_raises_transport_error(self, tmp_path, voltage_points, current_points) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        eeprom = CalibrationProfile.factory_default().with_curve(CurveKind.CURRENT_CH1, current_points)
        store = ProfileStore(eeprom=eeprom, storage=EepromFile(blocker / "cal.bin"))

        with pytest.raises(TransportError) as exc_info:
            store.commit(CurveKind.V_LOCAL, voltage_points)
        assert isinstance(exc_info.value.cause, OSError)
        assert store.ram == eeprom
        assert store.eeprom == eeprom

        store.apply(CurveKind.V_LOCAL, voltage_points)
        applied = store.ram
        with pytest.raises(TransportError):
            store.reset(CurveKind.V_LOCAL)
        assert store.ram == applied
        assert store.eeprom == eeprom
