from __future__ import annotations

from collections.abc import Iterator

import pytest

from fakes import FakeMonitor, flash_driver

from sambactl.core.model import DeviceHandle, FlashProfile
from sambactl.core.profile_loader import load_profiles
from sambactl.core.protocol import BootMonitor
from sambactl.core.session import Session, discover, open_session


@pytest.fixture(autouse=True)
def _isolated_profile_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))


@pytest.fixture
def fake() -> FakeMonitor:
    return FakeMonitor()


@pytest.fixture
def device(fake: FakeMonitor) -> DeviceHandle:
    return discover(fake)


@pytest.fixture
def session(fake: FakeMonitor, device: DeviceHandle) -> Iterator[Session]:
    opened = open_session(fake, device)
    yield opened
    if not opened.closed:
        opened.close()


@pytest.fixture
def monitor(session: Session) -> BootMonitor:
    return BootMonitor(session)


@pytest.fixture
def nxt_profile() -> FlashProfile:
    return load_profiles().profiles["nxt"]


@pytest.fixture
def flashable(fake: FakeMonitor, nxt_profile: FlashProfile) -> FakeMonitor:
    fake.write_value(nxt_profile.controller.status_register, 0x1, 4)
    fake.on_jump = flash_driver(nxt_profile)
    return fake
