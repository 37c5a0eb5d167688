from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core_fakes import FakeCore, default_responses  # noqa: E402
from runtime_bus import RuntimeBus  # noqa: E402
from session_center.gateway import CommandGateway  # noqa: E402
from session_center.migration_guard import MigrationGuard  # noqa: E402
from session_center.session_store import SessionStore  # noqa: E402
from session_center.views import ViewLoader  # noqa: E402


@pytest.fixture()
def bus() -> RuntimeBus:
    return RuntimeBus()


@pytest.fixture()
def core(bus: RuntimeBus) -> FakeCore:
    fake = FakeCore(bus)
    fake.responses.update(default_responses())
    return fake


@pytest.fixture()
def gateway(bus: RuntimeBus) -> CommandGateway:
    return CommandGateway(bus, source="tests")


@pytest.fixture()
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture()
def guard(gateway: CommandGateway, store: SessionStore) -> MigrationGuard:
    return MigrationGuard(gateway, store)


@pytest.fixture()
def loader(gateway: CommandGateway, store: SessionStore) -> ViewLoader:
    return ViewLoader(gateway, store)
