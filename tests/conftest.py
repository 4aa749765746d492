from __future__ import annotations

from collections.abc import Iterator
from typing import Callable

import pytest

from peerlink_console.chat.client import ChatClient
from peerlink_console.chat.config import ChatConfig
from peerlink_console.chat.db import open_db
from peerlink_console.chat.settings_store import SettingsStore
from peerlink_console.core.ids import sequence_ids
from peerlink_console.mock import LoopbackNetwork, ManualScheduler


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def network(scheduler: ManualScheduler) -> LoopbackNetwork:
    return LoopbackNetwork(scheduler)


@pytest.fixture()
def make_client(
    scheduler: ManualScheduler, network: LoopbackNetwork
) -> Iterator[Callable[..., ChatClient]]:
    """Build a client on the shared loopback network with deterministic message ids."""
    opened = []

    def _make(identity: str, *, id_prefix: str | None = None, **config_kwargs) -> ChatClient:
        conn = open_db(":memory:")
        opened.append(conn)
        return ChatClient(
            network,
            scheduler,
            config=ChatConfig(**config_kwargs),
            settings_store=SettingsStore(conn),
            identity=identity,
            id_factory=sequence_ids(id_prefix or f"{identity.lower()}-"),
        )

    yield _make
    for conn in opened:
        conn.close()


@pytest.fixture()
def link(scheduler: ManualScheduler) -> Callable[[ChatClient, ChatClient], None]:
    def _link(initiator: ChatClient, acceptor: ChatClient) -> None:
        """Power both nodes on and connect *initiator* to *acceptor*."""
        initiator.power_on()
        acceptor.power_on()
        scheduler.run_pending()
        assert initiator.connect(acceptor.local_identity)
        scheduler.run_pending()
        assert initiator.is_connected and acceptor.is_connected

    return _link
