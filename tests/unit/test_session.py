from __future__ import annotations

from typing import Callable

import pytest

from peerlink_console.chat.codec import TextEnvelope
from peerlink_console.chat.diagnostics import DiagnosticLog
from peerlink_console.chat.identity import IdentityManager
from peerlink_console.chat.session import ConnectionSession
from peerlink_console.core.enums import ConnectionState, Severity, TransitionReason
from peerlink_console.core.errors import NoActiveLink, RegistrationFailure
from peerlink_console.mock import LoopbackNetwork, ManualScheduler


class Node:
    def __init__(self, network, scheduler, identity: str, **kwargs) -> None:
        self.diag = DiagnosticLog()
        self.transitions: list[tuple] = []
        self.received: list[tuple] = []
        self.session = ConnectionSession(
            network,
            IdentityManager(preferred=identity),
            self.diag,
            scheduler,
            on_envelope=lambda env, peer: self.received.append((env, peer)),
            on_transition=lambda old, new, reason: self.transitions.append((old, new, reason)),
            **kwargs,
        )

    def messages(self, severity: Severity | None = None) -> list[str]:
        return [e.message for e in self.diag.entries() if severity in (None, e.severity)]


def _ready(network, scheduler, *identities: str, **kwargs) -> list[Node]:
    nodes = [Node(network, scheduler, identity, **kwargs) for identity in identities]
    for node in nodes:
        node.session.boot()
    scheduler.run_pending()
    return nodes


def test_boot_registers_and_becomes_ready(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    node = Node(network, scheduler, "AAA111")

    assert node.session.boot() is True
    assert node.session.state == ConnectionState.INITIALIZING
    assert node.session.local_identity is None

    scheduler.run_pending()

    assert node.session.state == ConnectionState.READY
    assert node.session.local_identity == "AAA111"
    assert "Identity confirmed: AAA111" in node.messages(Severity.SUCCESS)
    assert node.session.boot() is False


def test_connect_and_accept(network: LoopbackNetwork, scheduler: ManualScheduler) -> None:
    a, b = _ready(network, scheduler, "AAA111", "BBB222")

    assert a.session.connect("BBB222") is True
    assert a.session.state == ConnectionState.CONNECTING
    assert a.session.remote_peer == "BBB222"

    scheduler.run_pending()

    assert a.session.state == ConnectionState.CONNECTED
    assert b.session.state == ConnectionState.CONNECTED
    assert b.session.remote_peer == "AAA111"
    assert b.transitions[-1][2] == TransitionReason.INBOUND
    assert a.transitions[-1][2] == TransitionReason.OPENED
    assert "Incoming handshake from: AAA111" in b.messages(Severity.WARNING)


def test_self_and_empty_targets_are_rejected(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    (a,) = _ready(network, scheduler, "AAA111")

    assert a.session.connect("AAA111") is False
    assert a.session.connect("   ") is False

    assert a.session.state == ConnectionState.READY
    assert "Cannot connect to self. Targeting external node required." in a.messages(
        Severity.ERROR
    )


def test_connect_requires_ready(network: LoopbackNetwork, scheduler: ManualScheduler) -> None:
    node = Node(network, scheduler, "AAA111")
    assert node.session.connect("BBB222") is False
    assert node.session.state == ConnectionState.OFFLINE


def test_connect_to_unknown_peer_returns_to_ready(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    (a,) = _ready(network, scheduler, "AAA111")

    a.session.connect("NOBODY")
    scheduler.run_pending()

    assert a.session.state == ConnectionState.READY
    assert a.session.remote_peer is None
    assert a.transitions[-1][2] == TransitionReason.CONNECT_FAILED
    assert any("Handshake failed" in m for m in a.messages(Severity.ERROR))


def test_already_connected_warns(network: LoopbackNetwork, scheduler: ManualScheduler) -> None:
    a, b, c = _ready(network, scheduler, "AAA111", "BBB222", "CCC333")
    a.session.connect("BBB222")
    scheduler.run_pending()

    assert a.session.connect("CCC333") is False
    assert a.session.remote_peer == "BBB222"
    assert "Already connected. Terminate current link first." in a.messages(Severity.WARNING)


def test_identity_collision_is_terminal_until_identity_changes(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    first, second = _ready(network, scheduler, "AAA111", "AAA111")

    assert first.session.state == ConnectionState.READY
    assert second.session.state == ConnectionState.ERROR
    assert 'ID collision: "AAA111" is already in use.' in second.messages(Severity.ERROR)

    assert second.session.change_identity("ZZZ999") is True
    scheduler.run_pending()

    assert second.session.state == ConnectionState.READY
    assert second.session.local_identity == "ZZZ999"


def test_registration_failure_is_reported_distinctly(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    network.inject_registration_error("AAA111", RegistrationFailure("broker unreachable"))
    (node,) = _ready(network, scheduler, "AAA111")

    assert node.session.state == ConnectionState.ERROR
    assert "Registration failed: broker unreachable" in node.messages(Severity.ERROR)
    assert not any("ID collision" in m for m in node.messages())

    assert node.session.boot() is True
    scheduler.run_pending()
    assert node.session.state == ConnectionState.READY


def test_concurrent_offer_is_rejected_without_touching_state(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    a, b, c = _ready(network, scheduler, "AAA111", "BBB222", "CCC333")
    b.session.connect("AAA111")
    scheduler.run_pending()
    transitions_before = list(a.transitions)

    c.session.connect("AAA111")
    scheduler.run_pending()

    assert a.session.state == ConnectionState.CONNECTED
    assert a.session.remote_peer == "BBB222"
    assert a.transitions == transitions_before
    assert "Rejected concurrent connection attempt from CCC333" in a.messages(Severity.WARNING)
    assert c.session.state == ConnectionState.READY
    assert b.session.state == ConnectionState.CONNECTED


def test_offer_while_outbound_connect_pending_is_rejected(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    a, b, c = _ready(network, scheduler, "AAA111", "BBB222", "CCC333")

    a.session.connect("BBB222")
    c.session.connect("AAA111")
    scheduler.run_pending()

    assert a.session.remote_peer == "BBB222"
    assert a.session.state == ConnectionState.CONNECTED
    assert c.session.state == ConnectionState.READY


def test_remote_close_returns_both_sides_to_ready(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    a, b = _ready(network, scheduler, "AAA111", "BBB222")
    a.session.connect("BBB222")
    scheduler.run_pending()

    assert a.session.disconnect() is True
    assert a.session.state == ConnectionState.READY
    assert a.transitions[-1][2] == TransitionReason.MANUAL
    scheduler.run_pending()

    assert b.session.state == ConnectionState.READY
    assert b.transitions[-1][2] == TransitionReason.CLOSED
    assert "Carrier signal lost." in b.messages(Severity.WARNING)
    assert a.session.disconnect() is False


def test_channel_error_returns_to_ready(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    a, b = _ready(network, scheduler, "AAA111", "BBB222")
    a.session.connect("BBB222")
    scheduler.run_pending()

    network.registration_for("AAA111").channels[0].inject_error(RuntimeError("ice failed"))
    scheduler.run_pending()

    assert a.session.state == ConnectionState.READY
    assert a.transitions[-1][2] == TransitionReason.CHANNEL_ERROR
    assert b.session.state == ConnectionState.READY


def test_data_is_decoded_and_malformed_payloads_dropped(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    a, b = _ready(network, scheduler, "AAA111", "BBB222")
    a.session.connect("BBB222")
    scheduler.run_pending()

    a.session.send(TextEnvelope(content="hello", id="m1"))
    network.registration_for("AAA111").channels[0].send({"type": "shout"})
    scheduler.run_pending()

    assert b.received == [(TextEnvelope(content="hello", id="m1"), "AAA111")]
    assert any("Dropped malformed envelope" in m for m in b.messages(Severity.WARNING))
    assert b.session.state == ConnectionState.CONNECTED


def test_send_requires_connected(network: LoopbackNetwork, scheduler: ManualScheduler) -> None:
    (a,) = _ready(network, scheduler, "AAA111")
    with pytest.raises(NoActiveLink):
        a.session.send(TextEnvelope(content="hello"))


def test_power_off_from_connected(network: LoopbackNetwork, scheduler: ManualScheduler) -> None:
    a, b = _ready(network, scheduler, "AAA111", "BBB222")
    a.session.connect("BBB222")
    scheduler.run_pending()

    a.session.power_off()
    scheduler.run_pending()

    assert a.session.state == ConnectionState.OFFLINE
    assert a.session.remote_peer is None
    assert a.session.local_identity is None
    assert not network.is_live("AAA111")
    assert b.session.state == ConnectionState.READY


def test_change_identity_while_connected_drops_link_and_reregisters(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    a, b = _ready(network, scheduler, "AAA111", "BBB222")
    a.session.connect("BBB222")
    scheduler.run_pending()

    assert a.session.change_identity("AAA999") is True
    assert a.session.state == ConnectionState.INITIALIZING
    scheduler.run_pending()

    assert a.session.state == ConnectionState.READY
    assert a.session.local_identity == "AAA999"
    assert not network.is_live("AAA111")
    assert b.session.state == ConnectionState.READY


def test_change_identity_noop_and_offline(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    node = Node(network, scheduler, "AAA111")

    assert node.session.change_identity("AAA111") is False
    assert node.session.change_identity("  ") is False
    assert node.session.change_identity("BBB222") is True
    assert node.session.state == ConnectionState.OFFLINE
    assert node.session.desired_identity == "BBB222"
    assert scheduler.pending() == 0


def test_link_target_is_consumed_once(
    network: LoopbackNetwork, scheduler: ManualScheduler
) -> None:
    (b,) = _ready(network, scheduler, "BBB222")
    a = Node(network, scheduler, "AAA111", link_target="BBB222", auto_connect_delay=0.5)

    a.session.boot()
    scheduler.run_pending()
    assert a.session.state == ConnectionState.READY
    assert "Found target coordinates in link: BBB222" in a.messages()

    scheduler.advance(0.5)
    assert a.session.state == ConnectionState.CONNECTED

    a.session.power_off()
    a.session.boot()
    scheduler.advance(5.0)
    assert a.session.state == ConnectionState.READY
    assert a.messages().count("Found target coordinates in link: BBB222") == 1


class FakeRegistration:
    def __init__(self, identity: str) -> None:
        self.identity = identity
        self.callbacks: dict[str, Callable] = {}
        self.destroyed = False

    def set_open_callback(self, cb) -> None:
        self.callbacks["open"] = cb

    def set_connection_callback(self, cb) -> None:
        self.callbacks["connection"] = cb

    def set_error_callback(self, cb) -> None:
        self.callbacks["error"] = cb

    def connect(self, target: str):
        raise AssertionError("not used")

    def destroy(self) -> None:
        self.destroyed = True


class FakeTransport:
    def __init__(self) -> None:
        self.registrations: list[FakeRegistration] = []

    def register(self, identity: str) -> FakeRegistration:
        registration = FakeRegistration(identity)
        self.registrations.append(registration)
        return registration


def test_callbacks_from_superseded_registration_are_discarded(
    scheduler: ManualScheduler,
) -> None:
    transport = FakeTransport()
    node = Node(transport, scheduler, "AAA111")
    node.session.boot()
    node.session.change_identity("BBB222")
    old, new = transport.registrations

    assert old.destroyed
    old.callbacks["open"]("AAA111")
    old.callbacks["error"](RegistrationFailure("late"))
    assert node.session.state == ConnectionState.INITIALIZING

    new.callbacks["open"]("BBB222")
    assert node.session.state == ConnectionState.READY
    assert node.session.local_identity == "BBB222"

    old.callbacks["error"](RegistrationFailure("later"))
    assert node.session.state == ConnectionState.READY


def test_unavailable_id_error_type_is_classified_as_collision(
    scheduler: ManualScheduler,
) -> None:
    class BrokerError(Exception):
        type = "unavailable-id"

    transport = FakeTransport()
    node = Node(transport, scheduler, "AAA111")
    node.session.boot()
    transport.registrations[0].callbacks["error"](BrokerError("taken"))

    assert node.session.state == ConnectionState.ERROR
    assert 'ID collision: "AAA111" is already in use.' in node.messages(Severity.ERROR)
