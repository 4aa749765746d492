from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
import traceback
from typing import Callable

from peerlink_console.chat.client import ChatClient
from peerlink_console.chat.config import ChatConfig, load_chat_config
from peerlink_console.chat.db import open_db
from peerlink_console.chat.identity import IdentityManager
from peerlink_console.chat.scheduler import AsyncioScheduler
from peerlink_console.chat.settings_store import SettingsStore
from peerlink_console.core.enums import ConnectionState, DeliveryStatus
from peerlink_console.mock.transport import LoopbackNetwork


def add_global_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--debug",
        dest="debug",
        action="store_true",
        help="Enable verbose debug logs",
    )


def register_subcommands(sub: argparse._SubParsersAction) -> None:
    identity = sub.add_parser("identity", help="Show or change the persisted node identity")
    add_global_args(identity)
    identity.add_argument("--set", dest="new_identity", default=None, help="New identity")
    identity.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="SQLite settings database (default: $PEERLINK_DB_PATH or the XDG state dir)",
    )

    demo = sub.add_parser("demo", help="Run two nodes over an in-memory link and print events")
    add_global_args(demo)
    demo.add_argument("--identity", default="AAA111", help="Identity of the first node")
    demo.add_argument("--peer", default="BBB222", help="Identity of the second node")
    demo.add_argument(
        "--connect",
        default=None,
        help="Link target the second node dials after start-up (default: the first node)",
    )
    demo.add_argument(
        "--step-timeout",
        type=float,
        default=5.0,
        help="Fail if a demo step does not complete within N seconds",
    )

    export = sub.add_parser("export-logs", help="Export application logs for bug reports")
    export.add_argument(
        "-o",
        "--output",
        default=None,
        help="Write logs to file (default: stdout)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Headless peerlink chat CLI")
    sub = parser.add_subparsers(dest="command", required=True)
    register_subcommands(sub)
    return parser


def _debug(enabled: bool, message: str) -> None:
    if enabled:
        print(f"[debug] {message}", flush=True)


def _identity(db_path: str | None, new_identity: str | None) -> int:
    config = load_chat_config()
    store = SettingsStore(open_db(db_path or config.db_path))
    manager = IdentityManager(store)
    changed = False
    if new_identity is not None:
        changed = manager.change(new_identity)
    print(json.dumps({"identity": manager.current, "changed": changed}))
    return 0


def _print_events(name: str, client: ChatClient) -> None:
    for event in client.poll_events(limit=0):
        print(json.dumps({"node": name, **event}, default=str))


async def _wait_for(
    predicate: Callable[[], bool],
    clients: dict[str, ChatClient],
    *,
    timeout: float,
    what: str,
) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        for name, client in clients.items():
            _print_events(name, client)
        if time.monotonic() >= deadline:
            raise TimeoutError(f"demo step timed out: {what}")
        await asyncio.sleep(0.05)
    for name, client in clients.items():
        _print_events(name, client)


async def _run_demo(args: argparse.Namespace) -> int:
    scheduler = AsyncioScheduler()
    network = LoopbackNetwork(scheduler)
    base = load_chat_config()
    target = args.connect or args.identity

    def make_client(identity: str, link_target: str | None) -> ChatClient:
        config = ChatConfig(
            typing_debounce=base.typing_debounce,
            auto_connect_delay=base.auto_connect_delay,
            connect_target=link_target,
            max_events=base.max_events,
        )
        return ChatClient(
            network,
            scheduler,
            config=config,
            settings_store=SettingsStore(open_db(":memory:")),
            identity=identity,
        )

    first = make_client(args.identity, None)
    second = make_client(args.peer, target)
    clients = {args.identity: first, args.peer: second}
    timeout = args.step_timeout

    _debug(args.debug, "powering on both nodes")
    first.power_on()
    await _wait_for(
        lambda: first.state == ConnectionState.READY,
        clients,
        timeout=timeout,
        what="first node registered",
    )
    second.power_on()
    await _wait_for(
        lambda: first.is_connected and second.is_connected,
        clients,
        timeout=timeout,
        what=f"link to {target}",
    )

    _debug(args.debug, "exchanging text")
    second.notify_typing()
    hello = second.send_text("hello")
    await _wait_for(lambda: hello.id in first.log, clients, timeout=timeout, what="text delivery")
    first.send_text("hi back", reply_to=hello.id)

    _debug(args.debug, "sending file")
    sent = first.send_file("notes.txt", b"peer-to-peer notes\n")
    await _wait_for(
        lambda: (first.get_message(sent.id) or sent).status == DeliveryStatus.DELIVERED,
        clients,
        timeout=timeout,
        what="file acknowledgment",
    )

    _debug(args.debug, "editing and deleting")
    second.edit_message(hello.id, "hello there")
    await _wait_for(
        lambda: (first.get_message(hello.id) or hello).edited,
        clients,
        timeout=timeout,
        what="edit delivery",
    )
    second.delete_message(hello.id)
    await _wait_for(
        lambda: (first.get_message(hello.id) or hello).deleted,
        clients,
        timeout=timeout,
        what="delete delivery",
    )

    _debug(args.debug, "disconnecting")
    second.disconnect()
    await _wait_for(
        lambda: first.state == ConnectionState.READY,
        clients,
        timeout=timeout,
        what="remote close",
    )
    first.power_off()
    second.power_off()
    await asyncio.sleep(0)
    for name, client in clients.items():
        _print_events(name, client)
    return 0


def _export_logs(output: str | None) -> int:
    from peerlink_console.chat.logging_setup import export_logs_to_path, export_logs_to_stdout

    if output:
        export_logs_to_path(output)
        print(f"Logs written to {output}")
    else:
        export_logs_to_stdout()
    return 0


async def _async_main(args: argparse.Namespace) -> int:
    if args.command == "export-logs":
        return _export_logs(args.output)

    from peerlink_console.chat.logging_setup import configure_logging

    configure_logging("DEBUG" if args.debug else "WARNING")
    logging.getLogger(__name__).debug("command=%s", args.command)

    if args.command == "identity":
        return _identity(args.db_path, args.new_identity)
    if args.command == "demo":
        return await _run_demo(args)
    raise RuntimeError(f"Unsupported command: {args.command}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_async_main(args))
    except TimeoutError as exc:
        print(f"error: {exc}")
        return 1
    except Exception as exc:  # noqa: BLE001
        if getattr(args, "debug", False):
            print(f"[debug] error: {exc}")
            traceback.print_exc()
        else:
            print(f"error: {exc}")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
