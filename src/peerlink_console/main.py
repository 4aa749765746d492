from __future__ import annotations

import argparse
import asyncio
import importlib.metadata
import traceback


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="peerlink-console",
        description="Peer-to-peer chat console",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=importlib.metadata.version("peerlink-console"),
    )

    sub = parser.add_subparsers(dest="command")

    from peerlink_console.cli import register_subcommands

    register_subcommands(sub)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    from peerlink_console.cli import _async_main

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
