#!/usr/bin/env python3
"""Persisted counter demo.

Each run restores the counter from the storage directory, applies the
requested change, and persists the new value.

Usage
-----
::

    python scripts/counter_demo.py --dir /tmp/hydrated increment
    python scripts/counter_demo.py --dir /tmp/hydrated increment --by 5
    python scripts/counter_demo.py --dir /tmp/hydrated show
    python scripts/counter_demo.py --dir /tmp/hydrated reset

Options::

    --dir DIR        Storage directory (default: $HYDRATED_STORAGE_DIR)
    --id ID          Counter instance id (separate record per id)
    --key HEX        Encrypt the storage file with this AES key
    -v, --verbose    Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyhydrated import (  # noqa: E402
    HydratedConfig,
    HydratedReactiveStore,
    action,
    build_storage,
    observable,
)


class Counter(HydratedReactiveStore):
    count = observable(0)
    history = observable(factory=list)

    def __init__(self, counter_id: str = "", **kwargs: Any) -> None:
        self.id = counter_id
        super().__init__(**kwargs)

    @action
    def increment(self, by: int = 1) -> None:
        self.count += by
        self.history = [*self.history, by][-10:]

    def to_json(self) -> dict[str, Any] | None:
        return {"count": self.count, "history": self.history}

    def from_json(self, json: dict[str, Any]) -> None:
        self.count = int(json.get("count", 0))
        self.history = list(json.get("history", []))


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("command", choices=("show", "increment", "decrement", "reset"))
    parser.add_argument("--by", type=int, default=1)
    parser.add_argument("--dir", dest="storage_dir", default=None)
    parser.add_argument("--id", dest="counter_id", default="")
    parser.add_argument("--key", dest="encryption_key", default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    if args.storage_dir:
        overrides["storage_dir"] = args.storage_dir
    if args.encryption_key:
        overrides["encryption_key"] = args.encryption_key
    config = HydratedConfig.from_env(**overrides)

    storage = await build_storage(config)
    counter = Counter(args.counter_id, storage=storage)
    try:
        if args.command == "increment":
            counter.increment(args.by)
        elif args.command == "decrement":
            counter.increment(-args.by)
        elif args.command == "reset":
            await counter.clear()
            print(f"{counter.storage_token}: cleared (in-memory value {counter.count})")
            return 0
        await counter.flush()
        print(f"{counter.storage_token}: {counter.count} (last changes: {counter.history})")
        return 0
    finally:
        counter.detach()
        await storage.close()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
