"""Utility script to run a monitored order sync in-process and print the result."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict

from smmpanel.app import SmmPanelApplication
from smmpanel.orchestrator import AdmissionRejected
from smmpanel.services import parse_sync_request


async def _run(*, body: Dict[str, Any], user_id: str) -> int:
    app = SmmPanelApplication()
    try:
        orders, providers = parse_sync_request(body)
        try:
            result = await app.order_sync.sync_orders(orders, providers, user_id=user_id)
        except AdmissionRejected as exc:
            print(f"Sync rejected: {exc}", file=sys.stderr)
            return 1
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        print(app.monitor.get_performance_summary())
        return 0
    finally:
        await app.shutdown()


def main() -> None:
    parser = argparse.ArgumentParser(description="Sync order statuses from a JSON file of orders and providers.")
    parser.add_argument("path", help="JSON file with 'orders' and 'providers' keys")
    parser.add_argument("--user-id", default="admin", help="User identifier used in the operation id")
    args = parser.parse_args()

    try:
        with open(args.path, encoding="utf-8") as handle:
            body = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Cannot read {args.path}: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        code = asyncio.run(_run(body=body, user_id=args.user_id))
    except ValueError as exc:
        print(f"Invalid sync request: {exc}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
