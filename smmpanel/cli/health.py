"""Query a running panel for its system health or trigger housekeeping."""

from __future__ import annotations

import argparse
import json
import sys

import httpx

from smmpanel.config import get_settings

_ACTIONS = {
    "health": ("GET", "/api/system/health"),
    "reset": ("POST", "/api/system/reset-metrics"),
    "cleanup": ("POST", "/api/system/cleanup"),
    "events": ("GET", "/api/system/events"),
}


def run(base_url: str, action: str, *, timeout: float = 10.0, summary_only: bool = False) -> int:
    method, path = _ACTIONS[action]
    try:
        response = httpx.request(method, base_url.rstrip("/") + path, timeout=timeout)
    except httpx.HTTPError as exc:
        print(f"Request failed: {exc}", file=sys.stderr)
        return 2

    try:
        payload = response.json()
    except ValueError:
        print(response.text)
        return 0 if response.is_success else 1
    if summary_only and "summary" in payload:
        print(payload["summary"])
    else:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0 if response.is_success else 1


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Inspect the SMM panel operation monitor.")
    parser.add_argument("action", nargs="?", default="health", choices=sorted(_ACTIONS))
    parser.add_argument(
        "--url",
        default=f"http://127.0.0.1:{settings.port}",
        help="Base URL of the running panel.",
    )
    parser.add_argument("--summary", action="store_true", help="Print only the text summary for 'health'.")
    args = parser.parse_args()
    sys.exit(run(args.url, args.action, summary_only=args.summary))


if __name__ == "__main__":
    main()
