#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import sys

import httpx


def _iter_records(response: httpx.Response):
    event = "message"
    for line in response.iter_lines():
        if not line:
            event = "message"
            continue
        if line.startswith("event:"):
            event = line[len("event:"):].strip()
            continue
        if line.startswith("data:"):
            yield event, json.loads(line[len("data:"):].strip())


def main() -> None:
    parser = argparse.ArgumentParser(description="Stream a script-generation session and print each step")
    parser.add_argument("--server", default="http://127.0.0.1:8000", help="service base URL")
    parser.add_argument("--from-address", help="address the script broadcasts from")
    parser.add_argument("--rpc-url", help="fork URL for the dry run")
    parser.add_argument("--fix", metavar="ERROR", help="repair an existing session with this error text")
    parser.add_argument("--temp-dir", help="session key returned by a previous run (required with --fix)")
    parser.add_argument("intent", nargs="?", help="plain-language description of the transaction")
    args = parser.parse_args()

    if args.fix:
        if not args.temp_dir:
            parser.error("--temp-dir is required with --fix")
        path = "/forge/fix"
        params = {"error": args.fix, "temp_dir": args.temp_dir}
    else:
        if not args.intent or not args.from_address:
            parser.error("intent and --from-address are required")
        path = "/forge/stream"
        params = {"intent": args.intent, "from_address": args.from_address}
    if args.rpc_url:
        params["rpc_url"] = args.rpc_url

    failed = False
    with httpx.Client(base_url=args.server, timeout=None) as client:
        with client.stream("GET", path, params=params) as response:
            response.raise_for_status()
            for event, record in _iter_records(response):
                if event == "close":
                    break
                title = record.get("title", "")
                output = record.get("output", "")
                if title == "Error":
                    failed = True
                    print(f"[{title}]\n{output}", file=sys.stderr)
                elif title == "Generating Code":
                    print(output, end="", flush=True)
                else:
                    print(f"[{title}] {output}".rstrip())

    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
