#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os
import sys

import requests


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--url", default="http://localhost:8002")
    parser.add_argument("--product", required=True)
    parser.add_argument("--question", default="How do I get started?")
    parser.add_argument("--unhelpful", action="store_true")
    args = parser.parse_args()

    api_key = os.getenv("MEDIATOR_API_KEY", "")
    if not api_key:
        print("ERROR: MEDIATOR_API_KEY is required.")
        return 1
    headers = {"Content-Type": "application/json", "x-api-key": api_key}

    resp = requests.post(f"{args.url}/sessions", headers=headers, json={"product_id": args.product}, timeout=30)
    if resp.status_code != 200:
        print(f"ERROR: /sessions failed (HTTP {resp.status_code})")
        print(resp.text)
        return 1
    state = resp.json()
    session_id = state["session_id"]
    print(f"Session {session_id} escalated={state['escalated']}")
    print(f"assistant: {state['messages'][0]['content']}")

    resp = requests.post(
        f"{args.url}/sessions/{session_id}/messages",
        headers=headers,
        json={"text": args.question},
        timeout=120,
    )
    if resp.status_code != 200:
        print(f"ERROR: /messages failed (HTTP {resp.status_code})")
        print(resp.text)
        return 1
    body = resp.json()
    reply = body["session"]["messages"][-1]
    print(f"user: {args.question}")
    print(f"assistant ({body['outcome']}): {reply['content']}")

    if reply["feedback_eligible"]:
        resp = requests.post(
            f"{args.url}/sessions/{session_id}/feedback",
            headers=headers,
            json={"message_id": reply["id"], "is_helpful": not args.unhelpful},
            timeout=30,
        )
        if resp.status_code != 200:
            print(f"ERROR: /feedback failed (HTTP {resp.status_code})", file=sys.stderr)
            return 1
        ack = resp.json()["acknowledgement"]
        print(f"{ack['title']} {ack['description']} (escalated={ack['escalated']})")

    requests.delete(f"{args.url}/sessions/{session_id}", headers=headers, timeout=30)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
