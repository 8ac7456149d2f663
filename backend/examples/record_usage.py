"""Example client that records a tool run and prints the admin analytics."""
from __future__ import annotations

import argparse
import os
import uuid
from typing import List, Optional

import requests


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Record a sample tool usage event")
    parser.add_argument(
        "--api-url",
        default=os.environ.get("TOOLSUITE_API_URL", "http://127.0.0.1:8000"),
        help="ToolSuite API base URL (default: %(default)s or TOOLSUITE_API_URL)",
    )
    parser.add_argument("--tool", default="pdf-to-word", help="Tool name (default: %(default)s)")
    parser.add_argument("--category", default="pdf", help="Tool category (default: %(default)s)")
    parser.add_argument("--processing-time", type=int, default=None, help="Processing time in milliseconds")
    parser.add_argument("--failed", action="store_true", help="Record the run as failed")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    payload = {
        "tool_name": args.tool,
        "category": args.category,
        "session_id": f"cli-{uuid.uuid4().hex[:12]}",
        "processing_time": args.processing_time,
        "success": not args.failed,
    }
    response = requests.post(f"{args.api_url}/api/analytics/tool-usage", json=payload, timeout=10)
    response.raise_for_status()
    print("Usage stored:", response.json())

    analytics = requests.get(
        f"{args.api_url}/api/admin/analytics",
        headers={"user-role": "admin"},
        timeout=10,
    )
    analytics.raise_for_status()
    print("Analytics:", analytics.json())


if __name__ == "__main__":
    main()
