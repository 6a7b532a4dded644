#!/usr/bin/env python3
"""Generate JWT access tokens for REST and socket smoke testing.

    python scripts/generate_test_token.py <user-id> [--role teacher] [--hours 24]
"""

from __future__ import annotations

import argparse
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from schoolchat.core.auth import Role, create_access_token


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_id", help="Directory user id (token subject)")
    parser.add_argument("--role", default=Role.STUDENT.value, choices=[r.value for r in Role])
    parser.add_argument("--hours", type=float, default=24.0, help="Token lifetime in hours")
    args = parser.parse_args()

    token = create_access_token(
        args.user_id, role=args.role, expires_delta=timedelta(hours=args.hours)
    )
    print(f"{args.role} token for {args.user_id}:\n{token}\n")
    print("Socket.IO handshake: io(url, { auth: { token } })")
    print(f"REST header: Authorization: Bearer {token}")


if __name__ == "__main__":
    main()
