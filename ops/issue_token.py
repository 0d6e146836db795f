from __future__ import annotations

import argparse
import sys

from realty.core.security import build_access_token


DEFAULT_TTL_SECONDS = 7 * 24 * 3600


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Print a bearer token for a user id (local testing only).")
    parser.add_argument("user_id", help="users.id to put in the sub claim")
    parser.add_argument("--ttl", type=int, default=DEFAULT_TTL_SECONDS, help="lifetime in seconds")
    args = parser.parse_args(argv)

    if not args.user_id.strip():
        print("user_id must not be blank", file=sys.stderr)
        return 2

    print(build_access_token(user_id=args.user_id.strip(), ttl_seconds=args.ttl))
    return 0


if __name__ == "__main__":
    sys.exit(main())
