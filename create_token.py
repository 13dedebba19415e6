"""Mint a long lived access token.

Usage:
    python create_token.py account <account_id> [days]
    python create_token.py domain <domain_id> [days]

Account tokens authenticate sponsors, managers and administrators;
domain tokens authenticate a domain server's heartbeats.
"""
import sys

from domain_directory_api.app.core.security import create_account_token, create_domain_token


def main(argv: list[str]) -> int:
    if len(argv) not in (3, 4) or argv[1] not in ("account", "domain"):
        print(__doc__.strip(), file=sys.stderr)
        return 2
    days = int(argv[3]) if len(argv) == 4 else 365
    lifetime = days * 24 * 60 * 60
    if argv[1] == "account":
        print(create_account_token(argv[2], expires_delta=lifetime))
    else:
        print(create_domain_token(argv[2], expires_delta=lifetime))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
