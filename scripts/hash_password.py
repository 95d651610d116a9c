#!/usr/bin/env python3
"""Print an ADMIN_ACCOUNTS entry for a new administrator.

Usage:
    python scripts/hash_password.py admin@example.com "Jane Admin" IT
    (the password is read from the terminal without echo)
"""

import getpass
import json
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from formflow.config import AdminAccount
from formflow.services.auth import get_password_hash


def main(argv: list[str]) -> int:
    if not argv:
        print(__doc__)
        return 1

    email = argv[0]
    name = argv[1] if len(argv) > 1 else "Administrator"
    division = argv[2] if len(argv) > 2 else "IT"

    password = getpass.getpass("Password: ")
    if len(password) < 6:
        print("Password must be at least 6 characters.", file=sys.stderr)
        return 1
    if getpass.getpass("Repeat password: ") != password:
        print("Passwords do not match.", file=sys.stderr)
        return 1

    account = AdminAccount(
        email=email, password_hash=get_password_hash(password), name=name, division=division
    )
    print(json.dumps(account.model_dump()))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
