from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from qcheck.core.auth import create_token  # noqa: E402
from qcheck.core.config import get_settings  # noqa: E402
from qcheck.domain.models import Role  # noqa: E402
from qcheck.infra.db.session import init_db  # noqa: E402
from qcheck.infra.db.store import DatabaseStore  # noqa: E402

_DEFAULT_USERS = [
    ("Admin User", "admin@example.com", Role.ADMIN),
    ("Maker User", "maker@example.com", Role.MAKER),
    ("Checker User", "checker@example.com", Role.CHECKER),
]


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the default admin, maker and checker accounts.")
    parser.add_argument(
        "--tokens",
        action="store_true",
        help="Print a bearer token for every seeded user",
    )
    args = parser.parse_args()

    init_db()
    store = DatabaseStore()
    settings = get_settings()

    report: list[dict[str, str]] = []
    for name, email, role in _DEFAULT_USERS:
        user = store.get_user_by_email(email)
        if user is None:
            with store.unit_of_work() as db:
                user = store.create_user(db, name=name, email=email, role=role)
        item = {"userId": user.user_id, "email": user.email, "role": user.role.value}
        if args.tokens:
            item["token"] = create_token(settings, user_id=user.user_id, role=user.role)
        report.append(item)

    print(json.dumps(report, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
