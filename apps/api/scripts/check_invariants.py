from __future__ import annotations

import sys

from sqlalchemy import text

from mediaops.db.session import session_scope

# Each query returns the ids that violate one invariant.
CHECKS: dict[str, str] = {
    "personal org without exactly one OWNER": """
        SELECT o.id
        FROM organizations o
        LEFT JOIN organization_members m
          ON m.organization_id = o.id AND m.role = 'OWNER'
        WHERE o.type = 'PERSONAL'
        GROUP BY o.id
        HAVING count(m.id) <> 1
    """,
    "personal org owned by someone other than its OWNER member": """
        SELECT o.id
        FROM organizations o
        JOIN organization_members m
          ON m.organization_id = o.id AND m.role = 'OWNER'
        WHERE o.type = 'PERSONAL'
          AND m.user_id IS DISTINCT FROM o.personal_owner_user_id
    """,
    "user without exactly one personal org": """
        SELECT u.id
        FROM users u
        LEFT JOIN organizations o
          ON o.personal_owner_user_id = u.id AND o.type = 'PERSONAL'
        GROUP BY u.id
        HAVING count(o.id) <> 1
    """,
    "non-personal org with more than one OWNER": """
        SELECT m.organization_id
        FROM organization_members m
        WHERE m.role = 'OWNER'
        GROUP BY m.organization_id
        HAVING count(*) > 1
    """,
}


def main() -> int:
    failures = 0
    with session_scope() as session:
        for label, sql in CHECKS.items():
            ids = [str(row[0]) for row in session.execute(text(sql))]
            if ids:
                failures += len(ids)
                print(f"FAIL: {label}: {len(ids)} ({', '.join(ids[:10])})")
            else:
                print(f"ok: {label}")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
