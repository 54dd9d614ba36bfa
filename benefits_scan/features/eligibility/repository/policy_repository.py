"""
Read-only access to policies, employer policy history and system variables.
"""

from typing import Any

from benefits_scan.db.helpers import fetch_all, fetch_one, fetch_val
from benefits_scan.features.eligibility.domain import Policy, PolicyHistoryEntry


class PolicyRepository:
    @staticmethod
    def _row_to_policy(row: dict | None) -> Policy | None:
        if not row:
            return None
        return Policy(id=str(row["id"]), name=row.get("name"), data=row.get("data") or {})

    async def get_policy_by_id(self, policy_id: str) -> Policy | None:
        row = await fetch_one("SELECT id, name, data FROM policies WHERE id = %s", (policy_id,))
        return self._row_to_policy(row)

    async def get_employer_policy_history(self, employer_id: str) -> list[PolicyHistoryEntry]:
        """History entries for an employer, newest effective date first."""
        rows = await fetch_all(
            """
            SELECT h.id, h.employer_id, h.date, h.policy_id, h.created_at,
                   p.name AS policy_name, p.data AS policy_data
            FROM employer_policy_history h
            LEFT JOIN policies p ON p.id = h.policy_id
            WHERE h.employer_id = %s
            ORDER BY h.date DESC, h.created_at DESC NULLS LAST
            """,
            (employer_id,),
        )
        return [
            PolicyHistoryEntry(
                id=str(row["id"]),
                employer_id=str(row["employer_id"]),
                date=row["date"],
                policy_id=str(row["policy_id"]),
                policy=(
                    Policy(
                        id=str(row["policy_id"]),
                        name=row.get("policy_name"),
                        data=row.get("policy_data") or {},
                    )
                    if row.get("policy_data") is not None or row.get("policy_name") is not None
                    else None
                ),
                created_at=row.get("created_at"),
            )
            for row in rows
        ]

    async def get_system_variable(self, name: str) -> Any:
        # value is a jsonb column; psycopg hands back the decoded python value
        return await fetch_val("SELECT value FROM variables WHERE name = %s", (name,))
