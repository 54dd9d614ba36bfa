"""
Worker, employer and hours lookups used during eligibility evaluation.
"""

from benefits_scan.db.helpers import fetch_one, fetch_val
from benefits_scan.features.eligibility.domain import Employer, Worker


class WorkerRepository:
    async def get_worker(self, worker_id: str) -> Worker | None:
        row = await fetch_one(
            "SELECT id, denorm_home_employer_id, denorm_ws_id FROM workers WHERE id = %s",
            (worker_id,),
        )
        if not row:
            return None
        return Worker(
            id=str(row["id"]),
            denorm_home_employer_id=row.get("denorm_home_employer_id"),
            denorm_ws_id=row.get("denorm_ws_id"),
        )

    async def get_employer(self, employer_id: str) -> Employer | None:
        row = await fetch_one(
            "SELECT id, name, denorm_policy_id FROM employers WHERE id = %s",
            (employer_id,),
        )
        if not row:
            return None
        return Employer(
            id=str(row["id"]),
            name=row.get("name"),
            denorm_policy_id=row.get("denorm_policy_id"),
        )

    async def get_worker_monthly_hours_all_employers(
        self, worker_id: str, month: int, year: int
    ) -> float:
        total = await fetch_val(
            """
            SELECT COALESCE(SUM(hours), 0) AS total_hours
            FROM worker_hours
            WHERE worker_id = %s AND year = %s AND month = %s
            """,
            (worker_id, year, month),
        )
        return float(total or 0)
