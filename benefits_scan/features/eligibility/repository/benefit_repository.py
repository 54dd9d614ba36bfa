"""
Persistence helpers for trust benefits and worker monthly benefit (WMB) rows.
"""

from benefits_scan.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one, fetch_val
from benefits_scan.features.eligibility.domain import (
    Benefit,
    NewWorkerMonthlyBenefit,
    WorkerMonthlyBenefit,
)
from benefits_scan.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class BenefitRepository:
    """Reads the benefit catalogue and creates/deletes trust_wmb rows."""

    WMB_SELECT_COLUMNS = "id, worker_id, benefit_id, month, year, employer_id"

    @staticmethod
    def _row_to_wmb(row: dict) -> WorkerMonthlyBenefit:
        return WorkerMonthlyBenefit(
            id=str(row["id"]),
            worker_id=str(row["worker_id"]),
            benefit_id=str(row["benefit_id"]),
            month=row["month"],
            year=row["year"],
            employer_id=str(row["employer_id"]),
        )

    async def get_all_benefits(self) -> list[Benefit]:
        rows = await fetch_all(
            "SELECT id, name, benefit_type, is_active FROM trust_benefits ORDER BY name"
        )
        return [
            Benefit(
                id=str(row["id"]),
                name=row["name"],
                benefit_type=row.get("benefit_type"),
                is_active=row.get("is_active", True),
            )
            for row in rows
        ]

    async def get_worker_benefits(self, worker_id: str) -> list[WorkerMonthlyBenefit]:
        rows = await fetch_all(
            f"""
            SELECT {self.WMB_SELECT_COLUMNS}
            FROM trust_wmb
            WHERE worker_id = %s
            ORDER BY year DESC, month DESC
            """,
            (worker_id,),
        )
        return [self._row_to_wmb(row) for row in rows]

    async def worker_benefit_exists(
        self, worker_id: str, benefit_id: str, month: int, year: int
    ) -> bool:
        found = await fetch_val(
            """
            SELECT EXISTS (
                SELECT 1 FROM trust_wmb
                WHERE worker_id = %s AND benefit_id = %s AND month = %s AND year = %s
            )
            """,
            (worker_id, benefit_id, month, year),
        )
        return bool(found)

    async def create_worker_benefit(self, row: NewWorkerMonthlyBenefit) -> WorkerMonthlyBenefit:
        created = await fetch_one(
            f"""
            INSERT INTO trust_wmb (worker_id, benefit_id, month, year, employer_id)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING {self.WMB_SELECT_COLUMNS}
            """,
            (row.worker_id, row.benefit_id, row.month, row.year, row.employer_id),
        )
        if not created:
            raise DatabaseError("Failed to create worker benefit", operation="create_worker_benefit")

        logger.info(
            "Worker benefit created",
            worker_id=row.worker_id,
            benefit_id=row.benefit_id,
            month=row.month,
            year=row.year,
        )
        return self._row_to_wmb(created)

    async def delete_worker_benefit(self, wmb_id: str) -> bool:
        affected = await execute_query("DELETE FROM trust_wmb WHERE id = %s", (wmb_id,))
        logger.info("Worker benefit deleted", wmb_id=wmb_id, deleted=affected > 0)
        return affected > 0
