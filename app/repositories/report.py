"""
MongoDB-backed report collaborator: queues report jobs for the report workers,
registers recurring schedules and product snapshot requests.
"""

import calendar
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from app.core.correlation import generate_report_correlation_id
from app.models.project import ProductInDB
from app.models.provisioning import InitialReportConfig, ScheduleInfo
from app.repositories.base import ReportRepository
from app.repositories.mongo_storage import translate_mongo_error

logger = logging.getLogger(__name__)

_CADENCE_MONTHS = {"monthly": 1, "quarterly": 3, "annually": 12}
_CADENCE_DAYS = {"daily": 1, "weekly": 7, "biweekly": 14}


def _add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def next_run_time(cadence: str, now: Optional[datetime] = None) -> datetime:
    """Next execution of a recurring report, at 09:00 UTC."""
    key = (cadence or "").strip().lower().replace("-", "")
    base = (now or datetime.utcnow()).replace(hour=9, minute=0, second=0, microsecond=0)
    if key in _CADENCE_DAYS:
        return base + timedelta(days=_CADENCE_DAYS[key])
    if key in _CADENCE_MONTHS:
        return _add_months(base, _CADENCE_MONTHS[key])
    raise ValueError(f"Unsupported report cadence: {cadence}")


class MongoReportRepository(ReportRepository):
    """Repository for report jobs, schedules and product snapshot jobs."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database
        self.reports = database.reports
        self.schedules = database.report_schedules
        self.snapshots = database.product_snapshots

    async def create_indexes(self):
        """Create database indexes for optimal query performance."""
        await self.reports.create_index([("project_id", ASCENDING), ("created_at", ASCENDING)])
        await self.reports.create_index("status")
        await self.schedules.create_index("project_id", unique=True)
        await self.schedules.create_index("next_run_time")
        await self.snapshots.create_index([("product_id", ASCENDING), ("status", ASCENDING)])

    async def check_availability(self) -> bool:
        try:
            await self.database.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"Report service availability check failed: {e}")
            return False

    async def generate_initial_report(self, project_id: str, config: InitialReportConfig) -> str:
        report_id = ObjectId()
        doc = {
            "_id": report_id,
            "project_id": ObjectId(project_id),
            "report_type": "initial",
            "status": "queued",
            "config": config.model_dump(),
            "correlation_id": generate_report_correlation_id(),
            "created_at": datetime.utcnow(),
        }
        try:
            await self.reports.insert_one(doc)
        except PyMongoError as e:
            logger.error(f"Error queueing initial report for project {project_id}: {e}")
            raise translate_mongo_error(e, "generate_initial_report") from e
        logger.info(f"Queued initial report {report_id} for project {project_id}")
        return str(report_id)

    async def schedule_recurring_reports(
        self,
        project_id: str,
        cadence: str,
        config: Dict[str, Any],
    ) -> ScheduleInfo:
        run_at = next_run_time(cadence)
        try:
            result = await self.schedules.find_one_and_update(
                {"project_id": ObjectId(project_id)},
                {
                    "$set": {
                        "cadence": cadence.lower(),
                        "next_run_time": run_at,
                        "config": config,
                        "active": True,
                        "updated_at": datetime.utcnow(),
                    },
                    "$setOnInsert": {"created_at": datetime.utcnow()},
                },
                upsert=True,
                return_document=True,
            )
        except PyMongoError as e:
            logger.error(f"Error scheduling reports for project {project_id}: {e}")
            raise translate_mongo_error(e, "schedule_recurring_reports") from e
        logger.info(f"Scheduled {cadence} reports for project {project_id}, next run {run_at.isoformat()}")
        return ScheduleInfo(schedule_id=str(result["_id"]), cadence=cadence, next_run_time=run_at)

    async def request_product_snapshot(self, product: ProductInDB) -> str:
        job_id = ObjectId()
        try:
            await self.snapshots.insert_one({
                "_id": job_id,
                "product_id": product.id,
                "project_id": product.project_id,
                "website": product.website,
                "status": "queued",
                "created_at": datetime.utcnow(),
            })
        except PyMongoError as e:
            logger.error(f"Error queueing snapshot for product {product.id}: {e}")
            raise translate_mongo_error(e, "request_product_snapshot") from e
        return str(job_id)
