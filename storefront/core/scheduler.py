"""
APScheduler Setup for Background Jobs

Handles payment housekeeping:
- Review reconciliation: flags verifications past the review SLA
- Attempt cleanup: evicts abandoned in-process payment attempts
- OTP cleanup: removes expired phone OTP codes

Note: Jobs run with database connection from app context.
"""
import os
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()

# Job status tracking
job_status = {
    "last_run": None,
    "reconciliation": {"runs": 0, "last_result": None},
    "attempt_cleanup": {"runs": 0, "last_result": None},
    "otp_cleanup": {"runs": 0, "last_result": None}
}


async def run_review_reconciliation():
    """Job: Flag pending verifications (and their orders) past the review SLA."""
    from storefront.database import Database
    from storefront.services.payment.verification_service import VerificationService

    try:
        db = Database.get_db()
        if db is None:
            logger.warning("Database not connected, skipping reconciliation")
            return

        sla_hours = int(os.getenv("VERIFICATION_REVIEW_SLA_HOURS", "48"))
        result = await VerificationService(db).flag_overdue_reviews(sla_hours)

        job_status["reconciliation"]["runs"] += 1
        job_status["reconciliation"]["last_result"] = result
        job_status["last_run"] = datetime.utcnow().isoformat()

        if result.get("processed", 0) > 0:
            logger.info(f"reconciliation: {result['processed']} verifications flagged")

    except Exception as e:
        logger.error(f"reconciliation job failed: {e}")


async def run_attempt_cleanup():
    """Job: Drop payment attempts nobody has touched within the TTL."""
    from storefront.services.payment.attempt_store import attempt_store

    evicted = attempt_store.evict_expired()
    job_status["attempt_cleanup"]["runs"] += 1
    job_status["attempt_cleanup"]["last_result"] = {"evicted": evicted, "active": len(attempt_store)}
    job_status["last_run"] = datetime.utcnow().isoformat()


async def run_otp_cleanup():
    """Job: Remove expired phone OTP codes."""
    from storefront.database import Database
    from storefront.services.auth.otp import OTPService

    try:
        db = Database.get_db()
        if db is None:
            logger.warning("Database not connected, skipping otp_cleanup")
            return

        await OTPService(db).cleanup_expired_otps()

        job_status["otp_cleanup"]["runs"] += 1
        job_status["last_run"] = datetime.utcnow().isoformat()

    except Exception as e:
        logger.error(f"otp_cleanup job failed: {e}")


def setup_scheduler():
    """
    Configure and setup all scheduled jobs.

    Job Schedule:
    - reconciliation: Every RECONCILIATION_INTERVAL_MINUTES (default 30)
    - attempt_cleanup: Every 10 minutes
    - otp_cleanup: Every 60 minutes
    """
    # Clear any existing jobs
    scheduler.remove_all_jobs()

    reconciliation_minutes = int(os.getenv("RECONCILIATION_INTERVAL_MINUTES", "30"))

    scheduler.add_job(
        run_review_reconciliation,
        IntervalTrigger(minutes=reconciliation_minutes),
        id="payment_review_reconciliation",
        name="Flag verifications past review SLA",
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    scheduler.add_job(
        run_attempt_cleanup,
        IntervalTrigger(minutes=10),
        id="payment_attempt_cleanup",
        name="Evict abandoned payment attempts",
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    scheduler.add_job(
        run_otp_cleanup,
        IntervalTrigger(minutes=60),
        id="otp_cleanup",
        name="Remove expired OTP codes",
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    logger.info("Payment scheduler configured with 3 jobs")


def start_scheduler():
    """Start the scheduler if not already running."""
    if not scheduler.running:
        scheduler.start()
        logger.info("Background scheduler started")


def stop_scheduler():
    """Stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")


def get_scheduler_status() -> dict:
    """Get current scheduler status for monitoring."""
    return {
        "running": scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None
            }
            for job in scheduler.get_jobs()
        ],
        "job_status": job_status
    }
