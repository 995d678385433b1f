import asyncio

from careerpath.celery import celery
from careerpath.db.models import Student
from careerpath.db.session import get_sync_session
from careerpath.db.store import EntityStore
from careerpath.services.notifications.notification_emitter import NotificationEmitter
from careerpath.utils.context import request_id_scope
from careerpath.utils.errors import DatabaseError, NotFoundError
from careerpath.utils.logging import get_logger


@celery.task(bind=True, max_retries=3, default_retry_delay=30)
def daily_job_match_sweep_task(self, request_id: str):
    """
    Daily sweep running the job match check for every student, so jobs
    posted or approved since a student's last profile change are matched too.

    Args:
        request_id: The request ID for tracking purposes (provided by Celery Beat configuration)
    """
    return asyncio.run(_async_daily_job_match_sweep(request_id))


async def _async_daily_job_match_sweep(request_id: str):
    with request_id_scope(request_id):
        logger = get_logger()

        for db_session in get_sync_session():
            student_ids = [s.id for s in EntityStore(db_session).list(Student)]
            emitter = NotificationEmitter(db_session)

            notified_count = 0
            failed_count = 0
            for student_id in student_ids:
                try:
                    created = await emitter.run_job_match_check(student_id)
                    notified_count += len(created)
                except (NotFoundError, DatabaseError) as e:
                    failed_count += 1
                    logger.error(
                        f"Job match check failed for student {student_id}: {e.message}"
                    )
                    continue

            logger.info(
                f"Daily job match sweep completed: students={len(student_ids)} "
                f"notifications={notified_count} failures={failed_count}"
            )
            return {
                "success": failed_count == 0,
                "student_count": len(student_ids),
                "notification_count": notified_count,
                "failed_count": failed_count,
                "request_id": request_id,
            }
