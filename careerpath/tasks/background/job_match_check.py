import asyncio

from careerpath.celery import celery
from careerpath.db.session import get_sync_session
from careerpath.services.notifications.notification_emitter import NotificationEmitter
from careerpath.utils.context import request_id_scope
from careerpath.utils.errors import NotFoundError, StoreWriteError
from careerpath.utils.logging import get_logger


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def job_match_check_task(self, request_id: str, student_id: str):
    """
    Compare one student's profile against every approved, open job and
    notify them about new matches.

    Args:
        request_id: The request ID from the original HTTP request
        student_id: The student whose profile changed
    """
    result = asyncio.run(_async_job_match_check(request_id, student_id))
    if result.get("retryable"):
        raise self.retry()
    return result


async def _async_job_match_check(request_id: str, student_id: str):
    with request_id_scope(request_id):
        logger = get_logger()

        for db_session in get_sync_session():
            try:
                created = await NotificationEmitter(db_session).run_job_match_check(
                    student_id
                )
                return {
                    "success": True,
                    "student_id": student_id,
                    "created_count": len(created),
                    "request_id": request_id,
                }

            except NotFoundError as e:
                logger.warning(f"Job match check skipped: {e.message}")
                return {
                    "success": False,
                    "error": e.message,
                    "request_id": request_id,
                }

            except StoreWriteError as e:
                # Already-created notifications are skipped on the retry
                logger.error(f"Job match check for student {student_id} failed: {e.message}")
                return {
                    "success": False,
                    "error": e.message,
                    "retryable": True,
                    "request_id": request_id,
                }
