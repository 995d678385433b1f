from .background import *
from .cron import *

__all__ = [
    "job_match_check_task",
    # Scheduled/Cron Tasks
    "daily_job_match_sweep_task",
]
