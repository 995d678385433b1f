from .job_match_check import job_match_check_task

__all__ = ["job_match_check_task"]
