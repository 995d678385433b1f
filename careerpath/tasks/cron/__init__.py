from .daily_job_match_sweep import daily_job_match_sweep_task

__all__ = ["daily_job_match_sweep_task"]
