"""
Background Job Queue
Dramatiq-based Jobber sync processing
"""
from fieldsync.services.jobs.broker import broker
from fieldsync.services.jobs.tasks import sync_jobber_task

__all__ = ["broker", "sync_jobber_task"]
