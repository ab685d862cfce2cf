from quickcourt.tasks.celery_app import celery
from quickcourt.tasks import worker_jobs

@celery.task(name="quickcourt.tasks.jobs.complete_due_bookings")
def complete_due_bookings():
    return worker_jobs.complete_due_bookings()
