from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from quickcourt.core.config import settings
from quickcourt.core.logging import setup_logging


def _redis_url_for_celery(url: str) -> str:
    """Celery requires ssl_cert_reqs for rediss:// (e.g. Upstash TLS)."""
    if not url or not url.strip().lower().startswith("rediss://"):
        return url
    parsed = urlparse(url)
    qs = parse_qs(parsed.query)
    if "ssl_cert_reqs" not in qs:
        qs["ssl_cert_reqs"] = ["CERT_NONE"]
        new_query = urlencode(qs, doseq=True)
        return urlunparse(parsed._replace(query=new_query))
    return url


_redis_url = _redis_url_for_celery(settings.REDIS_URL)

celery = Celery(
    "quickcourt",
    broker=_redis_url,
    backend=_redis_url,
    include=["quickcourt.tasks.jobs"],
)

celery.conf.timezone = settings.FACILITY_TIMEZONE


# Same console format as the API instead of Celery's own
@celery_setup_logging.connect
def on_setup_logging(**kwargs):
    setup_logging()


celery.conf.beat_schedule = {
    "complete-due-bookings-every-15-minutes": {
        "task": "quickcourt.tasks.jobs.complete_due_bookings",
        "schedule": 900.0,
    },
}
