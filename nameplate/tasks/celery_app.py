from celery import Celery
from nameplate.core.config import settings

celery = Celery(
    __name__,
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=['nameplate.tasks.celery_worker']
)
