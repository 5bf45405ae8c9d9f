# laxbay/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from .config import EMBEDDING_SWEEP_MINUTES
from .embeddings import sweep_stale_embeddings
from .utils import logger

scheduler = BackgroundScheduler()


def start_scheduler():
    if EMBEDDING_SWEEP_MINUTES <= 0:
        logger.info("Embedding sweep disabled")
        return
    scheduler.add_job(
        sweep_stale_embeddings,
        "interval",
        minutes=EMBEDDING_SWEEP_MINUTES,
        id="embedding-sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info("Scheduler started, embedding sweep every %d min", EMBEDDING_SWEEP_MINUTES)


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
