# laxbay/utils.py
"""Shared utilities: the service logger and a backoff retry decorator."""
import os
import logging
import time
from functools import wraps
from dotenv import load_dotenv

load_dotenv()

# chatty client libraries stay at WARNING unless LOG_LEVEL is DEBUG
_QUIET = ("botocore", "boto3", "urllib3", "apscheduler.executors", "google.auth")


def get_logger(name="laxbay"):
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=level
    )
    if level > logging.DEBUG:
        for noisy in _QUIET:
            logging.getLogger(noisy).setLevel(logging.WARNING)
    return logging.getLogger(name)

logger = get_logger()


def retry(exceptions, tries=3, delay=1, backoff=2, max_delay=30, logger=logger):
    """Call the wrapped function up to `tries` times while it raises `exceptions`.

    Sleeps `delay` seconds after the first failure, multiplying by `backoff`
    each time up to `max_delay`. The final failure propagates unchanged.
    """
    def deco_retry(f):
        @wraps(f)
        def f_retry(*args, **kwargs):
            wait = delay
            for attempt in range(1, tries):
                try:
                    return f(*args, **kwargs)
                except exceptions as e:
                    logger.warning(
                        "%s failed (attempt %d/%d): %s; retrying in %ss",
                        getattr(f, "__name__", "call"), attempt, tries, e, wait,
                    )
                    time.sleep(wait)
                    wait = min(wait * backoff, max_delay)
            return f(*args, **kwargs)
        return f_retry
    return deco_retry
