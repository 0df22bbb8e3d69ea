"""
Bounded retry for transient database errors.

Wraps whole units of work (usually a ``transaction.atomic`` block) so a
dropped connection or a lock timeout is retried with exponential backoff
instead of failing the request outright.  Anything other than
``OperationalError`` propagates immediately.
"""
import functools
import logging

from django.conf import settings
from django.db import OperationalError
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


def retry_on_transient_db_error(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        config = settings.SUPPORT_CHAT
        retrying = Retrying(
            retry=retry_if_exception_type(OperationalError),
            stop=stop_after_attempt(config.get("DB_RETRY_ATTEMPTS", 3)),
            wait=wait_exponential(multiplier=0.1, max=config.get("DB_RETRY_MAX_WAIT", 2)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(func, *args, **kwargs)

    return wrapper
