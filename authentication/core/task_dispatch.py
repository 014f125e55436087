import logging

logger = logging.getLogger(__name__)


def dispatch_task(task, *args, fallback_sync=True, **kwargs):
    """
    Queue a Celery task, running it in-process if the broker refuses it.

    Returns True when the task was queued or ran successfully, False otherwise.
    Failures are logged, never raised: callers use this for side records that
    must not abort the request that triggered them.
    """
    task_name = getattr(task, "name", repr(task))
    try:
        task.delay(*args, **kwargs)
        return True
    except Exception as queue_error:
        logger.error("Could not queue %s (args=%s): %s", task_name, args, queue_error, exc_info=True)
        if not fallback_sync:
            return False

    try:
        result = task.apply(args=args, kwargs=kwargs)
    except Exception as sync_error:
        logger.error("Inline run of %s crashed: %s", task_name, sync_error, exc_info=True)
        return False

    if result.failed():
        logger.error("Inline run of %s failed: %s", task_name, result.result)
        return False
    return True
