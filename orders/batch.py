"""
Batch and order number generation.

Batch numbers look like ``foodontrack-7K2QX9``: a configurable prefix and a
six character suffix drawn from A-Z0-9. Candidates are checked against the
store and redrawn until unused; the unique index on Order.batch_number
catches the remaining race between check and insert.
"""
import logging
import secrets
import string
import time

from django.conf import settings

logger = logging.getLogger(__name__)

BATCH_ALPHABET = string.ascii_uppercase + string.digits
BATCH_SUFFIX_LENGTH = 6
ORDER_SUFFIX_LENGTH = 3


def _random_suffix(length, choice=secrets.choice):
    return ''.join(choice(BATCH_ALPHABET) for _ in range(length))


def _base36(number):
    digits = string.digits + string.ascii_uppercase
    if number == 0:
        return '0'
    encoded = ''
    while number:
        number, remainder = divmod(number, 36)
        encoded = digits[remainder] + encoded
    return encoded


def generate_batch_number(exists, prefix=None, choice=secrets.choice):
    """
    Draw batch numbers until `exists(candidate)` is False.

    `exists` is a predicate over the persistent store, e.g.
    ``lambda n: Order.objects.filter(batch_number=n).exists()``.
    """
    prefix = prefix or settings.BATCH_NUMBER_PREFIX
    attempts = 0
    while True:
        attempts += 1
        candidate = f"{prefix}-{_random_suffix(BATCH_SUFFIX_LENGTH, choice)}"
        if not exists(candidate):
            if attempts > 1:
                logger.info(f"Batch number {candidate} generated after {attempts} attempts")
            return candidate
        logger.warning(f"Batch number collision on {candidate}, regenerating")


def generate_order_number(exists, choice=secrets.choice, clock=time.time):
    """ORD-<base36 epoch millis>-<3 random chars>, redrawn on collision."""
    while True:
        candidate = f"ORD-{_base36(int(clock() * 1000))}-{_random_suffix(ORDER_SUFFIX_LENGTH, choice)}"
        if not exists(candidate):
            return candidate
        logger.warning(f"Order number collision on {candidate}, regenerating")
