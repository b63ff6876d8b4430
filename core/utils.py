# core/utils.py

"""
Repository for program-wide utilities.
"""

import datetime
import uuid


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)
