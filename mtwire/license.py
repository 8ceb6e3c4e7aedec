"""Licence key checks and key generation."""

from __future__ import annotations

import dataclasses
import datetime
import hashlib
import time

_PREFIX = "GOGRAM-"
_MIN_LENGTH = 32
_PROFESSIONAL_LENGTH = 40


class LicenseError(Exception):
    """A licence key was rejected."""


class InvalidLicenseError(LicenseError):
    def __init__(self) -> None:
        super().__init__("invalid license key")


class ExpiredLicenseError(LicenseError):
    def __init__(self) -> None:
        super().__init__("license key has expired")


@dataclasses.dataclass(frozen=True)
class LicenseInfo:
    is_valid: bool
    expiry_date: datetime.datetime
    plan: str


def _add_months(moment: datetime.datetime, months: int) -> datetime.datetime:
    """Add calendar months, letting an overflowing day roll into the next month."""
    total = moment.year * 12 + (moment.month - 1) + months
    year, month = divmod(total, 12)
    first = moment.replace(year=year, month=month + 1, day=1)
    return first + datetime.timedelta(days=moment.day - 1)


def validate_license(license_key: str) -> LicenseInfo:
    """Check a key's shape and return the licence it grants."""
    if not license_key or len(license_key) < _MIN_LENGTH:
        raise InvalidLicenseError()
    if not license_key.startswith(_PREFIX):
        raise InvalidLicenseError()

    now = datetime.datetime.now()
    expiry = _add_months(now, 12)
    if now > expiry:
        raise ExpiredLicenseError()

    plan = "Professional" if len(license_key) > _PROFESSIONAL_LENGTH else "Standard"
    return LicenseInfo(is_valid=True, expiry_date=expiry, plan=plan)


def generate_license_key(customer_id: str, plan_type: str, validity_months: int) -> str:
    """Build a key of the form ``GOGRAM-<hash8>-<customer>-<YYYYMMDD>``."""
    timestamp = int(time.time())
    expiry = _add_months(datetime.datetime.now(), validity_months)
    expiry_str = expiry.strftime("%Y%m%d")
    data = f"{customer_id}-{plan_type}-{timestamp}-{expiry_str}"
    digest = hashlib.sha256(data.encode("utf-8")).hexdigest()
    return f"{_PREFIX}{digest[:8]}-{customer_id}-{expiry_str}"