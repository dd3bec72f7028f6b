from datetime import date, datetime

from .config import settings


def now() -> datetime:
    """Ora corrente nel fuso dell'ambulatorio, naive (come salvata nel DB)."""
    return datetime.now(settings.tz).replace(tzinfo=None)


def today() -> date:
    return now().date()
