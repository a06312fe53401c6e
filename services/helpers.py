import json
import math
import calendar
import random
import string
import logging
from datetime import date, datetime, timedelta
from pytz import utc
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def generate_random_string(length=8):
    return ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))


def generate_payment_reference(prefix="DA"):
    return f"{prefix}-{datetime.now(tz=utc).strftime('%Y%m%d%H%M%S')}-{generate_random_string(10)}"


def utcnow() -> datetime:
    return datetime.now(tz=utc)


def start_of_month(now: datetime = None) -> datetime:
    now = now or utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def add_billing_period(start: datetime, billing_period: str) -> datetime:
    days = {"monthly": 30, "quarterly": 90, "yearly": 365}[billing_period]
    return start + timedelta(days=days)


def add_months(day: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    index = day.month - 1 + months
    year, month = day.year + index // 12, index % 12 + 1
    return day.replace(year=year, month=month, day=min(day.day, calendar.monthrange(year, month)[1]))


# Configure the hashing algorithm
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def bounding_box(lat: float, lng: float, radius_km: float):
    """Lat/lng box that contains every point within ``radius_km``."""
    d_lat = math.degrees(radius_km / EARTH_RADIUS_KM)
    cos_lat = math.cos(math.radians(lat))
    if cos_lat < 1e-6:
        d_lng = 180.0
    else:
        d_lng = min(180.0, math.degrees(radius_km / (EARTH_RADIUS_KM * cos_lat)))
    return lat - d_lat, lat + d_lat, lng - d_lng, lng + d_lng


def quiz_grade(score: int) -> str:
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


def cast_setting_value(value, value_type: str):
    """Cast a stored setting string to its declared type."""
    if value is None:
        return None
    if value_type == "integer":
        return int(value)
    if value_type == "boolean":
        return str(value).lower() in ("1", "true", "yes", "on")
    if value_type == "json":
        return json.loads(value)
    return value
