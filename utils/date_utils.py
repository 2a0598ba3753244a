from datetime import date, datetime, timedelta
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from config.constants import PaymentFrequency


def add_months(d: date, months: int) -> date:
    """日期加 N 个月"""
    return d + relativedelta(months=months)


def add_periods(start: date, periods: int, frequency: PaymentFrequency) -> date:
    """按还款频率从 start 向后推 periods 期：月付按自然月，双周/周付按天"""
    frequency = PaymentFrequency(frequency)
    if frequency.period_days:
        return start + timedelta(days=frequency.period_days * periods)
    return add_months(start, periods)


def periods_between(start: date, end: date, frequency: PaymentFrequency) -> int:
    """计算 start 到 end 之间已经过的完整期数（end 早于 start 时为 0）"""
    if end <= start:
        return 0
    frequency = PaymentFrequency(frequency)
    if frequency.period_days:
        return (end - start).days // frequency.period_days
    delta = relativedelta(end, start)
    return delta.years * 12 + delta.months


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """解析日期，支持 ISO 字符串、date、datetime；无法解析返回 None"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date_parser.isoparse(value.strip()).date()
        except (ValueError, OverflowError):
            return None
    return None


def parse_datetime(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    """解析时间戳，date 视为当天零点"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        try:
            return date_parser.isoparse(value.strip())
        except (ValueError, OverflowError):
            return None
    return None
