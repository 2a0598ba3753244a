import math


def fmt_amount(value: float, symbol: str = "$") -> str:
    """格式化金额：1234567.891 -> $1,234,567.89"""
    if value < 0:
        return f"-{symbol}{abs(value):,.2f}"
    return f"{symbol}{value:,.2f}"


def fmt_rate(value: float) -> str:
    """格式化利率百分比：4.5 -> 4.50%"""
    return f"{value:.2f}%"


def fmt_months(months: int) -> str:
    """格式化月数：42 -> 3 yr 6 mo"""
    years = months // 12
    remain = months % 12
    if remain == 0:
        return f"{years} yr"
    if years == 0:
        return f"{remain} mo"
    return f"{years} yr {remain} mo"


def fmt_break_even(months: float) -> str:
    if math.isinf(months) or math.isnan(months):
        return "never"
    return f"{months:.1f} months"
