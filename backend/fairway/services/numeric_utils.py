"""
数值工具：评分均值与金额换算统一采用四舍五入（ROUND_HALF_UP）
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[int, float, Decimal]


def to_decimal(value: Number) -> Decimal:
    """浮点数先转字符串，避免二进制误差进入 Decimal"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(value: Number, places: int = 1) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def mean_rounded(values: Iterable[Number], places: int = 1) -> float:
    """平均值，保留 places 位小数；空序列返回 0"""
    items = [to_decimal(v) for v in values]
    if not items:
        return 0.0
    return round_half_up(sum(items) / len(items), places)


def sum_amounts(values: Iterable[Number]) -> Decimal:
    """金额求和（Decimal 精确相加）"""
    return sum((to_decimal(v) for v in values), Decimal("0"))


def to_fen(amount: Number) -> int:
    """元转分，四舍五入到整数"""
    return int((to_decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def has_at_most_two_decimals(amount: Number) -> bool:
    return to_decimal(amount) == to_decimal(amount).quantize(Decimal("0.01"))
