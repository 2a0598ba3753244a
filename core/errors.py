"""贷款计算引擎的异常类型"""


class LoanCalculationError(ValueError):
    """所有输入类错误的基类"""


class InvalidLoanTypeError(LoanCalculationError):
    """贷款类型不在 LoanType 枚举中"""


class UnknownFrequencyError(LoanCalculationError):
    """还款频率无法换算为每年期数"""


class InvalidFrequencyError(UnknownFrequencyError):
    """构造贷款时传入了无效的还款频率"""


class InvalidInputError(LoanCalculationError):
    """可负担/再融资等计算的参数不合法"""


class MissingParameterError(InvalidInputError):
    """缺少必填参数"""


class ScheduleTooLargeError(LoanCalculationError):
    """还款期数超过上限"""


class ScheduleAbortedError(RuntimeError):
    """分批生成被中止，已生成的部分全部丢弃"""


class ScheduleTimeoutError(ScheduleAbortedError, TimeoutError):
    """分批生成超时"""


class CancellationError(ScheduleAbortedError):
    """分批生成被调用方取消"""


__all__ = [
    "LoanCalculationError",
    "InvalidLoanTypeError",
    "UnknownFrequencyError",
    "InvalidFrequencyError",
    "InvalidInputError",
    "MissingParameterError",
    "ScheduleTooLargeError",
    "ScheduleAbortedError",
    "ScheduleTimeoutError",
    "CancellationError",
]
