"""
还款计划生成器

按期推进余额生成完整的摊还明细：
- generate_schedule: 同步一次性生成
- ScheduleGenerator: 可分批推进的状态机（当前期数 + 剩余本金）
- generate_schedule_chunked / generate_schedule_async: 分批生成，每批之间检查
  取消标志和超时，并回调进度；中止时丢弃已生成的部分
- submit_schedule: 在后台线程中分批生成，返回可取消的 ScheduleJob
"""
import asyncio
import logging
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Optional, Tuple

import pandas as pd

from config.constants import AMORTIZATION_SCHEDULE_COLUMNS
from config.settings import (
    BALANCE_TOLERANCE,
    DEFAULT_BATCH_SIZE,
    DEFAULT_GENERATION_TIMEOUT,
    MAX_SCHEDULE_PAYMENTS,
)
from core.errors import (
    CancellationError,
    InvalidInputError,
    ScheduleTimeoutError,
    ScheduleTooLargeError,
)
from data_manager.schema import AmortizationEntry
from utils.date_utils import add_periods

if TYPE_CHECKING:
    from core.loan import Loan

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str, Optional[str]], None]


@dataclass(frozen=True)
class AmortizationSchedule:
    """还款计划：按时间顺序排列的明细，汇总值全部由明细求和得到"""

    entries: Tuple[AmortizationEntry, ...] = ()
    start_date: Optional[date] = None
    loan_id: Optional[str] = None

    def __iter__(self) -> Iterator[AmortizationEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index):
        return self.entries[index]

    @property
    def total_interest(self) -> float:
        return sum(e.interest_portion for e in self.entries)

    @property
    def total_payment(self) -> float:
        return sum(e.payment_amount for e in self.entries)

    @property
    def total_principal(self) -> float:
        return sum(e.principal_portion for e in self.entries)

    @property
    def number_of_payments(self) -> int:
        return len(self.entries)

    @property
    def payoff_date(self) -> Optional[date]:
        """最后一期的日期；空计划返回起始日"""
        if not self.entries:
            return self.start_date
        return self.entries[-1].date

    def remaining_after(self, periods: int) -> Tuple[float, int, float]:
        """已还 periods 期后的 (剩余本金, 剩余期数, 剩余利息)"""
        if not self.entries:
            return 0.0, 0, 0.0
        periods = max(0, min(periods, len(self.entries)))
        if periods == 0:
            first = self.entries[0]
            balance = first.remaining_balance + first.principal_portion
        else:
            balance = self.entries[periods - 1].remaining_balance
        rest = self.entries[periods:]
        return balance, len(rest), sum(e.interest_portion for e in rest)

    def to_dataframe(self) -> pd.DataFrame:
        records = [e.to_dict() for e in self.entries]
        df = pd.DataFrame(records, columns=AMORTIZATION_SCHEDULE_COLUMNS)
        if not df.empty:
            df["date"] = pd.to_datetime(df["date"]).dt.date
        return df

    def to_dict(self) -> Dict[str, Any]:
        return {
            "loan_id": self.loan_id,
            "entries": [e.to_dict() for e in self.entries],
            "total_interest": self.total_interest,
            "total_payment": self.total_payment,
            "total_principal": self.total_principal,
            "payoff_date": self.payoff_date.isoformat() if self.payoff_date else None,
            "number_of_payments": self.number_of_payments,
        }


class ScheduleGenerator:
    """可分批推进的还款计划状态机

    每次 step() 最多推进 batch_size 期；余额归零或达到总期数后 done 为 True。
    最后一期（或剩余本金小于 BALANCE_TOLERANCE 时）把尾差并入本期本金，余额置 0。
    """

    def __init__(
        self,
        loan: "Loan",
        include_additional_payments: bool = True,
        max_payments: int = MAX_SCHEDULE_PAYMENTS,
    ):
        self.loan_id = loan.id
        self.start_date = loan.start_date
        self.frequency = loan.payment_frequency
        self.total_periods = loan.number_of_payments
        self._balance = max(loan.total_loan_amount, 0.0)
        self._rate = loan.periodic_interest_rate
        self._payment = loan.payment_amount
        self._additional = loan.additional_payment if include_additional_payments else 0.0
        self._period = 0
        self._entries: List[AmortizationEntry] = []

        if self._balance > 0 and self.total_periods > max_payments:
            raise ScheduleTooLargeError(
                f"Schedule would need {self.total_periods} payments; the limit is {max_payments}"
            )

    @property
    def period(self) -> int:
        return self._period

    @property
    def balance(self) -> float:
        return self._balance

    @property
    def done(self) -> bool:
        return self._balance <= 0 or self._period >= self.total_periods

    @property
    def progress(self) -> float:
        """完成百分比；未完成时最多报告 95"""
        if self.done:
            return 100.0
        return min(95.0, self._period / self.total_periods * 100)

    def step(self, batch_size: Optional[int] = None) -> int:
        """推进至多 batch_size 期（None 表示直到结束），返回本次处理的期数"""
        processed = 0
        while not self.done and (batch_size is None or processed < batch_size):
            self._entries.append(self._next_entry())
            processed += 1
        return processed

    def _next_entry(self) -> AmortizationEntry:
        self._period += 1
        balance = self._balance
        interest = balance * self._rate
        principal = min(max(self._payment - interest + self._additional, 0.0), balance)
        remaining = balance - principal

        # 最后一期尾差调整
        if self._period >= self.total_periods or remaining < BALANCE_TOLERANCE:
            principal = balance
            remaining = 0.0

        self._balance = remaining
        return AmortizationEntry(
            sequence_number=self._period,
            date=add_periods(self.start_date, self._period, self.frequency),
            payment_amount=principal + interest,
            principal_portion=principal,
            interest_portion=interest,
            remaining_balance=remaining,
        )

    def result(self) -> AmortizationSchedule:
        if not self.done:
            raise RuntimeError("Schedule generation has not finished")
        return AmortizationSchedule(
            entries=tuple(self._entries),
            start_date=self.start_date,
            loan_id=self.loan_id,
        )

    def discard(self):
        """丢弃已生成的部分"""
        self._entries.clear()


def generate_schedule(
    loan: "Loan",
    include_additional_payments: bool = True,
    max_payments: int = MAX_SCHEDULE_PAYMENTS,
) -> AmortizationSchedule:
    """同步生成完整还款计划"""
    generator = ScheduleGenerator(loan, include_additional_payments, max_payments)
    generator.step()
    schedule = generator.result()
    logger.debug(
        "Generated %d payments for loan %s (total interest %.2f)",
        len(schedule), loan.id, schedule.total_interest,
    )
    return schedule


def _run_batches(
    loan: "Loan",
    batch_size: int,
    on_progress: Optional[ProgressCallback],
    timeout: Optional[float],
    cancel_event,
    include_additional_payments: bool,
    max_payments: int,
    clock: Callable[[], float],
):
    """分批生成的公共流程；每处理完一批 yield 一次，结束时 return 完整计划"""
    if batch_size is None or batch_size < 1:
        raise InvalidInputError("batch_size must be >= 1")

    notify = on_progress or (lambda percent, message, step_id=None: None)
    started = clock()

    def check_deadline():
        if timeout is not None and clock() - started > timeout:
            raise ScheduleTimeoutError(f"Calculation timeout after {timeout}s")

    generator = ScheduleGenerator(loan, include_additional_payments, max_payments)

    try:
        notify(0.0, "Starting calculation...", "calculate")
        while not generator.done:
            if cancel_event is not None and cancel_event.is_set():
                raise CancellationError(
                    f"Schedule generation cancelled after {generator.period} payments"
                )
            check_deadline()

            generator.step(batch_size)
            logger.debug("Loan %s: processed %d/%d payments", loan.id, generator.period, generator.total_periods)
            if not generator.done:
                notify(generator.progress, f"Processing payment {generator.period}...", "calculate")
                yield
        # 最后一批超时同样作废
        check_deadline()
        schedule = generator.result()
    except Exception:
        generator.discard()
        raise

    notify(100.0, "Complete", "complete")
    logger.info("Generated %d payments for loan %s in batches of %d", len(schedule), loan.id, batch_size)
    return schedule


def generate_schedule_chunked(
    loan: "Loan",
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: Optional[ProgressCallback] = None,
    timeout: Optional[float] = DEFAULT_GENERATION_TIMEOUT,
    cancel_event=None,
    include_additional_payments: bool = True,
    max_payments: int = MAX_SCHEDULE_PAYMENTS,
    clock: Callable[[], float] = time.monotonic,
) -> AmortizationSchedule:
    """
    分批生成还款计划

    Args:
        loan: 贷款
        batch_size: 每批处理的期数
        on_progress: 进度回调 (percent, message, step_id)，开始、每批之后、完成时各调用一次
        timeout: 超时秒数，None 表示不限；在每批之前和最后一批之后检查
        cancel_event: 任何带 is_set() 的对象（如 threading.Event），在批次之间检查
        clock: 计时函数，默认 time.monotonic

    Raises:
        CancellationError / ScheduleTimeoutError: 中止时不返回任何部分结果
    """
    batches = _run_batches(
        loan, batch_size, on_progress, timeout, cancel_event,
        include_additional_payments, max_payments, clock,
    )
    while True:
        try:
            next(batches)
        except StopIteration as stop:
            return stop.value


async def generate_schedule_async(
    loan: "Loan",
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: Optional[ProgressCallback] = None,
    timeout: Optional[float] = DEFAULT_GENERATION_TIMEOUT,
    cancel_event=None,
    include_additional_payments: bool = True,
    max_payments: int = MAX_SCHEDULE_PAYMENTS,
    clock: Callable[[], float] = time.monotonic,
) -> AmortizationSchedule:
    """与 generate_schedule_chunked 相同，但每批之间让出事件循环"""
    batches = _run_batches(
        loan, batch_size, on_progress, timeout, cancel_event,
        include_additional_payments, max_payments, clock,
    )
    while True:
        try:
            next(batches)
        except StopIteration as stop:
            return stop.value
        await asyncio.sleep(0)


class ScheduleJob:
    """后台线程中的分批生成任务"""

    def __init__(self, loan: "Loan", executor: Optional[Executor] = None, **options):
        self.cancel_event = options.pop("cancel_event", None)
        if self.cancel_event is None:
            self.cancel_event = threading.Event()

        owns_executor = executor is None
        if owns_executor:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="schedule")
        self._future = executor.submit(
            generate_schedule_chunked, loan, cancel_event=self.cancel_event, **options
        )
        if owns_executor:
            executor.shutdown(wait=False)

    def cancel(self):
        """设置取消标志；正在运行的任务在下一个批次边界抛出 CancellationError"""
        self.cancel_event.set()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> AmortizationSchedule:
        return self._future.result(timeout)


def submit_schedule(loan: "Loan", executor: Optional[Executor] = None, **options) -> ScheduleJob:
    """在后台线程生成还款计划，options 同 generate_schedule_chunked"""
    return ScheduleJob(loan, executor=executor, **options)
