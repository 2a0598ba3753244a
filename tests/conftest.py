import sys
from datetime import date
from pathlib import Path

import pytest

# 确保项目根目录在 sys.path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from core.loan import Loan  # noqa: E402


@pytest.fixture
def mortgage():
    """20万房贷，首付4万，4.5%，30年"""
    return Loan.create(
        principal=200000,
        down_payment=40000,
        interest_rate=4.5,
        term=360,
        start_date=date(2024, 1, 1),
    )


@pytest.fixture
def zero_rate_loan():
    return Loan.create(
        principal=100000,
        interest_rate=0,
        term=60,
        start_date=date(2024, 1, 1),
    )
