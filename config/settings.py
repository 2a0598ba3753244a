# 默认通胀率 (%)
DEFAULT_INFLATION_RATE = 2.5

# 可负担贷款计算的默认参数
DEFAULT_AFFORDABILITY_RATE = 4.5
DEFAULT_AFFORDABILITY_TERM = 360

# 输入取值范围
MAX_INTEREST_RATE = 30.0
MAX_TERM_MONTHS = 600
MAX_INFLATION_RATE = 20.0

# 利率高于此值时给出提示 (%)
RATE_WARNING_THRESHOLD = 20.0

# 还款计划生成
MAX_SCHEDULE_PAYMENTS = 10_000
DEFAULT_BATCH_SIZE = 50
DEFAULT_GENERATION_TIMEOUT = 30.0  # 秒
BALANCE_TOLERANCE = 0.01

LOG_LEVEL = "WARNING"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
