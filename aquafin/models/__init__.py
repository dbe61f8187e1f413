"""SQLModel table models: import here so metadata is populated."""

from aquafin.models.cage import Cage  # noqa: F401
from aquafin.models.cycle import Cycle  # noqa: F401
from aquafin.models.feed import FeedStock, FeedUsage  # noqa: F401
from aquafin.models.investment import Investment  # noqa: F401
from aquafin.models.investor import Investor  # noqa: F401
from aquafin.models.ledger import BudgetAllocation, Expense, LedgerEntry, Revenue  # noqa: F401
from aquafin.models.payout import DistributionRun, Payout  # noqa: F401
