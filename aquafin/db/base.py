"""
Database model registry.

Importing this module ensures all table models are registered with
SQLModel's metadata, which is required before calling ``create_all()``
or generating Alembic migrations.
"""

from aquafin.models.cage import Cage  # noqa: F401
from aquafin.models.cycle import Cycle  # noqa: F401
from aquafin.models.feed import FeedStock, FeedUsage  # noqa: F401
from aquafin.models.investment import Investment  # noqa: F401
from aquafin.models.investor import Investor  # noqa: F401
from aquafin.models.ledger import BudgetAllocation, Expense, LedgerEntry, Revenue  # noqa: F401
from aquafin.models.payout import DistributionRun, Payout  # noqa: F401
