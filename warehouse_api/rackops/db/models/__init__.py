"""
ORM models for the rack-operations domain: BOM master data, rack inventory,
the append-only ledgers (transaction log, stock transactions, activity log)
and operator profiles.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

# Re-export commonly used models for convenience and to ensure import side-effects
# register all mapped classes with SQLAlchemy metadata.

from .master_data import (  # noqa: F401
    BomMaster,
    PartnerRack,
)
from .inventory import (  # noqa: F401
    RackInventory,
    StockAdjustment,
)
from .ledger import (  # noqa: F401
    TransactionLog,
    StockTransaction,
    ActivityLog,
)
from .security import (  # noqa: F401
    Profile,
    ROLES,
)
