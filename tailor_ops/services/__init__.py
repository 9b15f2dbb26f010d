"""
Service layer modules for the tailor ops back office.

This module contains:
- Entity store models, database management and record lookups
- Order and item lifecycle engine
- Financial rollups
- Dashboard activity feed
"""

from .activity import ActivityService
from .database import DatabaseManager, initialize_database
from .financials import FinancialService
from .lifecycle import LifecycleService
from .store import DirectoryService, EntityStore

__all__ = [
    'ActivityService',
    'DatabaseManager',
    'initialize_database',
    'FinancialService',
    'LifecycleService',
    'DirectoryService',
    'EntityStore',
]
