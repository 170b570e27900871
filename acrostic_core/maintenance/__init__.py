from .database_repair import DatabaseRepairUtility, RepairReport, recover_identifier
from .legacy_migration import LegacyDataMigration

__all__ = ["DatabaseRepairUtility", "LegacyDataMigration", "RepairReport", "recover_identifier"]
