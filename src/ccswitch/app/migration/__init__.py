from .service import LegacyCopy, MigrationImporter, MigrationPlan

__all__ = ["LegacyCopy", "MigrationImporter", "MigrationPlan"]
