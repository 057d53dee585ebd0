"""
tenantsql/storage

Physical storage of logical tables as JSON documents (SQLAlchemy).
"""

from .rowstore import PHYSICAL_TABLE, RowStore, StoredRow

__all__ = ["PHYSICAL_TABLE", "RowStore", "StoredRow"]
