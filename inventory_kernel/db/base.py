"""
Module: inventory_kernel.db.base
Responsibility: Declarative base class for the ledger and inventory-state ORM
    models, with the type annotation map that keeps column types consistent.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, domain/, or outer layers.

Invariants enforced:
    - Decimal precision: Python Decimal maps to Numeric(38, 9).  NEVER use
      float for quantities or monetary amounts.
    - Timestamps are timezone-aware (DateTime(timezone=True)).
    - Integer primary keys are BIGINT on PostgreSQL and INTEGER on SQLite
      (SQLite only autoincrements an INTEGER PRIMARY KEY).
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, Integer, Numeric
from sqlalchemy.orm import DeclarativeBase

# Ledger ids are the replay tie-breaker and must autoincrement on every backend.
LedgerId = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """
    Declarative base for all inventory models.

    Guarantees:
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
        - int maps to BIGINT (INTEGER on SQLite).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        int: LedgerId,
    }
