#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Per-backend strategies
======================
SQLAlchemy already compiles pagination and parameter binding for every
dialect it ships, so the only quirks left for this layer are how primary
keys are allocated:

  auto_increment_keys  the database fills the key column on INSERT
  sequence_style       how next_id() computes a value on demand:
                         "native"  SELECT <sequence>.NEXTVAL (or equivalent)
                         "max"     SELECT COALESCE(MAX(column), 0) + 1
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from sqlalchemy.engine import make_url


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class DialectStrategy:
    name: str
    auto_increment_keys: bool = True
    sequence_style: Literal["native", "max"] = "max"

    def sequence_name(self, table: str, column: str) -> str:
        return f"{table}_{column}_seq"


# -----------------------------------------------------------------------------

SQLITE = DialectStrategy("sqlite", auto_increment_keys=True, sequence_style="max")
POSTGRESQL = DialectStrategy("postgresql", auto_increment_keys=True, sequence_style="native")
MYSQL = DialectStrategy("mysql", auto_increment_keys=True, sequence_style="max")
ORACLE = DialectStrategy("oracle", auto_increment_keys=False, sequence_style="native")
DB2 = DialectStrategy("db2", auto_increment_keys=False, sequence_style="native")

STRATEGIES: dict[str, DialectStrategy] = {
    s.name: s for s in (SQLITE, POSTGRESQL, MYSQL, ORACLE, DB2)
}

# SQLAlchemy backend names that share a strategy
_ALIASES = {
    "mariadb": "mysql",
    "ibm_db_sa": "db2",
    "postgres": "postgresql",
}


# -----------------------------------------------------------------------------

def select_strategy(url: str, override: Optional[str] = None) -> DialectStrategy:
    """
    Pick the strategy for *url*, or for *override* when one is configured.

    Raises ValueError for a backend with no known strategy.
    """
    name = override or make_url(url).get_backend_name()
    name = _ALIASES.get(name.lower(), name.lower())
    try:
        return STRATEGIES[name]
    except KeyError:
        raise ValueError(f"No dialect strategy for database backend '{name}'") from None


# -----------------------------------------------------------------------------
