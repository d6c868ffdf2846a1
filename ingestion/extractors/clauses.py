"""
Filter-clause variants for the station service.

Upstream state names are stored with inconsistent casing, so the same
logical filter is expressed several ways and tried in order. The first
variant that returns any rows is adopted for the rest of the run.
"""

from typing import List, Optional

STATE_FIELD = "state_name"
DISTRICT_FIELD = "district_name"
CATCH_ALL_CLAUSE = "1=1"


def quote_literal(value: str) -> str:
    """SQL-92 string literal: single quotes doubled"""
    return "'" + value.replace("'", "''") + "'"


def _clause(region: str, sub_region: Optional[str]) -> str:
    clause = f"{STATE_FIELD}={quote_literal(region)}"
    if sub_region:
        clause += f" AND {DISTRICT_FIELD}={quote_literal(sub_region)}"
    return clause


def build_clauses(
    region: str,
    sub_region: Optional[str] = None,
    include_catch_all: bool = True
) -> List[str]:
    """
    Ordered, de-duplicated clause variants: exact, UPPER, Title, catch-all.

    >>> build_clauses("tamil nadu")
    ["state_name='tamil nadu'", "state_name='TAMIL NADU'", "state_name='Tamil Nadu'", '1=1']
    """
    region = region.strip()
    sub_region = sub_region.strip() if sub_region and sub_region.strip() else None

    casings = [
        lambda s: s,
        str.upper,
        str.title,
    ]

    clauses: List[str] = []
    for casing in casings:
        clause = _clause(casing(region), casing(sub_region) if sub_region else None)
        if clause not in clauses:
            clauses.append(clause)

    if include_catch_all:
        clauses.append(CATCH_ALL_CLAUSE)
    return clauses
