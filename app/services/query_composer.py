"""
Query Composer
==============

Builds the paginated feedback search from any combination of optional
filters. Each filter becomes one Predicate: an SQL fragment plus the named
parameters it binds. The same predicate list renders both the page
statement and the count statement, so ``total`` always describes exactly
the rows the page statement can return.

User values are only ever bound as parameters, never formatted into SQL.

Supported dialects: ``sqlite`` (json_extract / json_each) and
``postgresql`` (->> / JSONB containment).
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, text
from sqlalchemy.sql.elements import TextClause

from app.core.errors import InvalidPagination

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
# Largest OFFSET a signed 64-bit SQL integer can hold
MAX_OFFSET = 2**63 - 1

SUPPORTED_DIALECTS = ("sqlite", "postgresql")

_SELECT_COLUMNS = (
    "feedback.id, feedback.text, feedback.email, feedback.created_at, feedback.analysis"
)
_RESULT_TYPES = {
    "id": Integer,
    "text": String,
    "email": String,
    "created_at": DateTime,
    "analysis": JSON,
}


@dataclass(frozen=True)
class FeedbackFilters:
    """Optional, conjunctive search filters. Blank values count as absent."""

    search: Optional[str] = None
    sentiment: Optional[str] = None
    tag: Optional[str] = None

    def __post_init__(self):
        for name in ("search", "sentiment", "tag"):
            value = getattr(self, name)
            if value is not None and value.strip() == "":
                object.__setattr__(self, name, None)

    def is_empty(self) -> bool:
        return self.search is None and self.sentiment is None and self.tag is None


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def validated(cls, page: int, page_size: int, max_page_size: int = MAX_PAGE_SIZE) -> "Pagination":
        """Build a Pagination, raising InvalidPagination on out-of-range values."""
        if page < 1:
            raise InvalidPagination(detail=f"page={page} must be >= 1", context={"page": page})
        if page_size < 1 or page_size > max_page_size:
            raise InvalidPagination(
                detail=f"page_size={page_size} outside [1, {max_page_size}]",
                context={"page_size": page_size},
            )
        if (page - 1) * page_size > MAX_OFFSET:
            raise InvalidPagination(
                detail=f"page={page} is beyond the last addressable row",
                context={"page": page, "page_size": page_size},
            )
        return cls(page=page, page_size=page_size)

    @property
    def limit(self) -> int:
        return self.page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def total_pages(total: int, page_size: int) -> int:
    """ceil(total / page_size); 0 when nothing matched."""
    if total <= 0:
        return 0
    return math.ceil(total / page_size)


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so ``term`` matches literally (escape char ``\\``)."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class Predicate:
    sql: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ComposedQuery:
    page_statement: TextClause
    count_statement: TextClause
    where_sql: str
    params: Dict[str, Any]
    pagination: Pagination


class QueryComposer:
    """Renders FeedbackFilters + Pagination into parameterized statements."""

    def __init__(self, dialect: str = "sqlite"):
        if dialect not in SUPPORTED_DIALECTS:
            raise ValueError(
                f"Unsupported dialect: {dialect!r}. Use one of {', '.join(SUPPORTED_DIALECTS)}."
            )
        self.dialect = dialect

    # --- predicates -------------------------------------------------------

    def predicates(self, filters: FeedbackFilters) -> List[Predicate]:
        preds: List[Predicate] = []
        if filters.search is not None:
            preds.append(self._search_predicate(filters.search))
        if filters.sentiment is not None:
            preds.append(self._sentiment_predicate(filters.sentiment))
        if filters.tag is not None:
            preds.append(self._tag_predicate(filters.tag))
        return preds

    def _search_predicate(self, term: str) -> Predicate:
        if self.dialect == "postgresql":
            pattern = f"%{escape_like(term.lower())}%"
            sql = (
                "(feedback.text ILIKE :search ESCAPE '\\' "
                "OR feedback.analysis->>'summary' ILIKE :search ESCAPE '\\')"
            )
        else:
            sql = (
                "(casefold(feedback.text) LIKE :search ESCAPE '\\' "
                "OR casefold(json_extract(feedback.analysis, '$.summary')) LIKE :search ESCAPE '\\')"
            )
            pattern = f"%{escape_like(term.casefold())}%"
        return Predicate(sql, {"search": pattern})

    def _sentiment_predicate(self, sentiment: str) -> Predicate:
        if self.dialect == "postgresql":
            sql = "feedback.analysis->>'sentiment' = :sentiment"
        else:
            sql = "json_extract(feedback.analysis, '$.sentiment') = :sentiment"
        return Predicate(sql, {"sentiment": sentiment})

    def _tag_predicate(self, tag: str) -> Predicate:
        # Whole-element membership in the tags array, never a substring
        if self.dialect == "postgresql":
            return Predicate(
                "CAST(feedback.analysis->'tags' AS JSONB) @> CAST(:tag AS JSONB)",
                {"tag": json.dumps([tag])},
            )
        return Predicate(
            "EXISTS (SELECT 1 FROM json_each(feedback.analysis, '$.tags') AS tag_values "
            "WHERE tag_values.value = :tag)",
            {"tag": tag},
        )

    # --- statements -------------------------------------------------------

    def compose(self, filters: FeedbackFilters, pagination: Pagination) -> ComposedQuery:
        preds = self.predicates(filters)

        params: Dict[str, Any] = {}
        for pred in preds:
            params.update(pred.params)

        where_sql = ""
        if preds:
            where_sql = " WHERE " + " AND ".join(pred.sql for pred in preds)

        page_statement = (
            text(
                f"SELECT {_SELECT_COLUMNS} FROM feedback{where_sql} "
                "ORDER BY feedback.created_at DESC, feedback.id DESC "
                "LIMIT :limit OFFSET :offset"
            )
            .bindparams(**params, limit=pagination.limit, offset=pagination.offset)
            .columns(**_RESULT_TYPES)
        )

        count_statement = text(f"SELECT COUNT(*) AS total FROM feedback{where_sql}")
        if params:
            count_statement = count_statement.bindparams(**params)

        return ComposedQuery(
            page_statement=page_statement,
            count_statement=count_statement,
            where_sql=where_sql,
            params=params,
            pagination=pagination,
        )
