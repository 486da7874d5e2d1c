"""Query-string driven filtering, projection, sorting and pagination.

List endpoints accept parameters such as ``average_cost[lte]=10000``,
``careers[in]=Business,Other``, ``select=name,description``,
``sort=-average_cost,name``, ``page=2`` and ``limit=10``. The bracketed
operator keywords are rewritten to SQL comparisons on the model's columns.
"""

import operator
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable

from fastapi import HTTPException, status
from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, cast, func, or_, select
from sqlalchemy.orm import Session

RESERVED_PARAMS = ('select', 'sort', 'pagination', 'limit', 'page')
DEFAULT_SORT = '-created_at'
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 5
LIKE_ESCAPE = '\\'

COMPARISON_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    'eq': operator.eq,
    'gt': operator.gt,
    'gte': operator.ge,
    'lt': operator.lt,
    'lte': operator.le,
}

_FILTER_KEY = re.compile(r'^(?P<field>[A-Za-z_][A-Za-z0-9_]*)(?:\[(?P<op>gt|gte|lt|lte|in)\])?$')


@dataclass
class FilterCondition:
    field: str
    op: str
    value: str


@dataclass
class QueryOptions:
    conditions: list[FilterCondition] = field(default_factory=list)
    select: list[str] | None = None
    sort: list[str] = field(default_factory=lambda: [DEFAULT_SORT])
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def _invalid(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def _positive_int(value: str | None, default: int) -> int:
    try:
        parsed = int(value) if value is not None else default
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _split_fields(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def parse_query_params(params: Iterable[tuple[str, str]]) -> QueryOptions:
    # Repeated keys keep the last value.
    collapsed = dict(params)
    options = QueryOptions(
        select=_split_fields(collapsed.get('select')) or None,
        sort=_split_fields(collapsed.get('sort')) or [DEFAULT_SORT],
        page=_positive_int(collapsed.get('page'), DEFAULT_PAGE),
        limit=_positive_int(collapsed.get('limit'), DEFAULT_LIMIT),
    )

    for key, value in collapsed.items():
        if key in RESERVED_PARAMS:
            continue
        match = _FILTER_KEY.match(key)
        if match is None:
            raise _invalid(f'Invalid query parameter: {key}')
        options.conditions.append(
            FilterCondition(field=match.group('field'), op=match.group('op') or 'eq', value=value)
        )

    return options


def _coerce(column, raw: str):
    column_type = column.type
    try:
        if isinstance(column_type, Boolean):
            normalized = raw.strip().lower()
            if normalized in {'true', '1', 'yes'}:
                return True
            if normalized in {'false', '0', 'no'}:
                return False
            raise ValueError(raw)
        if isinstance(column_type, Integer):
            return int(raw)
        if isinstance(column_type, Float):
            return float(raw)
        if isinstance(column_type, DateTime):
            return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise _invalid(f'Invalid value for {column.key}: {raw}') from exc
    return raw


def _escape_like(value: str) -> str:
    for char in (LIKE_ESCAPE, '%', '_'):
        value = value.replace(char, LIKE_ESCAPE + char)
    return value


def _list_contains(column, value: str):
    # Matches the JSON-encoded element, quotes included.
    return cast(column, String).like(f'%"{_escape_like(value)}"%', escape=LIKE_ESCAPE)


def build_filters(model, conditions: Iterable[FilterCondition], hidden_fields: Iterable[str] = ()) -> list:
    columns = model.__table__.columns
    hidden = set(hidden_fields)
    clauses = []

    for condition in conditions:
        if condition.field not in columns or condition.field in hidden:
            raise _invalid(f'Invalid query parameter: {condition.field}')
        column = getattr(model, condition.field)

        if isinstance(columns[condition.field].type, JSON):
            if condition.op not in ('eq', 'in'):
                raise _invalid(f'Unsupported operator for {condition.field}: {condition.op}')
            values = _split_fields(condition.value) if condition.op == 'in' else [condition.value]
            clauses.append(or_(*(_list_contains(column, value) for value in values)))
            continue

        if condition.op == 'in':
            values = [_coerce(columns[condition.field], item) for item in _split_fields(condition.value)]
            clauses.append(column.in_(values))
            continue

        value = _coerce(columns[condition.field], condition.value)
        clauses.append(COMPARISON_OPERATORS[condition.op](column, value))

    return clauses


def build_sort(model, sort_fields: Iterable[str], hidden_fields: Iterable[str] = ()) -> list:
    columns = model.__table__.columns
    hidden = set(hidden_fields)
    order_by = []

    for sort_field in sort_fields:
        descending = sort_field.startswith('-')
        name = sort_field.lstrip('-')
        if name not in columns or name in hidden:
            raise _invalid(f'Invalid sort field: {name}')
        column = getattr(model, name)
        order_by.append(column.desc() if descending else column.asc())

    return order_by


def build_pagination(page: int, limit: int, total: int) -> dict:
    pagination = {}
    if page * limit < total:
        pagination['next'] = {'page': page + 1, 'limit': limit}
    if (page - 1) * limit > 0:
        pagination['prev'] = {'page': page - 1, 'limit': limit}
    return pagination


def project(record: dict, fields: list[str] | None) -> dict:
    if not fields:
        return record
    wanted = set(fields) | {'id'}
    return {key: value for key, value in record.items() if key in wanted}


def advanced_results(
    db: Session,
    model,
    params: Iterable[tuple[str, str]],
    serialize: Callable[[Any], dict],
    base_filters: Iterable = (),
    hidden_fields: Iterable[str] = (),
) -> dict:
    """Run a list query and return the ``{success, count, pagination, data}`` envelope.

    ``total`` counts the filtered set, so ``pagination`` only advertises pages
    that actually hold matching rows.
    """
    hidden_fields = tuple(hidden_fields)
    options = parse_query_params(params)
    clauses = [*base_filters, *build_filters(model, options.conditions, hidden_fields)]
    order_by = build_sort(model, options.sort, hidden_fields)

    total = db.scalar(select(func.count()).select_from(model).where(*clauses))
    rows = db.scalars(
        select(model).where(*clauses).order_by(*order_by).offset(options.skip).limit(options.limit)
    ).all()

    data = [project(serialize(row), options.select) for row in rows]

    return {
        'success': True,
        'count': len(data),
        'pagination': build_pagination(options.page, options.limit, total or 0),
        'data': data,
    }
