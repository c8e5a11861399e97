"""Metadata filter translation and validation.

Accepts either the shorthand ``{"source": "doc.txt", "page": 3}`` (equality
on every key) or a full Chroma ``where`` expression, and returns a
``where`` clause the server accepts.
"""

from typing import Any

from chroma_client.exceptions import ValidationError

COMPARISON_OPERATORS = frozenset({"$eq", "$ne", "$gt", "$gte", "$lt", "$lte"})
MEMBERSHIP_OPERATORS = frozenset({"$in", "$nin"})
LOGICAL_OPERATORS = frozenset({"$and", "$or"})
DOCUMENT_OPERATORS = frozenset({"$contains", "$not_contains"})

_SCALARS = (str, int, float, bool)


def _invalid(message: str, filter_: Any) -> ValidationError:
    return ValidationError(message, details={"filter": filter_})


def _combine(operator: str, clauses: list[dict[str, Any]]) -> dict[str, Any]:
    # Chroma rejects $and/$or with fewer than two operands
    if len(clauses) == 1:
        return clauses[0]
    return {operator: clauses}


def _field_clause(key: str, value: Any) -> dict[str, Any]:
    if isinstance(value, _SCALARS):
        return {key: {"$eq": value}}

    if not isinstance(value, dict) or len(value) != 1:
        raise _invalid(
            f"Filter on {key!r} must be a scalar or a single-operator mapping",
            value,
        )

    (operator, operand), = value.items()
    if operator in COMPARISON_OPERATORS:
        if not isinstance(operand, _SCALARS):
            raise _invalid(f"{operator} on {key!r} needs a scalar operand", value)
        if operator in ("$gt", "$gte", "$lt", "$lte") and (
            isinstance(operand, bool) or not isinstance(operand, int | float)
        ):
            raise _invalid(f"{operator} on {key!r} needs a number", value)
    elif operator in MEMBERSHIP_OPERATORS:
        if not isinstance(operand, list) or not operand:
            raise _invalid(f"{operator} on {key!r} needs a non-empty list", value)
        if not all(isinstance(item, _SCALARS) for item in operand):
            raise _invalid(f"{operator} on {key!r} needs scalar items", value)
    else:
        raise _invalid(f"Unknown filter operator: {operator}", value)

    return {key: {operator: operand}}


def build_where(filter_: dict[str, Any] | None) -> dict[str, Any] | None:
    """Translate a metadata filter into a Chroma ``where`` clause.

    Args:
        filter_: Shorthand equality mapping or operator expression.

    Returns:
        The ``where`` clause, or None for an empty filter.

    Raises:
        ValidationError: If the filter uses unknown operators or bad operands.
    """
    if not filter_:
        return None
    if not isinstance(filter_, dict):
        raise _invalid("Filter must be a mapping", filter_)

    clauses: list[dict[str, Any]] = []
    for key, value in filter_.items():
        if key in LOGICAL_OPERATORS:
            if not isinstance(value, list) or not value:
                raise _invalid(f"{key} needs a non-empty list of filters", value)
            subclauses = []
            for item in value:
                sub = build_where(item)
                if sub is None:
                    raise _invalid(f"{key} contains an empty filter", value)
                subclauses.append(sub)
            clauses.append(_combine(key, subclauses))
        elif key.startswith("$"):
            raise _invalid(f"Unknown filter operator: {key}", filter_)
        else:
            clauses.append(_field_clause(key, value))

    return _combine("$and", clauses)


def build_where_document(filter_: dict[str, Any] | None) -> dict[str, Any] | None:
    """Validate a document text filter (``$contains``/``$not_contains``)."""
    if not filter_:
        return None
    if not isinstance(filter_, dict) or len(filter_) != 1:
        raise _invalid("Document filter must have exactly one operator", filter_)

    (operator, operand), = filter_.items()
    if operator in LOGICAL_OPERATORS:
        if not isinstance(operand, list) or not operand:
            raise _invalid(f"{operator} needs a non-empty list of filters", filter_)
        subclauses = []
        for item in operand:
            sub = build_where_document(item)
            if sub is None:
                raise _invalid(f"{operator} contains an empty filter", filter_)
            subclauses.append(sub)
        return _combine(operator, subclauses)
    if operator not in DOCUMENT_OPERATORS or not isinstance(operand, str):
        raise _invalid(f"Invalid document filter: {operator}", filter_)
    return {operator: operand}
