"""
Quality filter expressions.

A quality filter is a small boolean algebra over quality labels, written as
JSON-like data:

    {"mood": "closed"}                      exact subtype
    {"mood": ["open", "closed"]}            any of several subtypes
    {"embodied": {"present": True}}         dimension present, any subtype
    {"$and": [...]}, {"$or": [...]}, {"$not": {...}}

A dict with several dimension keys is an implicit AND. Dotted strings are
accepted as leaves ("mood.closed", or "embodied" for presence) and a
top-level list is an AND of its items.

Filters are parsed into an immutable expression tree which is evaluated as a
pure function of one record's labels.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Tuple, Union

from bridge_recall.exceptions import QualityFilterError
from bridge_recall.qualities.registry import resolve_dimension, split_label

logger = logging.getLogger(__name__)

BOOLEAN_OPERATORS = ("$and", "$or", "$not")


@dataclass(frozen=True)
class PresenceFilter:
    quality: str
    present: bool = True


@dataclass(frozen=True)
class ValueFilter:
    quality: str
    values: Tuple[str, ...]


@dataclass(frozen=True)
class AndExpression:
    filters: Tuple["FilterExpression", ...]


@dataclass(frozen=True)
class OrExpression:
    filters: Tuple["FilterExpression", ...]


@dataclass(frozen=True)
class NotExpression:
    filter: "FilterExpression"


FilterExpression = Union[PresenceFilter, ValueFilter, AndExpression, OrExpression, NotExpression]
QualityFilterInput = Union[str, List[Any], dict]


@dataclass
class FilterValidation:
    """
    Result of validating a filter.

    Attributes:
        valid: True when no errors were found
        errors: Human-readable messages, each naming the offending path
        code: Error code of the first problem found, None when valid
    """

    valid: bool
    errors: List[str] = field(default_factory=list)
    code: Optional[str] = None


def _canonical_quality(name: str) -> str:
    dimension = resolve_dimension(name)
    return dimension.label if dimension else name.strip().lower()


def _strip_prefix(quality: str, value: str) -> str:
    # {"mood": "mood.closed"} is read as {"mood": "closed"}
    base, subtype = split_label(value.strip().lower())
    if subtype and _canonical_quality(base) == quality:
        return subtype
    return value.strip().lower()


def _parse_label(label: str) -> FilterExpression:
    if not label.strip():
        raise QualityFilterError("Empty filter provided", "EMPTY_FILTER")
    base, subtype = split_label(label.strip().lower())
    quality = _canonical_quality(base)
    if subtype:
        return ValueFilter(quality=quality, values=(subtype,))
    return PresenceFilter(quality=quality, present=True)


def _parse_leaf(key: str, value: Any) -> FilterExpression:
    quality = _canonical_quality(key)

    if isinstance(value, dict):
        if "present" not in value:
            raise QualityFilterError(
                f"Invalid filter value for quality '{key}': {value!r}", "INVALID_FILTER_VALUE"
            )
        if not isinstance(value["present"], bool):
            raise QualityFilterError(
                f"present must be a boolean for quality '{key}'", "INVALID_FILTER_VALUE"
            )
        return PresenceFilter(quality=quality, present=value["present"])

    if isinstance(value, str):
        return ValueFilter(quality=quality, values=(_strip_prefix(quality, value),))

    if isinstance(value, list):
        if not value or not all(isinstance(item, str) for item in value):
            raise QualityFilterError(
                f"Invalid filter value for quality '{key}': {value!r}", "INVALID_FILTER_VALUE"
            )
        return ValueFilter(
            quality=quality, values=tuple(_strip_prefix(quality, item) for item in value)
        )

    raise QualityFilterError(
        f"Invalid filter value for quality '{key}': {value!r}", "INVALID_FILTER_VALUE"
    )


def _parse_operands(operator: str, value: Any) -> Tuple[FilterExpression, ...]:
    if not isinstance(value, list) or not value:
        raise QualityFilterError(
            f"{operator} must be a non-empty list of filters", "INVALID_FILTER_VALUE"
        )
    return tuple(parse(item) for item in value)


def parse(quality_filter: QualityFilterInput) -> FilterExpression:
    """
    Parse a filter into an expression tree.

    Only the structure is checked here; dimension and subtype names are
    checked by `validate`.

    Raises:
        QualityFilterError: If the filter is empty or structurally malformed
    """
    if isinstance(quality_filter, str):
        return _parse_label(quality_filter)

    if isinstance(quality_filter, list):
        if not quality_filter:
            raise QualityFilterError("Empty filter provided", "EMPTY_FILTER")
        items = tuple(parse(item) for item in quality_filter)
        return items[0] if len(items) == 1 else AndExpression(filters=items)

    if not isinstance(quality_filter, dict) or not quality_filter:
        raise QualityFilterError("Empty filter provided", "EMPTY_FILTER")

    expressions: List[FilterExpression] = []
    for key, value in quality_filter.items():
        if key == "$and":
            expressions.append(AndExpression(filters=_parse_operands(key, value)))
        elif key == "$or":
            expressions.append(OrExpression(filters=_parse_operands(key, value)))
        elif key == "$not":
            if not isinstance(value, (dict, str, list)):
                raise QualityFilterError("$not must contain a filter", "INVALID_FILTER_VALUE")
            expressions.append(NotExpression(filter=parse(value)))
        elif key.startswith("$"):
            raise QualityFilterError(f"Unknown boolean operator: {key}", "UNKNOWN_OPERATOR")
        else:
            expressions.append(_parse_leaf(key, value))

    if len(expressions) == 1:
        return expressions[0]
    return AndExpression(filters=tuple(expressions))


class _Collector:
    def __init__(self):
        self.errors: List[str] = []
        self.code = None

    def add(self, code: str, message: str):
        if message in self.errors:
            return
        if self.code is None:
            self.code = code
        self.errors.append(message)


def _check_subtype(quality: str, value: Any, path: str, collector: _Collector):
    if not isinstance(value, str) or not value.strip():
        collector.add("INVALID_FILTER_VALUE", f"Invalid quality value at {path}")
        return
    dimension = resolve_dimension(quality)
    if dimension is None:
        return
    subtype = _strip_prefix(dimension.label, value)
    if not dimension.has_subtype(subtype):
        collector.add("UNKNOWN_SUBTYPE", f"Unknown subtype: {dimension.label}.{subtype} at {path}")


def _check_label(label: str, path: str, collector: _Collector):
    if not label.strip():
        collector.add("EMPTY_FILTER", f"Empty quality label at {path}")
        return
    base, subtype = split_label(label.strip().lower())
    if resolve_dimension(base) is None:
        collector.add("UNKNOWN_QUALITY", f"Unknown quality: {base} at {path}")
    elif subtype:
        _check_subtype(base, subtype, path, collector)


def _walk(quality_filter: Any, path: str, collector: _Collector):
    if isinstance(quality_filter, str):
        _check_label(quality_filter, path or quality_filter, collector)
        return

    if isinstance(quality_filter, list):
        if not quality_filter:
            collector.add("EMPTY_FILTER", f"Empty array not allowed at {path or 'root'}")
        for index, item in enumerate(quality_filter):
            _walk(item, f"{path}[{index}]", collector)
        return

    if not isinstance(quality_filter, dict):
        collector.add("INVALID_FILTER_VALUE", f"Invalid filter value type at {path or 'root'}")
        return

    if not quality_filter:
        collector.add("EMPTY_FILTER", f"Empty filter provided at {path or 'root'}")
        return

    for key, value in quality_filter.items():
        current = f"{path}.{key}" if path else key

        if key.startswith("$"):
            if key not in BOOLEAN_OPERATORS:
                collector.add("UNKNOWN_OPERATOR", f"Unknown boolean operator: {key} at {current}")
            elif key == "$not":
                if isinstance(value, (dict, str, list)):
                    _walk(value, current, collector)
                else:
                    collector.add(
                        "INVALID_FILTER_VALUE", f"$not must contain a filter object at {current}"
                    )
            elif not isinstance(value, list):
                collector.add("INVALID_FILTER_VALUE", f"{key} must be an array at {current}")
            else:
                if not value:
                    collector.add(
                        "EMPTY_FILTER", f"{key} must contain at least one filter at {current}"
                    )
                for index, item in enumerate(value):
                    _walk(item, f"{current}[{index}]", collector)
            continue

        if resolve_dimension(key) is None:
            collector.add("UNKNOWN_QUALITY", f"Unknown quality: {key} at {current}")

        if isinstance(value, dict):
            if "present" not in value:
                collector.add("INVALID_FILTER_VALUE", f"Invalid filter value at {current}")
            elif not isinstance(value["present"], bool):
                collector.add("INVALID_FILTER_VALUE", f"present must be a boolean at {current}")
        elif isinstance(value, str):
            _check_subtype(key, value, current, collector)
        elif isinstance(value, list):
            if not value:
                collector.add("INVALID_FILTER_VALUE", f"Empty array not allowed at {current}")
            for index, item in enumerate(value):
                _check_subtype(key, item, f"{current}[{index}]", collector)
        else:
            collector.add("INVALID_FILTER_VALUE", f"Invalid filter value type at {current}")


def validate(quality_filter: QualityFilterInput) -> FilterValidation:
    """
    Check a filter against the quality registry.

    Unknown dimensions, unknown subtypes, unknown operators, empty lists and
    malformed leaves are all reported. One bad leaf makes the whole filter
    invalid.
    """
    collector = _Collector()
    if quality_filter is None:
        collector.add("EMPTY_FILTER", "Empty filter provided")
    else:
        _walk(quality_filter, "", collector)

    return FilterValidation(valid=not collector.errors, errors=collector.errors, code=collector.code)


def compile_filter(quality_filter: QualityFilterInput) -> FilterExpression:
    """
    Validate and parse a filter in one step.

    Raises:
        QualityFilterError: If the filter fails validation
    """
    validation = validate(quality_filter)
    if not validation.valid:
        raise QualityFilterError(
            f"Invalid quality filter: {'; '.join(validation.errors)}",
            validation.code or "INVALID_FILTER_VALUE",
            validation.errors,
        )
    return parse(quality_filter)


def _labels_of(record: Any) -> Tuple[str, ...]:
    labels = getattr(record, "qualities", record)
    return tuple(labels or ())


def _has_dimension(labels: Iterable[str], quality: str) -> bool:
    prefix = f"{quality}."
    return any(label == quality or label.startswith(prefix) for label in labels)


def evaluate(expression: FilterExpression, record: Any) -> bool:
    """
    Evaluate an expression against a record (or a plain list of labels).

    Labels are expected in canonical label-name form, which ExperienceRecord
    guarantees.
    """
    labels = _labels_of(record)
    return _evaluate(expression, labels)


def _evaluate(expression: FilterExpression, labels: Tuple[str, ...]) -> bool:
    if isinstance(expression, PresenceFilter):
        present = _has_dimension(labels, expression.quality)
        return present if expression.present else not present

    if isinstance(expression, ValueFilter):
        return any(f"{expression.quality}.{value}" in labels for value in expression.values)

    if isinstance(expression, AndExpression):
        return all(_evaluate(item, labels) for item in expression.filters)

    if isinstance(expression, OrExpression):
        return any(_evaluate(item, labels) for item in expression.filters)

    if isinstance(expression, NotExpression):
        return not _evaluate(expression.filter, labels)

    raise QualityFilterError(
        f"Unknown expression type: {type(expression).__name__}", "UNKNOWN_EXPRESSION_TYPE"
    )


def describe_expression(expression: FilterExpression) -> str:
    if isinstance(expression, PresenceFilter):
        return f"{expression.quality} {'present' if expression.present else 'absent'}"
    if isinstance(expression, ValueFilter):
        if len(expression.values) == 1:
            return f"{expression.quality}.{expression.values[0]}"
        return f"{expression.quality} ({' OR '.join(expression.values)})"
    if isinstance(expression, AndExpression):
        return f"({' AND '.join(describe_expression(f) for f in expression.filters)})"
    if isinstance(expression, OrExpression):
        return f"({' OR '.join(describe_expression(f) for f in expression.filters)})"
    if isinstance(expression, NotExpression):
        return f"NOT ({describe_expression(expression.filter)})"
    return "Unknown expression"


def describe(quality_filter: QualityFilterInput) -> str:
    """Human-readable rendering of a filter, or "Invalid filter"."""
    try:
        return describe_expression(parse(quality_filter))
    except QualityFilterError as e:
        logger.debug(f"Cannot describe filter {quality_filter!r}: {e}")
        return "Invalid filter"
