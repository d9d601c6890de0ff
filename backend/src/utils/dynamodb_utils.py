"""DynamoDB item conversion helpers.

boto3 hands numbers back as ``Decimal`` and refuses Python floats on write,
while the pydantic models in ``models`` work with int/float. Every service
goes through these helpers on the way in and out of a table.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)


class PersistenceError(Exception):
    """The data store rejected or failed a read or write."""

    pass


def decimal_to_python(obj: Any) -> Any:
    """Recursively turn ``Decimal`` values into int (whole) or float."""
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    if isinstance(obj, dict):
        return {key: decimal_to_python(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [decimal_to_python(item) for item in obj]
    if isinstance(obj, set):
        return {decimal_to_python(item) for item in obj}
    return obj


def python_to_decimal(obj: Any) -> Any:
    """Recursively turn int/float values into ``Decimal`` for storage.

    Enum members are stored by value and empty strings inside nested
    structures are kept as-is (DynamoDB accepts them for non-key attributes).
    """
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, float):
        # Go through str so 0.1 is stored as 0.1, not its binary expansion
        return Decimal(str(round(obj, 6)))
    if isinstance(obj, int):
        return Decimal(obj)
    if isinstance(obj, dict):
        return {key: python_to_decimal(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [python_to_decimal(item) for item in obj]
    return obj


def prepare_for_dynamodb(item: dict[str, Any]) -> dict[str, Any]:
    """Prepare a plain dict for ``put_item``."""
    return python_to_decimal(item)


def parse_from_dynamodb(item: dict[str, Any]) -> dict[str, Any]:
    """Convert a raw DynamoDB item into Python-native types."""
    return decimal_to_python(item)


def parse_items_from_dynamodb(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert a list of raw DynamoDB items."""
    return [parse_from_dynamodb(item) for item in items]


def model_to_item(model: BaseModel) -> dict[str, Any]:
    """Dump a pydantic model into a DynamoDB-ready item."""
    return prepare_for_dynamodb(model.model_dump(mode="python"))


def item_to_model(item: dict[str, Any], model_cls: type[ModelT]) -> ModelT:
    """Build a pydantic model from a raw DynamoDB item."""
    return model_cls(**parse_from_dynamodb(item))


def query_all(table, **kwargs) -> list[dict[str, Any]]:
    """Run a ``query`` and follow ``LastEvaluatedKey`` until exhausted."""
    items: list[dict[str, Any]] = []
    while True:
        response = table.query(**kwargs)
        items.extend(response.get("Items", []))
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            return items
        kwargs["ExclusiveStartKey"] = last_key


def scan_all(table, **kwargs) -> list[dict[str, Any]]:
    """Run a ``scan`` and follow ``LastEvaluatedKey`` until exhausted."""
    items: list[dict[str, Any]] = []
    while True:
        response = table.scan(**kwargs)
        items.extend(response.get("Items", []))
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            return items
        kwargs["ExclusiveStartKey"] = last_key


def table_name(table) -> str | None:
    """Name of a boto3 Table resource, or None when no table is configured."""
    if table is None:
        return None
    return table.name
