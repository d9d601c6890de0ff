"""Utility helpers for the Ekami Auto backend."""

from .dynamodb_utils import (
    decimal_to_python,
    item_to_model,
    model_to_item,
    parse_from_dynamodb,
    parse_items_from_dynamodb,
    prepare_for_dynamodb,
    python_to_decimal,
)

__all__ = [
    "decimal_to_python",
    "python_to_decimal",
    "prepare_for_dynamodb",
    "parse_from_dynamodb",
    "parse_items_from_dynamodb",
    "model_to_item",
    "item_to_model",
]
