from __future__ import annotations

import json
from typing import Any, TypeVar
from xml.etree import ElementTree

from pydantic import BaseModel, ValidationError

from .errors import SerializationError
from .result import Success

M = TypeVar("M", bound=BaseModel)


def decode_json(success: Success) -> Any:
    try:
        return json.loads(success.body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SerializationError(f"invalid JSON: {e}", success.body, success.content_type) from e


def decode_model(model: type[M], success: Success) -> M:
    try:
        return model.model_validate_json(success.body)
    except ValidationError as e:
        raise SerializationError(str(e), success.body, success.content_type) from e


def check_xml(success: Success) -> None:
    try:
        ElementTree.fromstring(success.body)
    except ElementTree.ParseError as e:
        raise SerializationError(f"invalid XML: {e}", success.body, success.content_type) from e
