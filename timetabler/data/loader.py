"""Load, validate and save school datasets as JSON files."""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from ..errors import DataValidationError
from .models import SchoolData


def load_school_data(path: Union[str, Path]) -> SchoolData:
    """
    Load and validate a school dataset from a JSON file.

    Keys may be camelCase (as exported by the web application) or
    snake_case.

    Args:
        path: Path to the JSON file

    Returns:
        Validated SchoolData model

    Raises:
        FileNotFoundError: If the file doesn't exist
        DataValidationError: If the file isn't valid JSON or fails validation
    """
    path = Path(path)

    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise DataValidationError(f"{path}: invalid JSON: {e}") from e

    return parse_school_data(data)


def parse_school_data(data: Any) -> SchoolData:
    """Validate an already-decoded dataset."""
    if not isinstance(data, dict):
        raise DataValidationError("School data must be a JSON object")

    converted = _convert_keys_to_snake_case(data)

    try:
        return SchoolData.model_validate(converted)
    except ValidationError as e:
        raise DataValidationError(str(e)) from e


def save_school_data(data: SchoolData, path: Union[str, Path]) -> None:
    """
    Write a dataset back to disk atomically.

    The file is written next to the target and moved into place, so readers
    never observe a half-written dataset.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = data.model_dump(mode="json")
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def _convert_keys_to_snake_case(obj: Any) -> Any:
    """Recursively convert dictionary keys from camelCase to snake_case."""

    def to_snake_case(name: str) -> str:
        name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
        name = re.sub(r'([a-z\d])([A-Z])', r'\1_\2', name)
        return name.lower()

    if isinstance(obj, dict):
        return {to_snake_case(k): _convert_keys_to_snake_case(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_convert_keys_to_snake_case(item) for item in obj]
    else:
        return obj
