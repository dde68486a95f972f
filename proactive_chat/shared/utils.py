"""
shared/utils.py

Shared utility functions used across multiple modules.

This module contains common helper functions that are used by various
components of the assistant to avoid code duplication and maintain
consistency across the system.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional, Type

from pydantic import AliasChoices, BaseModel

logger = logging.getLogger(__name__)

def clean_json_response(response: str) -> str:
    """Clean an LLM response by removing code block markers.

    Args:
        response: Raw LLM response

    Returns:
        Cleaned JSON string
    """
    response = response.strip()

    # Remove ```json and ``` markers
    if response.startswith('```json'):
        response = response[7:]
    elif response.startswith('```'):
        response = response[3:]

    if response.endswith('```'):
        response = response[:-3]

    return response.strip()

def safe_json_loads(json_string: str, fallback: Optional[Any] = None) -> Any:
    """
    Safely parse JSON string with fallback handling.

    Args:
        json_string (str): JSON string to parse (code fences are stripped first)
        fallback (Optional[Any]): Value returned if parsing fails

    Returns:
        Any: Parsed JSON value or the fallback value

    LLM output is the main caller here: models regularly wrap JSON in markdown fences
    or answer in prose, and neither case should raise.
    """
    try:
        return json.loads(clean_json_response(json_string))
    except (json.JSONDecodeError, TypeError, AttributeError) as e:
        logger.warning(f"Failed to parse JSON: {e}. Using fallback value.")
        return fallback

def normalize_field_names(model_cls: Type[BaseModel], data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Translate camelCase or legacy keys of a partial payload into the model's field names.

    Partial updates arrive from the API in camelCase ("isActive") while stored entities dump
    with snake_case names ("is_active"). Merging both spellings into one dict would make the
    result depend on key order, so updates are normalized first. Unknown keys are kept as-is
    and left for validation to reject or ignore.

    Args:
        model_cls (Type[BaseModel]): The entity model the payload targets.
        data (Mapping[str, Any]): Partial update keyed by any accepted spelling.

    Returns:
        Dict[str, Any]: The same payload keyed by field names.
    """
    lookup: Dict[str, str] = {}
    for name, info in model_cls.model_fields.items():
        lookup[name] = name
        if info.alias:
            lookup[info.alias] = name
        if isinstance(info.validation_alias, AliasChoices):
            for choice in info.validation_alias.choices:
                if isinstance(choice, str):
                    lookup[choice] = name
    return {lookup.get(key, key): value for key, value in data.items()}

def truncate_message_for_logging(message: str, max_length: int = 100) -> str:
    """
    Truncate long messages for logging purposes.

    Args:
        message (str): Message to truncate
        max_length (int): Maximum length before truncation (default: 100)

    Returns:
        str: Truncated message with ellipsis if needed
    """
    if len(message) <= max_length:
        return message
    return message[:max_length] + "..."
