"""Validation helpers for environment-driven settings."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def parse_origin_list(value: str | list[str]) -> list[str]:
    """Parse a list of CORS origins from an environment value.

    Accepts a list (returned as-is), a JSON array string ('["a","b"]') or a
    comma-separated string ('a,b'). Empty input raises ValueError.
    """
    if isinstance(value, list):
        if not value:
            raise ValueError("origin list must not be empty")
        return value

    stripped = value.strip()
    if not stripped:
        raise ValueError("origin list must not be empty")

    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValueError("JSON value must be an array of strings")
        if not parsed:
            raise ValueError("origin list must not be empty")
        return parsed

    result = [origin.strip() for origin in stripped.split(",") if origin.strip()]
    if not result:
        raise ValueError("origin list must not be empty")
    return result


class RawListEnvSettingsSource(EnvSettingsSource):
    """Env source that hands the listed fields to validators as raw strings.

    pydantic-settings JSON-decodes list-typed env values before validators
    run, which breaks the comma-separated form.
    """

    raw_fields: frozenset[str] = frozenset({"cors_origins"})

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in self.raw_fields and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
