"""Validation helpers for environment-driven settings."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def parse_string_list(value: str | list[str]) -> list[str]:
    """Parse a list of strings given either as a JSON array or as CSV.

    Lists pass through unchanged. Blank entries are dropped; an empty result is
    allowed (an empty CORS allow-list disables cross-origin access).
    """
    if isinstance(value, list):
        return value

    stripped = value.strip()
    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValueError("JSON value must be an array of strings")
        return parsed

    return [item.strip() for item in stripped.split(",") if item.strip()]


def parse_origins(value: str | list[str]) -> list[str]:
    """Parse CORS origins, stripping trailing slashes and rejecting non-HTTP schemes."""
    origins = [origin.rstrip("/") for origin in parse_string_list(value)]
    for origin in origins:
        if origin != "*" and not origin.startswith(("http://", "https://")):
            raise ValueError(f"Invalid origin {origin!r}: must start with http:// or https://")
    return origins


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env source that hands list fields to their validators as raw strings.

    pydantic-settings JSON-decodes list-typed env values before validators run,
    which rejects the CSV form. Fields named in `string_list_fields` skip that step.
    """

    string_list_fields: frozenset[str] = frozenset({"cors_origins"})

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in self.string_list_fields and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
