"""Central configuration helper for the identity connector."""

import logging
import os
from typing import Any

_UNSET = object()


class HelperConfig:
    """
    Central configuration helper. Reads all settings from environment variables.
    An optional overrides mapping (keyed by the same variable names) takes precedence over the environment,
    this is how data source settings handed to initialize() reach the clients.
    """

    def __init__(self, logger: logging.Logger, overrides: dict[str, Any] | None = None) -> None:
        self._logger = logger
        self._overrides = {key.upper(): val for key, val in (overrides or {}).items() if val is not None}

    def _read_raw(self, key: str) -> str | None:
        """Return the raw string value of a setting, overrides first. Empty strings count as unset."""
        if key in self._overrides:
            return str(self._overrides[key]).strip() or None
        return (os.getenv(key) or "").strip() or None

    def _resolve(self, key: str, default: Any) -> tuple[str, Any]:
        """
        Returns the upper-cased key and either its raw string value or the default (marked by _UNSET as raw).

        Raises:
            ValueError: If the setting is not set and no default is provided.
        """
        key = key.upper()
        raw = self._read_raw(key)
        if raw is None and default is None:
            raise ValueError(f"Environment variable '{key}' is not set.")
        return key, raw if raw is not None else _UNSET

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string setting.

        Raises:
            ValueError: If the setting is not set and no default is provided.
        """
        _, raw = self._resolve(key, default)
        return default if raw is _UNSET else raw

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a numeric setting. Values without a decimal point are returned as int.

        Raises:
            ValueError: If the setting is not set and no default is provided, or is not a number.
        """
        key, raw = self._resolve(key, default)
        if raw is _UNSET:
            return default
        try:
            return int(raw) if "." not in raw else float(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a boolean setting. "true", "1" and "yes" (any case) are True, everything else False."""
        _, raw = self._resolve(key, default)
        if raw is _UNSET:
            return default
        return raw.lower() in ("true", "1", "yes")

    def get_list_val(self, key: str, default: list[str] | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a list setting in the syntax "[elem1,elem2,...]".

        Args:
            key (str): Setting name (case-insensitive).
            default (list[str] | None): Fallback value if the setting is not set.
            separator (str): The delimiter between elements.
            element_type (type): The type each element is cast to.

        Raises:
            ValueError: If the setting is not set and no default is provided, or has the wrong format.
        """
        key, raw = self._resolve(key, default)
        if raw is _UNSET:
            return default
        if not raw.startswith("[") or not raw.endswith("]"):
            raise ValueError(f"Environment variable '{key}' must be in the format '[elem1{separator}elem2{separator}...]'. Got: '{raw}'")
        elements = [v.strip() for v in raw[1:-1].split(separator) if v.strip()]
        try:
            return [element_type(elem) for elem in elements]
        except ValueError as e:
            raise ValueError(f"Environment variable '{key}' contains invalid elements: {e}. Type set to {element_type.__name__}. Got: '{raw}'")

    def get_logger(self) -> logging.Logger:
        return self._logger
