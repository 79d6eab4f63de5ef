"""
Test filter validation.

Reads a filter file in YAML (same schema as the Marathon runner's
filteringConfiguration) and converts it to the JSON the cloud expects.

Example YAML:
    filteringConfiguration:
      allowlist:
        - type: package
          values: [com.example.smoke]
      blocklist:
        - type: composition
          op: INTERSECTION
          filters:
            - type: annotation
              values: [Flaky]
            - type: method
              regex: ".*Slow"
"""

from __future__ import annotations

import json
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from marathon_cloud.exceptions import FilterValidationError

VALID_TYPES = frozenset(
    {
        "fully-qualified-class-name",
        "fully-qualified-test-name",
        "simple-class-name",
        "package",
        "method",
        "annotation",
        "allure",
        "composition",
    }
)


class Filter(BaseModel):
    """A single allowlist/blocklist filter."""

    model_config = ConfigDict(extra="ignore")

    type: str = ""
    regex: str = ""
    values: list[str] = Field(default_factory=list)
    filters: list[Filter] = Field(default_factory=list)
    op: str = ""
    file: str = ""


Filter.model_rebuild()


class FilteringConfiguration(BaseModel):
    model_config = ConfigDict(extra="ignore")

    allowlist: list[Filter] | None = None
    blocklist: list[Filter] | None = None


class FilterFile(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    filtering_configuration: FilteringConfiguration = Field(
        default_factory=FilteringConfiguration,
        alias="filteringConfiguration",
    )


def validate_filters(filters: list[Filter] | None) -> None:
    """
    Check filters against what the cloud supports.

    Raises:
        FilterValidationError: On the first unsupported filter.
    """
    for item in filters or []:
        if item.type == "fragmentation":
            raise FilterValidationError(
                "the 'Fragmented execution of tests' feature "
                "(type: 'fragmentation') is not supported in the cloud"
            )
        if item.type not in VALID_TYPES:
            raise FilterValidationError(f"invalid filter type: {item.type}")

        if item.type == "composition":
            if not item.op or not item.filters:
                raise FilterValidationError(
                    "composition type must have 'op' and 'filters' fields initialized"
                )
            validate_filters(item.filters)
        else:
            _validate_simple_filter(item)


def _validate_simple_filter(item: Filter) -> None:
    if item.file:
        raise FilterValidationError(
            "the 'file' field is not supported. Please include all values directly in the YAML"
        )
    initialized = sum(1 for value in (item.regex, item.values) if value)
    if initialized > 1:
        raise FilterValidationError(
            f"only one of [regex, values] can be specified for type: {item.type}"
        )
    if initialized == 0:
        raise FilterValidationError(
            f"at least one of [regex, values] should be specified for type: {item.type}"
        )


def validate_filter_file(path: Path) -> str:
    """
    Validate a YAML filter file and convert it to JSON.

    Args:
        path: YAML file path.

    Returns:
        Compact JSON with empty fields omitted.

    Raises:
        FilterValidationError: If the file can't be read, parsed or validated.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise FilterValidationError(f"Can't read {path}: {e}", cause=e) from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise FilterValidationError(f"Invalid YAML in {path}: {e}", cause=e) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FilterValidationError(f"Invalid filter file {path}: expected a mapping")

    try:
        config = FilterFile.model_validate(data)
    except ValidationError as e:
        raise FilterValidationError(f"Invalid filter file {path}: {e}", cause=e) from e

    validate_filters(config.filtering_configuration.allowlist)
    validate_filters(config.filtering_configuration.blocklist)

    return _dump(config)


def _dump(config: FilterFile) -> str:
    # Empty strings and lists are omitted, matching the cloud's omitempty schema.
    def prune(value: object) -> object:
        if isinstance(value, dict):
            return {k: prune(v) for k, v in value.items() if v not in ("", [], None)}
        if isinstance(value, list):
            return [prune(v) for v in value]
        return value

    data = prune(config.model_dump(by_alias=True))
    return json.dumps(data, separators=(",", ":"))


__all__ = [
    "Filter",
    "FilteringConfiguration",
    "FilterFile",
    "VALID_TYPES",
    "validate_filters",
    "validate_filter_file",
]
