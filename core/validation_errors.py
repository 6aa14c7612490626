from __future__ import annotations

from typing import Any, Iterable


_REQUEST_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def _normalize_error_path(location_parts: Iterable[Any]) -> tuple[str, str]:
    parts = [str(part) for part in location_parts]
    if not parts:
        return "body", "(root)"

    location = parts[0]
    path_parts = parts[1:] if location in _REQUEST_LOCATIONS else parts
    if location not in _REQUEST_LOCATIONS:
        location = "body"

    if not path_parts:
        return location, "(root)"

    return location, ".".join(path_parts)


def _build_summary(*, missing_fields: list[str], invalid_fields: list[str]) -> str:
    if missing_fields:
        noun = "field" if len(missing_fields) == 1 else "fields"
        return f"Validation failed: missing required {noun}: {', '.join(missing_fields)}."

    if len(invalid_fields) == 1:
        return f"Validation failed: invalid value for field '{invalid_fields[0]}'."

    return f"Validation failed for {len(invalid_fields)} fields: {', '.join(invalid_fields)}."


def format_validation_error_details(errors: list[dict[str, Any]]) -> dict[str, Any]:
    field_errors: list[dict[str, str]] = []
    missing_fields: list[str] = []
    invalid_fields: list[str] = []

    for error in errors:
        raw_loc = error.get("loc")
        if isinstance(raw_loc, (list, tuple)):
            location, path = _normalize_error_path(raw_loc)
        elif raw_loc is None:
            location, path = "body", "(root)"
        else:
            location, path = _normalize_error_path([raw_loc])

        error_type = str(error.get("type", "validation_error"))
        field_errors.append(
            {
                "path": path,
                "location": location,
                "message": str(error.get("msg", "Invalid value")),
                "errorType": error_type,
            }
        )

        bucket = missing_fields if error_type == "missing" else invalid_fields
        if path not in bucket:
            bucket.append(path)

    return {
        "summary": _build_summary(missing_fields=missing_fields, invalid_fields=invalid_fields),
        "missingFields": missing_fields,
        "fieldErrors": field_errors,
    }
