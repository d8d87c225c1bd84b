"""Incident type field definitions and validation of incident ``data``."""

from typing import Any

from incidentdesk.core.enums import FieldKind
from incidentdesk.core.errors import ValidationError


def validate_field_definitions(fields: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Normalize an incident type's field list, rejecting malformed entries."""
    normalized: list[dict[str, Any]] = []
    seen: set[str] = set()
    for index, raw in enumerate(fields):
        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Field name is required", details={"index": index})
        if name in seen:
            raise ValidationError(f"Duplicate field name: {name}", details={"index": index})
        seen.add(name)

        try:
            kind = FieldKind(raw.get("type"))
        except ValueError:
            raise ValidationError(
                f"Unknown field type for {name}: {raw.get('type')!r}",
                details={"field": name, "allowed": [k.value for k in FieldKind]},
            ) from None

        options = raw.get("options")
        if kind == FieldKind.SELECT:
            if not options or not all(isinstance(o, str) for o in options):
                raise ValidationError(
                    f"Select field {name} needs a list of string options",
                    details={"field": name},
                )
        elif options is not None:
            raise ValidationError(
                f"Only select fields take options ({name})", details={"field": name}
            )

        entry = {
            "name": name,
            "type": kind.value,
            "label": raw.get("label") or name,
            "required": bool(raw.get("required", False)),
        }
        if options is not None:
            entry["options"] = list(options)
        normalized.append(entry)
    return normalized


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_kind(field: dict[str, Any], value: Any) -> None:
    name = field["name"]
    kind = FieldKind(field["type"])
    if kind in (FieldKind.TEXT, FieldKind.TEXTAREA):
        ok = isinstance(value, str)
    elif kind == FieldKind.NUMBER:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    elif kind == FieldKind.CHECKBOX:
        ok = isinstance(value, bool)
    else:
        ok = isinstance(value, str) and value in (field.get("options") or [])
    if not ok:
        raise ValidationError(
            f"Invalid value for {field.get('label') or name}",
            details={"field": name, "type": kind.value},
        )


def validate_incident_data(fields: list[dict[str, Any]], data: dict[str, Any]) -> dict[str, Any]:
    """Check ``data`` against the owning incident type's fields."""
    by_name = {f["name"]: f for f in fields or []}

    unknown = sorted(set(data) - set(by_name))
    if unknown:
        raise ValidationError(
            "Unknown fields: " + ", ".join(unknown), details={"fields": unknown}
        )

    for name, field in by_name.items():
        value = data.get(name)
        if _is_empty(value):
            if field.get("required"):
                raise ValidationError(
                    f"{field.get('label') or name} is required", details={"field": name}
                )
            continue
        _check_kind(field, value)
    return data
