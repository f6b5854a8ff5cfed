"""
activity_formatter.py — Renders activity summaries from a locale strings table

Pure functions: no I/O, no database. Every user-visible word comes from
STRINGS[locale]; adding a language means adding a table, never touching
the render code.

Business Rules:
- parameters_changed → one sentence, one "label: old → new" clause per field
- items_added/items_removed → count, plus names when count ≤ name threshold
- bulk_import/bulk_delete/bulk_update → count, plus file name / field + value
- Hebrew renders the field-change arrow right-to-left ("←")
- Unknown locale → settings.activity_default_locale → "en"

Called by: services/flush_coordinator.py, services/suppression_gate.py,
           services/activity_service.py
Depends on: config.py (default locale, name threshold)
"""

from decimal import Decimal

from ..config import settings

STRINGS: dict[str, dict[str, str]] = {
    "en": {
        "arrow": "→",
        "empty": "(empty)",
        "list_sep": ", ",
        "names": "{summary}: {names}",
        "entity_quotation": "quotation",
        "entity_component": "component",
        "entity_project": "project",
        "created": "Created {entity}: {name}",
        "updated": "Updated {entity}: {name}",
        "deleted": "Deleted {entity}: {name}",
        "status_changed": "Status changed: {old} {arrow} {new}",
        "parameters_changed": "Parameters changed: {changes}",
        "items_added": "{count} items added",
        "items_added_one": "1 item added",
        "items_added_to": "{count} items added to {system}",
        "items_added_one_to": "1 item added to {system}",
        "items_removed": "{count} items removed",
        "items_removed_one": "1 item removed",
        "items_removed_to": "{count} items removed from {system}",
        "items_removed_one_to": "1 item removed from {system}",
        "items_updated": "{count} items updated",
        "items_updated_one": "1 item updated",
        "bulk_import": "Bulk import of {count} components",
        "bulk_import_file": "Bulk import of {count} components from {file}",
        "bulk_import_entity": "Bulk import ({count} components)",
        "bulk_delete": "Deleted {count} components in bulk",
        "bulk_delete_entity": "Bulk delete ({count} components)",
        "bulk_update": 'Bulk update: set {field} to "{value}" for {count} components',
        "bulk_update_entity": "Bulk update ({count} components)",
        "imported": "Imported from file {file}",
        "exported": "Exported to file {file}",
        "version_created": "Version {version} created",
    },
    "he": {
        "arrow": "←",
        "empty": "(ריק)",
        "list_sep": ", ",
        "names": "{summary}: {names}",
        "entity_quotation": "הצעת מחיר",
        "entity_component": "רכיב",
        "entity_project": "פרויקט",
        "created": "נוצר {entity}: {name}",
        "updated": "עודכן {entity}: {name}",
        "deleted": "נמחק {entity}: {name}",
        "status_changed": "שינוי סטטוס: {old} {arrow} {new}",
        "parameters_changed": "שינוי פרמטרים: {changes}",
        "items_added": "{count} פריטים נוספו",
        "items_added_one": "פריט אחד נוסף",
        "items_added_to": "{count} פריטים נוספו ל{system}",
        "items_added_one_to": "פריט אחד נוסף ל{system}",
        "items_removed": "{count} פריטים הוסרו",
        "items_removed_one": "פריט אחד הוסר",
        "items_removed_to": "{count} פריטים הוסרו מ{system}",
        "items_removed_one_to": "פריט אחד הוסר מ{system}",
        "items_updated": "{count} פריטים עודכנו",
        "items_updated_one": "פריט אחד עודכן",
        "bulk_import": "ייבוא קבוצתי של {count} רכיבים",
        "bulk_import_file": "ייבוא קבוצתי של {count} רכיבים מקובץ {file}",
        "bulk_import_entity": "ייבוא קבוצתי ({count} רכיבים)",
        "bulk_delete": "נמחקו {count} רכיבים בקבוצה",
        "bulk_delete_entity": "מחיקה קבוצתית ({count} רכיבים)",
        "bulk_update": 'עדכון קבוצתי: הוגדר {field} ל-"{value}" עבור {count} רכיבים',
        "bulk_update_entity": "עדכון קבוצתי ({count} רכיבים)",
        "imported": "יובא מקובץ {file}",
        "exported": "יוצא לקובץ {file}",
        "version_created": "נוצרה גרסה {version}",
    },
}


def resolve_locale(locale: str | None) -> str:
    """Map "he-IL" / "HE" / None to a key of STRINGS."""
    for candidate in (locale, settings.activity_default_locale):
        if candidate:
            key = candidate.split("-")[0].split("_")[0].lower()
            if key in STRINGS:
                return key
    return "en"


def render_value(value, strings: dict[str, str]) -> str:
    """Human form of a field value: 25.0 → "25", Decimal("3.70") → "3.7"."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return strings["empty"]
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    return str(value)


def _get(obj, key, default=None):
    """Read a field from a pydantic model or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


# ── Summaries ───────────────────────────────────────────────────────────


def format_summary(
    action_type: str,
    payload: dict,
    locale: str | None = None,
    name_threshold: int | None = None,
) -> str:
    """Render the one-line change_summary for an activity entry.

    payload keys by action:
        parameters_changed: changes=[FieldDelta | {label, original_value, current_value}]
        items_*:            items=[ItemRef | {name, quantity}], system_name=optional
        bulk_import:        count, file_name=optional
        bulk_delete:        count, names=optional
        bulk_update:        count, field_label, value
        created/updated/deleted: name, entity_type
        status_changed:     old, new
        version_created:    version
        imported/exported:  file_name
    """
    s = STRINGS[resolve_locale(locale)]
    threshold = settings.activity_item_name_threshold if name_threshold is None else name_threshold

    if action_type == "parameters_changed":
        clauses = [
            f"{_get(c, 'label') or _get(c, 'field_key')}: "
            f"{render_value(_get(c, 'original_value'), s)} {s['arrow']} "
            f"{render_value(_get(c, 'current_value'), s)}"
            for c in payload.get("changes", [])
        ]
        return s["parameters_changed"].format(changes=s["list_sep"].join(clauses))

    if action_type in ("items_added", "items_removed", "items_updated"):
        items = payload.get("items", [])
        return _items_summary(action_type, items, payload.get("system_name"), s, threshold)

    if action_type == "bulk_import":
        count = payload.get("count", 0)
        if payload.get("file_name"):
            return s["bulk_import_file"].format(count=count, file=payload["file_name"])
        return s["bulk_import"].format(count=count)

    if action_type == "bulk_delete":
        count = payload.get("count", 0)
        summary = s["bulk_delete"].format(count=count)
        names = payload.get("names") or []
        if names and len(names) <= threshold:
            summary = s["names"].format(summary=summary, names=s["list_sep"].join(names))
        return summary

    if action_type == "bulk_update":
        return s["bulk_update"].format(
            field=payload.get("field_label") or payload.get("field") or "",
            value=render_value(payload.get("value"), s),
            count=payload.get("count", 0),
        )

    if action_type in ("created", "updated", "deleted"):
        entity = s.get(f"entity_{payload.get('entity_type', 'component')}", "")
        return s[action_type].format(entity=entity, name=payload.get("name") or "")

    if action_type == "status_changed":
        return s["status_changed"].format(
            old=render_value(payload.get("old"), s),
            new=render_value(payload.get("new"), s),
            arrow=s["arrow"],
        )

    if action_type == "version_created":
        return s["version_created"].format(version=payload.get("version"))

    if action_type in ("imported", "exported"):
        return s[action_type].format(file=payload.get("file_name") or "")

    raise ValueError(f"Unknown action_type: {action_type}")


def _items_summary(action_type, items, system_name, s, threshold) -> str:
    count = len(items)
    if system_name is None:
        systems = {_get(i, "system_name") for i in items}
        if len(systems) == 1:
            system_name = systems.pop()

    key = f"{action_type}_one" if count == 1 else action_type
    if system_name and f"{key}_to" in s:
        summary = s[f"{key}_to"].format(count=count, system=system_name)
    else:
        summary = s[key].format(count=count)

    if 0 < count <= threshold:
        names = s["list_sep"].join(_get(i, "name") for i in items)
        summary = s["names"].format(summary=summary, names=names)
    return summary


def bulk_entity_name(action_type: str, count: int, locale: str | None = None) -> str:
    """entity_name for team-wide bulk entries, e.g. "Bulk delete (26 components)"."""
    s = STRINGS[resolve_locale(locale)]
    return s[f"{action_type}_entity"].format(count=count)


# ── Drill-down payloads ─────────────────────────────────────────────────


def _jsonable(value):
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    return value


def build_change_details(action_type: str, payload: dict) -> dict | None:
    """Structured change_details JSON stored next to the summary."""
    if action_type == "parameters_changed":
        return {
            "fields_changed": [
                {
                    "field": _get(c, "field_key"),
                    "label": _get(c, "label"),
                    "old": _jsonable(_get(c, "original_value")),
                    "new": _jsonable(_get(c, "current_value")),
                }
                for c in payload.get("changes", [])
            ]
        }

    if action_type in ("items_added", "items_removed", "items_updated"):
        verb = action_type.split("_")[1]
        details = {
            action_type: [
                {"name": _get(i, "name"), "quantity": _get(i, "quantity", 1), "action": verb}
                for i in payload.get("items", [])
            ]
        }
        if payload.get("system_name"):
            details["system_name"] = payload["system_name"]
        return details

    if action_type == "bulk_delete" and payload.get("names"):
        return {
            "items_removed": [{"name": n, "action": "removed"} for n in payload["names"]],
            "bulk_changes": {"field": "delete", "value": "bulk", "count": payload.get("count", 0)},
        }

    if action_type in ("bulk_import", "bulk_delete", "bulk_update"):
        kind = action_type.split("_")[1]
        return {
            "bulk_changes": {
                "field": payload.get("field") or kind,
                "value": _jsonable(payload["value"] if payload.get("value") is not None else payload.get("file_name")),
                "count": payload.get("count", 0),
                "description": payload.get("field_label"),
            }
        }

    if action_type == "status_changed":
        return {
            "fields_changed": [
                {"field": "status", "label": "Status", "old": payload.get("old"), "new": payload.get("new")}
            ]
        }

    return None
