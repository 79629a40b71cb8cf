"""
`{{ variable }}` substitution for automation messages.

Variables may be dotted paths ("property.name") that walk nested dicts or
object attributes. Anything that does not resolve renders as an empty string.
"""
import re
from typing import Any, Dict, List

_VARIABLE_RE = re.compile(r"\{\{([^}]+)\}\}")

AVAILABLE_VARIABLES: Dict[str, List[str]] = {
    "booking": [
        "guest_name",
        "guest_email",
        "guest_phone",
        "property_name",
        "property_address",
        "check_in_date",
        "check_in_time",
        "check_out_date",
        "check_out_time",
        "total_amount",
        "booking_reference",
        "number_of_guests",
        "number_of_nights",
    ],
    "tenant": [
        "tenant_name",
        "tenant_email",
        "property_name",
        "property_address",
        "lease_start_date",
        "lease_end_date",
        "monthly_rent",
    ],
    "maintenance": [
        "property_name",
        "property_address",
        "request_title",
        "request_description",
        "scheduled_date",
        "assigned_to",
    ],
}


def _resolve(context: Any, path: str) -> Any:
    current = context
    for key in path.split("."):
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(key)
        else:
            current = getattr(current, key, None)
    return current


def extract_variables(template: str) -> List[str]:
    return [m.group(1).strip() for m in _VARIABLE_RE.finditer(template or "")]


def render(template: str, context: Dict[str, Any]) -> str:
    def _sub(match: "re.Match[str]") -> str:
        value = _resolve(context, match.group(1).strip())
        return "" if value is None else str(value)

    return _VARIABLE_RE.sub(_sub, template or "")


def validate_template(template: str, context: Dict[str, Any]) -> Dict[str, Any]:
    missing = [v for v in extract_variables(template) if _resolve(context, v) is None]
    return {"valid": not missing, "missing": missing}


def available_variables(context_type: str) -> List[str]:
    return list(AVAILABLE_VARIABLES.get(context_type, []))
