"""
Widget Value Checks

Per-kind checks for widget values, dispatched through a table keyed by
WidgetKind. Every kind must have an entry; adding a kind without a check
fails at import.
"""

from typing import Any, Callable, Dict, Optional

from ..dag.definition import WidgetKind, WidgetSpec

# Returns a problem description, or None when the value is acceptable
WidgetCheck = Callable[[WidgetSpec, Any], Optional[str]]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_bounds(widget: WidgetSpec, value: Any) -> Optional[str]:
    if widget.min is not None and value < widget.min:
        return f"value {value} is below minimum {widget.min}"
    if widget.max is not None and value > widget.max:
        return f"value {value} is above maximum {widget.max}"
    return None


def _check_int(widget: WidgetSpec, value: Any) -> Optional[str]:
    if not _is_number(value) or int(value) != value:
        return f"expected an integer, got {value!r}"
    problem = _check_bounds(widget, value)
    if problem:
        return problem
    if widget.step and widget.min is not None and (value - widget.min) % widget.step:
        return f"value {value} is not a multiple of step {widget.step} from {widget.min}"
    return None


def _check_float(widget: WidgetSpec, value: Any) -> Optional[str]:
    if not _is_number(value):
        return f"expected a number, got {value!r}"
    return _check_bounds(widget, value)


def _check_string(widget: WidgetSpec, value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return f"expected a string, got {value!r}"
    return None


def _check_boolean(widget: WidgetSpec, value: Any) -> Optional[str]:
    if not isinstance(value, bool):
        return f"expected a boolean, got {value!r}"
    return None


def _check_combo(widget: WidgetSpec, value: Any) -> Optional[str]:
    if widget.options and value not in widget.options:
        return f"{value!r} is not one of {list(widget.options)}"
    return None


def _accept(widget: WidgetSpec, value: Any) -> Optional[str]:
    return None


WIDGET_CHECKS: Dict[WidgetKind, WidgetCheck] = {
    WidgetKind.INT: _check_int,
    WidgetKind.FLOAT: _check_float,
    WidgetKind.STRING: _check_string,
    WidgetKind.BOOLEAN: _check_boolean,
    WidgetKind.COMBO: _check_combo,
    WidgetKind.SEED: _check_int,
    WidgetKind.IMAGE: _accept,
    WidgetKind.COLOR: _accept,
    WidgetKind.CUSTOM: _accept,
}

_unchecked = set(WidgetKind) - set(WIDGET_CHECKS)
if _unchecked:
    raise RuntimeError(f"Widget kinds without a value check: {sorted(k.value for k in _unchecked)}")


def check_widget_value(widget: WidgetSpec, value: Any) -> Optional[str]:
    """
    Check one widget value against its spec.

    Unset values (None) are not checked; the definition default applies.

    Returns:
        Description of the problem, or None if the value is valid
    """
    if value is None:
        return None
    return WIDGET_CHECKS[widget.kind](widget, value)
