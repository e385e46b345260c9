"""
Node Definitions

Declarative description of a node type: its input/output slots, the widgets
shown on the node, and the flags the validator and sorter consult.
Definitions are immutable once loaded and are owned by the registry.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .slot_types import SlotSpec, SlotType


class WidgetKind(Enum):
    """Closed set of widget kinds a node can carry"""
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    BOOLEAN = "boolean"
    COMBO = "combo"
    IMAGE = "image"
    COLOR = "color"
    SEED = "seed"
    CUSTOM = "custom"


_SLOT_TO_WIDGET_KIND = {
    SlotType.INT: WidgetKind.INT,
    SlotType.FLOAT: WidgetKind.FLOAT,
    SlotType.STRING: WidgetKind.STRING,
    SlotType.BOOLEAN: WidgetKind.BOOLEAN,
    SlotType.COMBO: WidgetKind.COMBO,
}

# Inputs of these types are rendered on the node instead of as connectable slots
WIDGET_SLOT_TYPES = frozenset({
    SlotType.INT,
    SlotType.FLOAT,
    SlotType.STRING,
    SlotType.BOOLEAN,
    SlotType.COMBO,
    SlotType.SAMPLER,
    SlotType.SCHEDULER,
})


@dataclass(frozen=True)
class WidgetSpec:
    """
    Definition of a widget (value control) attached to a node.

    Examples:
        - WidgetSpec(name="steps", kind=WidgetKind.INT, default=20, min=1, max=10000)
        - WidgetSpec(name="sampler_name", kind=WidgetKind.COMBO, options=("euler", "ddim"))
    """
    name: str
    kind: WidgetKind
    default: Any = None
    options: Optional[Tuple[str, ...]] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    multiline: bool = False
    label: Optional[str] = None
    tooltip: Optional[str] = None

    @classmethod
    def from_slot(cls, slot: SlotSpec) -> "WidgetSpec":
        """Turn a widget-like input slot into a widget spec"""
        return cls(
            name=slot.name,
            kind=_SLOT_TO_WIDGET_KIND.get(slot.type, WidgetKind.STRING),
            default=slot.default,
            options=slot.options,
            min=slot.min,
            max=slot.max,
            step=slot.step,
            multiline=slot.multiline,
            tooltip=slot.tooltip,
        )

    def initial_value(self) -> Any:
        """Value a freshly created node starts with"""
        if self.default is not None:
            return self.default
        if self.kind is WidgetKind.COMBO and self.options:
            return self.options[0]
        return None


@dataclass(frozen=True)
class NodeDefinition:
    """
    Complete definition of a node type.

    Attributes:
        name: Registry key and API class_type (e.g., "KSampler")
        display_name: Human readable title (e.g., "K Sampler")
        category: Slash separated category path (e.g., "sampling/custom")
        inputs: Ordered connectable input slots
        outputs: Ordered output slots
        widgets: Ordered widgets; this order is the persisted widgets_values order
        hidden_inputs: Inputs supplied by the backend, never connected
        is_output_node: Whether the node triggers execution
    """
    name: str
    display_name: str = ""
    category: str = "uncategorized"
    description: Optional[str] = None
    inputs: Tuple[SlotSpec, ...] = ()
    outputs: Tuple[SlotSpec, ...] = ()
    widgets: Tuple[WidgetSpec, ...] = ()
    hidden_inputs: Tuple[SlotSpec, ...] = ()
    is_output_node: bool = False
    deprecated: bool = False
    experimental: bool = False
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self):
        if not self.display_name:
            object.__setattr__(self, "display_name", self.name)
        # Accept lists from callers, store tuples
        for attr in ("inputs", "outputs", "widgets", "hidden_inputs"):
            object.__setattr__(self, attr, tuple(getattr(self, attr)))

    @classmethod
    def from_object_info(cls, name: str, data: Dict[str, Any]) -> "NodeDefinition":
        """
        Create a definition from one entry of the backend object_info response.

        Required inputs are parsed before optional ones. Inputs whose type is
        widget-like (INT, FLOAT, STRING, BOOLEAN, COMBO, SAMPLER, SCHEDULER)
        become widgets; all others become connectable slots.

        Raises:
            ValueError: If the entry is not a mapping
        """
        if not isinstance(data, dict):
            raise ValueError(f"Definition for {name} must be a mapping, got {type(data).__name__}")

        input_data = data.get("input") or {}
        slots: List[SlotSpec] = []
        widgets: List[WidgetSpec] = []

        for section, optional in (("required", False), ("optional", True)):
            for input_name, raw in (input_data.get(section) or {}).items():
                slot = SlotSpec.from_object_info(input_name, raw).with_optional(optional)
                if slot.type in WIDGET_SLOT_TYPES:
                    widgets.append(WidgetSpec.from_slot(slot))
                else:
                    slots.append(slot)

        hidden = [
            SlotSpec.from_object_info(input_name, raw).with_optional(True)
            for input_name, raw in (input_data.get("hidden") or {}).items()
        ]

        output_types = list(data.get("output") or [])
        output_names = list(data.get("output_name") or [])
        outputs = [
            SlotSpec(
                name=output_names[i] if i < len(output_names) else str(type_name),
                type=SlotType.from_type_name(type_name),
            )
            for i, type_name in enumerate(output_types)
        ]

        return cls(
            name=name,
            display_name=data.get("display_name") or name,
            category=data.get("category") or "uncategorized",
            description=data.get("description"),
            inputs=tuple(slots),
            outputs=tuple(outputs),
            widgets=tuple(widgets),
            hidden_inputs=tuple(hidden),
            is_output_node=data.get("output_node") is True,
            deprecated=data.get("deprecated") is True,
            experimental=data.get("experimental") is True,
        )

    @property
    def input_names(self) -> List[str]:
        return [slot.name for slot in self.inputs]

    @property
    def output_names(self) -> List[str]:
        return [slot.name for slot in self.outputs]

    @property
    def widget_names(self) -> List[str]:
        return [widget.name for widget in self.widgets]

    def get_input(self, name: str) -> Optional[SlotSpec]:
        return next((slot for slot in self.inputs if slot.name == name), None)

    def get_output(self, name: str) -> Optional[SlotSpec]:
        return next((slot for slot in self.outputs if slot.name == name), None)

    def get_widget(self, name: str) -> Optional[WidgetSpec]:
        return next((widget for widget in self.widgets if widget.name == name), None)

    def __str__(self) -> str:
        return f"NodeDefinition({self.name})"
