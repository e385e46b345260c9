"""
Slot Types

Type tags carried by node input/output slots and the compatibility
relation deciding whether an output may feed an input.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class SlotType(str, Enum):
    """Type of data flowing through a slot connection"""
    ANY = "*"
    MODEL = "MODEL"
    CLIP = "CLIP"
    VAE = "VAE"
    CONDITIONING = "CONDITIONING"
    LATENT = "LATENT"
    IMAGE = "IMAGE"
    MASK = "MASK"
    INT = "INT"
    FLOAT = "FLOAT"
    STRING = "STRING"
    BOOLEAN = "BOOLEAN"
    COMBO = "COMBO"
    CONTROL_NET = "CONTROL_NET"
    LORA = "LORA"
    UPSCALE_MODEL = "UPSCALE_MODEL"
    CLIP_VISION = "CLIP_VISION"
    STYLE_MODEL = "STYLE_MODEL"
    GLIGEN = "GLIGEN"
    SAMPLER = "SAMPLER"
    SCHEDULER = "SCHEDULER"
    SIGMAS = "SIGMAS"
    NOISE = "NOISE"
    GUIDER = "GUIDER"
    AUDIO = "AUDIO"
    VIDEO = "VIDEO"

    @classmethod
    def from_type_name(cls, name: Optional[str]) -> "SlotType":
        """
        Parse a type tag as used by the execution backend.

        Unknown tags resolve to ANY so foreign node packs stay connectable.
        """
        try:
            return cls(name)
        except ValueError:
            return cls.ANY

    def can_connect_to(self, other: "SlotType") -> bool:
        """Check if an output of this type may feed an input of `other`"""
        if self is SlotType.ANY or other is SlotType.ANY:
            return True
        return self is other


def types_compatible(source: SlotType, target: SlotType) -> bool:
    return source.can_connect_to(target)


@dataclass(frozen=True)
class SlotSpec:
    """
    Definition of an input or output slot on a node.

    Attributes:
        name: Slot name (e.g., "model", "positive", "samples")
        type: Type tag of the data flowing through the slot
        optional: Whether an input may be left unconnected
        default: Value used when the input is rendered as a widget
        options: Choices for COMBO inputs
        min/max/step: Numeric bounds for INT/FLOAT inputs
    """
    name: str
    type: SlotType
    optional: bool = False
    default: Any = None
    options: Optional[Tuple[str, ...]] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    multiline: bool = False
    tooltip: Optional[str] = None

    def with_optional(self, optional: bool) -> "SlotSpec":
        return replace(self, optional=optional)

    @classmethod
    def from_object_info(cls, name: str, raw: Any) -> "SlotSpec":
        """
        Create a slot from the backend object_info input notation.

        Accepted shapes:
            "MODEL"                               - plain type tag
            [["euler", "dpmpp_2m"]]               - combo, first option is default
            ["INT", {"min": 0, "max": 100, ...}]  - type tag with config
        Anything else falls back to an ANY slot.
        """
        if isinstance(raw, str):
            return cls(name=name, type=SlotType.from_type_name(raw))

        if isinstance(raw, (list, tuple)) and raw:
            first = raw[0]
            config: Dict[str, Any] = {}
            if len(raw) > 1 and isinstance(raw[1], dict):
                config = raw[1]

            if isinstance(first, (list, tuple)):
                options = tuple(str(option) for option in first)
                default = config.get("default")
                if default is None and options:
                    default = options[0]
                return cls(
                    name=name,
                    type=SlotType.COMBO,
                    options=options,
                    default=default,
                    tooltip=config.get("tooltip"),
                )

            if isinstance(first, str):
                return cls(
                    name=name,
                    type=SlotType.from_type_name(first),
                    default=config.get("default"),
                    min=config.get("min"),
                    max=config.get("max"),
                    step=config.get("step"),
                    multiline=config.get("multiline") is True,
                    tooltip=config.get("tooltip"),
                )

        return cls(name=name, type=SlotType.ANY)
