import pytest

from flowgraph.dag.definition import NodeDefinition, WidgetKind, WidgetSpec
from flowgraph.dag.slot_types import SlotSpec, SlotType

from .conftest import OBJECT_INFO


class TestFromObjectInfo:
    def test_connectable_inputs_and_widgets_are_split(self):
        definition = NodeDefinition.from_object_info("Sampler", OBJECT_INFO["Sampler"])

        assert definition.input_names == ["model", "latent", "positive"]
        assert definition.widget_names == ["seed", "steps", "cfg", "sampler_name"]
        assert definition.output_names == ["LATENT"]

    def test_optional_section_marks_inputs_optional(self):
        definition = NodeDefinition.from_object_info("Sampler", OBJECT_INFO["Sampler"])

        assert not definition.get_input("model").optional
        assert definition.get_input("positive").optional

    def test_widget_kinds(self):
        definition = NodeDefinition.from_object_info("Sampler", OBJECT_INFO["Sampler"])

        assert definition.get_widget("steps").kind is WidgetKind.INT
        assert definition.get_widget("cfg").kind is WidgetKind.FLOAT
        assert definition.get_widget("sampler_name").kind is WidgetKind.COMBO
        assert definition.get_widget("sampler_name").options == ("euler", "heun")

    def test_flags_and_defaults(self):
        definition = NodeDefinition.from_object_info("C", OBJECT_INFO["C"])

        assert definition.is_output_node
        assert definition.display_name == "C"
        assert not definition.deprecated

    def test_missing_category(self):
        definition = NodeDefinition.from_object_info("Bare", {})
        assert definition.category == "uncategorized"
        assert definition.inputs == ()
        assert definition.outputs == ()

    def test_hidden_inputs_kept_separately(self):
        definition = NodeDefinition.from_object_info(
            "Save",
            {"input": {"required": {"images": "IMAGE"}, "hidden": {"prompt": "PROMPT"}}},
        )
        assert definition.input_names == ["images"]
        assert [slot.name for slot in definition.hidden_inputs] == ["prompt"]

    def test_output_name_falls_back_to_type(self):
        definition = NodeDefinition.from_object_info("Split", {"output": ["IMAGE", "MASK"]})
        assert definition.output_names == ["IMAGE", "MASK"]
        assert definition.outputs[1].type is SlotType.MASK

    def test_rejects_non_mapping(self):
        with pytest.raises(ValueError):
            NodeDefinition.from_object_info("Broken", ["not", "a", "dict"])


class TestNodeDefinition:
    def test_lists_are_stored_as_tuples(self):
        definition = NodeDefinition(
            name="VAEDecode",
            inputs=[SlotSpec("samples", SlotType.LATENT)],
            outputs=[SlotSpec("IMAGE", SlotType.IMAGE)],
        )
        assert isinstance(definition.inputs, tuple)
        assert definition.display_name == "VAEDecode"

    def test_lookups_return_none_for_unknown_names(self):
        definition = NodeDefinition(name="Empty")
        assert definition.get_input("x") is None
        assert definition.get_output("x") is None
        assert definition.get_widget("x") is None


class TestWidgetSpec:
    def test_initial_value_prefers_default(self):
        widget = WidgetSpec("steps", WidgetKind.INT, default=20)
        assert widget.initial_value() == 20

    def test_initial_value_for_combo_is_first_option(self):
        widget = WidgetSpec("sampler", WidgetKind.COMBO, options=("euler", "heun"))
        assert widget.initial_value() == "euler"

    def test_initial_value_none_without_default(self):
        assert WidgetSpec("text", WidgetKind.STRING).initial_value() is None

    def test_from_slot_maps_unknown_types_to_string(self):
        widget = WidgetSpec.from_slot(SlotSpec("sampler", SlotType.SAMPLER))
        assert widget.kind is WidgetKind.STRING
