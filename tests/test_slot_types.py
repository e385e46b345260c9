from flowgraph.dag.slot_types import SlotSpec, SlotType, types_compatible


class TestSlotType:
    def test_from_type_name_known(self):
        assert SlotType.from_type_name("MODEL") is SlotType.MODEL
        assert SlotType.from_type_name("*") is SlotType.ANY

    def test_from_type_name_unknown_falls_back_to_any(self):
        assert SlotType.from_type_name("CUSTOM_PACK_TYPE") is SlotType.ANY
        assert SlotType.from_type_name(None) is SlotType.ANY

    def test_same_type_connects(self):
        assert SlotType.LATENT.can_connect_to(SlotType.LATENT)

    def test_different_types_do_not_connect(self):
        assert not SlotType.MODEL.can_connect_to(SlotType.CONDITIONING)
        assert not types_compatible(SlotType.IMAGE, SlotType.MASK)

    def test_any_is_wildcard_both_ways(self):
        for slot_type in SlotType:
            assert SlotType.ANY.can_connect_to(slot_type)
            assert slot_type.can_connect_to(SlotType.ANY)


class TestSlotSpecFromObjectInfo:
    def test_plain_type(self):
        slot = SlotSpec.from_object_info("model", "MODEL")
        assert slot.name == "model"
        assert slot.type is SlotType.MODEL
        assert not slot.optional

    def test_combo_defaults_to_first_option(self):
        slot = SlotSpec.from_object_info("sampler", [["euler", "heun"]])
        assert slot.type is SlotType.COMBO
        assert slot.options == ("euler", "heun")
        assert slot.default == "euler"

    def test_combo_with_explicit_default(self):
        slot = SlotSpec.from_object_info("sampler", [["euler", "heun"], {"default": "heun"}])
        assert slot.default == "heun"

    def test_type_with_config(self):
        slot = SlotSpec.from_object_info(
            "steps", ["INT", {"default": 20, "min": 1, "max": 100, "step": 1}]
        )
        assert slot.type is SlotType.INT
        assert (slot.default, slot.min, slot.max, slot.step) == (20, 1, 100, 1)

    def test_multiline_string(self):
        slot = SlotSpec.from_object_info("text", ["STRING", {"multiline": True}])
        assert slot.multiline

    def test_unrecognized_shape_is_any(self):
        assert SlotSpec.from_object_info("x", 42).type is SlotType.ANY
        assert SlotSpec.from_object_info("x", []).type is SlotType.ANY

    def test_with_optional_returns_copy(self):
        slot = SlotSpec("model", SlotType.MODEL)
        optional = slot.with_optional(True)
        assert optional.optional
        assert not slot.optional
