"""
Field validation checks.
"""

import pytest

from diagram_controller.core.errors import ValidationError
from diagram_controller.core.models import FieldType
from diagram_controller.core.validation import (
    check_enum,
    check_field_type,
    check_non_empty_string,
    check_not_empty,
    check_required,
    check_unknown_fields,
    js_type_name,
    require_valid,
)


class TestTypeNames:

    @pytest.mark.parametrize("value, expected", [
        (None, "object"),
        (True, "boolean"),
        (3, "number"),
        (2.5, "number"),
        ("x", "string"),
        ([1], "object"),
        ({"a": 1}, "object"),
    ])
    def test_json_type_names(self, value, expected):
        assert js_type_name(value) == expected


class TestFieldChecks:

    def test_unknown_fields_lists_offenders_and_allowed(self):
        error = check_unknown_fields({"name": "A", "foo": 1}, ["name", "documentation"])
        assert error == "Unknown field(s): foo. Allowed fields: name, documentation"

    def test_known_fields_pass(self):
        assert check_unknown_fields({"name": "A"}, ["name"]) is None

    def test_absent_field_passes_type_check(self):
        assert check_field_type({}, "name", FieldType.STRING) is None

    def test_boolean_is_not_a_number(self):
        error = check_field_type({"x1": True}, "x1", FieldType.NUMBER)
        assert error == 'Field "x1" must be a number, got boolean'

    def test_string_expected(self):
        error = check_field_type({"name": 5}, "name", FieldType.STRING)
        assert error == 'Field "name" must be a string, got number'

    def test_reference_accepts_null(self):
        assert check_field_type({"ref": None}, "ref", FieldType.REFERENCE) is None
        assert check_field_type({"ref": 1}, "ref", FieldType.REFERENCE) is not None

    def test_object_expected(self):
        assert check_field_type({"end1": "x"}, "end1", FieldType.OBJECT) == 'Field "end1" must be an object'

    def test_blank_string_rejected(self):
        assert check_non_empty_string({"name": "   "}, "name") == 'Field "name" must be a non-empty string'
        assert check_non_empty_string({"name": "A"}, "name") is None

    def test_enum_membership(self):
        error = check_enum({"axis": "diagonal"}, "axis", ("horizontal", "vertical"))
        assert error == 'Invalid value "diagonal" for field "axis". Allowed: horizontal, vertical'
        assert check_enum({}, "axis", ("horizontal",)) is None

    def test_required_rejects_empty_string(self):
        assert check_required({"diagramId": ""}, "diagramId") == 'Field "diagramId" is required'
        assert check_required({"diagramId": "d1"}, "diagramId") is None

    def test_empty_update_body(self):
        assert check_not_empty({}, ["name"]).startswith("At least one field must be provided")
        assert check_not_empty({"name": "A"}, ["name"]) is None


class TestRequireValid:

    def test_first_failure_is_raised(self):
        with pytest.raises(ValidationError, match="first"):
            require_valid(None, "first", "second")

    def test_all_passing(self):
        require_valid(None, None)
