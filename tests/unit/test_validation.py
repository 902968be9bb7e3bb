"""Tests for save-time workflow validation."""
from workflow_engine.validation import validate_workflow


def _codes(issues):
    return [issue.code for issue in issues]


class TestValidateWorkflow:
    """Test validate_workflow."""

    def test_valid_workflow(self, make_workflow, registry):
        workflow = make_workflow(
            [
                ("t", "MANUAL_TRIGGER", {}),
                ("if", "IF_ELSE", {"leftOperand": "{{trigger.a}}"}),
                ("yes", "SET_VARIABLE", {"variableName": "x"}),
                ("no", "STOP_WORKFLOW", {}),
            ],
            [("t", "if"), ("if", "yes", "true"), ("if", "no", "false")],
        )

        report = validate_workflow(workflow, registry)

        assert report.is_valid
        assert report.warnings == []

    def test_placeholder_workflow(self, make_workflow):
        report = validate_workflow(make_workflow([("initial", "INITIAL", {})]))
        assert _codes(report.errors) == ["empty_workflow"]

    def test_trigger_count(self, make_workflow):
        none = make_workflow(
            [("a", "SET_VARIABLE", {}), ("b", "SET_VARIABLE", {})],
            [("a", "b"), ("b", "a")],
        )
        many = make_workflow([("t1", "MANUAL_TRIGGER", {}), ("t2", "GMAIL_TRIGGER", {})])

        assert "no_trigger" in _codes(validate_workflow(none).errors)
        assert "multiple_triggers" in _codes(validate_workflow(many).errors)

    def test_unknown_node_type_needs_registry(self, make_workflow, registry):
        workflow = make_workflow(
            [("t", "MANUAL_TRIGGER", {}), ("m", "MYSTERY", {})],
            [("t", "m")],
        )

        assert validate_workflow(workflow).is_valid
        report = validate_workflow(workflow, registry)
        assert _codes(report.errors) == ["unknown_node_type"]
        assert report.errors[0].node_id == "m"

    def test_dangling_edge_and_duplicate_ids(self, make_workflow):
        workflow = make_workflow(
            [("t", "MANUAL_TRIGGER", {}), ("t", "SET_VARIABLE", {})],
            [("t", "ghost")],
        )

        codes = _codes(validate_workflow(workflow).errors)

        assert "duplicate_node_id" in codes
        assert "dangling_edge" in codes

    def test_missing_branches(self, make_workflow):
        workflow = make_workflow(
            [
                ("t", "MANUAL_TRIGGER", {}),
                ("if", "IF_ELSE", {}),
                ("sw", "SWITCH", {"cases": [{"value": "a"}, {"value": "b"}]}),
            ],
            [("t", "if"), ("if", "sw", "true"), ("sw", "t", "case-0")],
        )

        report = validate_workflow(workflow)

        messages = {issue.code: issue.message for issue in report.errors}
        assert "false" in messages["if_missing_branch"]
        assert "case-1" in messages["switch_missing_branch"]
        assert "default" in messages["switch_missing_branch"]

    def test_fan_out(self, make_workflow):
        workflow = make_workflow(
            [("t", "MANUAL_TRIGGER", {}), ("a", "SET_VARIABLE", {}), ("b", "SET_VARIABLE", {})],
            [("t", "a"), ("t", "b")],
        )
        assert _codes(validate_workflow(workflow).errors) == ["fan_out"]

    def test_warnings(self, make_workflow):
        workflow = make_workflow(
            [
                ("t", "MANUAL_TRIGGER", {}),
                ("a", "SET_VARIABLE", {"variableName": "x"}),
                ("b", "SET_VARIABLE", {"variableName": "x"}),
                ("lost", "HTTP_REQUEST", {}),
            ],
            [("t", "a"), ("a", "b")],
        )

        report = validate_workflow(workflow)

        assert report.is_valid
        assert sorted(_codes(report.warnings)) == ["duplicate_variable", "unreachable_node"]
