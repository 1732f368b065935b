from __future__ import annotations

import html
import json
import re
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from watchpost_core.app import create_app
from watchpost_core.ui.operations import (
    ActionOperations,
    DirectOperations,
    OperationsSourceError,
    build_operations_table,
    escalation_delay_text,
    escalation_period_text,
    escalation_steps_text,
    resolve_source,
)
from watchpost_core.ui.partials import render_operations_table


def _message_op(**overrides) -> dict:
    op = {
        "operationtype": 0,
        "esc_step_from": 1,
        "esc_step_to": 1,
        "esc_period": "0",
        "eventsource": 0,
        "opmessage": {"mediatypeid": "0", "default_msg": "1"},
        "details": {
            "type": ["Send message to users: "],
            "data": [["Admin (WatchPost Administrator)", "via all media"]],
        },
    }
    op.update(overrides)
    return op


def _rows(markup: str) -> list[str]:
    body = markup.split("<tbody>", 1)[1].split("</tbody>", 1)[0]
    return re.findall(r"<tr[ >]", body)


@pytest.mark.parametrize(
    ("step_from", "step_to", "expected"),
    [(3, 3, "3"), (2, 5, "2 - 5"), (1, 0, "1"), (0, 4, "1 - 4")],
)
def test_escalation_steps_text(step_from: int, step_to: int, expected: str) -> None:
    assert escalation_steps_text(step_from, step_to) == expected


def test_escalation_delay_text() -> None:
    assert escalation_delay_text(None) == "Unknown"
    assert escalation_delay_text(0) == "Immediately"
    assert escalation_delay_text(125) == "00:02:05"


def test_escalation_period_text() -> None:
    assert escalation_period_text("0") == "Default"
    assert escalation_period_text("0m") == "Default"
    assert escalation_period_text("30m") == "30m"
    assert escalation_period_text("{$PERIOD}") == "{$PERIOD}"


def test_resolve_source_picks_shape() -> None:
    assert isinstance(resolve_source({"operations": []}), DirectOperations)
    assert isinstance(resolve_source({"action": {"operations": []}}), ActionOperations)

    with pytest.raises(OperationsSourceError):
        resolve_source({"action": "nope"})


def test_trigger_operations_get_escalation_columns() -> None:
    table = build_operations_table(
        {
            "table": "operation",
            "actionid": 12,
            "esc_period": "1h",
            "operations": {
                "7": _message_op(),
                "8": _message_op(esc_step_from=2, esc_step_to=5, esc_period="10m"),
            },
        }
    )

    assert table.headers == ["Steps", "Details", "Start in", "Duration", "Action"]
    assert table.footer.colspan == 5
    assert table.footer.actionid == 12
    assert table.footer.css_class == "js-operation-details"

    first, second = table.rows
    assert (first.steps, first.start_in, first.duration) == ("1", "Immediately", "Default")
    assert (second.steps, second.start_in, second.duration) == ("2 - 5", "01:00:00", "10m")
    assert first.details_label == "Send message to users: "
    assert first.details_text == "Admin (WatchPost Administrator) via all media"
    assert first.row_id is None


def test_discovery_operations_use_two_columns() -> None:
    table = build_operations_table(
        {"table": "operation", "operations": [_message_op(eventsource=1)], "eventsource": 1}
    )
    assert table.headers == ["Details", "Action"]
    assert table.footer.colspan == 2
    assert table.rows[0].steps is None


def test_direct_and_nested_shapes_are_equivalent() -> None:
    operations = {"3": _message_op(), "4": _message_op(esc_step_from=2, esc_step_to=2)}
    recovery = [{"operationtype": 0, "details": {"type": ["Notify all involved"]}}]

    for table in ("operation", "recovery", "update"):
        direct_ops = {"operation": operations, "recovery": recovery, "update": recovery}[table]
        direct = build_operations_table(
            {
                "table": table,
                "actionid": 5,
                "eventsource": 0,
                "esc_period": "1h",
                "operations": direct_ops,
            }
        )
        nested = build_operations_table(
            {
                "table": table,
                "actionid": 5,
                "eventsource": 0,
                "action": {
                    "esc_period": "1h",
                    "operations": operations,
                    "recovery_operations": recovery,
                    "update_operations": recovery,
                },
            }
        )
        assert direct == nested


def test_edit_payload_round_trip() -> None:
    table = build_operations_table(
        {"table": "operation", "actionid": 9, "operations": {"42": _message_op(eventsource=4)}}
    )
    payload = json.loads(table.rows[0].edit_payload)

    assert payload["operationid"] == "42"
    assert payload["actionid"] == 9
    assert payload["eventsource"] == 4
    assert payload["operationtype"] == 0
    assert payload["data"]["opmessage"]["default_msg"] == "1"
    assert payload["data"]["esc_step_from"] == 1


def test_recovery_defaults_are_filled_in() -> None:
    table = build_operations_table(
        {"table": "recovery", "eventsource": 0, "operations": [{"operationtype": 11}]}
    )
    row = table.rows[0]
    payload = json.loads(row.edit_payload)

    assert payload["operationtype"] == 1
    assert payload["data"]["opconditions"] == []
    assert payload["data"]["opmessage"] == {
        "mediatypeid": "0",
        "message": "",
        "subject": "",
        "default_msg": "1",
    }
    assert row.row_id == "recovery_operations_0"
    assert ("recovery_operations[0][opmessage][default_msg]", "1") in row.hidden_inputs


def test_update_rows_carry_popup_snapshot() -> None:
    table = build_operations_table(
        {
            "table": "update",
            "eventsource": 0,
            "operations": [
                {"operationtype": 1, "opcommand_hst": [{"hostid": "10084"}], "opcommand_grp": []}
            ],
        }
    )
    hidden = dict(table.rows[0].hidden_inputs)
    snapshot = json.loads(hidden["operations_for_popup[2][0]"])

    assert snapshot["id"] == 0
    assert snapshot["opcommand_hst"] == ["10084"]
    assert snapshot["opcommand_grp"] == []
    assert "opmessage" not in snapshot
    assert table.footer.css_class == "js-update-operations-create"
    assert table.footer.operationtype == 2


@pytest.mark.parametrize("table", ["operation", "recovery", "update"])
def test_empty_collection_renders_header_and_footer_only(table: str) -> None:
    markup = render_operations_table({"table": table, "eventsource": 0, "operations": []})

    assert "<thead>" in markup
    assert "<tfoot>" in markup
    assert ">Add</button>" in markup
    assert _rows(markup) == []


def test_empty_operation_table_needs_an_event_source() -> None:
    with pytest.raises(OperationsSourceError):
        build_operations_table({"table": "operation", "operations": {}})


def test_unknown_table_is_rejected() -> None:
    with pytest.raises(OperationsSourceError):
        build_operations_table({"table": "escalation", "operations": []})


def test_rendered_edit_button_carries_payload() -> None:
    markup = render_operations_table(
        {"table": "operation", "actionid": 3, "operations": {"17": _message_op()}}
    )

    assert len(_rows(markup)) == 1
    assert "<b>Send message to users: </b>" in markup

    match = re.search(r'data_operation="([^"]*)"', markup)
    assert match is not None
    payload = json.loads(html.unescape(match.group(1)))
    assert (payload["operationid"], payload["eventsource"], payload["operationtype"]) == ("17", 0, 0)
    assert 'data_operationid="17"' in markup
    assert 'data-actionid="3"' in markup


def test_route_renders_table(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("WATCHPOST_HOME", str(tmp_path))

    with TestClient(create_app()) as client:
        headers = {"X-WatchPost-Token": client.app.state.watchpost_config.auth.install_token}

        ok = client.post(
            "/ui/action/operations",
            json={"table": "recovery", "eventsource": 0, "operations": []},
            headers=headers,
        )
        assert ok.status_code == 200
        assert 'id="recovery-table"' in ok.text

        bad = client.post(
            "/ui/action/operations", json={"table": "operation", "operations": []}, headers=headers
        )
        assert bad.status_code == 400

        for body in (
            {"table": "recovery", "eventsource": 0, "operations": [{"esc_step_from": "abc"}]},
            {"table": "recovery", "eventsource": 0, "operations": [{"details": {"type": "x"}}]},
            {"table": "recovery", "eventsource": 0, "operations": ["oops"]},
        ):
            malformed = client.post("/ui/action/operations", json=body, headers=headers)
            assert malformed.status_code == 400
            assert malformed.json()["error"]["code"] == "client_error"

        guest = client.post(
            "/ui/action/operations", json={"table": "recovery", "eventsource": 0}
        )
        assert guest.status_code == 403


@pytest.mark.parametrize(
    "raw",
    [{"esc_step_from": "abc"}, {"details": {"type": "x"}}, "oops"],
)
def test_malformed_operation_is_a_source_error(raw) -> None:
    with pytest.raises(OperationsSourceError):
        build_operations_table({"table": "recovery", "eventsource": 0, "operations": [raw]})
