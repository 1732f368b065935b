"""Operations tables of the action configuration popup.

The builder turns the popup's data into a plain `OperationsTable` description
(headers, rows, footer); `partials/operations_table.html` turns that into markup.

Input data comes in two equivalent shapes:

- ``{"table": ..., "operations": {...}, "eventsource": ..., "esc_period": ...}``
- ``{"table": ..., "action": {"operations": ..., "recovery_operations": ...,
  "update_operations": ..., "esc_period": ...}, "eventsource": ...}``

Both accept an optional ``actionid``. Operation collections are either a mapping
keyed by operation id or a list (the index is then the id).
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from watchpost_core.escalation import count_operations_delay
from watchpost_core.timeunits import convert_units_uptime, parse_simple_interval

EVENT_SOURCE_TRIGGERS = 0
EVENT_SOURCE_DISCOVERY = 1
EVENT_SOURCE_AUTOREGISTRATION = 2
EVENT_SOURCE_INTERNAL = 3
EVENT_SOURCE_SERVICE = 4

ESCALATING_EVENT_SOURCES = frozenset(
    {EVENT_SOURCE_TRIGGERS, EVENT_SOURCE_INTERNAL, EVENT_SOURCE_SERVICE}
)

ACTION_OPERATION = 0
ACTION_RECOVERY_OPERATION = 1
ACTION_UPDATE_OPERATION = 2

OPERATION_TYPE_MESSAGE = 0
OPERATION_TYPE_COMMAND = 1

TableKind = Literal["operation", "recovery", "update"]


@dataclass(frozen=True)
class _TableLayout:
    table_id: str
    operationtype: int
    action_key: str
    input_prefix: str
    add_class: str
    row_prefix: str | None


TABLE_LAYOUTS: dict[str, _TableLayout] = {
    "operation": _TableLayout(
        table_id="operation-table",
        operationtype=ACTION_OPERATION,
        action_key="operations",
        input_prefix="operations",
        add_class="js-operation-details",
        row_prefix=None,
    ),
    "recovery": _TableLayout(
        table_id="recovery-table",
        operationtype=ACTION_RECOVERY_OPERATION,
        action_key="recovery_operations",
        input_prefix="recovery_operations",
        add_class="js-recovery-operations-create",
        row_prefix="recovery_operations_",
    ),
    "update": _TableLayout(
        table_id="update-table",
        operationtype=ACTION_UPDATE_OPERATION,
        action_key="update_operations",
        input_prefix="update_operations",
        add_class="js-update-operations-create",
        row_prefix="update_operations_",
    ),
}


class OperationsSourceError(ValueError):
    """The popup data does not describe an operations table."""


class OperationMessage(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    mediatypeid: str = "0"
    message: str = ""
    subject: str = ""
    default_msg: str = "1"


class OperationDetails(BaseModel):
    """Pre-formatted description of an operation, supplied by the caller."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    type: list[str] = Field(default_factory=list)
    data: list[list[str]] = Field(default_factory=list)

    @property
    def label(self) -> str:
        return self.type[0] if self.type else ""

    @property
    def text(self) -> str:
        return " ".join(self.data[0]) if self.data else ""


class Operation(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    operationid: str | None = None
    operationtype: int = OPERATION_TYPE_MESSAGE
    esc_step_from: int = 1
    esc_step_to: int = 1
    esc_period: str = "0"
    evaltype: int = 0
    eventsource: int | None = None
    opconditions: list[dict[str, Any]] = Field(default_factory=list)
    opmessage: OperationMessage | None = None
    opcommand_grp: list[dict[str, Any]] | None = None
    opcommand_hst: list[dict[str, Any]] | None = None
    details: OperationDetails = Field(default_factory=OperationDetails)

    def payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def normalize_operation(raw: Mapping[str, Any], table: TableKind) -> Operation:
    """Build an operation record with the defaults its table needs."""

    if not isinstance(raw, Mapping):
        raise OperationsSourceError(f"operation must be an object, got {type(raw).__name__}")
    try:
        operation = Operation.model_validate(dict(raw))
    except ValidationError as exc:
        raise OperationsSourceError(f"invalid operation: {exc.error_count()} error(s)") from exc
    if operation.opmessage is None and (
        table == "recovery" or operation.operationtype == OPERATION_TYPE_MESSAGE
    ):
        operation = operation.model_copy(update={"opmessage": OperationMessage()})
    return operation


def _keyed(collection: Any) -> list[tuple[Any, Mapping[str, Any]]]:
    if not collection:
        return []
    if isinstance(collection, Mapping):
        return list(collection.items())
    if isinstance(collection, list):
        return list(enumerate(collection))
    raise OperationsSourceError("operations must be a mapping or a list")


@dataclass(frozen=True)
class DirectOperations:
    """Operations passed next to the table kind."""

    operations: Any
    eventsource: int | None
    esc_period: str | int | None = None

    def collection(self, table: str) -> list[tuple[Any, Mapping[str, Any]]]:
        return _keyed(self.operations)

    @property
    def default_period(self) -> str | int | None:
        return self.esc_period


@dataclass(frozen=True)
class ActionOperations:
    """Operations nested in an enclosing action record."""

    action: Mapping[str, Any]
    eventsource: int | None

    def collection(self, table: str) -> list[tuple[Any, Mapping[str, Any]]]:
        return _keyed(self.action.get(TABLE_LAYOUTS[table].action_key))

    @property
    def default_period(self) -> str | int | None:
        return self.action.get("esc_period")


OperationsSource = DirectOperations | ActionOperations


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise OperationsSourceError(f"invalid event source: {value!r}") from exc


def resolve_source(data: Mapping[str, Any]) -> OperationsSource:
    eventsource = _optional_int(data.get("eventsource"))
    action = data.get("action")
    if action is not None:
        if not isinstance(action, Mapping):
            raise OperationsSourceError("action must be an object")
        return ActionOperations(action=action, eventsource=eventsource)
    return DirectOperations(
        operations=data.get("operations"),
        eventsource=eventsource,
        esc_period=data.get("esc_period"),
    )


def _resolve_eventsource(
    table: str, source: OperationsSource, operations: list[tuple[Any, Operation]]
) -> int:
    first = operations[0][1].eventsource if operations else None

    # Directly supplied operations carry their own event source in the main table;
    # elsewhere the popup's event source wins.
    if table == "operation" and isinstance(source, DirectOperations):
        eventsource = first if first is not None else source.eventsource
    else:
        eventsource = source.eventsource if source.eventsource is not None else first

    if eventsource is None:
        raise OperationsSourceError("event source is required for an empty operations table")
    return eventsource


def form_vars(name: str, value: Any) -> list[tuple[str, str]]:
    """Flatten a value into hidden form inputs: name[key][subkey] = scalar."""

    if value is None:
        return []
    if isinstance(value, Mapping):
        out: list[tuple[str, str]] = []
        for key, item in value.items():
            out.extend(form_vars(f"{name}[{key}]", item))
        return out
    if isinstance(value, list | tuple):
        out = []
        for index, item in enumerate(value):
            out.extend(form_vars(f"{name}[{index}]", item))
        return out
    if isinstance(value, bool):
        return [(name, "1" if value else "0")]
    return [(name, str(value))]


def escalation_steps_text(step_from: int, step_to: int) -> str:
    step_from = max(step_from, 1)
    if step_to == 0 or step_to == step_from:
        return str(step_from)
    return f"{step_from} - {step_to}"


def escalation_period_text(esc_period: str) -> str:
    if parse_simple_interval(esc_period) == 0:
        return "Default"
    return esc_period


def escalation_delay_text(delay: int | None) -> str:
    if delay is None:
        return "Unknown"
    if delay == 0:
        return "Immediately"
    return convert_units_uptime(delay)


@dataclass(frozen=True)
class OperationRow:
    operationid: Any
    details_label: str
    details_text: str
    edit_payload: str
    hidden_inputs: list[tuple[str, str]] = field(default_factory=list)
    row_id: str | None = None
    steps: str | None = None
    start_in: str | None = None
    duration: str | None = None


@dataclass(frozen=True)
class AddButton:
    actionid: Any
    eventsource: int
    operationtype: int
    css_class: str
    colspan: int


@dataclass(frozen=True)
class OperationsTable:
    table: TableKind
    table_id: str
    headers: list[str]
    rows: list[OperationRow]
    footer: AddButton

    @property
    def with_escalation(self) -> bool:
        return "Steps" in self.headers


def _popup_payload(operationid: Any, operation: Operation) -> dict[str, Any]:
    payload = {**operation.payload(), "id": operationid}
    for key, id_field in (("opcommand_grp", "groupid"), ("opcommand_hst", "hostid")):
        if key in payload:
            payload[key] = [item.get(id_field) for item in payload[key]]
    return payload


def build_operations_table(data: Mapping[str, Any]) -> OperationsTable:
    table = data.get("table")
    if table not in TABLE_LAYOUTS:
        raise OperationsSourceError(f"unknown operations table: {table!r}")
    layout = TABLE_LAYOUTS[table]

    source = resolve_source(data)
    operations = [(key, normalize_operation(raw, table)) for key, raw in source.collection(table)]
    eventsource = _resolve_eventsource(table, source, operations)
    actionid = data.get("actionid", 0)

    escalating = table == "operation" and eventsource in ESCALATING_EVENT_SOURCES
    if escalating:
        headers = ["Steps", "Details", "Start in", "Duration", "Action"]
        delays = count_operations_delay([op for _, op in operations], source.default_period)
    else:
        headers = ["Details", "Action"]
        delays = {}

    rows: list[OperationRow] = []
    for operationid, operation in operations:
        extra: dict[str, Any] = {}
        if escalating:
            operation = operation.model_copy(
                update={"esc_step_from": max(operation.esc_step_from, 1)}
            )
            extra = {
                "steps": escalation_steps_text(operation.esc_step_from, operation.esc_step_to),
                "start_in": escalation_delay_text(delays.get(operation.esc_step_from)),
                "duration": escalation_period_text(operation.esc_period),
            }

        payload = operation.payload()
        hidden_inputs = form_vars(f"{layout.input_prefix}[{operationid}]", payload)
        if table == "update":
            hidden_inputs.append(
                (
                    f"operations_for_popup[{ACTION_UPDATE_OPERATION}][{operationid}]",
                    json.dumps(_popup_payload(operationid, operation)),
                )
            )

        rows.append(
            OperationRow(
                operationid=operationid,
                row_id=f"{layout.row_prefix}{operationid}" if layout.row_prefix else None,
                details_label=operation.details.label,
                details_text=operation.details.text,
                edit_payload=json.dumps(
                    {
                        "operationid": operationid,
                        "actionid": actionid,
                        "eventsource": eventsource,
                        "operationtype": layout.operationtype,
                        "data": payload,
                    }
                ),
                hidden_inputs=hidden_inputs,
                **extra,
            )
        )

    return OperationsTable(
        table=table,
        table_id=layout.table_id,
        headers=headers,
        rows=rows,
        footer=AddButton(
            actionid=actionid,
            eventsource=eventsource,
            operationtype=layout.operationtype,
            css_class=layout.add_class,
            colspan=len(headers),
        ),
    )
