"""Typed arguments for every tool, as a tagged union keyed by tool name.

Each model's ``tool`` literal is the discriminator; the remaining fields are
the tool's parameters. ``parameter_spec`` derives the JSON schema advertised
to the model from the same class, so the catalog and the parsed types cannot
drift apart.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _ToolArgs(BaseModel):
    # The model sometimes sends extra keys; they are not ours to reject
    model_config = ConfigDict(extra="ignore")


class ListPeopleArgs(_ToolArgs):
    tool: Literal["list_people"] = "list_people"
    search: str | None = Field(
        None, description="Optional name, e-mail or document to search customers by."
    )


class CreatePersonArgs(_ToolArgs):
    tool: Literal["create_person"] = "create_person"
    name: str = Field(..., description="Full name of the person.")
    email: str | None = Field(None, description="E-mail address.")
    phone: str | None = Field(None, description="Phone number.")


class UpdatePersonArgs(_ToolArgs):
    tool: Literal["update_person"] = "update_person"
    id: str = Field(..., description="The ID of the person to update.")
    email: str | None = Field(None, description="New e-mail address.")
    phone: str | None = Field(None, description="New phone number.")


class ListTasksArgs(_ToolArgs):
    tool: Literal["list_tasks"] = "list_tasks"


class CreateTaskArgs(_ToolArgs):
    tool: Literal["create_task"] = "create_task"
    description: str = Field(..., description="Description of the task.")
    due_date: str | None = Field(None, description="Due date in YYYY-MM-DD format.")


class GetTaskHistoryArgs(_ToolArgs):
    tool: Literal["get_task_history"] = "get_task_history"
    task_id: str = Field(..., description="The ID of the task.")


class ListCitiesArgs(_ToolArgs):
    tool: Literal["list_cities"] = "list_cities"
    name: str | None = Field(None, description="Optional city name to look up.")


class ListSalesArgs(_ToolArgs):
    tool: Literal["list_sales"] = "list_sales"
    passenger_name: str | None = Field(
        None, description="Nome (ou parte do nome) do passageiro."
    )
    departure_date: str | None = Field(
        None, description="Data de ida, no formato DD/MM/AAAA."
    )
    provider: str | None = Field(None, description="Fornecedor (operadora, cia aérea, etc.).")
    reservation_id: str | None = Field(None, description="Código da reserva, ex. RES-001.")


ToolArguments = Annotated[
    Union[
        ListPeopleArgs,
        CreatePersonArgs,
        UpdatePersonArgs,
        ListTasksArgs,
        CreateTaskArgs,
        GetTaskHistoryArgs,
        ListCitiesArgs,
        ListSalesArgs,
    ],
    Field(discriminator="tool"),
]

_adapter: TypeAdapter[Any] = TypeAdapter(ToolArguments)


def parse_arguments(name: str, arguments: dict[str, Any] | None) -> _ToolArgs:
    """Parse raw model-supplied *arguments* for tool *name*.

    Raises ``pydantic.ValidationError`` for unknown names or bad fields.
    """
    return _adapter.validate_python({**(arguments or {}), "tool": name})


def parameter_spec(model: type[BaseModel]) -> dict[str, Any]:
    """Flatten *model*'s JSON schema into a function-calling parameter spec."""
    schema = model.model_json_schema()
    properties: dict[str, Any] = {}
    for field_name, prop in schema.get("properties", {}).items():
        if field_name == "tool":
            continue
        # ``str | None`` renders as anyOf[string, null]; advertise the non-null type
        variants = [v for v in prop.get("anyOf", [prop]) if v.get("type") != "null"]
        properties[field_name] = {
            "type": variants[0].get("type", "string") if variants else "string",
            "description": prop.get("description", ""),
        }
    required = [name for name in schema.get("required", []) if name != "tool"]
    spec: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        spec["required"] = required
    return spec
