"""Tool catalog and dispatcher.

``ToolRegistry.schema()`` is what gets bound to the model;
``ToolRegistry.dispatch()`` routes one function call to the right adapter.

``dispatch`` never raises: whatever goes wrong (unknown tool, bad
arguments, Monde/transport errors) comes back as ``{"error": "<message>"}``
so the model can explain the failure instead of the turn crashing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from travel_agent.errors import ToolExecutionError
from travel_agent.services.monde import CitiesService, PeopleService, TasksService
from travel_agent.services.monde_client import MondeClient, get_monde_client
from travel_agent.services.sales import SalesService
from travel_agent.tools.arguments import (
    CreatePersonArgs,
    CreateTaskArgs,
    GetTaskHistoryArgs,
    ListCitiesArgs,
    ListPeopleArgs,
    ListSalesArgs,
    ListTasksArgs,
    UpdatePersonArgs,
    parameter_spec,
    parse_arguments,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    arguments: type


TOOL_CATALOG: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        "list_people",
        "Lists customers/people from the Monde database. Can search by name.",
        ListPeopleArgs,
    ),
    ToolDefinition(
        "create_person",
        "Creates a new customer/person in the Monde database.",
        CreatePersonArgs,
    ),
    ToolDefinition(
        "update_person",
        "Updates the e-mail and/or phone of an existing person. Look the person up first to get the ID.",
        UpdatePersonArgs,
    ),
    ToolDefinition(
        "list_tasks",
        "Lists pending tasks from the Monde system.",
        ListTasksArgs,
    ),
    ToolDefinition(
        "create_task",
        "Creates a new task in the Monde system.",
        CreateTaskArgs,
    ),
    ToolDefinition(
        "get_task_history",
        "Lists the history entries (follow-ups, status changes) of a task.",
        GetTaskHistoryArgs,
    ),
    ToolDefinition(
        "list_cities",
        "Lists cities registered in Monde, for travel references.",
        ListCitiesArgs,
    ),
    ToolDefinition(
        "list_sales",
        "Lista vendas, passageiros e reservas. Use para buscar informações sobre "
        "viagens, passageiros, fornecedores e datas de ida.",
        ListSalesArgs,
    ),
)


def _describe_validation_error(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


class ToolRegistry:
    """Maps tool names to adapter calls."""

    def __init__(
        self,
        people: PeopleService,
        tasks: TasksService,
        cities: CitiesService,
        sales: SalesService,
    ):
        self._people = people
        self._tasks = tasks
        self._cities = cities
        self._sales = sales
        self._handlers = {
            "list_people": self._list_people,
            "create_person": self._create_person,
            "update_person": self._update_person,
            "list_tasks": self._list_tasks,
            "create_task": self._create_task,
            "get_task_history": self._get_task_history,
            "list_cities": self._list_cities,
            "list_sales": self._list_sales,
        }

    async def aclose(self) -> None:
        await self._sales.aclose()

    @staticmethod
    def schema() -> list[dict[str, Any]]:
        """Function declarations in catalog order."""
        return [
            {
                "name": definition.name,
                "description": definition.description,
                "parameters": parameter_spec(definition.arguments),
            }
            for definition in TOOL_CATALOG
        ]

    async def dispatch(self, name: str, arguments: dict[str, Any] | None) -> Any:
        """Run tool *name*; failures come back as ``{"error": message}``."""
        logger.info("Executing tool %s with %s", name, arguments)
        try:
            handler = self._handlers.get(name)
            if handler is None:
                raise ToolExecutionError(f"Unknown tool: {name}")
            try:
                args = parse_arguments(name, arguments)
            except ValidationError as exc:
                raise ToolExecutionError(
                    f"Invalid arguments for {name}: {_describe_validation_error(exc)}"
                ) from exc
            return await handler(args)
        except Exception as exc:
            logger.error("Tool execution failed for %s: %s", name, exc)
            return {"error": str(exc) or "Failed to execute operation on Monde API."}

    # ── Handlers ─────────────────────────────────────────────────────

    async def _list_people(self, args: ListPeopleArgs):
        return await self._people.list(args.search)

    async def _create_person(self, args: CreatePersonArgs):
        return await self._people.create({"name": args.name, "email": args.email, "phone": args.phone})

    async def _update_person(self, args: UpdatePersonArgs):
        return await self._people.update(args.id, {"email": args.email, "phone": args.phone})

    async def _list_tasks(self, args: ListTasksArgs):
        return await self._tasks.list()

    async def _create_task(self, args: CreateTaskArgs):
        return await self._tasks.create({"description": args.description, "due_date": args.due_date})

    async def _get_task_history(self, args: GetTaskHistoryArgs):
        return await self._tasks.history(args.task_id)

    async def _list_cities(self, args: ListCitiesArgs):
        return await self._cities.list(args.name)

    async def _list_sales(self, args: ListSalesArgs):
        return await self._sales.list(
            passenger_name=args.passenger_name,
            departure_date=args.departure_date,
            provider=args.provider,
            reservation_id=args.reservation_id,
        )


def build_registry(
    client: MondeClient | None = None,
    sales: SalesService | None = None,
) -> ToolRegistry:
    """Wire the adapters to the shared Monde client (or the ones given)."""
    client = client or get_monde_client()
    return ToolRegistry(
        people=PeopleService(client),
        tasks=TasksService(client),
        cities=CitiesService(client),
        sales=sales or SalesService(),
    )
