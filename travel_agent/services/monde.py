"""Typed adapters over the Monde resources the agent works with.

Each adapter builds JSON:API request envelopes
(``{"data": {"type", "id"?, "attributes"}}``) and flattens responses into
plain dicts: the resource attributes plus its ``id``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from travel_agent.errors import ApiError, TransportError
from travel_agent.services.monde_client import MondeClient

logger = logging.getLogger(__name__)

# The API caps page[size] at 50
PAGE_SIZE = 50
PEOPLE_PAGES = 2

Record = dict[str, Any]


def build_envelope(
    resource_type: str,
    attributes: dict[str, Any],
    resource_id: str | None = None,
) -> dict[str, Any]:
    """Wrap *attributes* in a JSON:API request envelope."""
    data: dict[str, Any] = {"type": resource_type, "attributes": attributes}
    if resource_id is not None:
        data["id"] = resource_id
    return {"data": data}


def flatten_resource(resource: dict[str, Any]) -> Record:
    """``{"id": 1, "attributes": {...}}`` → ``{"id": 1, ...attributes}``."""
    return {"id": resource.get("id"), **(resource.get("attributes") or {})}


def flatten_collection(document: dict[str, Any]) -> list[Record]:
    return [flatten_resource(item) for item in document.get("data") or []]


def _drop_none(attributes: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in attributes.items() if value is not None}


class PeopleService:
    """Customers (``/people``)."""

    def __init__(self, client: MondeClient):
        self._client = client

    async def list(self, search: str | None = None) -> list[Record]:
        """List people, optionally narrowed by a server-side search term.

        Without a term the first two pages are fetched concurrently; if that
        fails the first page alone is retried.
        """
        if search and search.strip():
            document = await self._client.get(
                "/people",
                params={"filter[search]": search.strip(), "page[size]": PAGE_SIZE},
            )
            return flatten_collection(document)

        try:
            documents = await asyncio.gather(
                *(
                    self._client.get(
                        "/people", params={"page[size]": PAGE_SIZE, "page[number]": page},
                    )
                    for page in range(1, PEOPLE_PAGES + 1)
                )
            )
        except (ApiError, TransportError) as exc:
            logger.warning("Multi-page people fetch failed (%s), retrying first page", exc)
            documents = [await self._client.get("/people", params={"page[size]": PAGE_SIZE})]

        people: list[Record] = []
        for document in documents:
            people.extend(flatten_collection(document))
        return people

    async def create(self, attributes: dict[str, Any]) -> Record:
        document = await self._client.post("/people", build_envelope("people", _drop_none(attributes)))
        return flatten_resource(document["data"])

    async def update(self, person_id: str, attributes: dict[str, Any]) -> Record:
        document = await self._client.patch(
            f"/people/{person_id}",
            build_envelope("people", _drop_none(attributes), resource_id=person_id),
        )
        if not document:
            return {"id": person_id}
        return flatten_resource(document["data"])


class TasksService:
    """Tasks (``/tasks``) and their history (``/task-historics``)."""

    def __init__(self, client: MondeClient):
        self._client = client

    async def list(self) -> list[Record]:
        return flatten_collection(await self._client.get("/tasks"))

    async def create(self, attributes: dict[str, Any]) -> Record:
        document = await self._client.post("/tasks", build_envelope("tasks", _drop_none(attributes)))
        return flatten_resource(document["data"])

    async def history(self, task_id: str) -> list[Record]:
        document = await self._client.get(
            "/task-historics", params={"filter[task_id]": task_id},
        )
        return flatten_collection(document)


class CitiesService:
    """Cities (``/cities``), read-only."""

    def __init__(self, client: MondeClient):
        self._client = client

    async def list(self, name: str | None = None) -> list[Record]:
        params = {"filter[name]": name} if name else None
        return flatten_collection(await self._client.get("/cities", params=params))
