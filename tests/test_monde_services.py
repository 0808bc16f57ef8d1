"""Tests for the people / tasks / cities adapters."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, call

from travel_agent.errors import ApiError, TransportError
from travel_agent.services.monde import (
    CitiesService,
    PeopleService,
    TasksService,
    build_envelope,
    flatten_collection,
)


def _fake_client(**responses) -> MagicMock:
    client = MagicMock()
    for method in ("get", "post", "patch"):
        setattr(client, method, AsyncMock(return_value=responses.get(method, {"data": []})))
    return client


def _people_page(*names: str) -> dict:
    return {
        "data": [
            {"id": str(i), "type": "people", "attributes": {"name": name}}
            for i, name in enumerate(names, start=1)
        ]
    }


class TestEnvelopes:
    def test_build_envelope_without_id(self):
        assert build_envelope("tasks", {"description": "Ligar"}) == {
            "data": {"type": "tasks", "attributes": {"description": "Ligar"}}
        }

    def test_build_envelope_with_id(self):
        envelope = build_envelope("people", {"phone": "1"}, resource_id="42")
        assert envelope["data"]["id"] == "42"

    def test_flatten_collection_merges_id_and_attributes(self):
        flat = flatten_collection({"data": [{"id": "7", "attributes": {"name": "Recife"}}]})
        assert flat == [{"id": "7", "name": "Recife"}]

    def test_flatten_collection_handles_missing_data(self):
        assert flatten_collection({}) == []


class TestPeopleService:
    def test_search_is_sent_server_side(self):
        client = _fake_client(get=_people_page("João Silva"))
        people = asyncio.run(PeopleService(client).list("  Silva "))

        client.get.assert_awaited_once_with(
            "/people", params={"filter[search]": "Silva", "page[size]": 50},
        )
        assert people == [{"id": "1", "name": "João Silva"}]

    def test_search_results_are_not_refiltered_locally(self):
        # Server matched on e-mail; the name does not contain the term
        client = _fake_client(get=_people_page("Ana Souza"))
        people = asyncio.run(PeopleService(client).list("ana.s@example.com"))
        assert len(people) == 1

    def test_without_search_fetches_two_pages(self):
        client = _fake_client()
        client.get.side_effect = [_people_page("A", "B"), _people_page("C")]

        people = asyncio.run(PeopleService(client).list())

        assert [p["name"] for p in people] == ["A", "B", "C"]
        assert client.get.await_args_list == [
            call("/people", params={"page[size]": 50, "page[number]": 1}),
            call("/people", params={"page[size]": 50, "page[number]": 2}),
        ]

    def test_falls_back_to_first_page_when_paging_fails(self):
        client = _fake_client()
        client.get.side_effect = [
            _people_page("A"),
            ApiError(400, "page too large"),
            _people_page("A", "B"),
        ]

        people = asyncio.run(PeopleService(client).list())

        assert [p["name"] for p in people] == ["A", "B"]
        assert client.get.await_args_list[-1] == call("/people", params={"page[size]": 50})

    def test_falls_back_to_first_page_on_transport_failure(self):
        client = _fake_client()
        client.get.side_effect = [
            _people_page("A"),
            TransportError("connection reset"),
            _people_page("A"),
        ]

        people = asyncio.run(PeopleService(client).list())

        assert [p["name"] for p in people] == ["A"]
        assert client.get.await_count == 3

    def test_create_wraps_attributes_and_drops_none(self):
        created = {"data": {"id": "10", "type": "people", "attributes": {"name": "Ana"}}}
        client = _fake_client(post=created)

        person = asyncio.run(PeopleService(client).create({"name": "Ana", "email": None}))

        client.post.assert_awaited_once_with(
            "/people", {"data": {"type": "people", "attributes": {"name": "Ana"}}},
        )
        assert person == {"id": "10", "name": "Ana"}

    def test_update_sends_id_in_path_and_envelope(self):
        updated = {"data": {"id": "10", "type": "people", "attributes": {"phone": "119"}}}
        client = _fake_client(patch=updated)

        person = asyncio.run(PeopleService(client).update("10", {"phone": "119", "email": None}))

        client.patch.assert_awaited_once_with(
            "/people/10",
            {"data": {"type": "people", "id": "10", "attributes": {"phone": "119"}}},
        )
        assert person["phone"] == "119"

    def test_update_with_no_content_returns_id(self):
        client = _fake_client(patch={})
        assert asyncio.run(PeopleService(client).update("10", {"phone": "1"})) == {"id": "10"}


class TestTasksService:
    def test_list(self):
        client = _fake_client(get={"data": [{"id": "t1", "attributes": {"description": "Ligar"}}]})
        assert asyncio.run(TasksService(client).list()) == [{"id": "t1", "description": "Ligar"}]
        client.get.assert_awaited_once_with("/tasks")

    def test_create(self):
        created = {"data": {"id": "t2", "attributes": {"description": "Emitir voucher"}}}
        client = _fake_client(post=created)

        task = asyncio.run(
            TasksService(client).create({"description": "Emitir voucher", "due_date": "2026-11-01"})
        )

        envelope = client.post.await_args.args[1]
        assert envelope["data"]["type"] == "tasks"
        assert envelope["data"]["attributes"]["due_date"] == "2026-11-01"
        assert task["id"] == "t2"

    def test_history_filters_by_task(self):
        client = _fake_client()
        asyncio.run(TasksService(client).history("t1"))
        client.get.assert_awaited_once_with("/task-historics", params={"filter[task_id]": "t1"})


class TestCitiesService:
    def test_filter_by_name(self):
        client = _fake_client()
        asyncio.run(CitiesService(client).list("Natal"))
        client.get.assert_awaited_once_with("/cities", params={"filter[name]": "Natal"})

    def test_no_filter(self):
        client = _fake_client()
        asyncio.run(CitiesService(client).list())
        client.get.assert_awaited_once_with("/cities", params=None)
