"""Tests for the tool catalog, argument parsing and dispatch."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from travel_agent.errors import ApiError, TransportError
from travel_agent.tools.arguments import (
    ListSalesArgs,
    UpdatePersonArgs,
    parameter_spec,
    parse_arguments,
)
from travel_agent.tools.registry import TOOL_CATALOG, ToolRegistry


def _adapter(**methods) -> MagicMock:
    adapter = MagicMock()
    for name, result in methods.items():
        setattr(adapter, name, AsyncMock(return_value=result))
    return adapter


@pytest.fixture
def adapters():
    return {
        "people": _adapter(list=[{"id": "1", "name": "João Silva"}], create={"id": "9"}, update={"id": "1"}),
        "tasks": _adapter(list=[], create={"id": "5"}, history=[{"id": "h1"}]),
        "cities": _adapter(list=[{"id": "3", "name": "Recife"}]),
        "sales": _adapter(list=[{"Reserva": "RES-003"}], aclose=None),
    }


@pytest.fixture
def registry(adapters):
    return ToolRegistry(**adapters)


# ── Tests: catalog ──────────────────────────────────────────────────


class TestSchema:
    def test_catalog_order(self):
        names = [tool["name"] for tool in ToolRegistry.schema()]
        assert names == [
            "list_people",
            "create_person",
            "update_person",
            "list_tasks",
            "create_task",
            "get_task_history",
            "list_cities",
            "list_sales",
        ]

    def test_every_entry_is_a_function_declaration(self):
        for tool in ToolRegistry.schema():
            assert tool["description"]
            assert tool["parameters"]["type"] == "object"
            assert "tool" not in tool["parameters"]["properties"]

    def test_required_fields(self):
        by_name = {tool["name"]: tool["parameters"] for tool in ToolRegistry.schema()}
        assert by_name["create_person"]["required"] == ["name"]
        assert by_name["update_person"]["required"] == ["id"]
        assert by_name["create_task"]["required"] == ["description"]
        assert by_name["get_task_history"]["required"] == ["task_id"]
        assert "required" not in by_name["list_people"]
        assert "required" not in by_name["list_sales"]

    def test_optional_strings_are_advertised_as_strings(self):
        spec = parameter_spec(ListSalesArgs)
        assert set(spec["properties"]) == {
            "passenger_name", "departure_date", "provider", "reservation_id",
        }
        assert all(prop["type"] == "string" for prop in spec["properties"].values())

    def test_catalog_matches_handlers(self, registry):
        assert {d.name for d in TOOL_CATALOG} == set(registry._handlers)


# ── Tests: argument parsing ─────────────────────────────────────────


class TestParseArguments:
    def test_returns_the_typed_variant(self):
        args = parse_arguments("update_person", {"id": "12", "phone": "11999990000"})
        assert isinstance(args, UpdatePersonArgs)
        assert args.id == "12"
        assert args.email is None

    def test_extra_keys_are_ignored(self):
        args = parse_arguments("list_sales", {"provider": "CVC", "verbose": True})
        assert args.provider == "CVC"

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            parse_arguments("create_person", {"email": "a@b.com"})

    def test_unknown_tool_name(self):
        with pytest.raises(ValidationError):
            parse_arguments("book_flight", {})


# ── Tests: dispatch ─────────────────────────────────────────────────


class TestDispatch:
    def test_list_people_with_search(self, registry, adapters):
        result = asyncio.run(registry.dispatch("list_people", {"search": "Silva"}))
        assert result == [{"id": "1", "name": "João Silva"}]
        adapters["people"].list.assert_awaited_once_with("Silva")

    def test_list_people_without_arguments(self, registry, adapters):
        asyncio.run(registry.dispatch("list_people", None))
        adapters["people"].list.assert_awaited_once_with(None)

    def test_update_person_routes_id_and_attributes(self, registry, adapters):
        asyncio.run(registry.dispatch("update_person", {"id": "1", "email": "novo@ex.com"}))
        adapters["people"].update.assert_awaited_once_with(
            "1", {"email": "novo@ex.com", "phone": None},
        )

    def test_create_task(self, registry, adapters):
        result = asyncio.run(
            registry.dispatch("create_task", {"description": "Emitir voucher", "due_date": "2025-01-10"})
        )
        assert result == {"id": "5"}
        adapters["tasks"].create.assert_awaited_once_with(
            {"description": "Emitir voucher", "due_date": "2025-01-10"}
        )

    def test_task_history(self, registry, adapters):
        asyncio.run(registry.dispatch("get_task_history", {"task_id": "77"}))
        adapters["tasks"].history.assert_awaited_once_with("77")

    def test_list_cities(self, registry, adapters):
        asyncio.run(registry.dispatch("list_cities", {"name": "Recife"}))
        adapters["cities"].list.assert_awaited_once_with("Recife")

    def test_list_sales_passes_filters_by_name(self, registry, adapters):
        result = asyncio.run(registry.dispatch("list_sales", {"provider": "CVC"}))
        assert result == [{"Reserva": "RES-003"}]
        adapters["sales"].list.assert_awaited_once_with(
            passenger_name=None, departure_date=None, provider="CVC", reservation_id=None,
        )

    def test_unknown_tool_is_reported_as_data(self, registry):
        assert asyncio.run(registry.dispatch("foo", {})) == {"error": "Unknown tool: foo"}

    def test_invalid_arguments_are_reported_as_data(self, registry, adapters):
        result = asyncio.run(registry.dispatch("create_person", {}))
        assert result["error"].startswith("Invalid arguments for create_person")
        assert "name" in result["error"]
        adapters["people"].create.assert_not_awaited()

    def test_api_errors_are_reported_as_data(self, registry, adapters):
        adapters["people"].list.side_effect = ApiError(422, "unprocessable")
        result = asyncio.run(registry.dispatch("list_people", {}))
        assert result == {"error": "Monde API error 422: unprocessable"}

    def test_transport_errors_are_reported_as_data(self, registry, adapters):
        adapters["tasks"].list.side_effect = TransportError("connection reset")
        assert asyncio.run(registry.dispatch("list_tasks", {})) == {"error": "connection reset"}

    def test_blank_error_messages_get_a_generic_text(self, registry, adapters):
        adapters["cities"].list.side_effect = RuntimeError()
        result = asyncio.run(registry.dispatch("list_cities", {}))
        assert result == {"error": "Failed to execute operation on Monde API."}


def test_aclose_closes_the_sales_client(registry, adapters):
    asyncio.run(registry.aclose())
    adapters["sales"].aclose.assert_awaited_once()
