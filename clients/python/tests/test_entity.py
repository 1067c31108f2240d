"""Tests for the entity-scoped query builder."""

import json

import httpx
import pytest

from apso import EntityClient, NotFoundError, QueryBuilder, ValidationError


def test_mutators_return_same_builder(client):
    entity = client.entity("users")

    assert entity.select(["id"]) is entity
    assert entity.where({"a": 1}).or_({"b": 2}).join(["c"]) is entity
    assert entity.order_by({"d": "ASC"}).limit(1).offset(0).page(1).cache() is entity


def test_entity_returns_fresh_builder(client):
    first = client.entity("users").where({"status": "active"})
    second = client.entity("users")

    assert isinstance(second, EntityClient)
    assert second.build().params.filter is None
    assert first.build().params.filter == {"status": "active"}


def test_where_merges_disjoint_keys():
    builder = QueryBuilder().where({"status": "active"}).where({"role": "admin"})
    assert builder.build().params.filter == {"status": "active", "role": "admin"}


def test_where_later_value_wins():
    builder = QueryBuilder().where({"status": "active", "role": "admin"}).where({"status": "banned"})
    assert builder.build().params.filter == {"status": "banned", "role": "admin"}


def test_other_mutators_replace():
    builder = QueryBuilder().or_({"a": 1}).or_({"b": 2}).join(["x"]).join(["y"])
    params = builder.build().params
    assert params.or_ == {"b": 2}
    assert params.join == ["y"]


def test_select_drops_duplicates():
    assert QueryBuilder().select(["id", "name", "id"]).build().params.fields == ["id", "name"]


def test_order_by_normalizes_direction():
    params = QueryBuilder().order_by({"created_at": "desc", "name": "Asc"}).build().params
    assert params.sort == {"created_at": "DESC", "name": "ASC"}


@pytest.mark.parametrize(
    "call",
    [
        lambda b: b.order_by({"name": "sideways"}),
        lambda b: b.limit(-1),
        lambda b: b.offset(-5),
        lambda b: b.page(0),
        lambda b: b.limit("10"),
        lambda b: b.cache(duration=-1),
    ],
)
def test_invalid_values_are_rejected(call):
    with pytest.raises(ValidationError):
        call(QueryBuilder())


def test_build_returns_copy():
    builder = QueryBuilder().where({"a": 1})
    built = builder.build()
    built.params.filter["b"] = 2
    assert builder.build().params.filter == {"a": 1}


def test_cache_settings():
    built = QueryBuilder().cache(duration=30).build()
    assert built.use_cache is True
    assert built.cache_duration == 30
    assert QueryBuilder().build().use_cache is False


@pytest.mark.asyncio
async def test_find_many_end_to_end(api, client):
    api.default_json = {"data": [{"id": 1}], "total": 1}

    result = await (
        client.entity("Product")
        .where({"status": "active"})
        .order_by({"created_at": "DESC"})
        .limit(10)
        .page(1)
        .find_many()
    )

    assert result == {"data": [{"id": 1}], "total": 1}
    assert len(api.requests) == 1
    request = api.last
    assert request.method == "GET"
    assert request.url.path == "/Product"
    assert request.url.params.get_list("filter") == ["status||$eq||active"]
    assert request.url.params.get_list("sort") == ["created_at,DESC"]
    assert request.url.params["limit"] == "10"
    assert request.url.params["page"] == "1"


@pytest.mark.asyncio
async def test_find_many_honors_cache(api, client):
    for _ in range(2):
        await client.entity("Product").where({"status": "active"}).cache(duration=30).find_many()

    assert len(api.requests) == 1


@pytest.mark.asyncio
async def test_find_one_by_id_is_point_lookup(api, client):
    api.default_json = {"id": "123", "name": "Hat"}

    result = await client.entity("Entity").where({"id": "123"}).find_one()

    assert result == {"id": "123", "name": "Hat"}
    assert api.last.url.path == "/Entity/123"
    assert "filter" not in api.last.url.params
    assert "limit" not in api.last.url.params


@pytest.mark.asyncio
async def test_find_one_by_id_keeps_other_params(api, client):
    entity = client.entity("Entity").select(["id", "name"]).join(["owner"]).where({"id": 7})

    await entity.cache().find_one()

    assert api.last.url.path == "/Entity/7"
    assert api.last.url.params["fields"] == "id,name"
    assert api.last.url.params["join"] == "owner"
    assert "filter" not in api.last.url.params
    assert "/Entity/7?fields=id,name&join=owner" in client.cache


@pytest.mark.asyncio
async def test_find_one_by_filter_uses_limited_list(api, client):
    api.default_json = [{"id": 1, "status": "active"}, {"id": 2, "status": "active"}]

    result = await client.entity("Entity").where({"status": "active"}).find_one()

    assert result == {"id": 1, "status": "active"}
    assert api.last.url.path == "/Entity"
    assert api.last.url.params.get_list("filter") == ["status||$eq||active"]
    assert api.last.url.params["limit"] == "1"


@pytest.mark.asyncio
async def test_find_one_unwraps_paginated_envelope(api, client):
    api.default_json = {"data": [{"id": 9}], "count": 1, "total": 40}

    assert await client.entity("Entity").where({"status": "active"}).find_one() == {"id": 9}


@pytest.mark.asyncio
async def test_find_one_with_id_and_other_filters_uses_list(api, client):
    api.default_json = []

    await client.entity("Entity").where({"id": "1", "status": "active"}).find_one()

    assert api.last.url.path == "/Entity"
    assert api.last.url.params["limit"] == "1"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [[], {"data": []}, {"message": "odd"}])
async def test_find_one_without_match_returns_none(api, client, payload):
    api.default_json = payload

    assert await client.entity("Entity").where({"status": "gone"}).find_one() is None


@pytest.mark.asyncio
async def test_find_one_required_raises_not_found(api, client):
    api.default_json = []

    with pytest.raises(NotFoundError):
        await client.entity("Entity").where({"status": "gone"}).find_one(required=True)


@pytest.mark.asyncio
async def test_create_posts_payload_and_ignores_query(api, client):
    api.queue(httpx.Response(201, json={"id": "1", "name": "Hat"}))

    result = await client.entity("Entity").where({"status": "x"}).limit(3).create({"name": "Hat"})

    assert result == {"id": "1", "name": "Hat"}
    assert api.last.method == "POST"
    assert str(api.last.url) == "https://api.example.com/Entity"
    assert json.loads(api.last.content) == {"name": "Hat"}


@pytest.mark.asyncio
async def test_update_requires_id(api, client):
    with pytest.raises(ValidationError) as exc_info:
        await client.entity("Entity").where({"status": "active"}).update({"name": "x"})

    assert exc_info.value.code == "missing_id"
    assert api.requests == []


@pytest.mark.asyncio
async def test_update_puts_to_id_path(api, client):
    api.default_json = {"id": "123", "name": "New"}

    result = await client.entity("Entity").where({"id": "123"}).update({"name": "New"})

    assert result == {"id": "123", "name": "New"}
    assert api.last.method == "PUT"
    assert api.last.url.path == "/Entity/123"
    assert json.loads(api.last.content) == {"name": "New"}


@pytest.mark.asyncio
async def test_remove_requires_id(api, client):
    with pytest.raises(ValidationError):
        await client.entity("Entity").remove()

    assert api.requests == []


@pytest.mark.asyncio
async def test_remove_deletes_id_path(api, client):
    api.default_json = {"deleted": True}

    assert await client.entity("Entity").where({"id": "123"}).remove() == {"deleted": True}
    assert api.last.method == "DELETE"
    assert str(api.last.url) == "https://api.example.com/Entity/123"


@pytest.mark.asyncio
async def test_operator_id_is_not_an_identifier(api, client):
    with pytest.raises(ValidationError):
        await client.entity("Entity").where({"id": {"$in": [1, 2]}}).remove()


@pytest.mark.asyncio
async def test_legacy_get_and_post(api, client):
    with pytest.deprecated_call():
        await client.entity("HopperLoads").where({"status": "active"}).limit(10).get()
    assert api.last.url.path == "/HopperLoads"
    assert api.last.url.params["limit"] == "10"

    with pytest.deprecated_call():
        await client.entity("HopperLoads").post({"name": "New Load"})
    assert api.last.method == "POST"


@pytest.mark.asyncio
async def test_legacy_put_and_delete_use_collection_path(api, client):
    with pytest.deprecated_call():
        await client.entity("HopperLoads").where({"id": "5"}).put({"name": "Updated Load"})
    assert api.last.method == "PUT"
    assert api.last.url.path == "/HopperLoads"
    assert json.loads(api.last.content) == {"name": "Updated Load"}

    with pytest.deprecated_call():
        await client.entity("HopperLoads").delete()
    assert api.last.method == "DELETE"
    assert api.last.url.path == "/HopperLoads"


@pytest.mark.asyncio
async def test_record_id_is_percent_encoded(api, client):
    await client.entity("Entity").where({"id": "a/b?c#d"}).update({"name": "x"})
    assert api.last.url.raw_path == b"/Entity/a%2Fb%3Fc%23d"

    await client.entity("Entity").where({"id": "a/b?c#d"}).find_one()
    assert api.last.url.raw_path == b"/Entity/a%2Fb%3Fc%23d"
    assert "filter" not in api.last.url.params
