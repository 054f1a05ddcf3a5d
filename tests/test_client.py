import pytest

from common.exceptions import ConflictError, InvalidReferenceError, NotFoundError, ProtocolViolationError, ServiceError
from common.models.operations import Method
from fakes import BASE_URL, node_body


@pytest.mark.asyncio
async def test_save_read_update_delete(client, graph):
    alice = await client.save({"name": "Alice", "age": 30})
    assert alice == {"name": "Alice", "age": 30, "id": 1}

    assert await client.read(alice) == alice
    assert await client.read(1, "age") == 30

    updated = await client.save({**alice, "age": 31})
    assert updated == {"name": "Alice", "age": 31, "id": 1}
    assert graph.nodes[1] == {"name": "Alice", "age": 31}

    assert await client.delete(alice) is None
    with pytest.raises(NotFoundError) as info:
        await client.read(1)
    assert info.value.status == 404
    assert info.value.exception == "NodeNotFoundException"


@pytest.mark.asyncio
async def test_save_with_label_goes_out_as_one_batch(client, graph):
    bob = await client.save({"name": "Bob"}, ["Person", "Admin"])
    assert bob == {"name": "Bob", "id": 1}
    assert [(m, p) for m, p, _ in graph.calls] == [("POST", "/batch")]
    _, _, jobs = graph.calls[0]
    assert [(job["method"], job["to"]) for job in jobs] == [("POST", "/node"), ("POST", "{0}/labels")]
    assert await client.read_labels(bob) == ["Person", "Admin"]


@pytest.mark.asyncio
async def test_failed_multi_step_call_applies_nothing(client, graph):
    a = await client.save({"name": "A"})
    seen = []
    with pytest.raises(ServiceError) as info:
        await client.delete([a, 999], callback=lambda error, value: seen.append((error, value)))
    assert info.value.exception == "BatchOperationFailedException"
    assert seen == [(info.value, None)]
    assert graph.nodes == {1: {"name": "A"}}


@pytest.mark.asyncio
async def test_bulk_save_returns_list_in_order(client):
    saved = await client.save([{"name": "A"}, {"name": "B"}], "Person")
    assert saved == [{"name": "A", "id": 1}, {"name": "B", "id": 2}]
    found = await client.nodes_with_label("Person", "name", "B")
    assert found == [{"name": "B", "id": 2}]


@pytest.mark.asyncio
async def test_relationships(client):
    a, b = await client.save([{"name": "A"}, {"name": "B"}])
    rel = await client.relate(a, "knows", b, {"since": 2001})
    assert rel == {"start": 1, "end": 2, "type": "knows", "properties": {"since": 2001}, "id": 1}

    await client.update_relationship(rel, {"since": 1999})
    assert (await client.read_relationship(rel["id"]))["properties"] == {"since": 1999}

    with pytest.raises(ConflictError):
        await client.delete(a)

    await client.delete_relationship(rel)
    with pytest.raises(NotFoundError):
        await client.read_relationship(rel)
    await client.delete(a)


@pytest.mark.asyncio
async def test_relate_many_to_many(client):
    people = await client.save([{"n": i} for i in range(3)])
    rels = await client.relate(people[:1], "knows", people[1:])
    assert [(r["start"], r["end"]) for r in rels] == [(1, 2), (1, 3)]


@pytest.mark.asyncio
async def test_labels(client):
    node = await client.save({"name": "C"})
    await client.label(node, ["A", "B"])
    await client.remove_label(node, "A")
    assert await client.read_labels(node) == ["B"]
    await client.label(node, "Z", replace=True)
    assert await client.read_labels(node) == ["Z"]


@pytest.mark.asyncio
async def test_index_add_read_remove(client):
    node = await client.save({"name": "Dee"})
    indexed = await client.index("people", node, "name", "Dee")
    assert indexed["id"] == node["id"]
    assert await client.read_index("people", "name", "Dee") == [node]
    await client.remove_from_index("people", node, "name", "Dee")
    assert await client.read_index("people", "name", "Dee") == []
    with pytest.raises(NotFoundError):
        await client.remove_from_index("people", node, "name", "Dee")


@pytest.mark.asyncio
async def test_query_rows(client):
    await client.save({"name": "Q"})
    rows = await client.query("MATCH (n) RETURN count(n) AS count, n AS first LIMIT 1")
    assert rows == [{"count": 1, "first": {"name": "Q", "id": 1}}]


@pytest.mark.asyncio
async def test_direct_path_rejects_placeholders(client):
    ph = client.batch().save({})
    with pytest.raises(InvalidReferenceError):
        client.read(ph)


@pytest.mark.asyncio
async def test_callbacks_on_direct_path(client):
    seen = []
    node = await client.save({"name": "E"}, callback=lambda error, value: seen.append((error, value)))
    assert seen == [(None, node)]
    with pytest.raises(NotFoundError) as info:
        await client.read(99, callback=lambda error, value: seen.append((error, value)))
    assert seen[-1] == (info.value, None)


@pytest.mark.asyncio
async def test_unclassified_status(scripted):
    client, transport = scripted((503, "Service Unavailable"))
    with pytest.raises(ServiceError) as info:
        await client.read(1)
    assert type(info.value) is ServiceError
    assert info.value.status == 503
    assert info.value.message == "Service Unavailable"
    assert transport.calls == [(Method.GET, "/node/1", None)]


@pytest.mark.asyncio
async def test_direct_shape_matches_single_entry_batch(scripted):
    body = node_body(8, {"name": "Same"})
    direct, _ = scripted((201, body))
    batched, _ = scripted((200, [{"id": 0, "from": "/node", "body": body, "status": 201}]))

    value = await direct.save({"name": "Same"})
    txn = batched.batch()
    ph = txn.save({"name": "Same"})
    results = await txn.commit()
    assert results[ph] == value == {"name": "Same", "id": 8}


@pytest.mark.asyncio
async def test_batch_against_in_memory_service(client, graph):
    seen = []
    async with client.batch() as txn:
        a = txn.save({"name": "A"}, "Person")
        b = txn.save({"name": "B"}, callback=lambda error, value: seen.append(value))
        knows = txn.relate(a, "knows", b)
        txn.index("people", a, "name", "A")
        txn.label(b, "Person")
        everyone = txn.nodes_with_label("Person")

    results = txn.results
    assert results[a] == {"name": "A", "id": 1}
    assert seen == [{"name": "B", "id": 2}]
    assert results[knows] == {"start": 1, "end": 2, "type": "knows", "properties": {}, "id": 1}
    assert [n["name"] for n in results[everyone]] == ["A", "B"]
    assert [(m, p) for m, p, _ in graph.calls] == [("POST", "/batch")]

    direct = await client.read_relationship(results[knows])
    assert direct == results[knows]


@pytest.mark.asyncio
async def test_failed_batch_leaves_service_untouched(client, graph):
    txn = client.batch()
    txn.save({"name": "A"})
    txn.delete(404)
    with pytest.raises(ServiceError) as info:
        await txn.commit()
    assert info.value.status == 500
    assert info.value.exception == "BatchOperationFailedException"
    assert graph.nodes == {}


@pytest.mark.asyncio
async def test_unreadable_direct_response_is_protocol_violation(scripted):
    client, _ = scripted((200, {"self": f"{BASE_URL}/node/1", "data": [1, 2]}))
    with pytest.raises(ProtocolViolationError):
        await client.read(1)
