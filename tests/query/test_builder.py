"""
Tests for the chainable QueryBuilder.

A recording dispatch stands in for an adapter, so only the produced
descriptors are checked.
"""

from __future__ import annotations

from folio.core.envelope import Envelope
from folio.query.builder import QueryBuilder


class Recorder:
    def __init__(self):
        self.descriptors = []

    async def __call__(self, descriptor):
        self.descriptors.append(descriptor)
        return Envelope.success([], count=0)


async def test_await_dispatches_descriptor():
    recorder = Recorder()
    env = await QueryBuilder("photos", recorder).select("id, title").eq("album_id", "a1").order("sort_order").range(0, 9)
    assert env.is_ok()

    (descriptor,) = recorder.descriptors
    assert descriptor.table == "photos"
    assert descriptor.operation == "select"
    assert descriptor.select == "id, title"
    assert descriptor.where[0].column == "album_id"
    assert descriptor.order_by[0].column == "sort_order"
    assert descriptor.range.to == 9


async def test_select_after_mutation_keeps_operation():
    recorder = Recorder()
    await QueryBuilder("albums", recorder).insert({"name": "Dunes"}).select().single()
    descriptor = recorder.descriptors[0]
    assert descriptor.operation == "insert"
    assert descriptor.single is True


async def test_single_and_maybe_single_are_exclusive():
    recorder = Recorder()
    await QueryBuilder("albums", recorder).single().maybe_single()
    descriptor = recorder.descriptors[0]
    assert descriptor.maybe_single is True
    assert descriptor.single is False


async def test_filters_and_negation():
    recorder = Recorder()
    await (
        QueryBuilder("albums", recorder)
        .neq("slug", "home")
        .in_("id", (1, 2))
        .is_("deleted_at", None)
        .not_("name", "like", "%draft%")
    )
    operators = [c.operator for c in recorder.descriptors[0].where]
    assert operators == ["neq", "in", "is", "not.like"]


async def test_upsert_and_unfiltered_flags():
    recorder = Recorder()
    await QueryBuilder("site_settings", recorder).upsert({"id": 1, "site_title": "x"}, on_conflict="id")
    await QueryBuilder("photos", recorder).update({"is_visible": False}).allow_unfiltered()
    upsert, update = recorder.descriptors
    assert upsert.on_conflict == "id"
    assert update.allow_unfiltered is True


async def test_invalid_builder_state_resolves_to_error_envelope():
    recorder = Recorder()
    env = await QueryBuilder("albums", recorder).range(5, 1)
    assert env.error.code == "INVALID_ARGUMENT"
    assert recorder.descriptors == []
