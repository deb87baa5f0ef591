"""Tests for editor/mutation.py."""

from __future__ import annotations

import asyncio

import pytest

from inkwell.concurrency import CancelScope
from inkwell.editor.document import TextDocument
from inkwell.editor.mutation import DocumentMutationEngine, EditOperation, EditStatus
from inkwell.errors import ProviderFailure, StaleRangeWarning, ValidationError
from tests.helpers import ScriptedEditProvider


@pytest.mark.asyncio
async def test_edit_replaces_span_and_places_cursor():
    doc = TextDocument("The quick brown fox.")
    provider = ScriptedEditProvider(["slow ", "red"])
    engine = DocumentMutationEngine(provider)

    op = engine.request_edit(doc, (4, 15))
    assert op.original_text == "quick brown"
    assert doc.mark_range(op.mark_key) == (4, 15)

    provider.release_all()
    await asyncio.sleep(0)
    provider.release_all()
    await engine.wait(op)

    assert op.status is EditStatus.DONE
    assert doc.text == "The slow red fox."
    assert doc.cursor == 12
    assert doc.marks == {}
    assert "quick brown" in provider.prompts[0]


@pytest.mark.asyncio
async def test_new_request_cancels_outstanding_edit():
    doc = TextDocument("The quick brown fox jumps over the lazy dog.")
    provider = ScriptedEditProvider(["A" * 10], ["XYZ"])
    engine = DocumentMutationEngine(provider)

    op_a = engine.request_edit(doc, (10, 20))
    await asyncio.sleep(0)               # A's provider call is now in flight
    op_b = engine.request_edit(doc, (5, 8))

    assert op_a.status is EditStatus.ABORTED
    assert op_a.error is None
    assert doc.mark_range(op_a.mark_key) is None
    assert doc.text_between(10, 20) == "brown fox "

    await asyncio.sleep(0)
    provider.release_all()
    await engine.wait(op_b)
    await asyncio.wait({op_a.task})

    assert op_b.status is EditStatus.DONE
    assert op_a.status is EditStatus.ABORTED
    assert doc.text == "The qXYZk brown fox jumps over the lazy dog."
    assert doc.marks == {}


@pytest.mark.asyncio
async def test_sequential_edits_apply_in_request_order():
    doc = TextDocument("alpha beta gamma")
    provider = ScriptedEditProvider(["ALPHA"], ["GAMMA"])
    engine = DocumentMutationEngine(provider)

    first = engine.request_edit(doc, (0, 5))
    await asyncio.sleep(0)
    provider.release_all()
    await engine.wait(first)

    second = engine.request_edit(doc, (11, 16))
    await asyncio.sleep(0)
    provider.release_all()
    await engine.wait(second)

    assert doc.text == "ALPHA beta GAMMA"


@pytest.mark.asyncio
async def test_span_follows_concurrent_typing():
    doc = TextDocument("Hello world!")
    provider = ScriptedEditProvider(["there"])
    engine = DocumentMutationEngine(provider)

    op = engine.request_edit(doc, (6, 11))
    await asyncio.sleep(0)
    doc.insert(6, "big ")                # user keeps typing while the edit runs
    provider.release_all()
    await engine.wait(op)

    assert doc.text == "Hello big there!"
    assert doc.cursor == 15


@pytest.mark.asyncio
async def test_stale_range_inserts_at_clamped_start_with_warning():
    doc = TextDocument("Hello world, goodbye.")
    provider = ScriptedEditProvider(["WORLD"])
    engine = DocumentMutationEngine(provider)

    op = engine.request_edit(doc, (6, 11))
    await asyncio.sleep(0)
    doc.delete(0, doc.size)
    provider.release_all()

    with pytest.warns(StaleRangeWarning):
        await engine.wait(op)

    assert op.status is EditStatus.DONE
    assert doc.text == "WORLD"


def test_apply_if_valid_clamps_end_beyond_document():
    doc = TextDocument("Hello world")
    engine = DocumentMutationEngine(ScriptedEditProvider())
    op = EditOperation(range=(5, 100), original_text=" world", result_text="NEW")

    assert engine.apply_if_valid(doc, op) is True
    assert doc.text == "HelloNEW"
    assert doc.cursor == 8


def test_apply_if_valid_ignores_settled_operations():
    doc = TextDocument("Hello")
    engine = DocumentMutationEngine(ScriptedEditProvider())
    op = EditOperation(range=(0, 5), original_text="Hello", result_text="Bye", status=EditStatus.ABORTED)

    assert engine.apply_if_valid(doc, op) is False
    assert doc.text == "Hello"


@pytest.mark.asyncio
async def test_whitespace_result_is_a_failure_and_restores():
    doc = TextDocument("Keep this text.")
    provider = ScriptedEditProvider(["  ", "\n"])
    engine = DocumentMutationEngine(provider)

    op = engine.request_edit(doc, (5, 9))
    await asyncio.sleep(0)
    provider.release_all()

    with pytest.raises(ProviderFailure):
        await engine.wait(op)

    assert op.status is EditStatus.FAILED
    assert doc.text == "Keep this text."
    assert doc.marks == {}


@pytest.mark.asyncio
async def test_provider_error_restores_and_surfaces():
    doc = TextDocument("Keep this text.")
    provider = ScriptedEditProvider(RuntimeError("model overloaded"))
    engine = DocumentMutationEngine(provider)

    op = engine.request_edit(doc, (0, 4))
    await asyncio.sleep(0)
    provider.release_all()

    with pytest.raises(ProviderFailure, match="model overloaded"):
        await engine.wait(op)

    assert doc.text == "Keep this text."
    assert doc.marks == {}
    assert engine.current(doc) is None


def test_invalid_requests_are_rejected():
    doc = TextDocument("short")
    engine = DocumentMutationEngine(ScriptedEditProvider())

    with pytest.raises(ValidationError):
        engine.request_edit(doc, (2, 2))
    with pytest.raises(ValidationError):
        engine.request_edit(doc, (0, 50))
    with pytest.raises(ValidationError):
        engine.request_edit(doc, (0, 3), action="custom", custom_prompt="   ")


@pytest.mark.asyncio
async def test_closing_the_editor_scope_aborts_the_edit():
    doc = TextDocument("Some text to edit.")
    provider = ScriptedEditProvider(["never applied"])
    editor_scope = CancelScope(name="editor")
    engine = DocumentMutationEngine(provider, scope=editor_scope.child("mutations"))

    op = engine.request_edit(doc, (0, 4))
    await asyncio.sleep(0)
    await engine.aclose()
    provider.release_all()

    assert op.status is EditStatus.ABORTED
    assert doc.text == "Some text to edit."
    assert doc.marks == {}
