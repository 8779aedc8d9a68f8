"""
Unit tests for StreamAssembler.

Covers the IDLE → RECEIVING → DONE/FAILED state machine, fragment
concatenation per index, event ordering and reset().
"""

import pytest

from lmconductor.backend.models import StreamChunk, ToolCallFragment
from lmconductor.errors import BackendError, MalformedToolArguments
from lmconductor.events.types import (
    ContentDelta,
    StreamEnd,
    StreamError,
    StreamStart,
    ToolCallDelta,
    ToolCallEnd,
    ToolCallStart,
)
from lmconductor.streaming.assembler import AssemblerState, StreamAssembler


def _fragment(index, id=None, name=None, arguments=None):
    return ToolCallFragment(index=index, id=id, name=name, arguments=arguments)


WEATHER_CHUNKS = [
    StreamChunk(tool_calls=[_fragment(0, id="call_1", name="get_weather")]),
    StreamChunk(tool_calls=[_fragment(0, arguments='{"ci')]),
    StreamChunk(tool_calls=[_fragment(0, arguments='ty": "Paris"}')]),
    StreamChunk(finish_reason="tool_calls"),
]


@pytest.fixture
def assembler():
    return StreamAssembler()


@pytest.fixture
def recorded(assembler):
    seen = []
    for event_type in (StreamStart, ContentDelta, ToolCallStart, ToolCallDelta, ToolCallEnd, StreamEnd, StreamError):
        assembler.events.on(event_type, seen.append)
    return seen


def _feed_all(assembler, chunks):
    for chunk in chunks:
        assembler.feed(chunk)


class TestContent:

    def test_text_only_stream(self, assembler, recorded):
        _feed_all(assembler, [
            StreamChunk(content="Hel"),
            StreamChunk(content="lo!"),
            StreamChunk(finish_reason="stop"),
        ])

        assert assembler.state is AssemblerState.DONE
        assert assembler.content == "Hello!"
        assert assembler.tool_calls == []
        assert [e.delta for e in recorded if isinstance(e, ContentDelta)] == ["Hel", "lo!"]
        assert isinstance(recorded[0], StreamStart)
        assert recorded[-1] == StreamEnd(content="Hello!", tool_calls=[])

    def test_first_chunk_moves_to_receiving(self, assembler):
        assert assembler.state is AssemblerState.IDLE
        assembler.feed(StreamChunk(content="Hi"))
        assert assembler.state is AssemblerState.RECEIVING
        assert not assembler.is_terminal

    def test_content_and_finish_in_one_chunk(self, assembler):
        assembler.feed(StreamChunk(content="Done.", finish_reason="stop"))
        assert assembler.state is AssemblerState.DONE
        assert assembler.content == "Done."


class TestToolCalls:

    def test_fragments_concatenate_per_index(self, assembler, recorded):
        _feed_all(assembler, WEATHER_CHUNKS)

        [call] = assembler.tool_calls
        assert call.id == "call_1"
        assert call.name == "get_weather"
        assert call.arguments == {"city": "Paris"}

        starts = [e for e in recorded if isinstance(e, ToolCallStart)]
        deltas = [e for e in recorded if isinstance(e, ToolCallDelta)]
        assert starts == [ToolCallStart(index=0, id="call_1")]
        assert len(deltas) == 3

    def test_end_events_precede_stream_end(self, assembler, recorded):
        _feed_all(assembler, WEATHER_CHUNKS)

        names = [e.name for e in recorded]
        assert names[-2:] == ["tool_call_end", "stream_end"]
        assert recorded[-2].tool_call.arguments == {"city": "Paris"}
        assert recorded[-1].tool_calls == assembler.tool_calls

    def test_name_split_across_fragments(self, assembler):
        _feed_all(assembler, [
            StreamChunk(tool_calls=[_fragment(0, id="c", name="get_")]),
            StreamChunk(tool_calls=[_fragment(0, name="weather", arguments="{}")]),
            StreamChunk(finish_reason="tool_calls"),
        ])
        assert assembler.tool_calls[0].name == "get_weather"

    def test_interleaved_indices(self, assembler):
        _feed_all(assembler, [
            StreamChunk(tool_calls=[_fragment(0, id="a", name="one"), _fragment(1, id="b", name="two")]),
            StreamChunk(tool_calls=[_fragment(1, arguments='{"y": 2}')]),
            StreamChunk(tool_calls=[_fragment(0, arguments='{"x": 1}')]),
            StreamChunk(finish_reason="tool_calls"),
        ])

        calls = assembler.tool_calls
        assert [c.id for c in calls] == ["a", "b"]
        assert calls[0].arguments == {"x": 1}
        assert calls[1].arguments == {"y": 2}

    def test_empty_arguments_decode_to_empty_mapping(self, assembler):
        _feed_all(assembler, [
            StreamChunk(tool_calls=[_fragment(0, id="c", name="ping")]),
            StreamChunk(finish_reason="tool_calls"),
        ])
        assert assembler.tool_calls[0].arguments == {}

    def test_valid_json_prefix_is_not_complete(self, assembler):
        """'1' parses as JSON but the call is not complete until the finish signal."""
        _feed_all(assembler, [
            StreamChunk(tool_calls=[_fragment(0, id="c", name="t", arguments='{"n": 1')]),
            StreamChunk(tool_calls=[_fragment(0, arguments="2}")]),
        ])
        assert assembler.tool_calls == []
        assert assembler.pending_fragments[0].arguments == '{"n": 12}'

        assembler.feed(StreamChunk(finish_reason="tool_calls"))
        assert assembler.tool_calls[0].arguments == {"n": 12}

    def test_missing_id_gets_stable_fallback(self):
        chunks = [
            StreamChunk(tool_calls=[_fragment(0, name="ping", arguments="{}")]),
            StreamChunk(finish_reason="tool_calls"),
        ]
        first, second = StreamAssembler(), StreamAssembler()
        _feed_all(first, chunks)
        _feed_all(second, chunks)

        assert first.tool_calls[0].id
        assert first.tool_calls[0].id == second.tool_calls[0].id

    def test_malformed_arguments_fail_the_turn(self, assembler, recorded):
        _feed_all(assembler, [
            StreamChunk(tool_calls=[_fragment(0, id="c", name="get_weather", arguments='{"city": ')]),
            StreamChunk(finish_reason="tool_calls"),
        ])

        assert assembler.state is AssemblerState.FAILED
        assert isinstance(assembler.error, MalformedToolArguments)
        assert isinstance(recorded[-1], StreamError)
        assert not any(isinstance(e, (ToolCallEnd, StreamEnd)) for e in recorded)


class TestErrorsAndTerminalStates:

    def test_error_chunk_fails_immediately(self, assembler, recorded):
        error = BackendError("connection reset")
        _feed_all(assembler, [StreamChunk(content="Hel"), StreamChunk(error=error)])

        assert assembler.state is AssemblerState.FAILED
        assert assembler.error is error
        assert recorded[-1] == StreamError(error=error)

    def test_non_exception_error_is_wrapped(self, assembler):
        assembler.feed(StreamChunk(error="upstream said no"))
        assert isinstance(assembler.error, BackendError)
        assert "upstream said no" in str(assembler.error)

    def test_chunks_after_done_are_ignored(self, assembler, recorded):
        _feed_all(assembler, [StreamChunk(content="Hi", finish_reason="stop")])
        count = len(recorded)

        assembler.feed(StreamChunk(content=" again"))

        assert assembler.content == "Hi"
        assert len(recorded) == count

    def test_chunks_after_failure_are_ignored(self, assembler, recorded):
        assembler.feed(StreamChunk(error=BackendError("x")))
        assembler.feed(StreamChunk(content="late", finish_reason="stop"))
        assert assembler.state is AssemblerState.FAILED
        assert not any(isinstance(e, StreamEnd) for e in recorded)


class TestReset:

    def test_reset_returns_to_idle(self, assembler):
        _feed_all(assembler, WEATHER_CHUNKS)
        assembler.reset()

        assert assembler.state is AssemblerState.IDLE
        assert assembler.content == ""
        assert assembler.tool_calls == []
        assert assembler.error is None
        assert assembler.pending_fragments == {}

    def test_replay_after_reset_is_identical(self, assembler, recorded):
        _feed_all(assembler, WEATHER_CHUNKS)
        first_events = list(recorded)
        first_calls = assembler.tool_calls

        assembler.reset()
        recorded.clear()
        _feed_all(assembler, WEATHER_CHUNKS)

        assert assembler.tool_calls == first_calls
        assert [e.name for e in recorded] == [e.name for e in first_events]

    def test_listeners_survive_reset(self, assembler, recorded):
        assembler.reset()
        assembler.feed(StreamChunk(content="x"))
        assert any(isinstance(e, ContentDelta) for e in recorded)
