"""Tests for the SSE line parser."""

from shipbot.transport.sse import SSEParser


def _feed(parser, lines):
    events = []
    for line in lines:
        event = parser.feed(line)
        if event is not None:
            events.append(event)
    return events


def test_single_event():
    parser = SSEParser()

    events = _feed(parser, ["id: 3", 'data: {"id": 1}', ""])

    assert len(events) == 1
    assert events[0].id == "3"
    assert events[0].data == '{"id": 1}'
    assert events[0].event == "message"
    assert parser.last_event_id == "3"


def test_multiline_data_and_comments():
    parser = SSEParser()

    events = _feed(parser, [": keepalive", "data: one", "data: two", "", ""])

    assert [e.data for e in events] == ["one\ntwo"]
    assert parser.last_event_id is None


def test_fields_reset_between_events():
    parser = SSEParser()

    events = _feed(
        parser,
        ["id: 1", "event: update", "retry: 500", "data: a", "", "data: b", "\r\n"],
    )

    assert events[0].event == "update"
    assert events[0].retry == 500
    assert events[1].id is None
    assert events[1].event == "message"
    assert parser.last_event_id == "1"


def test_value_without_space():
    parser = SSEParser()
    (event,) = _feed(parser, ["data:x", ""])
    assert event.data == "x"
