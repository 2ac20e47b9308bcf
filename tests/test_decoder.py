"""Tests for the event decoder: known frame shapes and fail-closed handling."""

import json

import pytest

from fakes import graph_post, invite, invite_notification, metadata_add, metadata_associations
from shipbot.bridge.decoder import (
    GraphUpdate,
    InviteUpdate,
    MetadataUpdate,
    Unrecognized,
    decode_frame,
)
from shipbot.transport.base import Frame
from shipbot.urbit.resource import Resource


def _frame(data, frame_id: int = 7) -> Frame:
    text = data if isinstance(data, str) else json.dumps(data)
    return Frame(id=frame_id, data=text)


# ── graph-update ────────────────────────────────────────────


class TestGraphUpdate:
    def test_decodes_post(self):
        event = decode_frame(_frame(graph_post("sampel-palnet", "hello there")))

        assert isinstance(event, GraphUpdate)
        assert event.frame_id == 7
        assert event.author == "~sampel-palnet"
        assert event.resource == Resource("~host", "chat-1")
        assert event.contents.to_formatted_string() == "hello there"
        assert event.index == "/170141184505218690428460195436009570304"
        assert event.time_sent == 1628000000000

    def test_formats_time_sent_in_utc(self):
        event = decode_frame(_frame(graph_post("zod", "hi", time_sent=1628000000000)))
        assert event.time_sent_formatted == "2021-08-03 14:13:20"

    def test_author_with_sig_is_kept(self):
        event = decode_frame(_frame(graph_post("~zod", "hi")))
        assert event.author == "~zod"

    def test_missing_author_is_unrecognized(self):
        payload = graph_post("zod", "hi")
        node = next(iter(payload["graph-update"]["add-nodes"]["nodes"].values()))
        del node["post"]["author"]

        event = decode_frame(_frame(payload))

        assert isinstance(event, Unrecognized)
        assert "author" in event.reason

    def test_deleted_post_is_unrecognized(self):
        payload = graph_post("zod", "hi")
        node = next(iter(payload["graph-update"]["add-nodes"]["nodes"].values()))
        node["post"] = "0x1234"  # removed posts leave only their hash

        assert isinstance(decode_frame(_frame(payload)), Unrecognized)

    def test_missing_resource_is_unrecognized(self):
        payload = graph_post("zod", "hi")
        del payload["graph-update"]["add-nodes"]["resource"]

        assert isinstance(decode_frame(_frame(payload)), Unrecognized)

    def test_out_of_range_time_sent_is_unrecognized(self):
        event = decode_frame(_frame(graph_post("zod", "hi", time_sent=10**20)))

        assert isinstance(event, Unrecognized)
        assert "time-sent" in event.reason

    def test_non_add_nodes_update_is_unrecognized(self):
        payload = {"graph-update": {"remove-posts": {"indices": ["/1"]}}}
        assert isinstance(decode_frame(_frame(payload)), Unrecognized)

    def test_empty_nodes_is_unrecognized(self):
        payload = graph_post("zod", "hi")
        payload["graph-update"]["add-nodes"]["nodes"] = {}
        assert isinstance(decode_frame(_frame(payload)), Unrecognized)

    def test_uses_first_of_several_nodes(self):
        payload = graph_post("zod", "first", index="/1")
        second = graph_post("nec", "second", index="/2")
        payload["graph-update"]["add-nodes"]["nodes"].update(
            second["graph-update"]["add-nodes"]["nodes"]
        )

        event = decode_frame(_frame(payload))

        assert event.author == "~zod"
        assert event.index == "/1"


# ── invite-update ───────────────────────────────────────────


class TestInviteUpdate:
    def test_decodes_invite(self):
        event = decode_frame(_frame(invite("~peerx", "general"), frame_id=12))

        assert isinstance(event, InviteUpdate)
        assert event.is_invite
        assert event.frame_id == 12
        assert event.resource == Resource("~peerx", "general")
        assert event.inviter == "~friend"
        assert event.text == "join us"

    def test_null_invite_is_notification(self):
        event = decode_frame(_frame(invite_notification()))

        assert isinstance(event, InviteUpdate)
        assert not event.is_invite
        assert event.resource is None

    def test_missing_invite_key_is_notification(self):
        event = decode_frame(_frame({"invite-update": {"accepted": {"term": "groups"}}}))

        assert isinstance(event, InviteUpdate)
        assert not event.is_invite

    def test_invite_without_resource_is_unrecognized(self):
        payload = invite("~peerx", "general")
        del payload["invite-update"]["invite"]["invite"]["resource"]

        assert isinstance(decode_frame(_frame(payload)), Unrecognized)


# ── metadata-update ─────────────────────────────────────────


class TestMetadataUpdate:
    def test_add_graph_chat(self):
        event = decode_frame(_frame(metadata_add("/ship/~peery/chat-1")))

        assert isinstance(event, MetadataUpdate)
        assert event.added == Resource("~peery", "chat-1")
        assert event.associations == ()

    def test_add_with_other_app_name_is_not_joinable(self):
        event = decode_frame(_frame(metadata_add("/ship/~peery/grp", app_name="groups")))

        assert isinstance(event, MetadataUpdate)
        assert event.added is None

    def test_add_with_non_string_resource_is_not_joinable(self):
        payload = {"metadata-update": {"add": {"app-name": "graph", "resource": 42}}}
        event = decode_frame(_frame(payload))

        assert isinstance(event, MetadataUpdate)
        assert event.added is None

    def test_add_nested_association_shape(self):
        payload = {
            "metadata-update": {
                "add": {
                    "group": "/ship/~peery/grp",
                    "resource": {"app-name": "graph", "resource": "/ship/~peery/chat-9"},
                    "metadata": {"title": "Chat"},
                }
            }
        }
        event = decode_frame(_frame(payload))
        assert event.added == Resource("~peery", "chat-9")

    def test_associations_filtered_in_order(self):
        payload = metadata_associations(
            ("graph", "/ship/~a/one"),
            ("groups", "/ship/~a/grp"),
            ("graph", "/ship/~b/two"),
        )

        event = decode_frame(_frame(payload))

        assert event.associations == (Resource("~a", "one"), Resource("~b", "two"))

    def test_malformed_association_path_is_skipped(self):
        payload = metadata_associations(("graph", "not-a-path"), ("graph", "/ship/~b/two"))

        event = decode_frame(_frame(payload))

        assert event.associations == (Resource("~b", "two"),)

    def test_remove_is_recorded(self):
        payload = {"metadata-update": {"remove": {"resource": "/ship/~a/one"}}}
        event = decode_frame(_frame(payload))

        assert isinstance(event, MetadataUpdate)
        assert event.removed == {"resource": "/ship/~a/one"}
        assert event.added is None

    def test_unknown_metadata_case_is_unrecognized(self):
        payload = {"metadata-update": {"initial-group": {}}}
        assert isinstance(decode_frame(_frame(payload)), Unrecognized)


# ── garbage ─────────────────────────────────────────────────


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        "",
        "[1, 2, 3]",
        "null",
        json.dumps({"chat-update": {}}),
        json.dumps({"graph-update": None}),
    ],
)
def test_garbage_is_unrecognized(raw):
    event = decode_frame(_frame(raw, frame_id=3))

    assert isinstance(event, Unrecognized)
    assert event.frame_id == 3
    assert event.reason


def test_bad_frame_does_not_affect_next_frame():
    frames = [
        _frame("{{{", frame_id=1),
        _frame(graph_post("zod", "still here"), frame_id=2),
    ]

    events = [decode_frame(f) for f in frames]

    assert isinstance(events[0], Unrecognized)
    assert isinstance(events[1], GraphUpdate)
    assert events[1].contents.to_formatted_string() == "still here"
