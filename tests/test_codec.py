"""
Codec Tests
===========

Command tokenization, line assembly and the reply envelope.
"""

import pytest

from variable_rtsp.models.command import CommandVerb
from variable_rtsp.models.properties import TypedValue
from variable_rtsp.models.status import MessageType, StatusMessage
from variable_rtsp.protocol.codec import (
    LineAssembler,
    decode_message,
    element_properties_message,
    encode_message,
    format_typed_value,
    parse_command,
)


class TestParseCommand:
    """Tokenizing command-pipe lines."""

    def test_setparam(self):
        command = parse_command("setparam:enc0::bitrate:5000\n")

        assert command.verb is CommandVerb.SETPARAM
        assert command.element == "enc0"
        assert command.pad == ""
        assert command.prop == "bitrate"
        assert command.value == "5000"
        assert command.arg_count == 4
        assert command.is_complete

    def test_status(self):
        command = parse_command("status::::")
        assert command.verb is CommandVerb.STATUS
        assert command.arg_count == 4

    def test_bare_verb(self):
        command = parse_command("printbin")
        assert command.verb is CommandVerb.PRINTBIN
        assert command.arg_count == 0
        assert command.element == ""

    def test_short_setparam_incomplete(self):
        command = parse_command("setparam:enc0:bitrate:5000")
        assert command.arg_count == 3
        assert not command.is_complete

    def test_extra_fields_dropped(self):
        command = parse_command("setparam:pay0:src:offset:1.5:junk:more")
        assert command.value == "1.5"
        assert command.arg_count == 4

    def test_carriage_return_stripped(self):
        command = parse_command("status::::\r\n")
        assert command.verb is CommandVerb.STATUS

    def test_unknown_verb(self):
        command = parse_command("reboot::::")
        assert command.verb is CommandVerb.UNKNOWN
        assert command.raw_verb == "reboot"

    def test_verbs_are_case_sensitive(self):
        assert parse_command("STATUS::::").verb is CommandVerb.UNKNOWN

    def test_blank_line(self):
        assert parse_command("\n") is None
        assert parse_command("   ") is None


class TestLineAssembler:
    """Reassembling lines across reads."""

    def test_split_across_feeds(self):
        assembler = LineAssembler()
        assert assembler.feed(b"sta") == []
        assert assembler.feed(b"tus::::\nprint") == ["status::::"]
        assert assembler.feed(b"bin::::\n") == ["printbin::::"]

    def test_overlong_line_discarded(self):
        assembler = LineAssembler(max_line_length=16)
        lines = assembler.feed(b"x" * 40 + b"\nstatus::::\n")

        assert lines == ["status::::"]
        assert assembler.discarded == 1

    def test_overlong_line_across_feeds(self):
        assembler = LineAssembler(max_line_length=16)
        assert assembler.feed(b"y" * 20) == []
        assert assembler.feed(b"y" * 20) == []
        assert assembler.feed(b"yyy\nstatus::::\n") == ["status::::"]
        assert assembler.discarded == 1

    def test_line_at_limit_accepted(self):
        assembler = LineAssembler(max_line_length=10)
        assert assembler.feed(b"a" * 10 + b"\n") == ["a" * 10]

    def test_crlf(self):
        assert LineAssembler().feed(b"status::::\r\n") == ["status::::"]

    def test_flush_returns_tail(self):
        assembler = LineAssembler()
        assembler.feed(b"printbin")

        assert assembler.flush() == "printbin"
        assert assembler.flush() is None
        assert assembler.feed(b"status::::\n") == ["status::::"]

    def test_flush_drops_discarded_tail(self):
        assembler = LineAssembler(max_line_length=8)
        assembler.feed(b"q" * 20)

        assert assembler.flush() is None
        assert assembler.feed(b"status\n") == ["status"]


class TestEnvelope:
    """Outbound framing."""

    def test_exact_framing(self):
        message = StatusMessage(MessageType.STATUS)
        message.add("numConnectedClients", 0).add("connected", False)

        assert encode_message(message) == (
            "msg{\n"
            "type:status,\n"
            "data:{\n"
            "numConnectedClients:0,\n"
            "connected:false\n"
            "}}\n"
        )

    def test_decode_recovers_fields(self):
        message = StatusMessage(MessageType.SETPARAM)
        message.add("element", '"enc0"').add("result", '"ok"').add("source", '"a:b"')

        decoded = decode_message(encode_message(message))

        assert decoded.type is MessageType.SETPARAM
        assert decoded.body == message.body

    def test_decode_empty_body(self):
        decoded = decode_message(encode_message(StatusMessage(MessageType.STATUS)))
        assert decoded.body == []

    def test_decode_rejects_garbage(self):
        with pytest.raises(ValueError):
            decode_message("hello")

    def test_decode_rejects_unknown_type(self):
        with pytest.raises(ValueError):
            decode_message("msg{\ntype:bogus,\ndata:{\na:1\n}}\n")


class TestPropertyFormatting:
    """TypedValue rendering for printbin."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (TypedValue.string("/dev/video0"), '"/dev/video0"'),
            (TypedValue.string(None), "null"),
            (TypedValue.boolean(True), "true"),
            (TypedValue.integer(-3), "-3"),
            (TypedValue.integer(4294967295, unsigned=True), "4294967295"),
            (TypedValue.floating(1.4), "1.4"),
            (TypedValue.floating(1.0 / 3.0), "0.3333333"),
            (TypedValue.enum(6, "medium"), "[6]medium"),
            (TypedValue.fraction(30, 1), "30/1"),
        ],
    )
    def test_kinds(self, value, expected):
        assert format_typed_value(value) == expected

    def test_unsupported_is_none(self):
        assert format_typed_value(TypedValue.unsupported()) is None

    def test_element_properties_message(self):
        message = element_properties_message(
            "GstRtpH264Pay",
            "pay0",
            [
                ("name", TypedValue.string("pay0")),
                ("config-interval", TypedValue.integer(2)),
                ("stats", TypedValue.unsupported()),
            ],
        )

        assert message.type is MessageType.ELEMENTPROPS
        assert message.body == [
            ("classname", '"GstRtpH264Pay"'),
            ("name", '"pay0"'),
            ("config-interval", "2"),
        ]
