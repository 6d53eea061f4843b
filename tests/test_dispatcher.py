"""
Command Dispatcher Tests
========================

setparam / status / printbin against the mock engine.
"""

import pytest

from variable_rtsp.control.dispatcher import CommandDispatcher
from variable_rtsp.engine.proxy import PropertyProxy
from variable_rtsp.models.status import MessageType


class SpyProxy(PropertyProxy):
    """PropertyProxy that records every set() call."""

    def __init__(self):
        self.calls = []

    def set(self, pipeline, element, pad, name, value):
        self.calls.append((element, pad, name, value))
        super().set(pipeline, element, pad, name, value)


@pytest.fixture
def streaming(context):
    """Context with one viewer attached and the pipeline configured."""
    context.engine.connect_client()
    return context


def last_reply(messages):
    return messages()[-1].as_dict()


class TestStatus:

    def test_status_before_any_client(self, context, messages):
        context.dispatcher.handle_line("status::::")

        reply = messages()[-1]
        assert reply.type is MessageType.STATUS
        assert reply.as_dict()["connected"] == "false"
        assert reply.as_dict()["numConnectedClients"] == "0"

    def test_status_while_streaming(self, streaming, messages):
        streaming.dispatcher.handle_line("status::::")

        reply = last_reply(messages)
        assert reply["source"] == '"status_command"'
        assert reply["connected"] == "true"
        assert reply["currentBitrate"] == "10000"


class TestSetparam:

    def test_not_streaming(self, context, messages):
        context.dispatcher.handle_line("setparam:enc0::bitrate:5000")

        reply = messages()[-1]
        assert reply.type is MessageType.SETPARAM
        assert reply.as_dict()["result"] == '"not streaming"'
        assert context.engine.pipeline is None

    def test_sets_element_property(self, streaming, messages):
        streaming.dispatcher.handle_line("setparam:enc0::bitrate:5000")

        encoder = streaming.engine.pipeline.get_element("enc0")
        assert encoder.set_calls[-1] == ("bitrate", 5000.0)
        reply = last_reply(messages)
        assert reply == {
            "element": '"enc0"',
            "pad": '""',
            "property": '"bitrate"',
            "value": '"5000"',
            "result": '"ok"',
        }

    def test_sets_pad_property(self, streaming, messages):
        streaming.dispatcher.handle_line("setparam:pay0:src:offset:1.5")

        pad = streaming.engine.pipeline.get_element("pay0").get_pad("src")
        assert pad.set_calls == [("offset", 1.5)]
        assert last_reply(messages)["result"] == '"ok"'

    @pytest.mark.parametrize(
        "line, result",
        [
            ("setparam:enc9::bitrate:1", "element not found"),
            ("setparam:pay0:sink:offset:1", "pad not found"),
            ("setparam:enc0::bitrate:fast", "invalid value"),
            ("setparam:enc0::no-such-prop:1", "rejected"),
            ("setparam:pay0::stats:1", "rejected"),
        ],
    )
    def test_failures_reply(self, streaming, messages, line, result):
        encoder = streaming.engine.pipeline.get_element("enc0")
        writes_before = list(encoder.set_calls)

        streaming.dispatcher.handle_line(line)

        assert last_reply(messages)["result"] == f'"{result}"'
        assert encoder.set_calls == writes_before
        assert streaming.session.connected is True

    @pytest.mark.parametrize("value", ["inf", "-inf", "nan"])
    def test_non_finite_value_invalid(self, streaming, messages, value):
        encoder = streaming.engine.pipeline.get_element("enc0")
        writes_before = list(encoder.set_calls)

        streaming.dispatcher.handle_line(f"setparam:enc0::bitrate:{value}")

        assert last_reply(messages)["result"] == '"invalid value"'
        assert encoder.set_calls == writes_before

    def test_out_of_range_value_rejected(self, streaming, messages, monkeypatch):
        encoder = streaming.engine.pipeline.get_element("enc0")
        set_property = encoder.set_property

        def guint_set_property(name, value):
            if value > 2**32 - 1:
                raise OverflowError(f"{value} not in range 0 to 4294967295")
            set_property(name, value)

        monkeypatch.setattr(encoder, "set_property", guint_set_property)

        streaming.dispatcher.handle_line("setparam:enc0::bitrate:1e20")
        assert last_reply(messages)["result"] == '"rejected"'

        streaming.dispatcher.handle_line("setparam:enc0::bitrate:6000")
        assert last_reply(messages)["result"] == '"ok"'
        assert encoder.get_property("bitrate") == 6000.0

    def test_short_setparam_never_reaches_proxy(self, streaming, messages):
        spy = SpyProxy()
        dispatcher = CommandDispatcher(streaming.session, spy, streaming.reporter)
        before = len(messages())

        dispatcher.handle_line("setparam:enc0:bitrate:5000")
        dispatcher.handle_line("setparam:enc0")
        dispatcher.handle_line("setparam")

        assert spy.calls == []
        assert len(messages()) == before

    def test_complete_setparam_reaches_proxy(self, streaming):
        spy = SpyProxy()
        dispatcher = CommandDispatcher(streaming.session, spy, streaming.reporter)

        dispatcher.handle_line("setparam:enc0::bitrate:4000")

        assert spy.calls == [("enc0", "", "bitrate", 4000.0)]


class TestPrintbin:

    def test_one_message_per_element(self, streaming, messages):
        before = len(messages())
        streaming.dispatcher.handle_line("printbin::::")

        dumped = messages()[before:]
        assert [m.type for m in dumped] == [MessageType.ELEMENTPROPS] * 4
        assert [m.as_dict()["name"] for m in dumped] == [
            '"source0"',
            '"videoconvert0"',
            '"enc0"',
            '"pay0"',
        ]

    def test_property_formatting(self, streaming, messages):
        streaming.dispatcher.handle_line("printbin::::")
        by_name = {m.as_dict()["name"]: m for m in messages() if m.type is MessageType.ELEMENTPROPS}

        source = by_name['"source0"'].as_dict()
        assert source["classname"] == '"GstV4l2Src"'
        assert source["device"] == '"/dev/video0"'
        assert source["do-timestamp"] == "false"
        assert source["io-mode"] == "[0]auto"

        encoder = by_name['"enc0"']
        assert encoder.keys()[:2] == ["classname", "name"]
        assert encoder.as_dict()["bitrate"] == "10000"
        assert encoder.as_dict()["speed-preset"] == "[6]medium"
        assert encoder.as_dict()["ip-factor"] == "1.4"

    def test_unsupported_properties_skipped(self, streaming, messages):
        streaming.dispatcher.handle_line("printbin::::")
        payloader = [m for m in messages() if m.as_dict().get("name") == '"pay0"'][0]

        assert "stats" not in payloader.keys()
        assert payloader.as_dict()["config-interval"] == "2"

    def test_not_streaming_is_noop(self, context, messages):
        context.dispatcher.handle_line("printbin::::")
        assert messages() == []


class TestUnknown:

    def test_unknown_verb_no_reply(self, streaming, messages):
        before = len(messages())
        streaming.dispatcher.handle_line("reboot::::")
        streaming.dispatcher.handle_line("")

        assert len(messages()) == before
        assert streaming.dispatcher.commands_handled == 0
