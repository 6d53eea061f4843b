"""
Status Reporter Tests
=====================

Snapshot layout and the periodic timer.
"""

from variable_rtsp.protocol.codec import decode_message, encode_message


FULL_KEYS = [
    "source",
    "numConnectedClients",
    "connected",
    "configInterval",
    "idr",
    "enableVariableMode",
    "steps",
    "currentQuantLevel",
    "minQuantLevel",
    "maxQuantLevel",
    "currentBitrate",
    "minBitrate",
    "maxBitrate",
    "periodic_msg_rate",
]


class TestSnapshot:

    def test_key_order(self, context):
        assert context.reporter.snapshot("test").keys() == FULL_KEYS

    def test_values(self, context):
        body = context.reporter.snapshot("test").as_dict()

        assert body["source"] == '"test"'
        assert body["enableVariableMode"] == "true"
        assert body["steps"] == "4"
        assert body["maxQuantLevel"] == "51"
        assert body["currentBitrate"] == "10000"
        assert body["periodic_msg_rate"] == "5"

    def test_variable_mode_off_omits_rate_fields(self, make_context, settings):
        settings.encoder.enable_variable_mode = False
        context = make_context(settings)

        assert context.reporter.snapshot("test").keys() == [
            "source",
            "numConnectedClients",
            "connected",
            "configInterval",
            "idr",
            "enableVariableMode",
            "periodic_msg_rate",
        ]

    def test_survives_encode_decode(self, context):
        context.engine.connect_client()
        snapshot = context.reporter.snapshot("roundtrip")

        decoded = decode_message(encode_message(snapshot))

        assert decoded.keys() == FULL_KEYS
        assert decoded.as_dict() == snapshot.as_dict()

    def test_to_dict(self, context):
        context.engine.connect_client()
        data = context.reporter.to_dict()

        assert data["numConnectedClients"] == 1
        assert data["connected"] is True
        assert data["mode"] == "bitrate"
        assert data["currentBitrate"] == 10000


class TestPeriodicTimer:

    def test_armed_on_configure(self, context, fake_loop):
        context.engine.connect_client()

        assert context.reporter.periodic_armed
        assert len(fake_loop.pending) == 1
        assert fake_loop.pending[0].delay == 5

    def test_tick_emits_and_reschedules(self, context, fake_loop, messages):
        context.engine.connect_client()
        before = len(messages())

        fake_loop.fire_next()

        assert len(messages()) == before + 1
        assert messages()[-1].as_dict()["source"] == '"periodic"'
        assert len(fake_loop.pending) == 1

    def test_stops_after_disconnect(self, context, fake_loop, messages):
        context.engine.connect_client()
        context.engine.disconnect_client()
        before = len(messages())

        fake_loop.fire_next()

        assert len(messages()) == before
        assert fake_loop.pending == []
        assert not context.reporter.periodic_armed

    def test_single_chain(self, context, fake_loop):
        context.engine.connect_client()
        context.engine.disconnect_client()
        context.engine.connect_client()

        assert len(fake_loop.pending) == 1
        assert context.reporter.arm_periodic() is False

    def test_disabled_with_zero_rate(self, make_context, settings, fake_loop):
        settings.reporting.msg_rate = 0
        context = make_context(settings)

        context.engine.connect_client()

        assert fake_loop.pending == []

    def test_cancel(self, context, fake_loop):
        context.engine.connect_client()
        context.reporter.cancel_periodic()

        assert fake_loop.pending == []
        assert not context.reporter.periodic_armed
