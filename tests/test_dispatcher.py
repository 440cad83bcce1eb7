import logging
import re

from mqtt_logger.dispatcher import Dispatcher, Signal, State
from mqtt_logger.events import ConnAck, Disconnect, Ignored, PollError, Publish, SubAck
from mqtt_logger.registry import subscribe_topics
from mqtt_logger.timestamps import stamp
from mqtt_logger.writer import DualSinkWriter


def make(tmp_path, transport, console, topics=("a", "b"), clock=None):
    registry = subscribe_topics(list(topics), transport, tmp_path)
    writer = DualSinkWriter(registry, console)
    kwargs = {"clock": clock} if clock else {}
    return Dispatcher(transport, writer, **kwargs), registry


def test_scenario_single_publication(tmp_path, fake_transport, console):
    transport = fake_transport([Publish("sensors/temp", b"21.5")])
    dispatcher, registry = make(tmp_path, transport, console, topics=["sensors/temp"])
    with registry:
        dispatcher.run()
    content = (tmp_path / "sensors" / "temp.txt").read_text()
    assert re.fullmatch(r"\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}\] 21.5\n", content)


def test_ordering_per_topic(tmp_path, fake_transport, console, fixed_ts):
    transport = fake_transport([Publish("a", b"P1"), Publish("b", b"P2"), Publish("a", b"P3")])
    dispatcher, registry = make(tmp_path, transport, console, clock=lambda: fixed_ts)
    with registry:
        dispatcher.run()
    prefix = "[2024-03-09 07:05:03.042] "
    assert (tmp_path / "a.txt").read_text() == f"{prefix}P1\n{prefix}P3\n"
    assert (tmp_path / "b.txt").read_text() == f"{prefix}P2\n"
    lines = console.getvalue().splitlines()
    assert [line[-2:] for line in lines] == [b"P1", b"P2", b"P3"]


def test_both_sinks_share_one_instant(tmp_path, fake_transport, console):
    transport = fake_transport([Publish("a", b"x")])
    calls = []

    def clock():
        ts = stamp()
        calls.append(ts)
        return ts

    dispatcher, registry = make(tmp_path, transport, console, clock=clock)
    with registry:
        dispatcher.run()
    assert len(calls) == 1
    digits = calls[0].plain.strip()[1:-1]
    assert (tmp_path / "a.txt").read_text().startswith(f"[{digits}] ")
    assert digits.encode() in console.getvalue()


def test_poll_error_terminates_after_n_messages(tmp_path, fake_transport, console, caplog):
    transport = fake_transport([Publish("a", b"1"), ConnAck(True), Publish("b", b"2")])
    dispatcher, registry = make(tmp_path, transport, console)
    with registry:
        stats = dispatcher.run()
    assert dispatcher.state is State.TERMINATED
    assert stats.written == 2
    assert transport.polls == 4
    assert dispatcher.error == "connection closed by broker"
    assert "Transport error" in caplog.text


def test_unknown_topic_does_not_stop_loop(tmp_path, fake_transport, console, caplog):
    transport = fake_transport([Publish("nope", b"1"), Publish("nope", b"2"), Publish("a", b"3")])
    dispatcher, registry = make(tmp_path, transport, console)
    with registry:
        stats = dispatcher.run()
    assert stats.dropped_unknown == 2
    assert stats.written == 1
    assert caplog.text.count("topic=nope") == 2
    assert not (tmp_path / "nope.txt").exists()


def test_subscribe_failure_isolated(tmp_path, fake_transport, console):
    transport = fake_transport([Publish("b", b"ok")], fail_subscribe={"a"})
    dispatcher, registry = make(tmp_path, transport, console)
    with registry:
        assert "a" in registry
        dispatcher.run()
    assert (tmp_path / "b.txt").read_bytes().endswith(b"ok\n")


def test_suback_failure_names_topic_when_known(tmp_path, fake_transport, console, caplog):
    transport = fake_transport()
    dispatcher, registry = make(tmp_path, transport, console)
    with registry:
        assert dispatcher.dispatch(SubAck(codes=(True, False), topics=("a", "b"))) is Signal.CONTINUE
    assert "Got a subscribe fail packet (topic=b)" in caplog.text
    assert all(r.levelno == logging.WARNING for r in caplog.records if "subscribe fail" in r.getMessage())
    assert "topic=a" not in caplog.text
    assert dispatcher.stats.subscribe_failures == 1


def test_suback_failure_without_topic(tmp_path, fake_transport, console, caplog):
    dispatcher, registry = make(tmp_path, fake_transport(), console)
    with registry:
        dispatcher.dispatch(SubAck(codes=(False,)))
    records = [r for r in caplog.records if "subscribe fail" in r.getMessage()]
    assert [(r.levelno, r.getMessage()) for r in records] == [(logging.WARNING, "Got a subscribe fail packet")]


def test_status_notifications(tmp_path, fake_transport, console, caplog):
    dispatcher, registry = make(tmp_path, fake_transport(), console)
    with registry:
        assert dispatcher.dispatch(ConnAck(True, "Success")) is Signal.CONTINUE
        assert dispatcher.dispatch(ConnAck(False, "Not authorized")) is Signal.CONTINUE
        assert dispatcher.dispatch(Disconnect()) is Signal.CONTINUE
        assert dispatcher.dispatch(Ignored("PINGRESP")) is Signal.CONTINUE
    assert caplog.text.count("Connection established") == 1
    assert "Got disconnect" in caplog.text
    assert console.getvalue() == b""


def test_poll_error_signal(tmp_path, fake_transport, console):
    dispatcher, registry = make(tmp_path, fake_transport(), console)
    with registry:
        assert dispatcher.dispatch(PollError("boom")) is Signal.TERMINATE
    assert dispatcher.error == "boom"


def test_unrecognised_notification_is_ignored(tmp_path, fake_transport, console):
    dispatcher, registry = make(tmp_path, fake_transport(), console)
    with registry:
        assert dispatcher.dispatch(object()) is Signal.CONTINUE
