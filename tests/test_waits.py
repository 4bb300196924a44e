import time

import pytest

from fakes import FakeAddresser, FakeChain, FakeSubscription
from pipeline.errors import MissingArtifactError, StageCheckFailed, WaitTimeout
from pipeline.waits import (
    DeadlineSpec,
    PollSpec,
    poll_backend,
    poll_until,
    wait_for_event,
    wait_for_finalization,
    wait_for_on_chain_data,
)
from providers.base import FILE_SYSTEM, STORAGE_REQUEST_FULFILLED, EventRecord


def test_poll_backend_times_out_within_budget():
    spec = PollSpec(retries=4, delay=0.02)
    started = time.monotonic()

    with pytest.raises(WaitTimeout):
        poll_backend(lambda: False, spec, label="never")

    elapsed = time.monotonic() - started
    assert elapsed >= spec.budget
    assert elapsed < spec.budget + 0.5


def test_poll_backend_returns_first_truthy_value():
    calls = []

    def check():
        calls.append(1)
        return "ok" if len(calls) == 3 else None

    assert poll_backend(check, PollSpec(5, 0.0)) == "ok"
    assert len(calls) == 3


def test_poll_backend_swallows_transient_errors():
    calls = []

    def check():
        calls.append(1)
        if len(calls) < 3:
            raise RuntimeError("HTTP 503")
        return True

    assert poll_backend(check, PollSpec(5, 0.0)) is True


def test_poll_backend_propagates_invariant_violation():
    def check():
        raise MissingArtifactError("bucket_id")

    with pytest.raises(MissingArtifactError):
        poll_backend(check, PollSpec(5, 0.0))


def test_stage_check_failed_aborts_wait_immediately():
    calls = []

    def check():
        calls.append(1)
        raise StageCheckFailed("expired")

    with pytest.raises(StageCheckFailed):
        poll_until(check, DeadlineSpec(timeout=1.0, interval=0.0))
    assert len(calls) == 1


def test_wait_for_on_chain_data_uses_predicate():
    values = iter([None, None, {"x": 1}])
    got = wait_for_on_chain_data(lambda: next(values), lambda v: v is not None, PollSpec(5, 0.0))
    assert got == {"x": 1}


def test_poll_until_with_injected_clock():
    now = [0.0]
    sleeps = []

    def clock():
        return now[0]

    def sleep(s):
        sleeps.append(s)
        now[0] += s

    with pytest.raises(WaitTimeout):
        poll_until(lambda: False, DeadlineSpec(timeout=10.0, interval=3.0), sleep=sleep, clock=clock)

    # 3 + 3 + 3 + 1: the last sleep is clamped to the deadline
    assert sleeps == [3.0, 3.0, 3.0, 1.0]


def test_wait_for_finalization_closes_subscription():
    chain = FakeChain(FakeAddresser())
    head = wait_for_finalization(chain, timeout=1.0)
    assert head.number >= chain.best + 1
    assert all(s.closed for s in chain.subscriptions)


def test_wait_for_finalization_times_out_and_closes():
    chain = FakeChain(FakeAddresser())
    with pytest.raises(WaitTimeout):
        wait_for_finalization(chain, chain.best + 1000, timeout=0.05)
    assert chain.subscriptions and chain.subscriptions[0].closed


def test_wait_for_event_skips_non_matching_records():
    chain = FakeChain(FakeAddresser())
    chain.events = [
        EventRecord(FILE_SYSTEM, STORAGE_REQUEST_FULFILLED, {"file_key": "0xother"}),
        EventRecord(FILE_SYSTEM, STORAGE_REQUEST_FULFILLED, {"file_key": "0xABC"}),
    ]

    record = wait_for_event(
        chain,
        FILE_SYSTEM,
        STORAGE_REQUEST_FULFILLED,
        1.0,
        match=lambda r: r.field_eq("file_key", "0xabc"),
    )
    assert record.data["file_key"] == "0xABC"
    assert chain.subscriptions[0].close_count == 1


def test_wait_for_event_timeout():
    chain = FakeChain(FakeAddresser())
    with pytest.raises(WaitTimeout):
        wait_for_event(chain, FILE_SYSTEM, STORAGE_REQUEST_FULFILLED, 0.05)
    assert len(chain.subscriptions) == 1
    assert chain.subscriptions[0].close_count == 1


def test_wait_for_event_closes_subscription_when_next_raises():
    chain = FakeChain(FakeAddresser())

    def broken():
        raise ConnectionError("websocket dropped")

    sub = FakeSubscription(broken)
    chain.subscribe_events = lambda module, event: sub

    with pytest.raises(ConnectionError):
        wait_for_event(chain, FILE_SYSTEM, STORAGE_REQUEST_FULFILLED, 1.0)
    assert sub.close_count == 1


def test_wait_for_event_closes_subscription_when_match_aborts():
    chain = FakeChain(FakeAddresser())
    chain.events = [EventRecord(FILE_SYSTEM, STORAGE_REQUEST_FULFILLED, {"file_key": "0x1"})]

    def match(record):
        raise StageCheckFailed("storage request was revoked")

    with pytest.raises(StageCheckFailed):
        wait_for_event(chain, FILE_SYSTEM, STORAGE_REQUEST_FULFILLED, 1.0, match=match)
    assert chain.subscriptions[0].close_count == 1
