"""Tests for the queue consumers."""

import json
import threading

import pytest

from album_ingest.consumers import (
    AsyncioConsumer,
    SerialConsumer,
    ThreadPoolConsumer,
    create_consumer,
    process_message,
)
from album_ingest.consumers.common import delete_message
from album_ingest.core.exceptions import RecordNotReadyError, StorageError
from album_ingest.core.models import HandlerReport, ItemOutcome, PipelineConfig
from album_ingest.core.observability import MetricsCollector
from album_ingest.testing import FakeAsyncSQSClient, FakeSQSClient, s3_event, wrapped_event

QUEUE_URL = "http://localhost:4566/000000000000/raw-uploads"


class StubWorker:
    """Records what it was given; keys containing "fail" raise a transient error."""

    name = "verifier"

    def __init__(self):
        self.seen = []
        self._lock = threading.Lock()

    def handle_records(self, records):
        with self._lock:
            self.seen.extend(r.key for r in records)
        if any("fail" in r.key for r in records):
            raise StorageError("object store down")
        if any("late" in r.key for r in records):
            raise RecordNotReadyError([r.key for r in records])
        return HandlerReport(
            worker=self.name,
            outcomes=[ItemOutcome(key=r.key, outcome="verified") for r in records],
        )


def enqueue(sqs, *bodies):
    for body in bodies:
        sqs.send_message(QueueUrl=QUEUE_URL, MessageBody=body if isinstance(body, str) else json.dumps(body))


@pytest.fixture
def config():
    return PipelineConfig(verifier_queue_url=QUEUE_URL, wait_time_seconds=0, concurrency=3)


class TestProcessMessage:
    def test_success_is_acknowledged(self):
        worker = StubWorker()
        metrics = MetricsCollector()
        message = {"MessageId": "m1", "Body": json.dumps(s3_event("bucket", "raws/b1/c1.jpg"))}

        assert process_message(worker, message, metrics)
        assert worker.seen == ["raws/b1/c1.jpg"]
        assert metrics.get_metrics()[0].success

    def test_wrapped_body_is_unwrapped(self):
        worker = StubWorker()
        body = wrapped_event(s3_event("bucket", "raws/b1/c1.jpg"))
        assert process_message(worker, {"MessageId": "m1", "Body": json.dumps(body)})
        assert worker.seen == ["raws/b1/c1.jpg"]

    def test_unrecognized_body_is_acknowledged_without_running_worker(self):
        worker = StubWorker()
        metrics = MetricsCollector()

        assert process_message(worker, {"MessageId": "m1", "Body": "garbage"}, metrics)
        assert worker.seen == []
        assert not metrics.get_metrics()[0].success

    @pytest.mark.parametrize("key", ["raws/b1/fail.jpg", "raws/b1/late.jpg"])
    def test_transient_errors_are_left_for_redelivery(self, key):
        metrics = MetricsCollector()
        message = {"MessageId": "m1", "Body": json.dumps(s3_event("bucket", key))}

        assert not process_message(StubWorker(), message, metrics)
        assert metrics.get_metrics()[0].error_message

    def test_unexpected_errors_are_left_for_redelivery(self):
        class BrokenWorker(StubWorker):
            def handle_records(self, records):
                raise RuntimeError("bug")

        message = {"MessageId": "m1", "Body": json.dumps(s3_event("bucket", "raws/b1/c1.jpg"))}
        assert not process_message(BrokenWorker(), message)


class TestSyncConsumers:
    @pytest.mark.parametrize("consumer_class", [SerialConsumer, ThreadPoolConsumer])
    def test_acknowledges_per_message(self, consumer_class, config):
        sqs = FakeSQSClient()
        enqueue(
            sqs,
            s3_event("bucket", "raws/b1/c1.jpg"),
            "not json",
            s3_event("bucket", "raws/b1/fail.jpg"),
            s3_event("bucket", "raws/b1/c2.jpg"),
        )
        consumer = consumer_class(StubWorker(), sqs, QUEUE_URL, config)

        stats = consumer.run(max_polls=1)

        assert stats.polls == 1
        assert stats.received == 4
        assert stats.acknowledged == 3
        assert stats.retained == 1
        assert len(sqs.deleted) == 3
        # the failed message comes back after the visibility timeout
        assert sqs.expire_visibility() == 1
        assert sqs.pending(QUEUE_URL) == 1

    def test_stops_after_max_polls(self, config):
        sqs = FakeSQSClient()
        stats = SerialConsumer(StubWorker(), sqs, QUEUE_URL, config).run(max_polls=3)
        assert stats.polls == 3
        assert sqs.receive_count == 3

    def test_stop_event(self, config):
        sqs = FakeSQSClient()
        stop_event = threading.Event()
        stop_event.set()

        stats = SerialConsumer(StubWorker(), sqs, QUEUE_URL, config).run(stop_event=stop_event)

        assert stats.polls == 0

    def test_polls_respect_max_messages(self):
        sqs = FakeSQSClient()
        enqueue(sqs, *[s3_event("bucket", f"raws/b1/c{i}.jpg") for i in range(5)])
        config = PipelineConfig(max_messages=2, wait_time_seconds=0)

        stats = SerialConsumer(StubWorker(), sqs, QUEUE_URL, config).run(max_polls=3)

        assert stats.received == 5
        assert sqs.pending(QUEUE_URL) == 0

    def test_thread_pool_handles_every_message(self, config):
        sqs = FakeSQSClient()
        worker = StubWorker()
        enqueue(sqs, *[s3_event("bucket", f"raws/b1/c{i}.jpg") for i in range(10)])

        consumer = ThreadPoolConsumer(worker, sqs, QUEUE_URL, config)
        stats = consumer.run(max_polls=1)

        assert stats.acknowledged == 10
        assert sorted(worker.seen) == sorted(f"raws/b1/c{i}.jpg" for i in range(10))
        assert consumer.metrics.get_summary("verifier.message")["total_operations"] == 10


class TestAsyncioConsumer:
    def test_acknowledges_through_async_client(self, config):
        sqs = FakeSQSClient()
        enqueue(
            sqs,
            s3_event("bucket", "raws/b1/c1.jpg"),
            s3_event("bucket", "raws/b1/fail.jpg"),
            {"unknown": "shape"},
        )
        consumer = AsyncioConsumer(StubWorker(), FakeAsyncSQSClient(sqs), QUEUE_URL, config)

        stats = consumer.run(max_polls=2)

        assert stats.polls == 2
        assert stats.received == 3
        assert stats.acknowledged == 2
        assert stats.retained == 1
        assert len(sqs.deleted) == 2


class TestCreateConsumer:
    @pytest.mark.parametrize(
        "strategy, consumer_class",
        [("serial", SerialConsumer), ("multithread", ThreadPoolConsumer), ("asyncio", AsyncioConsumer)],
    )
    def test_strategy_selects_consumer(self, strategy, consumer_class):
        config = PipelineConfig(verifier_queue_url=QUEUE_URL, strategy=strategy)
        consumer = create_consumer(StubWorker(), config, sqs_client=FakeSQSClient())

        assert type(consumer) is consumer_class
        assert consumer.queue_url == QUEUE_URL

    def test_explicit_queue_url_wins(self):
        config = PipelineConfig(verifier_queue_url=QUEUE_URL)
        consumer = create_consumer(
            StubWorker(), config, queue_url="http://other/queue", sqs_client=FakeSQSClient()
        )
        assert consumer.queue_url == "http://other/queue"


def test_failed_delete_is_reported():
    assert not delete_message(FakeSQSClient(), QUEUE_URL, {"MessageId": "m1", "ReceiptHandle": "stale"})
