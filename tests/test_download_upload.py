"""Tests for client.download / client.upload / client.throughput."""

import asyncio
import unittest

import aiohttp

from client.api import Server
from client.download import DownloadTester
from client.errors import TrialError, TrialTimeout
from client.throughput import SizeBucket, ThroughputResult
from client.upload import TimedBody, UploadTester, create_upload_payload

from fakes import (
    FakeClock,
    FakeResponse,
    FakeSession,
    RecordingObserver,
    download_body,
    hang,
    rate_limited,
)

MIB = 1024 * 1024
SERVER = Server.from_url("http://speed.test")


def download_timeline(*trials):
    """Clock values for download trials of (size_mb, mbps), two chunks each."""
    values = []
    for size_mb, mbps in trials:
        elapsed = size_mb * 8 / mbps
        values += [0.0, 0.0, elapsed]
    return values


def upload_timeline(*trials):
    values = []
    for size_mb, mbps in trials:
        values += [0.0, size_mb * 8 / mbps]
    return values


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

class TestSizeBucket(unittest.TestCase):
    def test_classifies_samples(self):
        bucket = SizeBucket(size_mb=2)
        for sample in (None, 0.0, 40.0, 42.0):
            bucket.add(sample)
        self.assertEqual(bucket.failures, 1)
        self.assertEqual(bucket.zero_samples, 1)
        self.assertEqual(bucket.samples, [40.0, 42.0])

    def test_cold_start_trimmed(self):
        bucket = SizeBucket(size_mb=1, samples=[10.0, 20.0, 30.0])
        bucket.calculate()
        self.assertAlmostEqual(bucket.value, 25.0)

    def test_empty_bucket_is_zero(self):
        bucket = SizeBucket(size_mb=1)
        bucket.calculate()
        self.assertEqual(bucket.value, 0.0)


class TestThroughputResult(unittest.TestCase):
    def test_empty_buckets_ignored(self):
        result = ThroughputResult(buckets=[
            SizeBucket(size_mb=2, samples=[50.0], value=50.0),
            SizeBucket(size_mb=5, failures=2),
        ])
        result.calculate()
        self.assertEqual(result.speed_mbps, 50)

    def test_rounds_half_up(self):
        result = ThroughputResult(buckets=[
            SizeBucket(size_mb=2, samples=[40.0], value=40.0),
            SizeBucket(size_mb=5, samples=[41.0], value=41.0),
        ])
        result.calculate()
        self.assertEqual(result.speed_mbps, 41)

    def test_no_data_is_zero(self):
        result = ThroughputResult()
        result.calculate()
        self.assertEqual(result.speed_mbps, 0)


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------

class TestDownloadTester(unittest.IsolatedAsyncioTestCase):
    async def test_known_timeline(self):
        clock = FakeClock(download_timeline((2, 40), (2, 40), (5, 40), (5, 40)))
        tester = DownloadTester(
            sizes_mb=[2, 5], measurements_per_size=2, concurrent=False,
            observer=RecordingObserver(), clock=clock,
        )
        session = FakeSession(get=download_body())

        result = await tester.test(session, SERVER)

        self.assertEqual(result.speed_mbps, 40)
        self.assertEqual([b.size_mb for b in result.buckets], [2, 5])
        self.assertEqual(len(result.samples), 4)
        self.assertEqual(clock.remaining, 0)
        self.assertEqual(session.calls[0][1], "http://speed.test/download")
        self.assertEqual(session.calls[0][2]["params"], {"size": "2"})
        self.assertEqual(session.calls[-1][2]["params"], {"size": "5"})

    async def test_cold_start_excluded_per_size(self):
        clock = FakeClock(download_timeline((1, 10), (1, 20), (1, 30)))
        tester = DownloadTester(
            sizes_mb=[1], measurements_per_size=3, concurrent=False,
            observer=RecordingObserver(), clock=clock,
        )
        result = await tester.test(FakeSession(get=download_body()), SERVER)
        self.assertEqual(result.speed_mbps, 25)

    async def test_single_rate_limit_does_not_zero_result(self):
        clock = FakeClock(download_timeline((2, 40), (5, 40), (5, 40)))
        observer = RecordingObserver()
        tester = DownloadTester(
            sizes_mb=[2, 5], measurements_per_size=2, concurrent=False,
            observer=observer, clock=clock,
        )
        ok = download_body()
        session = FakeSession(get=[rate_limited(), ok, ok, ok])

        result = await tester.test(session, SERVER)

        self.assertEqual(result.speed_mbps, 40)
        self.assertEqual(result.buckets[0].zero_samples, 1)
        self.assertIn("rate limited (429), recording zero sample", observer.messages("warn"))
        warn = [e for e in observer.events if e[2].startswith("rate limited")][0]
        self.assertEqual(warn[3]["retry_after"], 30.0)
        self.assertEqual(warn[3]["remaining"], 0)

    async def test_transport_errors_give_zero(self):
        observer = RecordingObserver()
        tester = DownloadTester(sizes_mb=[2, 5], measurements_per_size=2, observer=observer)
        session = FakeSession(get=aiohttp.ClientConnectionError("connection refused"))

        result = await tester.test(session, SERVER)

        self.assertEqual(result.speed_mbps, 0)
        self.assertEqual(result.failures, 4)
        self.assertEqual(observer.messages("warn").count("trial failed"), 4)

    async def test_error_status_is_zero_sample(self):
        tester = DownloadTester(sizes_mb=[1], measurements_per_size=2, observer=RecordingObserver())
        result = await tester.test(FakeSession(get=FakeResponse(status=503)), SERVER)
        self.assertEqual(result.speed_mbps, 0)
        self.assertEqual(result.buckets[0].zero_samples, 2)
        self.assertEqual(result.failures, 0)

    async def test_empty_body_is_zero_sample(self):
        tester = DownloadTester(sizes_mb=[1], measurements_per_size=1, observer=RecordingObserver())
        speed = await tester.measure_once(FakeSession(get=FakeResponse(chunks=[])), SERVER, 1)
        self.assertEqual(speed, 0.0)

    async def test_transport_error_raises_trial_error(self):
        tester = DownloadTester(observer=RecordingObserver())
        session = FakeSession(get=aiohttp.ClientPayloadError("truncated"))
        with self.assertRaises(TrialError):
            await tester.measure_once(session, SERVER, 2)

    async def test_timeout_counts_as_failure(self):
        observer = RecordingObserver()
        tester = DownloadTester(
            sizes_mb=[1], measurements_per_size=2, trial_timeout=0.01, observer=observer,
        )
        result = await tester.test(FakeSession(get=hang()), SERVER)

        self.assertEqual(result.speed_mbps, 0)
        self.assertEqual(result.failures, 2)
        failed = [e for e in observer.events if e[2] == "trial failed"]
        self.assertTrue(all("timed out" in e[3]["error"] for e in failed))

    async def test_with_timeout_raises_trial_timeout(self):
        tester = DownloadTester(trial_timeout=0.01, observer=RecordingObserver())
        with self.assertRaises(TrialTimeout) as ctx:
            await tester._with_timeout(asyncio.sleep(1))
        self.assertEqual(ctx.exception.timeout, 0.01)

    async def test_programming_error_propagates(self):
        tester = DownloadTester(sizes_mb=[1], measurements_per_size=2, observer=RecordingObserver())
        with self.assertRaises(RuntimeError):
            await tester.test(FakeSession(get=RuntimeError("boom")), SERVER)

    async def test_progress_reported_per_size(self):
        clock = FakeClock(download_timeline((2, 40), (5, 40)))
        tester = DownloadTester(
            sizes_mb=[2, 5], measurements_per_size=1, concurrent=False,
            observer=RecordingObserver(), clock=clock,
        )
        progress = []
        tester.on_progress = lambda fraction, value: progress.append(fraction)
        await tester.test(FakeSession(get=download_body()), SERVER)
        self.assertEqual(progress, [0.5, 1.0])


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

class TestUploadPayload(unittest.TestCase):
    def test_length(self):
        self.assertEqual(len(create_upload_payload(2)), 2 * MIB)
        self.assertEqual(len(create_upload_payload(0.5)), 524288)


class TestTimedBody(unittest.IsolatedAsyncioTestCase):
    async def test_records_window(self):
        body = TimedBody(b"a" * 10, FakeClock([1.0, 1.5]), chunk_size=4)
        chunks = [c async for c in body.stream()]
        self.assertEqual(chunks, [b"aaaa", b"aaaa", b"aa"])
        self.assertAlmostEqual(body.elapsed, 0.5)

    def test_elapsed_before_stream(self):
        body = TimedBody(b"abc", FakeClock([]))
        self.assertEqual(body.elapsed, 0.0)


class TestUploadTester(unittest.IsolatedAsyncioTestCase):
    async def test_two_mib_in_half_second(self):
        tester = UploadTester(observer=RecordingObserver(), clock=FakeClock([0.0, 0.5]))
        session = FakeSession(post=FakeResponse(chunks=[b'{"size": 2097152}']))
        speed = await tester.measure_once(session, SERVER, 2)
        self.assertAlmostEqual(speed, 32.0)
        method, url, kwargs = session.calls[0]
        self.assertEqual(url, "http://speed.test/upload")
        self.assertEqual(kwargs["headers"]["Content-Type"], "application/octet-stream")

    async def test_known_timeline(self):
        clock = FakeClock(upload_timeline((2, 20), (2, 20), (5, 20), (5, 20)))
        tester = UploadTester(
            sizes_mb=[2, 5], measurements_per_size=2, concurrent=False,
            observer=RecordingObserver(), clock=clock,
        )
        result = await tester.test(FakeSession(post=FakeResponse()), SERVER)
        self.assertEqual(result.speed_mbps, 20)
        self.assertEqual(clock.remaining, 0)

    async def test_payload_reused_per_size(self):
        tester = UploadTester(observer=RecordingObserver())
        self.assertIs(tester._payload(1), tester._payload(1))

    async def test_too_large_raises(self):
        tester = UploadTester(observer=RecordingObserver())
        with self.assertRaises(TrialError) as ctx:
            await tester.measure_once(FakeSession(post=FakeResponse(status=413)), SERVER, 1)
        self.assertEqual(ctx.exception.status, 413)

    async def test_rate_limited_is_zero_sample(self):
        observer = RecordingObserver()
        tester = UploadTester(observer=observer)
        speed = await tester.measure_once(FakeSession(post=rate_limited()), SERVER, 1)
        self.assertEqual(speed, 0.0)
        self.assertIn("rate limited (429), recording zero sample", observer.messages("warn"))

    async def test_transport_errors_give_zero(self):
        tester = UploadTester(sizes_mb=[1], measurements_per_size=2, observer=RecordingObserver())
        session = FakeSession(post=aiohttp.ServerDisconnectedError())
        result = await tester.test(session, SERVER)
        self.assertEqual(result.speed_mbps, 0)
        self.assertEqual(result.failures, 2)


if __name__ == "__main__":
    unittest.main()
