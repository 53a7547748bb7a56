from fitspo import cache
from fitspo.models import Post, ScanState
from fitspo.scanner import OutfitScanner
from fitspo.worker import process_next
from fakes import FakeScanClient, FakeSleep, make_job, with_failing_commit


def test_empty_queue_returns_false(session_factory, make_post):
    make_post()

    async def never_called(post_id, image_url):
        raise AssertionError("no scan expected")

    assert process_next(session_factory, never_called) is False


def test_processes_oldest_queued_post(session_factory, make_post):
    post_id = make_post(scan_state=ScanState.queued, image_url="https://img.test/q.jpg")
    client = FakeScanClient(make_job("succeeded", objects=[{"name": "loafers"}]))
    scanner = OutfitScanner(client, session_factory, sleep=FakeSleep())

    assert process_next(session_factory, scanner.scan_post) is True

    assert client.submit_calls == [(post_id, "https://img.test/q.jpg")]
    with session_factory() as db:
        post = db.get(Post, post_id)
        assert post.scan_state == ScanState.succeeded
        assert post.scan_results[0]["label"] == "loafers"
    assert process_next(session_factory, scanner.scan_post) is False


def test_scan_error_leaves_state_recorded_by_scanner(session_factory, make_post):
    post_id = make_post(scan_state=ScanState.queued)
    client = FakeScanClient(make_job("starting"), [make_job("processing")])
    scanner = OutfitScanner(client, session_factory, sleep=FakeSleep())

    assert process_next(session_factory, scanner.scan_post) is True

    with session_factory() as db:
        post = db.get(Post, post_id)
        assert post.scan_state == ScanState.failed
        assert "scan timed out" in post.scan_error


def test_cache_write_failure_is_recorded(session_factory, make_post, monkeypatch):
    post_id = make_post(scan_state=ScanState.queued)
    monkeypatch.setattr(cache, "write_scan_results", with_failing_commit(cache.write_scan_results))
    client = FakeScanClient(make_job("succeeded", objects=[{"label": "coat"}]))
    scanner = OutfitScanner(client, session_factory, sleep=FakeSleep())

    assert process_next(session_factory, scanner.scan_post) is True

    with session_factory() as db:
        post = db.get(Post, post_id)
        assert post.scan_state == ScanState.failed
        assert "could not save scan results" in post.scan_error


def test_unexpected_error_is_recorded_and_worker_continues(session_factory, make_post):
    first = make_post(scan_state=ScanState.queued)

    async def crashing_scan(post_id, image_url):
        raise RuntimeError("boom")

    assert process_next(session_factory, crashing_scan) is True

    with session_factory() as db:
        assert db.get(Post, first).scan_error == "boom"
        assert db.get(Post, first).scan_state == ScanState.failed
