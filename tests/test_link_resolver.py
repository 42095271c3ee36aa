"""Link resolver state machine against a scripted Real-Debrid client."""

import requests

from src.resolver import (
    LinkResolver,
    ResolutionStatus,
    info_hash,
    is_video_file,
)


HASH = "0123456789abcdef0123456789abcdef01234567"
MAGNET = f"magnet:?xt=urn:btih:{HASH}&dn=Formula.1.2025.R12"


class FakeRealDebrid:
    """Answers torrent_info with the scripted statuses, one per call."""

    def __init__(self, statuses=(), torrents=(), links=("https://hoster/1", "https://hoster/2")):
        self.statuses = list(statuses)
        self.torrents = list(torrents)
        self.links = list(links)
        self.calls = []
        self.fail_add = False
        self.fail_info_once = False
        self.fail_unrestrict = set()

    def list_torrents(self, limit=100):
        self.calls.append(("list_torrents",))
        return self.torrents

    def add_magnet(self, magnet):
        self.calls.append(("add_magnet", magnet))
        if self.fail_add:
            raise requests.ConnectionError("boom")
        return "T1"

    def select_all_files(self, torrent_id):
        self.calls.append(("select_all_files", torrent_id))

    def torrent_info(self, torrent_id):
        self.calls.append(("torrent_info", torrent_id))
        if self.fail_info_once:
            self.fail_info_once = False
            raise requests.Timeout("slow")
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return {"id": torrent_id, "status": status, "progress": 50, "links": self.links}

    def unrestrict_link(self, link):
        self.calls.append(("unrestrict_link", link))
        if link in self.fail_unrestrict:
            raise requests.HTTPError("503")
        name = link.rsplit("/", 1)[-1]
        if name == "2":
            return {"download": "https://dl/info.nfo", "filename": "info.nfo", "filesize": 1}
        return {"download": f"https://dl/{name}.mkv", "filename": f"Race.{name}.mkv", "filesize": 10}

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


class Sleeper:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


def test_new_submission_becomes_ready():
    client = FakeRealDebrid(statuses=["queued", "downloaded"])
    sleep = Sleeper()
    seen = []
    resolver = LinkResolver(client, max_attempts=6, poll_interval=10, sleep=sleep)

    result = resolver.resolve(MAGNET, on_status=lambda job, status: seen.append((job, status)))

    assert result.status == ResolutionStatus.READY
    assert result.job_id == "T1"
    assert [f.filename for f in result.files] == ["Race.1.mkv"]
    assert seen == [("T1", "queued"), ("T1", "downloaded")]
    assert sleep.delays == [10, 10]
    assert client.count("add_magnet") == 1
    assert client.count("select_all_files") == 1


def test_never_finishing_job_is_deferred():
    client = FakeRealDebrid(statuses=["downloading"])
    sleep = Sleeper()
    resolver = LinkResolver(client, max_attempts=3, poll_interval=10, sleep=sleep)

    result = resolver.resolve(MAGNET)

    assert result.status == ResolutionStatus.DEFERRED
    assert result.job_status == "downloading"
    assert client.count("torrent_info") == 3
    assert len(sleep.delays) == 3


def test_terminal_status_fails_with_status():
    client = FakeRealDebrid(statuses=["dead"])
    result = LinkResolver(client, sleep=Sleeper()).resolve(MAGNET)
    assert result.status == ResolutionStatus.FAILED
    assert result.job_status == "dead"
    assert client.count("torrent_info") == 1


def test_submit_transport_error_fails_without_status():
    client = FakeRealDebrid(statuses=["downloaded"])
    client.fail_add = True
    result = LinkResolver(client, sleep=Sleeper()).resolve(MAGNET)
    assert result.status == ResolutionStatus.FAILED
    assert result.job_id is None
    assert result.job_status is None


def test_poll_transport_error_counts_as_attempt():
    client = FakeRealDebrid(statuses=["downloading"])
    client.fail_info_once = True
    resolver = LinkResolver(client, max_attempts=2, sleep=Sleeper())
    result = resolver.resolve(MAGNET)
    assert result.status == ResolutionStatus.DEFERRED
    assert client.count("torrent_info") == 2


def test_existing_finished_job_is_reused_by_hash():
    client = FakeRealDebrid(
        statuses=["downloaded"],
        torrents=[{"id": "OLD", "hash": HASH.upper(), "status": "downloaded"}],
    )
    sleep = Sleeper()
    result = LinkResolver(client, sleep=sleep).resolve(MAGNET)
    assert result.status == ResolutionStatus.READY
    assert result.job_id == "OLD"
    assert client.count("add_magnet") == 0
    assert sleep.delays == []


def test_existing_job_in_flight_is_polled_not_resubmitted():
    client = FakeRealDebrid(
        statuses=["downloading", "downloaded"],
        torrents=[{"id": "OLD", "magnet": MAGNET, "status": "downloading"}],
    )
    result = LinkResolver(client, sleep=Sleeper()).resolve(MAGNET)
    assert result.status == ResolutionStatus.READY
    assert client.count("add_magnet") == 0
    assert client.count("torrent_info") == 2


def test_unrestrict_failure_skips_file():
    client = FakeRealDebrid(statuses=["downloaded"], links=["https://hoster/1", "https://hoster/3"])
    client.fail_unrestrict = {"https://hoster/1"}
    result = LinkResolver(client, sleep=Sleeper()).resolve(MAGNET)
    assert result.status == ResolutionStatus.READY
    assert [f.filename for f in result.files] == ["Race.3.mkv"]


def test_info_hash_hex_and_base32():
    assert info_hash(MAGNET) == HASH
    assert info_hash("magnet:?xt=urn:btih:" + "A" * 32) == "0" * 40
    assert info_hash("magnet:?dn=nothing") is None


def test_is_video_file():
    assert is_video_file("Race.MKV")
    assert not is_video_file("info.nfo", "https://dl/info.mkv")
    assert is_video_file(None, "https://dl/race.mp4?token=1")
    assert not is_video_file(None, None)
