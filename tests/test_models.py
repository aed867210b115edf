import pytest
from PIL import Image

from lockscreen import (
    ArtworkEntry,
    InvalidRequest,
    MetadataCache,
    NowPlayingSnapshot,
    PendingUpdate,
    build_payload,
)


def test_from_request_builds_snapshot():
    snap = NowPlayingSnapshot.from_request(
        "Song", "Band", True, artwork_url=" http://x/a.png ", duration_ms=180000, position_ms=1000
    )
    assert snap.key == ("Song", "Band", True)
    assert snap.artwork_url == "http://x/a.png"
    assert snap.playback_rate == 1.0
    assert not snap.is_live_stream


def test_blank_artwork_url_means_none():
    snap = NowPlayingSnapshot.from_request("Song", "Band", False, artwork_url="   ")
    assert snap.artwork_url is None
    assert snap.playback_rate == 0.0
    assert snap.is_live_stream


@pytest.mark.parametrize("kwargs", [
    dict(title=None, artist="Band", is_playing=True),
    dict(title="Song", artist=3, is_playing=True),
    dict(title="Song", artist="Band", is_playing="yes"),
    dict(title="Song", artist="Band", is_playing=True, artwork_url=12),
    dict(title="Song", artist="Band", is_playing=True, duration_ms=-1),
    dict(title="Song", artist="Band", is_playing=True, position_ms=True),
])
def test_from_request_rejects_bad_fields(kwargs):
    with pytest.raises(InvalidRequest) as exc:
        NowPlayingSnapshot.from_request(**kwargs)
    assert exc.value.code == "INVALID_ARGUMENTS"


def test_pending_update_forced_keeps_snapshot():
    snap = NowPlayingSnapshot("Song", "Band", is_playing=True)
    forced = PendingUpdate(snap).forced("verify")
    assert forced.force_update
    assert forced.reason == "verify"
    assert forced.snapshot is snap
    assert forced.is_reapply


def test_build_payload_drops_foreign_artwork():
    snap = NowPlayingSnapshot("Song", "Band", artwork_url="http://x/new.png", is_playing=True)
    stale = ArtworkEntry("http://x/old.png", Image.new("RGB", (2, 2)))
    assert build_payload(snap, stale).artwork is None

    fresh = ArtworkEntry("http://x/new.png", Image.new("RGB", (2, 2)))
    payload = build_payload(snap, fresh)
    assert payload.artwork_url == "http://x/new.png"
    assert payload.to_dict()["artwork_url"] == "http://x/new.png"
    assert payload.to_dict()["playback_rate"] == 1.0


def test_cache_matches_on_triple_only():
    cache = MetadataCache()
    snap = NowPlayingSnapshot("Song", "Band", album="A", artwork_url="http://x/a.png", is_playing=True)
    assert not cache.matches(snap)

    cache.record(snap)
    assert cache.matches(NowPlayingSnapshot("Song", "Band", album="B", is_playing=True))
    assert not cache.matches(NowPlayingSnapshot("Song", "Band", is_playing=False))


def test_cache_artwork_follows_url():
    cache = MetadataCache()
    entry = ArtworkEntry("http://x/a.png", Image.new("RGB", (2, 2)))
    cache.record(NowPlayingSnapshot("Song", "Band", artwork_url="http://x/a.png", is_playing=True))
    cache.store_artwork(entry)

    assert cache.artwork_for("http://x/a.png") is entry
    assert cache.artwork_for("http://x/b.png") is None
    assert cache.artwork_for(None) is None

    # A snapshot without artwork drops the cached image
    cache.record(NowPlayingSnapshot("Next", "Band", is_playing=True))
    assert cache.artwork is None

    cache.clear()
    assert cache.last_applied is None


def test_forced_request_is_still_a_request():
    forced = PendingUpdate(NowPlayingSnapshot("Song", "Band", is_playing=True)).forced()
    assert forced.force_update
    assert not forced.is_reapply
