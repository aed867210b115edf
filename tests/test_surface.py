import json

from PIL import Image

from lockscreen import ArtworkEntry, FileSurface, InMemorySurface, SurfacePayload

ART = "https://cdn.example.com/cover.png"


def _payload(title="Song", artwork=None):
    return SurfacePayload(
        title=title,
        artist="Band",
        album="Live Radio",
        playback_rate=1.0,
        is_live_stream=False,
        elapsed_ms=1500,
        duration_ms=200000,
        artwork=artwork,
    )


async def test_in_memory_surface_keeps_history():
    surface = InMemorySurface(history_size=2)
    for title in ("a", "b", "c"):
        await surface.write(_payload(title))

    assert (await surface.read()).title == "c"
    assert [p.title for p in surface.history] == ["b", "c"]
    assert surface.write_count == 3

    await surface.clear()
    assert await surface.read() is None


async def test_file_surface_publishes_json_and_artwork(tmp_path):
    surface = FileSurface(tmp_path)
    artwork = ArtworkEntry(ART, Image.new("CMYK", (5, 5)))

    await surface.write(_payload(artwork=artwork))

    info = json.loads((tmp_path / FileSurface.INFO_FILE).read_text(encoding="utf-8"))
    assert info["title"] == "Song"
    assert info["artwork_url"] == ART
    assert info["duration_ms"] == 200000
    with Image.open(tmp_path / FileSurface.ART_FILE) as img:
        assert img.size == (5, 5)

    current = await surface.read()
    assert current.title == "Song"
    assert current.playback_rate == 1.0
    assert current.artwork_url == ART
    assert not list(tmp_path.glob("*.tmp"))


async def test_file_surface_read_back_can_be_rewritten(tmp_path):
    surface = FileSurface(tmp_path)
    await surface.write(_payload(artwork=ArtworkEntry(ART, Image.new("RGB", (2, 2)))))

    # What read() returns carries a file path instead of a decoded image
    current = await surface.read()
    await surface.write(current)

    assert (await surface.read()).artwork_url == ART


async def test_file_surface_clear_and_missing_files(tmp_path):
    surface = FileSurface(tmp_path / "out")
    assert await surface.read() is None

    await surface.write(_payload(artwork=ArtworkEntry(ART, Image.new("RGB", (2, 2)))))
    await surface.clear()

    assert await surface.read() is None
    assert not (tmp_path / "out" / FileSurface.ART_FILE).exists()


async def test_file_surface_tolerates_corrupt_json(tmp_path):
    surface = FileSurface(tmp_path)
    (tmp_path / FileSurface.INFO_FILE).write_text("{broken", encoding="utf-8")
    assert await surface.read() is None
