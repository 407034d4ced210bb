from fakes import make_item, unavailable_item
from tubeshelf.sync.progress import ProgressRecord, ProgressStore, choose_current_video


def test_progress_record_round_trip(tmp_path):
    store = ProgressStore(tmp_path / "progress.json")
    assert store.load() == ProgressRecord()

    store.save(ProgressRecord(playlist_id="PL1", video_id="v1"))

    assert store.load() == ProgressRecord(playlist_id="PL1", video_id="v1")
    assert not list(tmp_path.glob("*.tmp"))


def test_default_location_follows_state_dir(tmp_path):
    store = ProgressStore()
    store.save(ProgressRecord(playlist_id="PL1"))

    assert store.path == tmp_path / "state" / "progress.json"
    assert store.path.exists()


def test_corrupt_record_is_ignored(tmp_path):
    path = tmp_path / "progress.json"
    path.write_text("{not json", encoding="utf-8")

    assert ProgressStore(path).load() == ProgressRecord()

    path.write_text('["a list"]', encoding="utf-8")
    assert ProgressStore(path).load() == ProgressRecord()


def test_clear_removes_record(tmp_path):
    store = ProgressStore(tmp_path / "progress.json")
    store.clear()
    store.save(ProgressRecord(playlist_id="PL1"))
    store.clear()
    assert not store.path.exists()


def test_choose_current_video():
    items = [unavailable_item("gone"), make_item("a"), make_item("b")]

    assert choose_current_video(items, "vid-b", "vid-a") == "vid-b"
    assert choose_current_video(items, "missing", "vid-b") == "vid-b"
    assert choose_current_video(items, None, "missing") == "vid-a"
    assert choose_current_video(items) == "vid-a"
    assert choose_current_video([unavailable_item("gone")], "x") is None
