"""Tests for the wardrobe upload pipeline."""

import asyncio

from config.settings import UploadConfig
from kagai.ai import ClothingAnalyzer
from kagai.pipeline import UploadPipeline, UploadState, UploadTask

ANALYSIS = '{"type": "T-Shirt", "tags": ["Navy", "Solid", "Casual", "Regular-Fit"]}'


class CountingAnalyzer:
    """Records how many analyses run at once."""

    def __init__(self):
        self.active = 0
        self.peak = 0

    async def analyze(self, image_url):
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        return ClothingAnalyzer.parse_response(ANALYSIS)


def jpg(name="shirt.jpg", size=1024):
    return (name, b"x" * size, "image/jpeg")


async def test_files_flow_through_every_state(store, fake_db, make_ai) -> None:
    seen = []
    pipeline = UploadPipeline(
        store,
        ClothingAnalyzer(ai_client=make_ai(ANALYSIS)),
        on_update=lambda task: seen.append(task.state),
    )

    [task] = await pipeline.process("u1", [jpg()])

    assert task.state is UploadState.COMPLETE
    assert seen == [
        UploadState.QUEUED,
        UploadState.UPLOADING,
        UploadState.ANALYZING,
        UploadState.SAVING,
        UploadState.COMPLETE,
    ]
    assert task.image_url.startswith("https://fake.supabase.co/storage/v1/object/public/wardrobe/u1/")
    assert task.image_url.endswith(".jpg")
    assert list(fake_db.storage.objects) == [("wardrobe", task.storage_path)]
    assert "source" not in fake_db.tables["wardrobe_items"][0]

    row = fake_db.tables["wardrobe_items"][0]
    assert row["user_id"] == "u1"
    assert row["type"] == "t-shirt"
    assert row["tags"] == ["navy", "solid", "casual", "regular-fit"]
    assert row["status"] == "completed"
    assert task.to_dict()["item"]["id"] == row["id"]


async def test_concurrency_is_capped(store) -> None:
    analyzer = CountingAnalyzer()
    pipeline = UploadPipeline(store, analyzer, upload_config=UploadConfig(max_concurrent=2))

    tasks = await pipeline.process("u1", [jpg(f"{i}.jpg") for i in range(6)])

    assert all(t.state is UploadState.COMPLETE for t in tasks)
    assert analyzer.peak == 2


async def test_invalid_files_fail_without_upload(store, fake_db, make_ai) -> None:
    pipeline = UploadPipeline(store, ClothingAnalyzer(ai_client=make_ai(ANALYSIS)))
    big = jpg("big.jpg", size=10 * 1024 * 1024 + 1)
    gif = ("anim.gif", b"GIF89a", "image/gif")

    tasks = await pipeline.process("u1", [big, gif, jpg("ok.png")])

    assert tasks[0].error == "File size must be less than 10MB"
    assert tasks[1].error == "Only JPG and PNG images are supported"
    assert tasks[2].state is UploadState.COMPLETE
    assert len(fake_db.storage.objects) == 1
    assert UploadPipeline.summary(tasks)["error"] == 2


async def test_one_failure_does_not_stop_the_batch(store, fake_db, make_ai) -> None:
    ai = make_ai(ANALYSIS)
    pipeline = UploadPipeline(store, ClothingAnalyzer(ai_client=ai))
    fake_db.failing_tables.add("wardrobe_items")

    tasks = await pipeline.process("u1", [jpg("a.jpg"), jpg("b.jpg")])

    assert [t.state for t in tasks] == [UploadState.ERROR, UploadState.ERROR]
    assert "wardrobe_items is unavailable" in tasks[0].error
    assert tasks[0].analysis is not None
    # uploaded objects are removed again once the insert fails
    assert fake_db.storage.objects == {}
    assert tasks[0].image_url is None


async def test_failed_analysis_removes_uploaded_file(store, fake_db, make_ai) -> None:
    pipeline = UploadPipeline(store, ClothingAnalyzer(ai_client=make_ai(error=RuntimeError("vision down"))))

    [task] = await pipeline.process("u1", [jpg()])

    assert task.state is UploadState.ERROR
    assert task.error == "vision down"
    assert fake_db.storage.objects == {}
    assert "wardrobe_items" not in fake_db.tables


async def test_upload_failure_is_reported(store, fake_db, make_ai) -> None:
    fake_db.storage.fail_uploads = True
    pipeline = UploadPipeline(store, ClothingAnalyzer(ai_client=make_ai(ANALYSIS)))
    [task] = await pipeline.process("u1", [UploadTask(filename="a.jpg", content=b"data")])
    assert task.state is UploadState.ERROR
    assert task.error == "storage unavailable"
    assert task.analysis is None


async def test_missing_user_fails_every_file(store, make_ai) -> None:
    pipeline = UploadPipeline(store, ClothingAnalyzer(ai_client=make_ai(ANALYSIS)))
    tasks = await pipeline.process("", [jpg(), jpg("b.jpg")])
    assert all(t.error == "Missing user id" for t in tasks)


def test_storage_path_shape() -> None:
    path = UploadPipeline.storage_path("u1", ".png")
    user, name = path.split("/")
    stamp, rest = name.split("-")
    assert user == "u1" and stamp.isdigit() and rest.endswith(".png")
