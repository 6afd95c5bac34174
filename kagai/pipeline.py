"""
Wardrobe upload pipeline: storage upload -> AI analysis -> database insert.

Each file moves through ``queued -> uploading -> analyzing -> saving`` and
ends in ``complete`` or ``error``. At most ``max_concurrent`` files are in
flight at once. Task state lives in memory only.
"""

import asyncio
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Callable, Iterable, Optional, Union

from rich.console import Console

from config.settings import UploadConfig, config
from kagai.ai.clothing_analyzer import ClothingAnalyzer
from kagai.loaders.supabase_store import SupabaseStore
from kagai.models import ClothingAnalysis, WardrobeItem

console = Console()


class UploadState(str, Enum):
    QUEUED = "queued"
    UPLOADING = "uploading"
    ANALYZING = "analyzing"
    SAVING = "saving"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class UploadTask:
    """One file making its way through the pipeline."""

    filename: str
    content: bytes = field(repr=False)
    content_type: str = "image/jpeg"
    state: UploadState = UploadState.QUEUED
    storage_path: Optional[str] = None
    image_url: Optional[str] = None
    analysis: Optional[ClothingAnalysis] = None
    item: Optional[dict] = None
    error: Optional[str] = None

    @property
    def extension(self) -> str:
        return PurePath(self.filename).suffix.lower()

    @property
    def done(self) -> bool:
        return self.state in (UploadState.COMPLETE, UploadState.ERROR)

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "state": self.state.value,
            "image_url": self.image_url,
            "analysis": self.analysis.model_dump() if self.analysis else None,
            "item": self.item,
            "error": self.error,
        }


FileInput = Union[UploadTask, tuple]


class UploadPipeline:
    """
    Processes batches of clothing photos for one user.

    Args:
        store: Supabase store (storage + wardrobe_items)
        analyzer: Vision classifier
        upload_config: Size/type limits and concurrency cap
        on_update: Called with the task after every state change
    """

    def __init__(
        self,
        store: SupabaseStore,
        analyzer: ClothingAnalyzer,
        upload_config: Optional[UploadConfig] = None,
        on_update: Optional[Callable[[UploadTask], None]] = None,
    ):
        self.store = store
        self.analyzer = analyzer
        self.config = upload_config or config.upload
        self.on_update = on_update

    def _set_state(self, task: UploadTask, state: UploadState, error: Optional[str] = None) -> None:
        task.state = state
        if error is not None:
            task.error = error
        if self.on_update:
            self.on_update(task)

    def validate(self, task: UploadTask) -> Optional[str]:
        """Return an error message if the file can't be uploaded, else None."""
        if len(task.content) > self.config.max_file_size:
            limit_mb = self.config.max_file_size // (1024 * 1024)
            return f"File size must be less than {limit_mb}MB"
        if not task.content:
            return "File is empty"
        if task.extension not in self.config.allowed_extensions:
            return "Only JPG and PNG images are supported"
        if task.content_type and task.content_type not in self.config.allowed_content_types:
            return "Only JPG and PNG images are supported"
        return None

    @staticmethod
    def storage_path(user_id: str, extension: str) -> str:
        """``<user_id>/<epoch_ms>-<random>.<ext>``"""
        return f"{user_id}/{int(time.time() * 1000)}-{secrets.token_hex(5)}{extension}"

    async def process_one(self, user_id: str, task: UploadTask) -> UploadTask:
        """
        Run a single task to completion; failures end in the error state.

        When analysis or the insert fails after the upload, the stored object
        is removed again so the bucket holds no file without a wardrobe row.
        """
        try:
            self._set_state(task, UploadState.UPLOADING)
            path = self.storage_path(user_id, task.extension)
            task.image_url = await self.store.upload_file(
                path,
                task.content,
                task.content_type,
                cache_control=self.config.cache_control,
            )
            task.storage_path = path

            self._set_state(task, UploadState.ANALYZING)
            task.analysis = await self.analyzer.analyze(task.image_url)

            self._set_state(task, UploadState.SAVING)
            item = WardrobeItem(
                user_id=user_id,
                image_url=task.image_url,
                type=task.analysis.type,
                tags=task.analysis.tags,
                status="completed",
            )
            task.item = await self.store.insert_wardrobe_item(
                item.model_dump(exclude_none=True, exclude={"id"})
            )

            self._set_state(task, UploadState.COMPLETE)
            console.print(f"[green]✓ {task.filename}: {task.analysis.type}[/green]")
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or e.__class__.__name__
            console.print(f"[red]Upload failed for {task.filename} ({task.state.value}): {message}[/red]")
            await self._discard_upload(task)
            self._set_state(task, UploadState.ERROR, error=message)
        return task

    async def _discard_upload(self, task: UploadTask) -> None:
        if not task.storage_path:
            return
        try:
            await self.store.remove_files([task.storage_path])
        except Exception as e:
            console.print(f"[yellow]Warning: could not remove {task.storage_path}: {e}[/yellow]")
            return
        task.storage_path = None
        task.image_url = None

    def _as_task(self, file: FileInput) -> UploadTask:
        if isinstance(file, UploadTask):
            return file
        filename, content, *rest = file
        return UploadTask(filename=filename, content=content, content_type=rest[0] if rest else "image/jpeg")

    async def process(self, user_id: str, files: Iterable[FileInput]) -> list[UploadTask]:
        """
        Upload, analyze and save every file.

        Args:
            user_id: Owner of the new wardrobe items
            files: UploadTask objects or (filename, bytes[, content_type]) tuples

        Returns:
            The tasks in input order, each in a terminal state
        """
        tasks = [self._as_task(f) for f in files]
        if not user_id:
            for task in tasks:
                self._set_state(task, UploadState.ERROR, error="Missing user id")
            return tasks

        semaphore = asyncio.Semaphore(self.config.max_concurrent)

        async def run(task: UploadTask) -> UploadTask:
            error = self.validate(task)
            if error:
                self._set_state(task, UploadState.ERROR, error=error)
                return task
            async with semaphore:
                return await self.process_one(user_id, task)

        for task in tasks:
            self._set_state(task, UploadState.QUEUED)

        await asyncio.gather(*(run(task) for task in tasks))

        summary = self.summary(tasks)
        console.print(
            f"[cyan]Upload batch done: {summary['complete']} complete, {summary['error']} failed[/cyan]"
        )
        return tasks

    @staticmethod
    def summary(tasks: Iterable[UploadTask]) -> dict:
        counts = {state.value: 0 for state in UploadState}
        for task in tasks:
            counts[task.state.value] += 1
        return counts
