"""Per-photo pipeline: ingest and analyze, then optionally animate."""

import asyncio
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Union

import httpx

from ..analyzer.video_client import VideoGeneratorClient
from ..analyzer.vision_client import VisionAnalyzerClient
from ..core.config import Config, PipelineConfig
from ..core.credentials import CredentialSelector, StaticCredentialSelector
from ..core.exceptions import AuthorizationError
from ..core.logger import audit_log, get_logger
from ..models.analysis import AnalysisResult
from ..models.media import MediaPayload
from ..models.photo import Photo, PhotoState
from ..utils.date_utils import DateUtils
from ..utils.media import MediaIngestAdapter
from ..utils.object_urls import ObjectURLRegistry
from .store import PhotoStore

logger = get_logger(__name__)


def new_photo_id() -> str:
    return uuid.uuid4().hex


class PipelineOrchestrator:
    """Drives photos through analysis and animation and merges results into the store.

    A photo enters the store only once its analysis (real or fallback) is
    done. Animation runs at most once at a time per photo id; a second
    request while a job is outstanding joins the running job.
    """

    def __init__(
        self,
        store: PhotoStore,
        vision: VisionAnalyzerClient,
        video: VideoGeneratorClient,
        credentials: CredentialSelector,
        ingest_adapter: Optional[MediaIngestAdapter] = None,
        config: Optional[PipelineConfig] = None,
        id_factory: Callable[[], str] = new_photo_id,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.vision = vision
        self.video = video
        self.credentials = credentials
        self.ingest_adapter = ingest_adapter or MediaIngestAdapter()
        self.config = config or PipelineConfig()
        self._id_factory = id_factory
        self._clock = clock
        self._active_batches = 0
        self._animations: Dict[str, asyncio.Task] = {}

    @classmethod
    def from_config(
        cls,
        config: Config,
        credentials: Optional[CredentialSelector] = None,
        store: Optional[PhotoStore] = None,
        object_urls: Optional[ObjectURLRegistry] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "PipelineOrchestrator":
        """Wire up clients, store and ingest adapter from a configuration."""
        credentials = credentials or StaticCredentialSelector(config.api_key)
        vision = VisionAnalyzerClient(
            credentials, config.vision, base_url=config.base_url, transport=transport
        )
        video = VideoGeneratorClient(
            credentials,
            object_urls if object_urls is not None else ObjectURLRegistry(),
            config.video,
            base_url=config.base_url,
            transport=transport,
        )
        return cls(
            store=store if store is not None else PhotoStore(),
            vision=vision,
            video=video,
            credentials=credentials,
            ingest_adapter=MediaIngestAdapter(config.ingest),
            config=config.pipeline,
        )

    @property
    def is_ingesting(self) -> bool:
        return self._active_batches > 0

    @property
    def in_flight_ids(self) -> FrozenSet[str]:
        return frozenset(self._animations)

    def state_of(self, photo_id: str) -> Optional[PhotoState]:
        photo = self.store.get(photo_id)
        return photo.state if photo is not None else None

    async def ensure_credential(self) -> bool:
        """Prompt for a credential if none is selected yet."""
        if await self.credentials.has_selected_credential():
            return True
        audit_log("CREDENTIAL_MISSING_AT_START")
        await self.credentials.select_credential()
        return await self.credentials.has_selected_credential()

    # Analyze stage

    async def analyze_payload(self, payload: MediaPayload) -> AnalysisResult:
        """Run the vision analyzer, degrading any failure to the fallback result."""
        try:
            return await self.vision.analyze(payload.content, payload.mime_type)
        except Exception as e:
            logger.error(f"Analyzer raised for {payload.name}, using fallback: {e}")
            return AnalysisResult.fallback()

    def build_photo(self, payload: MediaPayload, analysis: AnalysisResult) -> Photo:
        """Create the Photo record for an analyzed payload."""
        ingested_at = self._clock()
        if analysis.is_fallback:
            timestamp = ingested_at
        else:
            timestamp = DateUtils.resolve_timestamp(analysis.guessed_date, ingested_at)

        return Photo(
            id=self._id_factory(),
            name=payload.name,
            content=payload.content,
            mime_type=payload.mime_type,
            display_ref=payload.display_ref,
            timestamp=timestamp,
            category=analysis.category.lower(),
            description=analysis.title,
            tags=tuple(analysis.tags or ()),
        )

    async def _ingest_one(self, payload: MediaPayload) -> Photo:
        analysis = await self.analyze_payload(payload)
        photo = self.build_photo(payload, analysis)
        self.store.append([photo])
        logger.info(f"Added {payload.name} as {photo.id} ({photo.category}: {photo.description!r})")
        return photo

    async def ingest_payloads(self, payloads: Sequence[MediaPayload]) -> List[Photo]:
        """Analyze payloads and add each to the store as soon as it is ready."""
        if not payloads:
            return []

        self._active_batches += 1
        concurrency = self.config.analysis_concurrency
        logger.info(f"Ingesting {len(payloads)} photos (concurrency {concurrency})")

        try:
            if concurrency <= 1:
                photos = []
                for payload in payloads:
                    photos.append(await self._ingest_one(payload))
                return photos

            semaphore = asyncio.Semaphore(concurrency)

            async def ingest_with_semaphore(payload: MediaPayload) -> Photo:
                async with semaphore:
                    return await self._ingest_one(payload)

            return list(await asyncio.gather(*(ingest_with_semaphore(p) for p in payloads)))
        finally:
            self._active_batches -= 1

    async def ingest(self, paths: Iterable[Union[str, Path]]) -> List[Photo]:
        """Read files and run them through analysis; unreadable files are skipped."""
        payloads = self.ingest_adapter.load_many(paths)
        return await self.ingest_payloads(payloads)

    # Animate stage

    def request_animation(self, photo_id: str) -> Optional[asyncio.Task]:
        """Start animating a photo and return the job task.

        Returns the already running task if one exists for ``photo_id``, and
        None when the photo is unknown or already has a video. Must be called
        from within a running event loop.
        """
        running = self._animations.get(photo_id)
        if running is not None and not running.done():
            logger.info(f"Animation for {photo_id} already in flight, joining it")
            return running

        photo = self.store.get(photo_id)
        if photo is None:
            logger.debug(f"Animation requested for unknown photo {photo_id}")
            return None
        if photo.video_ref is not None:
            logger.warning(f"Photo {photo_id} is already animated, not animating again")
            return None

        self.store.update_by_id(photo_id, animation_in_flight=True)
        audit_log("ANIMATION_REQUESTED", photo_id=photo_id)

        task = asyncio.get_running_loop().create_task(self._run_animation(photo))
        self._animations[photo_id] = task
        task.add_done_callback(lambda t: self._forget_animation(photo_id, t))
        return task

    def _forget_animation(self, photo_id: str, task: asyncio.Task) -> None:
        if self._animations.get(photo_id) is task:
            del self._animations[photo_id]

    async def animate(self, photo_id: str) -> Optional[Photo]:
        """Animate a photo and return its record once the job has finished."""
        task = self.request_animation(photo_id)
        if task is None:
            return self.store.get(photo_id)
        return await asyncio.shield(task)

    async def _run_animation(self, photo: Photo) -> Optional[Photo]:
        try:
            if not await self.credentials.has_selected_credential():
                await self.credentials.select_credential()
            video_ref = await self.video.animate(photo.content, photo.mime_type, photo.description)

        except asyncio.CancelledError:
            self.store.update_by_id(photo.id, animation_in_flight=False)
            raise

        except AuthorizationError as e:
            logger.error(f"Animation of {photo.id} rejected, credential needs re-selection: {e}")
            audit_log("ANIMATION_UNAUTHORIZED", photo_id=photo.id)
            try:
                await self.credentials.select_credential()
            except Exception as select_error:
                logger.error(f"Credential re-selection failed: {select_error}")
            return self.store.update_by_id(photo.id, animation_in_flight=False)

        except Exception as e:
            logger.error(f"Animation of {photo.id} failed: {e}", exc_info=True)
            audit_log("ANIMATION_FAILED", photo_id=photo.id)
            return self.store.update_by_id(photo.id, animation_in_flight=False)

        updated = self.store.update_by_id(photo.id, video_ref=video_ref, animation_in_flight=False)
        if updated is None:
            logger.warning(f"Photo {photo.id} left the store before its video arrived")
        audit_log("ANIMATION_COMPLETED", photo_id=photo.id)
        return updated

    async def aclose(self) -> None:
        """Cancel outstanding animation jobs, clearing their progress flags."""
        pending = dict(self._animations)
        for task in pending.values():
            task.cancel()
        if pending:
            await asyncio.gather(*pending.values(), return_exceptions=True)
            # A task cancelled before its first step never reaches its own cleanup.
            for photo_id in pending:
                photo = self.store.get(photo_id)
                if photo is not None and photo.animation_in_flight:
                    self.store.update_by_id(photo_id, animation_in_flight=False)
            logger.info(f"Cancelled {len(pending)} animation jobs")
