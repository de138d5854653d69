"""Tests for the photo pipeline orchestrator."""

import asyncio
from datetime import datetime

import httpx
import pytest

from lensflow.analyzer.video_client import VideoGeneratorClient
from lensflow.core.config import PipelineConfig, VideoConfig
from lensflow.core.exceptions import AuthorizationError, MalformedResultError
from lensflow.models.analysis import AnalysisResult
from lensflow.models.photo import PhotoState
from lensflow.pipeline.orchestrator import PipelineOrchestrator
from lensflow.pipeline.views import filter_photos
from lensflow.utils.object_urls import ObjectURLRegistry

from conftest import FIXED_NOW


class TestIngest:
    """Test the analyze stage."""

    @pytest.mark.asyncio
    async def test_analysis_result_becomes_photo(self, orchestrator, sample_payload):
        photos = await orchestrator.ingest_payloads([sample_payload])

        photo = photos[0]
        assert photo.category == "nature"
        assert photo.description == "Golden Hour"
        assert photo.tags == ("sunset", "hill")
        assert (photo.timestamp.year, photo.timestamp.month) == (2023, 5)
        assert photo.name == "golden_hour.png"
        assert photo.content == sample_payload.content
        assert photo.display_ref.startswith("data:image/png;base64,")
        assert photo.video_ref is None
        assert photo.animation_in_flight is False
        assert orchestrator.store.snapshot == (photo,)

    @pytest.mark.asyncio
    async def test_analyzer_exception_uses_fallback(self, orchestrator, mock_vision_client, sample_payload):
        mock_vision_client.analyze.side_effect = RuntimeError("service down")

        photos = await orchestrator.ingest_payloads([sample_payload])

        photo = photos[0]
        assert photo.category == "other"
        assert photo.description == "Untitled Image"
        assert photo.tags == ("photo",)
        assert photo.timestamp == FIXED_NOW

    @pytest.mark.asyncio
    async def test_unparseable_date_uses_ingest_time(self, orchestrator, mock_vision_client, sample_payload):
        mock_vision_client.analyze.return_value = AnalysisResult(
            category="travel", title="Somewhere", guessed_date="sometime in the 90s", tags=[]
        )

        photos = await orchestrator.ingest_payloads([sample_payload])

        assert photos[0].timestamp == FIXED_NOW
        assert photos[0].tags == ()

    @pytest.mark.asyncio
    async def test_fallback_result_ignores_its_date_guess(self, orchestrator, mock_vision_client, sample_payload):
        mock_vision_client.analyze.return_value = AnalysisResult.fallback(datetime(2020, 1, 1))

        photos = await orchestrator.ingest_payloads([sample_payload])

        assert photos[0].timestamp == FIXED_NOW

    @pytest.mark.asyncio
    async def test_ingest_files_skips_unreadable(self, orchestrator, sample_image_paths):
        photos = await orchestrator.ingest(sample_image_paths)

        assert [p.name for p in photos] == ["beach.png", "street.png", "dinner.png"]
        assert len({p.id for p in photos}) == 3
        assert orchestrator.is_ingesting is False

    @pytest.mark.asyncio
    async def test_each_photo_visible_as_soon_as_analyzed(self, orchestrator, mock_vision_client, sample_image_paths):
        sizes_seen_by_analyzer = []

        async def analyze(content, mime_type):
            sizes_seen_by_analyzer.append(len(orchestrator.store))
            assert orchestrator.is_ingesting is True
            return AnalysisResult(category="food", title="Dish", tags=["plate"])

        mock_vision_client.analyze.side_effect = analyze

        await orchestrator.ingest(sample_image_paths)

        assert sizes_seen_by_analyzer == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_every_visible_photo_is_fully_populated(self, orchestrator, mock_vision_client, sample_image_paths):
        snapshots = []
        orchestrator.store.subscribe(snapshots.append)
        mock_vision_client.analyze.side_effect = [
            AnalysisResult(category="food", title="Dish", tags=["plate"]),
            RuntimeError("boom"),
            AnalysisResult(category="urban", title="Street", tags=[]),
        ]

        await orchestrator.ingest(sample_image_paths)

        for snapshot in snapshots:
            for photo in snapshot:
                assert photo.category
                assert photo.description
                assert photo.tags is not None

    @pytest.mark.asyncio
    async def test_concurrent_analysis(self, store, mock_vision_client, mock_video_client, credentials, sample_image_paths):
        orchestrator = PipelineOrchestrator(
            store, mock_vision_client, mock_video_client, credentials,
            config=PipelineConfig(analysis_concurrency=3),
        )
        in_progress = 0
        peak = 0

        async def analyze(content, mime_type):
            nonlocal in_progress, peak
            in_progress += 1
            peak = max(peak, in_progress)
            await asyncio.sleep(0)
            in_progress -= 1
            return AnalysisResult(category="people", title="Crowd", tags=["faces"])

        mock_vision_client.analyze.side_effect = analyze

        photos = await orchestrator.ingest(sample_image_paths)

        assert len(photos) == 3
        assert peak > 1
        assert {p.id for p in store} == {p.id for p in photos}


class TestAnimation:
    """Test the animate stage and its state machine."""

    @pytest.mark.asyncio
    async def test_flag_transitions_on_success(self, orchestrator, mock_video_client, sample_payload):
        photo = (await orchestrator.ingest_payloads([sample_payload]))[0]
        assert orchestrator.state_of(photo.id) is PhotoState.READY

        task = orchestrator.request_animation(photo.id)

        assert orchestrator.store.get(photo.id).animation_in_flight is True
        assert orchestrator.state_of(photo.id) is PhotoState.ANIMATING
        assert photo.id in orchestrator.in_flight_ids

        result = await task

        assert result.video_ref == "blob:lensflow/test-video"
        assert result.animation_in_flight is False
        assert orchestrator.state_of(photo.id) is PhotoState.ANIMATED
        mock_video_client.animate.assert_awaited_once_with(
            sample_payload.content, "image/png", "Golden Hour"
        )

    @pytest.mark.asyncio
    async def test_failure_clears_flag_without_video(self, orchestrator, mock_video_client, credentials, sample_payload):
        mock_video_client.animate.side_effect = MalformedResultError("no locator")
        photo = (await orchestrator.ingest_payloads([sample_payload]))[0]

        result = await orchestrator.animate(photo.id)

        assert result.animation_in_flight is False
        assert result.video_ref is None
        assert orchestrator.state_of(photo.id) is PhotoState.READY
        assert credentials.select_calls == 0

    @pytest.mark.asyncio
    async def test_authorization_failure_reselects_credential(self, orchestrator, mock_video_client, credentials, sample_payload):
        mock_video_client.animate.side_effect = AuthorizationError("Requested entity was not found.")
        photo = (await orchestrator.ingest_payloads([sample_payload]))[0]

        result = await orchestrator.animate(photo.id)

        assert credentials.select_calls == 1
        assert credentials.api_key == "new-key"
        assert result.animation_in_flight is False
        assert result.video_ref is None

    @pytest.mark.asyncio
    async def test_missing_credential_prompts_before_job(self, store, mock_vision_client, mock_video_client, no_credentials, sample_payload):
        orchestrator = PipelineOrchestrator(store, mock_vision_client, mock_video_client, no_credentials)
        photo = (await orchestrator.ingest_payloads([sample_payload]))[0]

        result = await orchestrator.animate(photo.id)

        assert no_credentials.select_calls == 1
        assert result.video_ref == "blob:lensflow/test-video"

    @pytest.mark.asyncio
    async def test_unknown_photo_is_noop(self, orchestrator, mock_video_client):
        assert orchestrator.request_animation("missing") is None
        assert await orchestrator.animate("missing") is None
        mock_video_client.animate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_animated_photo_is_not_animated_again(self, orchestrator, mock_video_client, sample_payload):
        photo = (await orchestrator.ingest_payloads([sample_payload]))[0]
        await orchestrator.animate(photo.id)

        again = await orchestrator.animate(photo.id)

        assert again.video_ref == "blob:lensflow/test-video"
        assert mock_video_client.animate.await_count == 1

    @pytest.mark.asyncio
    async def test_second_request_joins_running_job(self, orchestrator, mock_video_client, sample_payload):
        release = asyncio.Event()

        async def slow_animate(content, mime_type, prompt):
            await release.wait()
            return "blob:lensflow/once"

        mock_video_client.animate.side_effect = slow_animate
        photo = (await orchestrator.ingest_payloads([sample_payload]))[0]

        first = orchestrator.request_animation(photo.id)
        second = orchestrator.request_animation(photo.id)
        joined = asyncio.ensure_future(orchestrator.animate(photo.id))
        await asyncio.sleep(0)
        release.set()

        assert first is second
        assert (await joined).video_ref == "blob:lensflow/once"
        assert (await first).video_ref == "blob:lensflow/once"
        assert mock_video_client.animate.await_count == 1

    @pytest.mark.asyncio
    async def test_animations_of_different_photos_interleave(self, orchestrator, mock_video_client, sample_image_paths):
        gates = {}

        async def gated_animate(content, mime_type, prompt):
            gate = asyncio.Event()
            gates[len(gates)] = gate
            await gate.wait()
            return f"blob:lensflow/{len(gates)}-{prompt}"

        mock_video_client.animate.side_effect = gated_animate
        photos = await orchestrator.ingest(sample_image_paths)

        first = orchestrator.request_animation(photos[0].id)
        second = orchestrator.request_animation(photos[1].id)
        await asyncio.sleep(0)
        gates[1].set()
        await second

        assert orchestrator.store.get(photos[1].id).video_ref is not None
        assert orchestrator.store.get(photos[0].id).animation_in_flight is True

        gates[0].set()
        await first

        assert all(orchestrator.store.get(p.id).video_ref for p in photos[:2])
        assert orchestrator.store.get(photos[2].id).state is PhotoState.READY

    @pytest.mark.asyncio
    async def test_aclose_cancels_and_clears_flags(self, orchestrator, mock_video_client, sample_payload):
        async def never_finishes(content, mime_type, prompt):
            await asyncio.Event().wait()

        mock_video_client.animate.side_effect = never_finishes
        photo = (await orchestrator.ingest_payloads([sample_payload]))[0]
        orchestrator.request_animation(photo.id)
        await asyncio.sleep(0)

        await orchestrator.aclose()

        assert orchestrator.store.get(photo.id).animation_in_flight is False
        assert orchestrator.store.get(photo.id).video_ref is None

    @pytest.mark.asyncio
    async def test_ensure_credential(self, store, mock_vision_client, mock_video_client, no_credentials):
        orchestrator = PipelineOrchestrator(store, mock_vision_client, mock_video_client, no_credentials)

        assert await orchestrator.ensure_credential() is True
        assert no_credentials.select_calls == 1
        assert await orchestrator.ensure_credential() is True
        assert no_credentials.select_calls == 1


@pytest.mark.integration
class TestPipelineScenarios:
    """End-to-end runs with real clients over a mocked transport."""

    @pytest.mark.asyncio
    async def test_categories_filter_after_ingest(self, orchestrator, mock_vision_client, sample_image_paths):
        mock_vision_client.analyze.side_effect = [
            AnalysisResult(category="Nature", title="Hills", tags=["green"]),
            AnalysisResult(category="URBAN", title="Avenue", tags=["cars"]),
        ]

        photos = await orchestrator.ingest(sample_image_paths[:2])
        urban = filter_photos(orchestrator.store.snapshot, "urban", "")

        assert urban == (photos[1],)

    @pytest.mark.asyncio
    async def test_animation_through_two_poll_cycles(self, store, mock_vision_client, credentials, sample_payload):
        polls = {'count': 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith(":predictLongRunning"):
                return httpx.Response(200, json={"name": "models/veo/operations/op-9", "done": False})
            if request.url.path.endswith("operations/op-9"):
                polls['count'] += 1
                if polls['count'] < 2:
                    return httpx.Response(200, json={"name": "models/veo/operations/op-9", "done": False})
                return httpx.Response(200, json={
                    "name": "models/veo/operations/op-9",
                    "done": True,
                    "response": {"generateVideoResponse": {"generatedSamples": [
                        {"video": {"uri": "https://files.example/vid:download?alt=media"}}
                    ]}},
                })
            return httpx.Response(200, content=b"video-bytes", headers={"content-type": "video/mp4"})

        async def no_wait(seconds):
            return None

        object_urls = ObjectURLRegistry()
        video = VideoGeneratorClient(
            credentials, object_urls, VideoConfig(),
            transport=httpx.MockTransport(handler), sleep=no_wait,
        )
        orchestrator = PipelineOrchestrator(store, mock_vision_client, video, credentials)

        observed = []
        store.subscribe(lambda snapshot: observed.extend(snapshot))

        photo = (await orchestrator.ingest_payloads([sample_payload]))[0]
        result = await orchestrator.animate(photo.id)

        assert polls['count'] == 2
        assert result.video_ref is not None
        assert result.animation_in_flight is False
        assert object_urls.resolve(result.video_ref) == (b"video-bytes", "video/mp4")
        assert not any(p.video_ref and p.animation_in_flight for p in observed)
        assert [p.state for p in observed] == [PhotoState.READY, PhotoState.ANIMATING, PhotoState.ANIMATED]
