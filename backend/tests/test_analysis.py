"""
Tests for the analysis orchestrator and response aggregation.
"""

import json
import time
import asyncio

import pytest

from fakes import FakeInferenceClient, SAMPLE_ANALYSIS, make_image_bytes
from services.aggregator import aggregate
from services.analysis import ANALYSIS_PROMPT, AnalysisOrchestrator
from services.result_parser import INVALID_FORMAT_MESSAGE


async def wait_until(predicate, timeout: float = 2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            return False
        await asyncio.sleep(0.01)
    return True


@pytest.fixture
def images():
    return [make_image_bytes("PNG", color=color) for color in ("red", "green", "blue")]


@pytest.fixture
async def staged_batch(staging, images):
    return [
        await staging.stage(content, f"image-{i}.png", "image/png")
        for i, content in enumerate(images)
    ]


class TestAnalysisOrchestrator:
    """Fan-out/fan-in behaviour."""

    @pytest.mark.asyncio
    async def test_outcomes_keep_input_order(self, staging, staged_batch, images):
        # First file finishes last
        delays = {images[0]: 0.2, images[1]: 0.1, images[2]: 0.0}

        class SlowFirstClient:
            async def generate(self, prompt, image, mime_type):
                await asyncio.sleep(delays[image])
                return json.dumps(dict(SAMPLE_ANALYSIS, skin_type=f"type-{images.index(image)}"))

        orchestrator = AnalysisOrchestrator(SlowFirstClient(), staging, cleanup_delay=0)
        outcomes = await orchestrator.analyze_all(staged_batch)

        assert [o.filename for o in outcomes] == ["image-0.png", "image-1.png", "image-2.png"]
        assert [o.analysis.skin_type for o in outcomes] == ["type-0", "type-1", "type-2"]

    @pytest.mark.asyncio
    async def test_calls_run_concurrently(self, staging, staged_batch):
        client = FakeInferenceClient(lambda image, mime: json.dumps(SAMPLE_ANALYSIS), delay=0.3)
        orchestrator = AnalysisOrchestrator(client, staging, cleanup_delay=0)

        started = time.monotonic()
        await orchestrator.analyze_all(staged_batch)

        assert time.monotonic() - started < 0.8
        assert len(client.calls) == 3

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, staging, staged_batch, images):
        def responder(image, mime_type):
            if image == images[1]:
                raise RuntimeError("network timeout")
            return json.dumps(SAMPLE_ANALYSIS)

        orchestrator = AnalysisOrchestrator(FakeInferenceClient(responder), staging, cleanup_delay=0)
        outcomes = await orchestrator.analyze_all(staged_batch)

        assert [o.success for o in outcomes] == [True, False, True]
        assert outcomes[1].analysis is None
        assert "network timeout" in outcomes[1].error
        assert outcomes[1].error.startswith("Analysis failed: ")
        assert outcomes[0].analysis.model_dump(exclude_unset=True) == SAMPLE_ANALYSIS

    @pytest.mark.asyncio
    async def test_malformed_reply_is_still_a_success(self, staging, staged_batch):
        client = FakeInferenceClient(lambda image, mime: "Sorry, I cannot help with that.")
        orchestrator = AnalysisOrchestrator(client, staging, cleanup_delay=0)

        outcome = await orchestrator.analyze_file(staged_batch[0])

        assert outcome.success is True
        assert outcome.error is None
        assert outcome.analysis.error == INVALID_FORMAT_MESSAGE
        assert outcome.analysis.skin_type == "unknown"

    @pytest.mark.asyncio
    async def test_slow_call_times_out(self, staging, staged_batch):
        client = FakeInferenceClient(lambda image, mime: json.dumps(SAMPLE_ANALYSIS), delay=5)
        orchestrator = AnalysisOrchestrator(client, staging, cleanup_delay=0, timeout=0.05)

        outcome = await orchestrator.analyze_file(staged_batch[0])

        assert outcome.success is False
        assert "timed out" in outcome.error

    @pytest.mark.asyncio
    async def test_missing_staged_file_fails_that_file_only(self, staging, staged_batch):
        staged_batch[0].staged_path.unlink()
        client = FakeInferenceClient(lambda image, mime: json.dumps(SAMPLE_ANALYSIS))
        orchestrator = AnalysisOrchestrator(client, staging, cleanup_delay=0)

        outcomes = await orchestrator.analyze_all(staged_batch)

        assert outcomes[0].success is False
        assert "Image file not found" in outcomes[0].error
        assert all(o.success for o in outcomes[1:])

    @pytest.mark.asyncio
    async def test_staged_files_are_deleted_after_analysis(self, staging, staged_batch, images):
        def responder(image, mime_type):
            if image == images[0]:
                raise RuntimeError("boom")
            return "not json"

        orchestrator = AnalysisOrchestrator(FakeInferenceClient(responder), staging, cleanup_delay=0.05)
        await orchestrator.analyze_all(staged_batch)

        # Deletion is deferred, not part of the analysis
        assert all(s.staged_path.exists() for s in staged_batch)
        assert await wait_until(lambda: not any(s.staged_path.exists() for s in staged_batch))

    @pytest.mark.asyncio
    async def test_request_sent_to_model(self, staging, jpeg_bytes):
        staged = await staging.stage(jpeg_bytes, "legacy.jpg", "image/jpg")
        client = FakeInferenceClient(lambda image, mime: json.dumps(SAMPLE_ANALYSIS))
        orchestrator = AnalysisOrchestrator(client, staging, cleanup_delay=0)

        await orchestrator.analyze_file(staged)

        call = client.calls[0]
        assert call["mime_type"] == "image/jpeg"
        assert call["image"] == jpeg_bytes
        assert call["prompt"] == ANALYSIS_PROMPT

    def test_prompt_describes_schema(self):
        for field in ("skin_type", "overall_condition", "detected_conditions",
                      "recommended_products", "ingredients_to_look_for", "personalized_advice"):
            assert f'"{field}"' in ANALYSIS_PROMPT
        assert "normal|dry|oily|combination|sensitive" in ANALYSIS_PROMPT
        assert "mild|moderate|severe" in ANALYSIS_PROMPT


class TestAggregate:
    """Batch summary."""

    @pytest.mark.asyncio
    async def test_counts_and_order(self, staging, staged_batch, images):
        def responder(image, mime_type):
            if image == images[2]:
                raise RuntimeError("upstream error")
            return json.dumps(SAMPLE_ANALYSIS)

        orchestrator = AnalysisOrchestrator(FakeInferenceClient(responder), staging, cleanup_delay=0)
        outcomes = await orchestrator.analyze_all(staged_batch)

        response = aggregate(outcomes)

        assert response.success is True
        assert response.total_files == 3
        assert response.successful_analyses == 2
        assert [r.file_id for r in response.results] == [s.file_id for s in staged_batch]
        assert response.timestamp.endswith("Z")

    def test_empty_batch(self):
        response = aggregate([])
        assert response.total_files == 0
        assert response.successful_analyses == 0
