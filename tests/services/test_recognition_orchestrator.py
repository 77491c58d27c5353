import asyncio

import httpx
import pytest

from nameplate.domain.models import PreparedImage, RecognitionFailureKind, RecognitionOptions
from nameplate.services.recognition_orchestrator import RecognitionOrchestrator, is_processing_timeout
from tests.mocks.mock_ocr_client import MockOcrClient, RecordingSleep, parsed, processing_error, status_error

TIMEOUT = processing_error("E101: Timed out waiting for results")


@pytest.fixture
def image() -> PreparedImage:
    return PreparedImage(data=b"jpeg", mime_type="image/jpeg", size=4, width=10, height=10)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


def orchestrator(client, sleep) -> RecognitionOrchestrator:
    return RecognitionOrchestrator(client, fallback_engines=("2", "1"), attempts_per_engine=2, sleep=sleep)


def test_engine_plan_puts_requested_engine_first():
    orch = RecognitionOrchestrator(MockOcrClient([]))
    assert orch.engine_plan("3") == ["3", "2", "1"]
    assert orch.engine_plan("2") == ["2", "1"]
    assert orch.engine_plan("5") == ["5", "2", "1"]
    assert orch.engine_plan(None) == ["2", "1"]


def test_is_processing_timeout():
    assert is_processing_timeout(TIMEOUT)
    assert is_processing_timeout({"ErrorMessage": "Request timed out"})
    assert not is_processing_timeout(processing_error("Unable to recognize the file type"))


async def test_first_try_success(image, sleep):
    client = MockOcrClient([parsed("DEYE\nSUN-10K-G")])
    result = await orchestrator(client, sleep).recognize(image)
    assert result.ok
    assert result.text == "DEYE\nSUN-10K-G"
    assert result.engine == "3"
    assert result.attempts == 1
    assert sleep.delays == []


async def test_timeouts_fall_back_to_next_engine(image, sleep):
    client = MockOcrClient([TIMEOUT, TIMEOUT, parsed("SolaX X1-BOOST-5K")])
    result = await orchestrator(client, sleep).recognize(image, RecognitionOptions(engine="3"))
    assert result.ok
    assert result.engine == "2"
    assert result.attempts == 3
    assert client.engines == ["3", "3", "2"]
    assert sleep.delays == [0.6, 1.2]


async def test_server_error_is_retried(image, sleep):
    client = MockOcrClient([status_error(503), parsed("Solis")])
    result = await orchestrator(client, sleep).recognize(image)
    assert result.ok
    assert result.engine == "3"
    assert result.attempts == 2
    assert sleep.delays == [0.5]


async def test_network_error_is_retried(image, sleep):
    client = MockOcrClient([httpx.ConnectError("connection refused"), parsed("Solis")])
    result = await orchestrator(client, sleep).recognize(image)
    assert result.ok
    assert result.attempts == 2
    assert sleep.delays == [0.6]


async def test_client_error_ends_orchestration(image, sleep):
    client = MockOcrClient([status_error(403)])
    result = await orchestrator(client, sleep).recognize(image)
    assert not result.ok
    assert result.failure is RecognitionFailureKind.HTTP_ERROR
    assert result.http_status == 403
    assert result.attempts == 1
    assert client.engines == ["3"]
    assert sleep.delays == []


async def test_processing_error_ends_orchestration(image, sleep):
    client = MockOcrClient([processing_error("Unable to recognize the file type")])
    result = await orchestrator(client, sleep).recognize(image)
    assert result.failure is RecognitionFailureKind.PROCESSING_ERROR
    assert "file type" in result.error_message
    assert result.attempts == 1


async def test_empty_text_moves_to_next_engine_without_waiting(image, sleep):
    client = MockOcrClient([parsed("   "), parsed("DEYE SUN-5K-G")])
    result = await orchestrator(client, sleep).recognize(image)
    assert result.ok
    assert result.engine == "2"
    assert client.engines == ["3", "2"]
    assert sleep.delays == []


async def test_empty_on_every_engine(image, sleep):
    client = MockOcrClient([parsed(""), parsed(""), parsed("")])
    result = await orchestrator(client, sleep).recognize(image)
    assert not result.ok
    assert result.failure is RecognitionFailureKind.EMPTY
    assert result.attempts == 3
    assert client.engines == ["3", "2", "1"]


@pytest.mark.parametrize(
    "step",
    [
        ValueError("Expecting value: line 1 column 1 (char 0)"),
        httpx.DecodingError("Error -3 while decompressing data: incorrect header check"),
        httpx.TooManyRedirects("Exceeded maximum allowed redirects."),
        ["not", "an", "object"],
        {"IsErroredOnProcessing": False},
    ],
)
async def test_malformed_response_is_a_hard_failure(image, sleep, step):
    client = MockOcrClient([step])
    result = await orchestrator(client, sleep).recognize(image)
    assert result.failure is RecognitionFailureKind.MALFORMED
    assert result.attempts == 1
    assert sleep.delays == []


async def test_cancellation_during_backoff_stops_retrying(image):
    waiting = asyncio.Event()

    async def blocking_sleep(seconds):
        waiting.set()
        await asyncio.Event().wait()

    client = MockOcrClient([TIMEOUT, parsed("DEYE")])
    task = asyncio.create_task(orchestrator(client, blocking_sleep).recognize(image))
    await waiting.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert client.engines == ["3"]
    assert client.script == [parsed("DEYE")]


async def test_exhaustion_returns_last_failure(image, sleep):
    client = MockOcrClient([httpx.ConnectError("down")] * 6)
    result = await orchestrator(client, sleep).recognize(image)
    assert not result.ok
    assert result.failure is RecognitionFailureKind.NETWORK
    assert result.attempts == 6
    assert result.engine == "1"
    assert client.engines == ["3", "3", "2", "2", "1", "1"]
    # No wait after the final try.
    assert sleep.delays == [0.6, 1.2, 0.6, 1.2, 0.6]


async def test_multiple_parsed_results_are_joined(image, sleep):
    client = MockOcrClient([parsed("DEYE", "S/N: 2104123456")])
    result = await orchestrator(client, sleep).recognize(image)
    assert result.text == "DEYE\n\nS/N: 2104123456"
