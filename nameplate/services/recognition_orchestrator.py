import asyncio
import re
from typing import Any, Awaitable, Callable, Iterable, List, Optional

import httpx
import structlog

from nameplate.core.config import settings
from nameplate.core.exceptions import RecognitionTransientFailure
from nameplate.core.logging import LoggerRegistry
from nameplate.domain.models import (
    PreparedImage,
    RecognitionFailureKind,
    RecognitionOptions,
    RecognitionResult,
)
from nameplate.domain.ports import RecognitionClientPort

# Vendor code and wording the OCR service uses for its processing timeout.
_TIMEOUT_MARKERS = re.compile(r"E101|timed out", re.IGNORECASE)


def _error_text(body: dict) -> str:
    parts: List[str] = []
    for key in ("ErrorMessage", "ErrorDetails"):
        value = body.get(key)
        if isinstance(value, (list, tuple)):
            parts.extend(str(v) for v in value if v)
        elif value:
            parts.append(str(value))
    return " ".join(parts)


def is_processing_timeout(body: dict) -> bool:
    return bool(_TIMEOUT_MARKERS.search(_error_text(body)))


class RecognitionOrchestrator:
    """
    Runs recognition against an ordered engine plan with per-engine retries.

    The plan is the requested engine followed by the fallback engines,
    de-duplicated. Each engine gets ``attempts_per_engine`` tries. Network
    errors, 5xx answers and processing timeouts are retried after a linear
    backoff; any other processing error or a 4xx answer ends the whole
    orchestration. The first non-empty text wins.

    State is local to each ``recognize`` call. Cancelling the awaiting task
    abandons any pending retries.
    """

    def __init__(
        self,
        client: RecognitionClientPort,
        fallback_engines: Iterable[str] = ("2", "1"),
        attempts_per_engine: int = 2,
        network_backoff_ms: int = 600,
        server_error_backoff_ms: int = 500,
        timeout_backoff_ms: int = 600,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self.client = client
        self.fallback_engines = [str(e) for e in fallback_engines]
        self.attempts_per_engine = attempts_per_engine
        self.network_backoff_ms = network_backoff_ms
        self.server_error_backoff_ms = server_error_backoff_ms
        self.timeout_backoff_ms = timeout_backoff_ms
        self._sleep = sleep
        self.logger = logger or LoggerRegistry.get_service_logger("recognition")

    def engine_plan(self, requested: Optional[str]) -> List[str]:
        plan: List[str] = []
        for engine in ([str(requested)] if requested else []) + self.fallback_engines:
            if engine not in plan:
                plan.append(engine)
        return plan

    async def recognize(self, image: PreparedImage, options: Optional[RecognitionOptions] = None) -> RecognitionResult:
        options = options or RecognitionOptions()
        plan = self.engine_plan(options.engine)
        total_tries = len(plan) * self.attempts_per_engine
        log = self.logger.bind(engine_plan=plan, image_size=image.size)
        log.info("recognition.start")

        attempts = 0
        last: Optional[RecognitionResult] = None

        for engine in plan:
            for attempt in range(1, self.attempts_per_engine + 1):
                attempts += 1
                try:
                    result = await self._attempt(image, engine, options, attempt, attempts)
                except RecognitionTransientFailure as exc:
                    last = RecognitionResult(
                        ok=False,
                        engine=engine,
                        attempts=attempts,
                        failure=exc.kind,
                        http_status=exc.http_status,
                        error_message=str(exc),
                    )
                    log.warning(
                        "recognition.attempt.retryable",
                        engine=engine,
                        attempt=attempt,
                        failure=exc.kind.value,
                        http_status=exc.http_status,
                        error=str(exc),
                    )
                    if attempts < total_tries:
                        await self._sleep(exc.backoff_ms * attempt / 1000)
                    continue

                if result.ok:
                    log.info("recognition.succeeded", engine=engine, attempts=attempts, text_length=len(result.text or ""))
                    return result

                last = result
                if result.failure is RecognitionFailureKind.EMPTY:
                    log.warning("recognition.attempt.empty_text", engine=engine, attempt=attempt)
                    total_tries -= self.attempts_per_engine - attempt
                    break

                log.error(
                    "recognition.failed",
                    engine=engine,
                    attempts=attempts,
                    failure=result.failure.value if result.failure else None,
                    http_status=result.http_status,
                    error=result.error_message,
                )
                return result

        log.error(
            "recognition.exhausted",
            attempts=attempts,
            failure=last.failure.value if last and last.failure else None,
        )
        if last is None:
            return RecognitionResult(ok=False, attempts=attempts, error_message="No recognition engine was available.")
        return last

    async def _attempt(
        self,
        image: PreparedImage,
        engine: str,
        options: RecognitionOptions,
        attempt: int,
        attempts: int,
    ) -> RecognitionResult:
        """One try. Returns success or a terminal failure; raises for retryable ones."""
        try:
            body = await self.client.parse_image(image, engine, options)
        except httpx.TransportError as exc:
            raise RecognitionTransientFailure(
                f"Transport error: {exc}",
                kind=RecognitionFailureKind.NETWORK,
                backoff_ms=self.network_backoff_ms,
            ) from exc
        except httpx.RequestError as exc:
            # Undecodable body or redirect loop; not retried
            return RecognitionResult(
                ok=False,
                engine=engine,
                attempts=attempts,
                failure=RecognitionFailureKind.MALFORMED,
                error_message=f"OCR response could not be read: {exc}",
            )
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status >= 500:
                raise RecognitionTransientFailure(
                    f"OCR service answered HTTP {status}",
                    kind=RecognitionFailureKind.SERVICE_ERROR,
                    http_status=status,
                    backoff_ms=self.server_error_backoff_ms,
                ) from exc
            return RecognitionResult(
                ok=False,
                engine=engine,
                attempts=attempts,
                failure=RecognitionFailureKind.HTTP_ERROR,
                http_status=status,
                error_message=f"OCR service rejected the request with HTTP {status}",
            )
        except ValueError as exc:
            return RecognitionResult(
                ok=False,
                engine=engine,
                attempts=attempts,
                failure=RecognitionFailureKind.MALFORMED,
                error_message=f"OCR response is not valid JSON: {exc}",
            )

        if not isinstance(body, dict):
            return RecognitionResult(
                ok=False,
                engine=engine,
                attempts=attempts,
                failure=RecognitionFailureKind.MALFORMED,
                error_message="OCR response is not a JSON object.",
            )

        if body.get("IsErroredOnProcessing"):
            message = _error_text(body) or "OCR processing error"
            if is_processing_timeout(body):
                raise RecognitionTransientFailure(
                    message,
                    kind=RecognitionFailureKind.TIMEOUT,
                    http_status=200,
                    backoff_ms=self.timeout_backoff_ms,
                )
            return RecognitionResult(
                ok=False,
                engine=engine,
                attempts=attempts,
                failure=RecognitionFailureKind.PROCESSING_ERROR,
                http_status=200,
                error_message=message,
            )

        parsed = body.get("ParsedResults")
        if not isinstance(parsed, list):
            return RecognitionResult(
                ok=False,
                engine=engine,
                attempts=attempts,
                failure=RecognitionFailureKind.MALFORMED,
                http_status=200,
                error_message="OCR response has no ParsedResults list.",
            )

        text = "\n\n".join(
            str(item.get("ParsedText") or "") for item in parsed if isinstance(item, dict)
        ).strip()
        if not text:
            return RecognitionResult(
                ok=False,
                engine=engine,
                attempts=attempts,
                failure=RecognitionFailureKind.EMPTY,
                http_status=200,
                error_message="OCR returned no text.",
            )

        return RecognitionResult(ok=True, text=text, engine=engine, attempts=attempts, http_status=200)


def get_recognition_orchestrator(client: RecognitionClientPort) -> RecognitionOrchestrator:
    return RecognitionOrchestrator(
        client=client,
        fallback_engines=settings.OCR_FALLBACK_ENGINES,
        attempts_per_engine=settings.OCR_ATTEMPTS_PER_ENGINE,
        network_backoff_ms=settings.OCR_NETWORK_BACKOFF_MS,
        server_error_backoff_ms=settings.OCR_SERVER_ERROR_BACKOFF_MS,
        timeout_backoff_ms=settings.OCR_TIMEOUT_BACKOFF_MS,
    )
