import asyncio
import base64

from nameplate.core.context import set_request_context
from nameplate.core.dependencies import get_scan_service
from nameplate.core.logging import LoggerRegistry
from nameplate.domain.models import RequestContext
from nameplate.services.image_preprocessor import load_captured_image
from nameplate.tasks.celery_app import celery


@celery.task(bind=True)
def run_scan_task(self, image_b64, mime_type, installation_id, request_id):
    """
    Background half of the assign endpoint.

    The image travels base64 encoded because the broker speaks JSON. The scan
    service is async, so it runs in a fresh event loop owned by this task.
    """
    logger = LoggerRegistry.get_infrastructure_logger("celery")
    set_request_context(RequestContext(correlation_id=request_id))
    service = get_scan_service()

    logger.info(
        "scan.task.started",
        celery_task_id=self.request.id,
        request_id=request_id,
        installation_id=installation_id,
    )

    async def main():
        image = load_captured_image(base64.b64decode(image_b64), mime_type=mime_type)
        return await service.scan_and_assign(
            image=image,
            installation_id=installation_id,
            request_id=request_id,
        )

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    try:
        outcome = loop.run_until_complete(main())
        logger.info(
            "scan.task.finished",
            celery_task_id=self.request.id,
            request_id=request_id,
            recognized=outcome.record.recognized,
            action=outcome.assignment.action.value if outcome.assignment else None,
        )
        # Celery stores the JSON string; SUCCESS is set when the task returns
        return outcome.model_dump_json()

    except Exception:
        logger.exception(
            "scan.task.failed",
            celery_task_id=self.request.id,
            request_id=request_id,
        )
        self.update_state(state='FAILURE', meta={'error': 'Nameplate scan failed', 'request_id': request_id})
        raise

    finally:
        loop.close()
