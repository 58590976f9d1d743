# src/lint_pr_reviewer/server.py
"""
Webhook endpoint. Pull request events become ReviewRequests on the queue;
the HTTP response never waits for a review to run.
"""
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .errors import QueueClosedError, QueueFullError, WireError
from .models import ReviewRequest
from .plugin_config import ReviewerConfig
from .request_queue import RequestQueue

logger = logging.getLogger(__name__)

PULL_REQUEST_ACTIONS = {"opened", "reopened", "synchronize"}
IGNORED_EVENTS = {"ping", "installation", "installation_repositories"}
RETRY_AFTER_SECONDS = 60


def verify_signature(raw_body: bytes, signature_header: str, secret: str) -> bool:
    """Checks GitHub's X-Hub-Signature-256 header."""
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = "sha256=" + hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header)


def review_request_from_event(payload: Dict[str, Any], delivery_id: Optional[str]) -> ReviewRequest:
    pull_request = payload.get("pull_request") or {}
    base_repo = (pull_request.get("base") or {}).get("repo") or payload.get("repository") or {}
    owner = (base_repo.get("owner") or {}).get("login")
    repo = base_repo.get("name")
    number = pull_request.get("number") or payload.get("number")
    if not (owner and repo and number):
        raise WireError(400, "unable to get pull request from event",
                        f"pull_request event {delivery_id} lacks owner, repo or number")

    installation_id = (payload.get("installation") or {}).get("id")
    return ReviewRequest(
        owner=owner,
        repo=repo,
        number=int(number),
        installation_id=int(installation_id) if installation_id else None,
        delivery_id=delivery_id,
    )


def create_app(config: ReviewerConfig, review_queue: RequestQueue) -> FastAPI:
    app = FastAPI(title="lint-pr-reviewer")

    @app.exception_handler(WireError)
    async def wire_error_handler(_request: Request, exc: WireError) -> JSONResponse:
        logger.error(f"{exc.status_code}: {exc.public_message}\n{exc.private_message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})

    @app.get("/healthz")
    async def healthz() -> Dict[str, Any]:
        return {"status": "ok", "pending": review_queue.pending(), "capacity": review_queue.maxsize}

    @app.post("/")
    async def handle_event(request: Request):
        logger.debug(f"Got event from {request.client.host if request.client else 'unknown'}")
        raw_body = await request.body()
        delivery_id = request.headers.get("X-GitHub-Delivery")

        if config.webhook_secret and not verify_signature(
            raw_body, request.headers.get("X-Hub-Signature-256", ""), config.webhook_secret
        ):
            raise WireError(400, "unable to validate payload", f"invalid signature on delivery {delivery_id}")

        event = request.headers.get("X-GitHub-Event", "")
        try:
            payload = json.loads(raw_body.decode("utf-8") or "{}")
        except ValueError as e:
            raise WireError(400, "unable to parse payload", f"invalid json on delivery {delivery_id}: {e}")
        if not isinstance(payload, dict):
            raise WireError(400, "unable to parse payload",
                            f"payload of delivery {delivery_id} is a {type(payload).__name__}, not an object")

        if event in IGNORED_EVENTS:
            return {"status": "ok"}
        if event != "pull_request":
            logger.warning(f"Unhandled event {event!r}")
            raise WireError(400, "unknown event", f"unknown event {event!r} on delivery {delivery_id}")

        action = payload.get("action")
        if action not in PULL_REQUEST_ACTIONS:
            logger.info(f"Ignoring pull_request action {action!r}")
            return {"status": "ignored", "action": action}

        review_request = review_request_from_event(payload, delivery_id)
        if config.app_mode and not review_request.installation_id:
            raise WireError(400, "unable to get installation from event",
                            f"no installation in delivery {delivery_id}")

        try:
            review_queue.submit(review_request)
        except QueueFullError as e:
            logger.warning(f"Rejecting {review_request.display_name}: {e}")
            return JSONResponse(
                status_code=503,
                content={"error": "too many pending reviews, retry later"},
                headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
            )
        except QueueClosedError:
            raise WireError(503, "shutting down", f"queue closed, dropping {review_request.display_name}")

        logger.info(f"Queued review of {review_request.display_name} (delivery {delivery_id})")
        return JSONResponse(status_code=202, content={"status": "queued", "pull_request": review_request.display_name})

    return app
