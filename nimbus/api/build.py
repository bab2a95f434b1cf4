"""
Build API route.

Endpoints:
- POST /build - Compile a component and publish it, returning its URLs

Responses:
- 200 application/json {"renderUrl": ..., "originalUrl": ...}
- 400 text/plain parse/validation message (no workspace is created)
- 500 text/plain failure description (includes build tool stderr)
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import ValidationError

from nimbus.core.errors import (
    BuildToolError,
    InputError,
    PublishError,
    WorkspaceError,
)
from nimbus.core.pipeline import Pipeline
from nimbus.core.request_context import set_component_id
from nimbus.schemas.build import BuildRequest, BuildResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["build"])


def get_pipeline(request: Request) -> Pipeline:
    """Pipeline built once at startup in create_app()."""
    return request.app.state.pipeline


def parse_build_request(body: bytes) -> BuildRequest:
    """
    Parse and validate a raw request body.

    Raises:
        InputError: If the body is not JSON or does not match the schema
    """
    try:
        return BuildRequest.model_validate_json(body)
    except ValidationError as e:
        raise InputError(str(e)) from e


def error_response(status_code: int, message: str) -> Response:
    return PlainTextResponse(content=message, status_code=status_code)


@router.post(
    "/build",
    response_model=BuildResponse,
    responses={400: {"description": "Malformed request body"}, 500: {"description": "Build failed"}},
)
async def build_component(request: Request, pipeline: Pipeline = Depends(get_pipeline)) -> Response:
    """
    Build a component into a static bundle and publish it.

    The body is parsed by hand (not as a FastAPI body parameter) so that
    malformed input is answered with 400 and the parser message.
    """
    body = await request.body()

    try:
        build_request = parse_build_request(body)
    except InputError as e:
        logger.info(f"build_rejected error={type(e.__cause__).__name__}")
        return error_response(400, str(e))

    component_id = build_request.component_id
    # Copied into the pipeline thread by run_in_threadpool
    set_component_id(component_id)
    request.state.component_id = component_id
    code_bytes = len(build_request.code.encode("utf-8", errors="surrogatepass"))
    logger.info(
        f"build_requested component_id={component_id} code_bytes={code_bytes}",
        extra={"component_id": component_id},
    )

    try:
        result = await run_in_threadpool(pipeline.run, component_id, build_request.code)
    except (WorkspaceError, BuildToolError, PublishError) as e:
        return error_response(500, str(e))
    except Exception:
        logger.exception(
            f"build_error component_id={component_id}",
            extra={"component_id": component_id},
        )
        return error_response(500, "Internal build error")

    response = BuildResponse(render_url=result.render_url, original_url=result.original_url)
    return JSONResponse(content=response.model_dump(by_alias=True))
