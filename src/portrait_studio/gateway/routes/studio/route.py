"""Portrait studio route handlers."""
from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncGenerator

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status
from fastapi.responses import StreamingResponse

from portrait_studio.gateway.config import StudioConfig, get_config
from portrait_studio.gateway.log_config import logger
from portrait_studio.studio.errors import MissingFieldError, StudioError
from portrait_studio.studio.gallery import GENERATED_MIME_TYPE
from portrait_studio.studio.ingestion import ingest
from portrait_studio.studio.models import (
    EncodedImage,
    GenerationSession,
    VariationOutcome,
)
from portrait_studio.studio.orchestrator import VariationOrchestrator, check_preconditions
from portrait_studio.studio.provider import GeminiStudioProvider, StudioProvider
from portrait_studio.studio.workspace import Workspace, outcome_error_message

from .schema import (
    AspectRatioRequest,
    GalleryItemResponse,
    GalleryResponse,
    GenerationResponse,
    ImageInfo,
    SelectionRequest,
    SelectionResponse,
    SlotType,
    StudioStateResponse,
    StyleDescriptionPayload,
    VariationPromptRequest,
)

router = APIRouter(prefix="/v1/studio", tags=["studio"])

MISSING_STYLE_IMAGE_MESSAGE = "Vui lòng tải lên ảnh cảm hứng trước."

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
}


def get_workspace(request: Request) -> Workspace:
    return request.app.state.workspace


def get_provider(request: Request, config: StudioConfig = Depends(get_config)) -> StudioProvider:
    provider = getattr(request.app.state, "provider", None)
    if provider is None:
        provider = GeminiStudioProvider.from_config(config)
        request.app.state.provider = provider
    return provider


def _preview_url(request: Request, handle: str | None) -> str | None:
    if not handle:
        return None
    return str(request.url_for("get_preview", handle=handle))


def _image_info(request: Request, slot: SlotType, image: EncodedImage | None) -> ImageInfo | None:
    if image is None:
        return None
    return ImageInfo(
        slot=slot,
        previewHandle=image.preview_handle,
        previewUrl=_preview_url(request, image.preview_handle),
        mimeType=image.mime_type,
        filename=image.filename,
        size=len(image.raw_bytes),
    )


def _session_response(session: GenerationSession) -> GenerationResponse:
    return GenerationResponse(
        token=session.token,
        state=session.state.value,
        currentIndex=session.current_index,
        aspectRatio=session.aspect_ratio,
        images=list(session.produced_images),
        mimeType=GENERATED_MIME_TYPE,
        error=session.last_error,
    )


def _state_response(request: Request, workspace: Workspace) -> StudioStateResponse:
    session = workspace.session
    session_payload = _session_response(session) if session is not None else None
    if session_payload is not None:
        session_payload.error = workspace.last_error
    return StudioStateResponse(
        source=_image_info(request, "source", workspace.source_image),
        style=_image_info(request, "style", workspace.style_image),
        outfit=workspace.style.outfit,
        background=workspace.style.background,
        aspectRatio=workspace.aspect_ratio,
        variationPrompts=list(workspace.variation_prompts),
        isAnalyzing=workspace.is_analyzing,
        isGenerating=workspace.is_generating,
        lastError=workspace.last_error,
        session=session_payload,
    )


@router.get("/state", response_model=StudioStateResponse)
async def get_state(request: Request, workspace: Workspace = Depends(get_workspace)) -> StudioStateResponse:
    return _state_response(request, workspace)


@router.put("/images/{slot}", response_model=ImageInfo)
async def upload_image(
    request: Request,
    slot: SlotType,
    file: UploadFile = File(...),
    workspace: Workspace = Depends(get_workspace),
) -> ImageInfo | None:
    """Ingest an uploaded image, replacing and releasing any previous one."""
    data = await file.read()
    image = await ingest(workspace.previews, data, file.content_type, file.filename)
    workspace.set_image(slot, image)
    return _image_info(request, slot, image)


@router.delete("/images/{slot}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_image(slot: SlotType, workspace: Workspace = Depends(get_workspace)) -> Response:
    workspace.set_image(slot, None)
    logger.info("studio.image removed slot=%s previews=%d", slot, len(workspace.previews))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/previews/{handle}", name="get_preview")
async def get_preview(handle: str, workspace: Workspace = Depends(get_workspace)) -> Response:
    entry = workspace.previews.get(handle)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Preview not found")
    return Response(content=entry.data, media_type=entry.mime_type)


@router.post("/style/analyze", response_model=StyleDescriptionPayload)
async def analyze_style(
    workspace: Workspace = Depends(get_workspace),
    provider: StudioProvider = Depends(get_provider),
) -> StyleDescriptionPayload:
    """Describe the outfit and background of the inspiration image."""
    style_image = workspace.style_image
    if style_image is None:
        raise MissingFieldError(MISSING_STYLE_IMAGE_MESSAGE)
    if workspace.is_generating or workspace.is_analyzing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Studio is busy")

    logger.info(
        "studio.analyze request mimeType=%s size=%d",
        style_image.mime_type,
        len(style_image.raw_bytes),
    )
    workspace.last_error = None
    workspace.is_analyzing = True
    try:
        result = await provider.analyze_style(style_image)
    finally:
        workspace.is_analyzing = False

    workspace.style = result
    logger.info(
        "studio.analyze success outfitLength=%d backgroundLength=%d",
        len(result.outfit),
        len(result.background),
    )
    return StyleDescriptionPayload(outfit=result.outfit, background=result.background)


@router.put("/style", response_model=StyleDescriptionPayload)
async def update_style(
    payload: StyleDescriptionPayload,
    workspace: Workspace = Depends(get_workspace),
) -> StyleDescriptionPayload:
    workspace.style.outfit = payload.outfit
    workspace.style.background = payload.background
    return payload


@router.put("/aspect-ratio", response_model=AspectRatioRequest)
async def update_aspect_ratio(
    payload: AspectRatioRequest,
    workspace: Workspace = Depends(get_workspace),
) -> AspectRatioRequest:
    workspace.set_aspect_ratio(payload.aspectRatio)
    return payload


@router.put("/variation-prompts/{index}", response_model=list[str])
async def update_variation_prompt(
    index: int,
    payload: VariationPromptRequest,
    workspace: Workspace = Depends(get_workspace),
) -> list[str]:
    try:
        workspace.set_variation_prompt(index, payload.prompt)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return list(workspace.variation_prompts)


@router.post("/variation-prompts/reset", response_model=list[str])
async def reset_variation_prompts(workspace: Workspace = Depends(get_workspace)) -> list[str]:
    workspace.reset_variation_prompts()
    return list(workspace.variation_prompts)


def _format_event(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


async def _generate_sse_stream(
    workspace: Workspace,
    orchestrator: VariationOrchestrator,
    session: GenerationSession,
) -> AsyncGenerator[str, None]:
    event_queue: asyncio.Queue[tuple[str, dict[str, Any]] | None] = asyncio.Queue()

    async def on_progress(stage: str, message: str) -> None:
        event_queue.put_nowait(("status", {"stage": stage, "message": message}))
        await asyncio.sleep(0)  # Yield to event loop to allow SSE to be sent

    async def on_outcome(outcome: VariationOutcome) -> None:
        if outcome.error is not None:
            event_queue.put_nowait(
                ("error", {"index": outcome.index, "message": outcome_error_message(outcome.error)})
            )
        else:
            event_queue.put_nowait(
                (
                    "image",
                    {
                        "index": outcome.index,
                        "imageBase64": outcome.image_base64,
                        "mimeType": GENERATED_MIME_TYPE,
                    },
                )
            )
        await asyncio.sleep(0)

    async def run_generation() -> None:
        try:
            await workspace.run_generation(
                orchestrator,
                session,
                on_progress=on_progress,
                on_outcome=on_outcome,
            )
        except StudioError as exc:
            event_queue.put_nowait(("error", {"index": None, "message": exc.message}))
        except Exception as exc:
            logger.error("studio.generate stream failed token=%s error=%s", session.token, exc)
            event_queue.put_nowait(("error", {"index": None, "message": "Lỗi không xác định."}))
        finally:
            await event_queue.put(None)

    await event_queue.put(("status", {"stage": "prepare", "message": "Đang chuẩn bị yêu cầu"}))
    generation_task = asyncio.create_task(run_generation())

    try:
        while True:
            item = await event_queue.get()
            if item is None:
                break
            event, data = item
            yield _format_event(event, data)

        await generation_task
        yield _format_event(
            "done",
            {
                "ok": session.state.value == "done",
                "token": session.token,
                "produced": len(session.produced_images),
            },
        )
    except asyncio.CancelledError:
        generation_task.cancel()
        raise


@router.post("/generate", response_model=GenerationResponse)
async def generate_variations(
    request: Request,
    workspace: Workspace = Depends(get_workspace),
    provider: StudioProvider = Depends(get_provider),
):
    """Generate the nine variations, streaming them when SSE is requested."""
    if workspace.is_analyzing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Studio is busy")

    # Rejected requests leave the current session and gallery untouched.
    try:
        check_preconditions(workspace.source_image, workspace.style)
    except MissingFieldError as exc:
        logger.info("studio.generate rejected error=%s", exc.message)
        raise

    session = workspace.start_session()
    logger.info(
        "studio.generate request token=%s aspectRatio=%s hasSource=%s outfitLength=%d backgroundLength=%d prompts=%d",
        session.token,
        session.aspect_ratio,
        session.source_image is not None,
        len(session.style.outfit),
        len(session.style.background),
        sum(1 for prompt in session.prompts if prompt.strip()),
    )
    orchestrator = VariationOrchestrator(provider)

    accept_header = request.headers.get("accept", "")
    if "text/event-stream" in accept_header:
        return StreamingResponse(
            _generate_sse_stream(workspace, orchestrator, session),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    await workspace.run_generation(orchestrator, session)
    response = _session_response(session)
    response.error = workspace.last_error if workspace.is_current(session) else session.last_error
    return response


@router.get("/gallery", response_model=GalleryResponse)
async def get_gallery(workspace: Workspace = Depends(get_workspace)) -> GalleryResponse:
    items = [
        GalleryItemResponse(
            key=item.key,
            label=item.label,
            dataUrl=item.data_url,
            previewHandle=item.preview_handle,
        )
        for item in workspace.gallery.items()
    ]
    return GalleryResponse(items=items, selected=workspace.gallery.selected)


@router.post("/gallery/selection", response_model=SelectionResponse)
async def select_gallery_image(
    payload: SelectionRequest,
    workspace: Workspace = Depends(get_workspace),
) -> SelectionResponse:
    try:
        selected = workspace.gallery.select(payload.target)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return SelectionResponse(selected=selected)


@router.delete("/gallery/selection", response_model=SelectionResponse)
async def close_gallery_viewer(workspace: Workspace = Depends(get_workspace)) -> SelectionResponse:
    workspace.gallery.close()
    return SelectionResponse(selected=None)
