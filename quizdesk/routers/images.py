from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from quizdesk.deps import require_admin
from quizdesk.imaging import ImageStudio
from quizdesk.schemas import ImageGenerateRequest

router = APIRouter(prefix="/api/images", tags=["images"])

MAX_UPLOAD_SIZE = 5 * 1024 * 1024  # 5 MB

_studio: Optional[ImageStudio] = None


def get_image_studio() -> ImageStudio:
    global _studio
    if _studio is None:
        _studio = ImageStudio()
    return _studio


def close_image_studio() -> None:
    global _studio
    if _studio is not None:
        _studio.close()
        _studio = None


async def read_image_upload(file: UploadFile) -> bytes:
    if not file or not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image uploads are accepted")
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(data) > MAX_UPLOAD_SIZE:
        raise HTTPException(status_code=413, detail="File too large")
    return data


@router.post("/generate")
def generate_image(
    payload: ImageGenerateRequest,
    studio: ImageStudio = Depends(get_image_studio),
    admin=Depends(require_admin),
):
    image = studio.generate(payload.prompt, payload.aspect_ratio, payload.image_size)
    return Response(content=image.data, media_type=image.mime_type)


@router.post("/edit")
async def edit_image(
    prompt: str = Form(...),
    image: UploadFile = File(...),
    studio: ImageStudio = Depends(get_image_studio),
    admin=Depends(require_admin),
):
    source = await read_image_upload(image)
    edited = await run_in_threadpool(studio.edit, source, prompt, image.content_type)
    return Response(content=edited.data, media_type=edited.mime_type)
