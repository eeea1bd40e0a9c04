"""
File upload for images and presentation documents.
"""
import logging
import os
import secrets
import time
from datetime import datetime
from typing import Optional

import magic
from fastapi import APIRouter, File, UploadFile

from ..config import settings
from ..errors import PARAMS_ERROR, SERVER_ERROR, ApiError, success

router = APIRouter(prefix="/api/common", tags=["common-upload"])
logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".gif",
    ".heic", ".heif", ".webp",
    ".pdf", ".ppt", ".pptx",
}

ALLOWED_MIME_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/heic",
    "image/heif",
    "image/webp",
    "application/pdf",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}

PPTX_MIME = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
PPT_MIME = "application/vnd.ms-powerpoint"
OOXML_MIME_PREFIX = "application/vnd.openxmlformats-officedocument."
ZIP_MIME_TYPES = {"application/zip", "application/x-zip-compressed"}
# libmagic labels legacy Office containers generically
OLE2_MIME_TYPES = {PPT_MIME, "application/vnd.ms-office", "application/CDFV2", "application/x-ole-storage"}
SNIFF_LENGTH = 2048
PUBLIC_URL_PREFIX = "/static/upload/"
CHUNK_SIZE = 1024 * 1024


def _safe_basename(filename: str) -> str:
    return os.path.basename(filename.replace("\\", "/"))


def _generate_filename(ext: str) -> str:
    return f"{datetime.now().strftime('%Y%m%d%H%M%S')}{secrets.randbelow(1000):03d}{ext}"


def _is_zip(content_type: str) -> bool:
    return content_type in ZIP_MIME_TYPES or content_type.startswith(OOXML_MIME_PREFIX)


@router.post("/upload")
async def upload(file: Optional[UploadFile] = File(None)):
    """
    Store an uploaded file under UPLOAD_DIR.

    The extension must be whitelisted and the file content has to agree with
    it. Files are renamed to a timestamp plus three random digits.
    """
    logger.info("[UploadController][Upload] start")
    if file is None or not file.filename:
        raise ApiError(PARAMS_ERROR, "请上传文件")

    max_mb = settings.UPLOAD_MAX_SIZE // (1024 * 1024)
    if file.size is not None and file.size > settings.UPLOAD_MAX_SIZE:
        logger.error("[UploadController][Upload] file too large: %d bytes", file.size)
        raise ApiError(PARAMS_ERROR, f"文件大小超过限制（最大{max_mb}MB）")

    original = _safe_basename(file.filename)
    ext = os.path.splitext(original)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        logger.error("[UploadController][Upload] unsupported extension: %s", ext)
        raise ApiError(PARAMS_ERROR, "不支持的文件类型，仅支持: jpg, jpeg, png, gif, heic, heif, webp, pdf, ppt, pptx")

    head = await file.read(SNIFF_LENGTH)
    content_type = magic.from_buffer(head, mime=True)
    if _is_zip(content_type):
        if ext not in (".ppt", ".pptx"):
            logger.error("[UploadController][Upload] zip not allowed for %s", ext)
            raise ApiError(PARAMS_ERROR, "不支持 ZIP 压缩文件")
        content_type = PPTX_MIME
    elif content_type in OLE2_MIME_TYPES and ext == ".ppt":
        content_type = PPT_MIME
    if content_type not in ALLOWED_MIME_TYPES:
        logger.error("[UploadController][Upload] content type mismatch: %s", content_type)
        raise ApiError(PARAMS_ERROR, "文件内容类型不匹配，可能是伪装文件")

    try:
        os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    except OSError as e:
        logger.error("[UploadController][Upload] failed to create upload dir: %s", e)
        raise ApiError(SERVER_ERROR, "创建保存目录失败") from e

    filename = _generate_filename(ext)
    save_path = os.path.join(settings.UPLOAD_DIR, filename)
    size = len(head)
    try:
        with open(save_path, "wb") as out:
            out.write(head)
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > settings.UPLOAD_MAX_SIZE:
                    break
                out.write(chunk)
    except OSError as e:
        logger.error("[UploadController][Upload] failed to save file: %s", e)
        raise ApiError(SERVER_ERROR, "保存文件失败") from e

    if size > settings.UPLOAD_MAX_SIZE:
        os.remove(save_path)
        logger.error("[UploadController][Upload] file too large: more than %d bytes", settings.UPLOAD_MAX_SIZE)
        raise ApiError(PARAMS_ERROR, f"文件大小超过限制（最大{max_mb}MB）")

    logger.info(
        "[UploadController][Upload] saved %s, original: %s, size: %d bytes, MIME: %s",
        filename, original, size, content_type
    )
    return success({
        "url": PUBLIC_URL_PREFIX + filename,
        "filename": filename,
        "size": size,
        "ext": ext,
        "original": original,
        "time": int(time.time()),
    })
