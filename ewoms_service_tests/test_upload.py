"""
File upload validation and storage.
"""
import io
import os
import re
import zipfile
from unittest.mock import patch

from ewoms_service.config import settings

PNG = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02\x00\x00\x00\x90wS\xde"
    + b"\x00" * 64
)
JPEG = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00" + b"\x00" * 64
PDF = b"%PDF-1.7\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<< /Type /Catalog >>\nendobj\n"
UPLOAD_URL = "/api/common/upload"


def _zip_bytes():
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("hello.txt", "hello world " * 20)
    return buf.getvalue()


def _upload(client, name, content, content_type="application/octet-stream"):
    return client.post(UPLOAD_URL, files={"file": (name, io.BytesIO(content), content_type)})


def test_upload_png_is_saved_and_served(client):
    resp = _upload(client, "photo.PNG", PNG, "image/png")
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]

    assert re.fullmatch(r"\d{17}\.png", data["filename"])
    assert data["url"] == f"/static/upload/{data['filename']}"
    assert data["ext"] == ".png"
    assert data["original"] == "photo.PNG"
    assert data["size"] == len(PNG)
    assert os.path.exists(os.path.join(settings.UPLOAD_DIR, data["filename"]))

    served = client.get(data["url"])
    assert served.status_code == 200
    assert served.content == PNG


def test_upload_pdf(client):
    resp = _upload(client, "report.pdf", PDF)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["ext"] == ".pdf"


def test_upload_strips_directories_from_name(client):
    resp = _upload(client, "../../etc/evil.jpg", JPEG)
    assert resp.status_code == 200
    assert resp.json()["data"]["original"] == "evil.jpg"


def test_upload_requires_file(client):
    resp = client.post(UPLOAD_URL)
    assert resp.status_code == 400
    assert "请上传文件" in resp.json()["msg"]


def test_upload_rejects_extension(client):
    resp = _upload(client, "script.exe", PNG)
    assert resp.status_code == 400
    assert "不支持的文件类型" in resp.json()["msg"]


def test_upload_rejects_disguised_file(client):
    resp = _upload(client, "photo.jpg", b"<?php echo 1; ?>\n" * 8)
    assert resp.status_code == 400
    assert "可能是伪装文件" in resp.json()["msg"]


def test_zip_only_allowed_for_presentations(client):
    archive = _zip_bytes()
    rejected = _upload(client, "archive.png", archive)
    assert rejected.status_code == 400
    assert "不支持 ZIP 压缩文件" in rejected.json()["msg"]

    accepted = _upload(client, "slides.pptx", archive)
    assert accepted.status_code == 200


def test_legacy_office_container_only_for_ppt(client):
    with patch("ewoms_service.routes.upload.magic.from_buffer", return_value="application/CDFV2"):
        accepted = _upload(client, "slides.ppt", b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64)
        rejected = _upload(client, "photo.jpg", b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64)
    assert accepted.status_code == 200
    assert rejected.status_code == 400


def test_heic_upload(client):
    with patch("ewoms_service.routes.upload.magic.from_buffer", return_value="image/heic") as sniff:
        resp = _upload(client, "IMG_0001.HEIC", b"\x00\x00\x00\x18ftypheic" + b"\x00" * 64)
    assert resp.status_code == 200
    assert resp.json()["data"]["ext"] == ".heic"
    assert sniff.call_args[1] == {"mime": True}


def test_upload_size_limit(client, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_MAX_SIZE", 1024)
    resp = _upload(client, "big.png", PNG + b"\x00" * 2048)
    assert resp.status_code == 400
    assert "文件大小超过限制" in resp.json()["msg"]
