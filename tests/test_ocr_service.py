import asyncio
import base64

import httpx
import numpy as np
import pytest

from moneytracker.gcv_client import GCVClient
from moneytracker.ocr_service import OCRFailure, OCRProcessor, find_images
from moneytracker.schemas import Employee

SCREENSHOT_TEXT = "Paid to Ravi Kumar\n₹ 500\n12 Jan 2024"


def test_batch_is_sequential_and_isolates_failures(monkeypatch):
    proc = OCRProcessor(engine="tesseract")
    calls = []
    active = {"now": 0, "max": 0}

    async def fake_ocr(path):
        active["now"] += 1
        active["max"] = max(active["max"], active["now"])
        await asyncio.sleep(0)
        active["now"] -= 1
        calls.append(path)
        if path.endswith("bad.png"):
            raise OCRFailure("blurry")
        return SCREENSHOT_TEXT

    monkeypatch.setattr(proc, "ocr_image", fake_ocr)
    employees = [Employee(id="e1", name="Ravi")]
    results = asyncio.run(proc.process_screenshots(["up/a.png", "up/bad.png", "up/c.png"], employees))

    assert calls == ["up/a.png", "up/bad.png", "up/c.png"]
    assert active["max"] == 1
    assert [r.filename for r in results] == ["a.png", "bad.png", "c.png"]
    assert results[1].candidate is None
    assert results[1].error == "Failed to OCR: blurry"
    for r in (results[0], results[2]):
        assert r.error is None
        assert r.candidate.amount == 500
        assert r.candidate.employee_id == "e1"
        assert r.raw_text == SCREENSHOT_TEXT


def test_empty_ocr_text_is_a_failure(monkeypatch):
    proc = OCRProcessor(engine="tesseract")
    monkeypatch.setattr(proc, "read_image", lambda path: np.zeros((10, 10, 3), dtype=np.uint8))
    monkeypatch.setattr(proc, "extract_text", lambda image: "")
    with pytest.raises(OCRFailure):
        asyncio.run(proc.ocr_image("blank.png"))


def test_unreadable_image(tmp_path):
    proc = OCRProcessor(engine="tesseract")
    bogus = tmp_path / "x.png"
    bogus.write_bytes(b"not an image")
    with pytest.raises(OCRFailure):
        proc.read_image(str(bogus))


def test_gcv_engine_text_is_cleaned():
    class FakeGCV:
        async def detect_text_from_path(self, path, language_hints=None):
            return "  Paid   to Ravi \n\n ₹ 500 ", 0.93

    proc = OCRProcessor(engine="gcv", gcv_client=FakeGCV())
    assert asyncio.run(proc.ocr_image("shot.png")) == "Paid to Ravi\n₹ 500"


def test_gcv_failure_becomes_ocr_failure():
    class DownGCV:
        async def detect_text_from_path(self, path, language_hints=None):
            raise RuntimeError("GCV error 403: API key not valid")

    proc = OCRProcessor(engine="gcv", gcv_client=DownGCV())
    results = asyncio.run(proc.process_screenshots(["shot.png"]))
    assert results[0].error == "Failed to OCR: GCV error 403: API key not valid"


def test_unknown_engine_falls_back_to_tesseract():
    assert OCRProcessor(engine="paddle").engine == "tesseract"


def test_preprocess_upscales_small_images():
    proc = OCRProcessor(engine="tesseract")
    image = np.full((100, 200, 3), 255, dtype=np.uint8)
    image[40:60, 50:150] = 0
    out = proc.preprocess_cv_image(image)
    assert out.shape == (1000, 2000)
    assert out.mean() > 127


def test_preprocess_inverts_dark_mode():
    proc = OCRProcessor(engine="tesseract")
    image = np.zeros((1200, 600, 3), dtype=np.uint8)
    image[500:520, 100:500] = 255
    out = proc.preprocess_cv_image(image)
    assert out.shape == (1200, 600)
    assert out.mean() > 127


def test_ensure_bgr():
    proc = OCRProcessor(engine="tesseract")
    gray = np.zeros((5, 5), dtype=np.uint8)
    bgra = np.zeros((5, 5, 4), dtype=np.uint8)
    assert proc._ensure_bgr(gray).shape == (5, 5, 3)
    assert proc._ensure_bgr(bgra).shape == (5, 5, 3)


def test_find_images(tmp_path):
    for name in ("b.png", "a.JPG", "notes.txt"):
        (tmp_path / name).write_bytes(b"x")
    (tmp_path / "sub").mkdir()
    assert [p.name for p in find_images(tmp_path)] == ["a.JPG", "b.png"]


def test_gcv_request_body():
    client = GCVClient(api_key="k")
    body = client.annotate_request(b"img", language_hints=["en"])
    req = body["requests"][0]
    assert base64.b64decode(req["image"]["content"]) == b"img"
    assert req["features"] == [{"type": "DOCUMENT_TEXT_DETECTION"}]
    assert req["imageContext"] == {"languageHints": ["en"]}
    assert "imageContext" not in client.annotate_request(b"img", "text_detection")["requests"][0]


def test_gcv_parse_annotation():
    resp = {"responses": [{"fullTextAnnotation": {
        "text": "Paid to Ravi\n₹ 500\n",
        "pages": [{"blocks": [{"confidence": 0.9}, {"confidence": 0.7}]}],
    }}]}
    text, conf = GCVClient.parse_annotation(resp)
    assert text == "Paid to Ravi\n₹ 500"
    assert conf == pytest.approx(0.8)

    fallback = {"responses": [{"textAnnotations": [{"description": "₹ 500"}, {"description": "500"}]}]}
    assert GCVClient.parse_annotation(fallback) == ("₹ 500", None)
    assert GCVClient.parse_annotation({"responses": []}) == ("", None)
    with pytest.raises(RuntimeError):
        GCVClient.parse_annotation({"responses": [{"error": {"message": "Bad image data."}}]})


def test_gcv_detect_text_over_http():
    seen = {}

    def handler(request):
        seen["key"] = request.url.params["key"]
        return httpx.Response(200, json={"responses": [{"fullTextAnnotation": {"text": "₹ 250"}}]})

    client = GCVClient(api_key="secret", transport=httpx.MockTransport(handler))
    result = asyncio.run(client.detect_text(b"img"))
    assert result.text == "₹ 250"
    assert result.confidence is None
    assert seen["key"] == "secret"


def test_gcv_http_error():
    def handler(request):
        return httpx.Response(403, json={"error": {"message": "API key not valid"}})

    client = GCVClient(api_key="bad", transport=httpx.MockTransport(handler))
    with pytest.raises(RuntimeError, match="GCV error 403: API key not valid"):
        asyncio.run(client.detect_text(b"img"))


def test_gcv_requires_api_key():
    client = GCVClient(api_key="x")
    client.api_key = None
    with pytest.raises(RuntimeError):
        asyncio.run(client.detect_text(b"img"))
