import base64
import os
from typing import Any, Dict, List, NamedTuple, Optional

import httpx
from dotenv import load_dotenv

load_dotenv()

VISION_ENDPOINT = "https://vision.googleapis.com/v1/images:annotate"


class GCVText(NamedTuple):
    text: str
    confidence: Optional[float]


class GCVClient:
    """Google Cloud Vision text detection over the REST API (v1), keyed by API key.

    Payment screenshots are dense UI text, so DOCUMENT_TEXT_DETECTION is the
    default feature; TEXT_DETECTION can be passed per call.
    """

    def __init__(self, api_key: Optional[str] = None, feature: str = "DOCUMENT_TEXT_DETECTION",
                 timeout: float = 60.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.api_key = api_key or os.getenv("GOOGLE_CLOUD_VISION_API_KEY")
        self.feature = feature
        self.timeout = timeout
        self.transport = transport

    def annotate_request(self, image_bytes: bytes, feature: Optional[str] = None,
                         language_hints: Optional[List[str]] = None) -> Dict[str, Any]:
        request: Dict[str, Any] = {
            "image": {"content": base64.b64encode(image_bytes).decode("ascii")},
            "features": [{"type": (feature or self.feature).upper()}],
        }
        if language_hints:
            request["imageContext"] = {"languageHints": list(language_hints)}
        return {"requests": [request]}

    @staticmethod
    def parse_annotation(payload: Dict[str, Any]) -> GCVText:
        """Full text annotation when present (mean block confidence), else the first text annotation."""
        responses = payload.get("responses") or [{}]
        first = responses[0]
        if first.get("error"):
            raise RuntimeError(f"GCV error: {first['error'].get('message', first['error'])}")
        full = first.get("fullTextAnnotation") or {}
        if full.get("text"):
            confidences = [
                float(block["confidence"])
                for page in full.get("pages", [])
                for block in page.get("blocks", [])
                if isinstance(block.get("confidence"), (int, float))
            ]
            mean = sum(confidences) / len(confidences) if confidences else None
            return GCVText(full["text"].strip(), mean)
        annotations = first.get("textAnnotations") or []
        if annotations:
            return GCVText((annotations[0].get("description") or "").strip(), None)
        return GCVText("", None)

    async def detect_text(self, image_bytes: bytes, feature: Optional[str] = None,
                          language_hints: Optional[List[str]] = None) -> GCVText:
        if not self.api_key:
            raise RuntimeError("GOOGLE_CLOUD_VISION_API_KEY is not set")
        body = self.annotate_request(image_bytes, feature, language_hints)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                res = await client.post(VISION_ENDPOINT, params={"key": self.api_key}, json=body)
            except httpx.HTTPError as e:
                raise RuntimeError(f"GCV request failed: {e}") from e
        if res.is_error:
            try:
                detail = res.json().get("error", {}).get("message") or res.text
            except ValueError:
                detail = res.text
            print(f"❌ GCV error {res.status_code}: {detail}")
            raise RuntimeError(f"GCV error {res.status_code}: {detail}")
        return self.parse_annotation(res.json())

    async def detect_text_from_path(self, path: str, feature: Optional[str] = None,
                                    language_hints: Optional[List[str]] = None) -> GCVText:
        with open(path, "rb") as f:
            return await self.detect_text(f.read(), feature, language_hints)
