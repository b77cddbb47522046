import asyncio
import os
import re
import time
from pathlib import Path
from typing import Iterable, List, Optional

import cv2
import numpy as np
import pytesseract
from dotenv import load_dotenv

from .gcv_client import GCVClient
from .schemas import Employee, ScreenshotResult
from .txn_rule_parser import RuleBasedTxnParser

load_dotenv()

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tif", ".tiff", ".gif"}

# OSD "Rotate: N" is the clockwise turn that makes the page upright
ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


class OCRFailure(RuntimeError):
    """The OCR engine could not produce any text for an image."""


class OCRProcessor:
    def __init__(self, engine: Optional[str] = None, parser: Optional[RuleBasedTxnParser] = None,
                 gcv_client: Optional[GCVClient] = None):
        # TESSERACT_CMD points pytesseract at a binary outside PATH
        if os.getenv("TESSERACT_CMD"):
            pytesseract.pytesseract.tesseract_cmd = os.getenv("TESSERACT_CMD")
        self.engine = (engine or os.getenv("OCR_ENGINE", "tesseract")).lower()
        if self.engine not in ("tesseract", "gcv"):
            print(f"⚠️ Unknown OCR_ENGINE={self.engine!r}; using tesseract")
            self.engine = "tesseract"
        self.parser = parser or RuleBasedTxnParser()
        self.gcv_client = gcv_client
        if self.engine == "gcv" and self.gcv_client is None:
            self.gcv_client = GCVClient()

        # Screenshots are mostly block text; 4 and 11 catch card-style layouts
        self.tesseract_configs = [
            '-l eng --oem 3 --psm 6 -c preserve_interword_spaces=1',
            '-l eng --oem 3 --psm 4 -c preserve_interword_spaces=1',
            '-l eng --oem 3 --psm 11',
        ]

    # --- Image preprocessing helpers --------------------------------------------------------
    def upright(self, image: np.ndarray) -> np.ndarray:
        """Rotate by the clockwise correction Tesseract OSD reports (0/90/180/270)."""
        bgr = self._ensure_bgr(image)
        try:
            osd = pytesseract.image_to_osd(bgr, config='--psm 0 -l eng')
        except (pytesseract.TesseractError, OSError):
            # OSD needs a fair amount of text; sparse screenshots fail it
            return bgr
        match = re.search(r"Rotate:\s*(\d+)", osd)
        rotation = ROTATIONS.get(int(match.group(1)) % 360) if match else None
        if rotation is None:
            return bgr
        print(f"↪️ Rotating screenshot by {match.group(1)} degrees")
        return cv2.rotate(bgr, rotation)

    def _ensure_bgr(self, image: np.ndarray) -> np.ndarray:
        """3-channel BGR copy of a gray or BGRA image."""
        if image.ndim == 2:
            return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        if image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
        return image

    def read_image(self, image_path: str) -> np.ndarray:
        image = cv2.imread(image_path)
        if image is None:
            raise OCRFailure(f"Could not read image: {image_path}")
        return image

    def preprocess_cv_image(self, image: np.ndarray) -> np.ndarray:
        gray = cv2.cvtColor(self._ensure_bgr(image), cv2.COLOR_BGR2GRAY)
        # Dark-mode screenshots: light text on dark background
        if float(np.mean(gray)) < 110:
            gray = cv2.bitwise_not(gray)
        blurred = cv2.GaussianBlur(gray, (3, 3), 0)
        _, thresh = cv2.threshold(blurred, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)

        height, width = thresh.shape
        if height < 1000:
            scale = 1000 / height
            thresh = cv2.resize(thresh, (int(width * scale), 1000), interpolation=cv2.INTER_CUBIC)
        return thresh

    def _clean_text(self, text: str) -> str:
        """Drop empty lines and compress internal spacing; keep short lines like '₹ 500'."""
        if not text:
            return ""
        cleaned_lines: List[str] = []
        for raw_line in text.splitlines():
            line = re.sub(r"\s+", " ", raw_line).strip()
            if line:
                cleaned_lines.append(line)
        return "\n".join(cleaned_lines)

    # --- OCR ------------------------------------------------------------------------------
    def extract_text(self, image: np.ndarray) -> str:
        """Run Tesseract with several configs on the raw and binarized image, keep the longest."""
        oriented = self.upright(image)
        variants = [oriented, self.preprocess_cv_image(oriented)]
        best_text = ''
        for variant in variants:
            for cfg in self.tesseract_configs:
                try:
                    txt = pytesseract.image_to_string(variant, config=cfg).strip()
                except (pytesseract.TesseractError, OSError) as e:
                    print(f"⚠️ Tesseract failed ({cfg}): {e}")
                    continue
                if len(txt) > len(best_text):
                    best_text = txt
        return self._clean_text(best_text)

    async def ocr_image(self, image_path: str) -> str:
        """Raw text for one image, or OCRFailure."""
        if self.engine == "gcv":
            try:
                text, conf = await self.gcv_client.detect_text_from_path(image_path, language_hints=["en"])
            except (RuntimeError, OSError) as e:
                raise OCRFailure(str(e)) from e
            print(f"🔍 GCV confidence: {conf}")
            text = self._clean_text(text)
        else:
            image = self.read_image(image_path)
            text = await asyncio.to_thread(self.extract_text, image)
        if not text:
            raise OCRFailure(f"No text recognized in {Path(image_path).name}")
        return text

    async def process_screenshot(self, image_path: str, employees: Iterable[Employee] = ()) -> ScreenshotResult:
        print(f"🔍 OCRProcessor.process_screenshot: engine={self.engine}, file={image_path}")
        start = time.perf_counter()
        text = await self.ocr_image(image_path)
        ocr_ms = int((time.perf_counter() - start) * 1000)
        print(f"📝 FULL OCR TEXT:\n{text}\n--- END OCR TEXT ---")
        print(f"⏱ OCR(text) time: {ocr_ms} ms")
        candidate = self.parser.parse(text, employees)
        return ScreenshotResult(filename=Path(image_path).name, candidate=candidate, raw_text=text)

    async def process_screenshots(self, image_paths: Iterable[str],
                                  employees: Iterable[Employee] = ()) -> List[ScreenshotResult]:
        """OCR images one at a time; a failed file is reported and the batch goes on."""
        employees = list(employees)
        paths = list(image_paths)
        results: List[ScreenshotResult] = []
        for i, path in enumerate(paths, start=1):
            try:
                results.append(await self.process_screenshot(path, employees))
            except OCRFailure as e:
                print(f"❌ Failed to OCR: {path}: {e}")
                results.append(ScreenshotResult(filename=Path(path).name, error=f"Failed to OCR: {e}"))
            print(f"📊 Processed {i}/{len(paths)}")
        return results


def find_images(directory: Path) -> List[Path]:
    files: List[Path] = []
    for p in sorted(directory.iterdir()):
        if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS:
            files.append(p)
    return files
