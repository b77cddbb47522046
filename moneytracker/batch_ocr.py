import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from .ocr_service import OCRProcessor, find_images
from .schemas import Employee


def load_employees(workspace: Optional[str]) -> List[Employee]:
    """Employees of ``workspace`` for counterparty matching; empty when not given."""
    if not workspace:
        return []
    from .database import SessionLocal, WorkspaceStore, init_db

    init_db()
    db = SessionLocal()
    try:
        ledger = WorkspaceStore(db).load(workspace)
    finally:
        db.close()
    if ledger is None:
        print(f"⚠️ Workspace {workspace!r} not found; employee matching disabled")
        return []
    return ledger.employees


def summary_row(result: Dict[str, Any]) -> Dict[str, Any]:
    row: Dict[str, Any] = {"image": result["filename"]}
    if result.get("error"):
        row["error"] = result["error"]
        return row
    cand = result.get("candidate") or {}
    for key in ("amount", "date", "time", "ref", "mode", "counterparty", "direction", "employeeId"):
        row[key] = cand.get(key)
    return row


async def run(args: argparse.Namespace) -> None:
    images_dir = Path(args.images_dir)
    if not images_dir.exists():
        raise SystemExit(f"Images directory not found: {images_dir}")

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    images = find_images(images_dir)
    if not images:
        print(f"No images found in {images_dir}")
        return

    processor = OCRProcessor(engine=args.engine)
    employees = load_employees(args.workspace)
    print(f"Found {len(images)} images. Engine: {processor.engine}. Writing to {output_path}")

    results = await processor.process_screenshots([str(p) for p in images], employees)
    records = [r.model_dump(by_alias=True) for r in results]

    with output_path.open("w", encoding="utf-8") as f:
        for rec in records:
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")

    summary_path = output_path.parent / "summary.json"
    with summary_path.open("w", encoding="utf-8") as fsum:
        json.dump([summary_row(rec) for rec in records], fsum, ensure_ascii=False, indent=2)

    failed = sum(1 for r in results if r.error)
    print(f"Wrote {len(records)} records to {output_path} ({failed} failed)")
    print(f"Wrote summary to {summary_path}")


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="OCR a directory of payment screenshots into transaction candidates.")
    parser.add_argument("--images-dir", default="uploads", help="Directory containing screenshots")
    parser.add_argument("--output", default="outputs/results.jsonl", help="Path to write JSONL results")
    parser.add_argument("--workspace", default=None, help="Workspace code whose employees are matched")
    parser.add_argument("--engine", choices=["tesseract", "gcv"], default=None,
                        help="OCR engine (defaults to OCR_ENGINE)")
    asyncio.run(run(parser.parse_args(argv)))


if __name__ == "__main__":
    main()
