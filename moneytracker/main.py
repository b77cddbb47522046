from fastapi import FastAPI, HTTPException, Depends, UploadFile, File, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from typing import List
import uvicorn
from datetime import datetime
from pathlib import Path
import os

from .csv_io import ImportFormatError
from .database import get_db, init_db, migrate_db, WorkspaceStore
from .ledger_service import LedgerCommandError, LedgerService, NotFoundError
from .ocr_service import OCRProcessor
from .schemas import (
    CandidateConfirm,
    EmployeeCreate,
    EmployeeUpdate,
    LedgerChange,
    LedgerResponse,
    ParsedCandidate,
    ParseTextRequest,
    ScreenshotResult,
    SummaryResponse,
    TransactionCreate,
    TransactionUpdate,
)
from .statement import StatementFormatError, read_statement

app = FastAPI(title="Screenshot Money Tracker", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ocr_processor = OCRProcessor()

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", "uploads"))

CSV_EXPORTS = {
    "employees": LedgerService.export_employees_csv,
    "outgoing": LedgerService.export_outgoing_csv,
    "incoming": LedgerService.export_incoming_csv,
}
CSV_IMPORTS = {
    "employees": LedgerService.import_employees_csv,
    "outgoing": LedgerService.import_outgoing_csv,
    "incoming": LedgerService.import_incoming_csv,
}
CLEAR_COMMANDS = {
    "outgoing": LedgerService.clear_outgoing,
    "return": LedgerService.clear_incoming,
    "all": LedgerService.clear_all,
}


@app.on_event("startup")
async def startup_event():
    init_db()
    migrate_db()
    print("Database initialized")


def open_workspace(code: str, db: Session) -> LedgerService:
    code = code.strip()
    if not code:
        raise HTTPException(status_code=400, detail="Workspace code is required")
    service = LedgerService(WorkspaceStore(db), code)
    service.load()
    return service


def ledger_response(service: LedgerService, change: LedgerChange = None) -> LedgerResponse:
    return LedgerResponse(
        workspace=service.workspace,
        ledger=service.ledger,
        change=change,
        warnings=list(service.warnings),
    )


def apply_command(service: LedgerService, command, *args) -> LedgerResponse:
    """Run one ledger command, save on success and map failures to HTTP errors."""
    try:
        change = command(service, *args)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (LedgerCommandError, ImportFormatError) as e:
        print(f"❌ COMMAND REJECTED: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    print(f"✅ {change.action}: count={change.count}, warnings={change.warnings}")
    service.save()
    return ledger_response(service, change)


async def read_upload_text(file: UploadFile) -> str:
    content = await file.read()
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail=f"{file.filename} is not UTF-8 text")


# --- Workspace ---------------------------------------------------------------------------

@app.get("/workspaces/{code}", response_model=LedgerResponse)
async def get_workspace(code: str, db: Session = Depends(get_db)):
    return ledger_response(open_workspace(code, db))


@app.put("/workspaces/{code}", response_model=LedgerResponse)
async def import_workspace_json(code: str, request: Request, db: Session = Depends(get_db)):
    service = open_workspace(code, db)
    body = await request.body()
    return apply_command(service, LedgerService.import_json, body.decode("utf-8-sig", errors="replace"))


@app.get("/workspaces/{code}/export")
async def export_workspace_json(code: str, db: Session = Depends(get_db)):
    service = open_workspace(code, db)
    return Response(
        content=service.export_json(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{service.workspace}.json"'},
    )


# --- Employees ---------------------------------------------------------------------------

@app.post("/workspaces/{code}/employees", response_model=LedgerResponse)
async def create_employee(code: str, data: EmployeeCreate, db: Session = Depends(get_db)):
    service = open_workspace(code, db)
    return apply_command(service, LedgerService.add_employee, data.name, data.cut_type, data.cut_value)


@app.patch("/workspaces/{code}/employees/{employee_id}", response_model=LedgerResponse)
async def patch_employee(code: str, employee_id: str, patch: EmployeeUpdate, db: Session = Depends(get_db)):
    service = open_workspace(code, db)
    return apply_command(service, LedgerService.update_employee, employee_id, patch)


@app.delete("/workspaces/{code}/employees/{employee_id}", response_model=LedgerResponse)
async def remove_employee(code: str, employee_id: str, db: Session = Depends(get_db)):
    service = open_workspace(code, db)
    return apply_command(service, LedgerService.delete_employee, employee_id)


# --- Transactions ------------------------------------------------------------------------

@app.post("/workspaces/{code}/transactions", response_model=LedgerResponse)
async def create_transaction(code: str, data: TransactionCreate, db: Session = Depends(get_db)):
    service = open_workspace(code, db)
    return apply_command(service, LedgerService.add_transaction, data)


@app.patch("/workspaces/{code}/transactions/{txn_id}", response_model=LedgerResponse)
async def patch_transaction(code: str, txn_id: str, patch: TransactionUpdate, db: Session = Depends(get_db)):
    service = open_workspace(code, db)
    return apply_command(service, LedgerService.update_transaction, txn_id, patch)


@app.delete("/workspaces/{code}/transactions/{txn_id}", response_model=LedgerResponse)
async def remove_transaction(code: str, txn_id: str, db: Session = Depends(get_db)):
    service = open_workspace(code, db)
    return apply_command(service, LedgerService.delete_transaction, txn_id)


@app.delete("/workspaces/{code}/transactions", response_model=LedgerResponse)
async def clear_transactions(code: str, txn_type: str = Query(..., alias="type"), db: Session = Depends(get_db)):
    command = CLEAR_COMMANDS.get(txn_type)
    if command is None:
        raise HTTPException(status_code=400, detail="type must be one of: outgoing, return, all")
    service = open_workspace(code, db)
    return apply_command(service, command)


# --- OCR ---------------------------------------------------------------------------------

@app.post("/workspaces/{code}/parse-text", response_model=ParsedCandidate)
async def parse_text(code: str, body: ParseTextRequest, db: Session = Depends(get_db)):
    service = open_workspace(code, db)
    return ocr_processor.parser.parse(body.text, service.ledger.employees)


@app.post("/workspaces/{code}/screenshots", response_model=List[ScreenshotResult])
async def upload_screenshots(code: str, files: List[UploadFile] = File(...), db: Session = Depends(get_db)):
    service = open_workspace(code, db)
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    paths: List[str] = []
    for i, file in enumerate(files):
        file_path = UPLOAD_DIR / f"{stamp}_{i}_{Path(file.filename or 'screenshot').name}"
        with open(file_path, "wb") as buffer:
            buffer.write(await file.read())
        paths.append(str(file_path))
    print(f"🔥 SCREENSHOTS: workspace={service.workspace}, files={len(paths)}")
    results = await ocr_processor.process_screenshots(paths, service.ledger.employees)
    for result, path in zip(results, paths):
        result.image_url = path
    return results


@app.post("/workspaces/{code}/candidates/confirm", response_model=LedgerResponse)
async def confirm_candidate(code: str, confirm: CandidateConfirm, db: Session = Depends(get_db)):
    service = open_workspace(code, db)
    return apply_command(service, LedgerService.confirm_candidate, confirm)


# --- CSV import / export -----------------------------------------------------------------

@app.post("/workspaces/{code}/import/{kind}", response_model=LedgerResponse)
async def import_csv(code: str, kind: str, file: UploadFile = File(...), db: Session = Depends(get_db)):
    command = CSV_IMPORTS.get(kind)
    if command is None:
        raise HTTPException(status_code=404, detail=f"Unknown import kind: {kind}")
    text = await read_upload_text(file)
    service = open_workspace(code, db)
    return apply_command(service, command, text)


@app.get("/workspaces/{code}/export/{kind}.csv")
async def export_csv(code: str, kind: str, db: Session = Depends(get_db)):
    export = CSV_EXPORTS.get(kind)
    if export is None:
        raise HTTPException(status_code=404, detail=f"Unknown export kind: {kind}")
    service = open_workspace(code, db)
    return Response(
        content=export(service),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{kind}.csv"'},
    )


# --- Statements and summary --------------------------------------------------------------

@app.post("/workspaces/{code}/statements", response_model=LedgerResponse)
async def upload_statement(code: str, file: UploadFile = File(...), db: Session = Depends(get_db)):
    data = await file.read()
    try:
        entries = read_statement(file.filename or "", data)
    except StatementFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    service = open_workspace(code, db)
    return apply_command(service, LedgerService.apply_statement, entries)


@app.get("/workspaces/{code}/summary", response_model=SummaryResponse)
async def get_summary(code: str, db: Session = Depends(get_db)):
    service = open_workspace(code, db)
    return SummaryResponse(employees=service.summary(), totals=service.overall_totals())


if __name__ == '__main__':
    uvicorn.run('moneytracker.main:app', host='0.0.0.0', port=int(os.getenv('PORT', 8000)), reload=True)
