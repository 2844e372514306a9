import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from budgeting import BudgetingEngine
from config import get_settings
from database import SessionLocal
from loader import BudgetNotFound, LedgerReadError
from schemas import AllocationIn, BudgetIn, CopyBudgetIn
from services import BudgetService, CategoryNotFound

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Envelope Budget")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def engine_for(db: Session) -> BudgetingEngine:
    return BudgetingEngine(db.get_bind())


def month_from_request(request: Request) -> BudgetIn:
    month = request.query_params.get("month")
    year = request.query_params.get("year")
    try:
        return BudgetIn(year=int(year or ""), month=int(month or ""))
    except (ValueError, ValidationError) as exc:
        raise HTTPException(
            status_code=400, detail="Valid month and year are required"
        ) from exc


def summary_response(db: Session, year: int, month: int, status_code: int = 200):
    try:
        summary = engine_for(db).summary(year, month)
    except BudgetNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except LedgerReadError as exc:
        raise HTTPException(status_code=500, detail="Internal server error") from exc
    return JSONResponse(
        {"budget": summary.model_dump(mode="json")}, status_code=status_code
    )


@app.get("/api/budgets")
def get_budget(request: Request, db: Session = Depends(get_db)):
    target = month_from_request(request)
    return summary_response(db, target.year, target.month)


@app.post("/api/budgets")
def create_budget(data: BudgetIn, db: Session = Depends(get_db)):
    budget, created = BudgetService(db).create_budget(data.year, data.month)
    if created:
        logger.info(f"budget_created: id={budget.id} target={budget.year}-{budget.month:02d}")
    return summary_response(db, budget.year, budget.month, 201 if created else 200)


@app.post("/api/budgets/allocate")
def allocate(data: AllocationIn, db: Session = Depends(get_db)):
    service = BudgetService(db)
    try:
        service.upsert_allocation(data.budget_id, data.category_id, data.amount)
    except (BudgetNotFound, CategoryNotFound) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    budget = service.get(data.budget_id)
    return summary_response(db, budget.year, budget.month)


@app.post("/api/budgets/copy")
def copy_previous_month(data: CopyBudgetIn, db: Session = Depends(get_db)):
    try:
        budget, copied = BudgetService(db).copy_previous_month(data.to_budget_id)
    except BudgetNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    logger.info(f"budget_copied: id={budget.id} allocations={copied}")
    return summary_response(db, budget.year, budget.month)


@app.get("/api/budgets/{year}/{month}/categories/{category_id}")
def category_balance(
    year: int, month: int, category_id: int, db: Session = Depends(get_db)
):
    try:
        target = BudgetIn(year=year, month=month)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400, detail="Valid month and year are required"
        ) from exc
    try:
        balance = engine_for(db).category_balance(category_id, target.year, target.month)
    except LedgerReadError as exc:
        raise HTTPException(status_code=500, detail="Internal server error") from exc
    return balance.model_dump(mode="json")


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
