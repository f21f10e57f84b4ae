from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Response
from sqlalchemy.orm import Session

from config import get_settings
from database import get_db
from scheduler import SchedulerManager
from schemas import BillIn, BillUpdateIn, CategoryIn, MarkPaidIn, TransactionIn
from services import (
    BillService,
    CategoryService,
    TransactionService,
    payment_to_record,
    transaction_to_record,
)


app = FastAPI(title="Bill Tracker")


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def http_error(exc: ValueError) -> HTTPException:
    message = str(exc)
    status_code = 404 if message == "Bill not found" else 400
    return HTTPException(status_code=status_code, detail=message)


@app.get("/api/categories")
def api_categories(db: Session = Depends(get_db)):
    return [
        {"id": c.id, "name": c.name, "color": c.color}
        for c in CategoryService(db).list_all()
    ]


@app.post("/api/categories", status_code=201)
def api_create_category(data: CategoryIn, db: Session = Depends(get_db)):
    try:
        category = CategoryService(db).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return {"id": category.id, "name": category.name, "color": category.color}


@app.post("/api/transactions", status_code=201)
def api_create_transaction(data: TransactionIn, db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return transaction_to_record(txn)


@app.get("/api/bills")
def api_bills(
    active: Optional[bool] = None,
    upcoming: bool = False,
    days: Optional[int] = None,
    db: Session = Depends(get_db),
):
    upcoming_days = None
    if upcoming:
        upcoming_days = days if days is not None else get_settings().upcoming_days
    return BillService(db).list(active_only=bool(active), upcoming_days=upcoming_days)


@app.post("/api/bills", status_code=201)
def api_create_bill(data: BillIn, db: Session = Depends(get_db)):
    service = BillService(db)
    try:
        bill = service.create(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return service.get_with_status(bill.id)


@app.get("/api/bills/annual-cost")
def api_bills_annual_cost(active_only: bool = True, db: Session = Depends(get_db)):
    return BillService(db).annual_cost_summary(active_only=active_only)


@app.get("/api/bills/detect")
def api_bills_detect(
    min_transactions: Optional[int] = None,
    months: Optional[int] = None,
    db: Session = Depends(get_db),
):
    if min_transactions is not None and min_transactions < 2:
        raise HTTPException(status_code=400, detail="min_transactions must be at least 2")
    if months is not None and months < 1:
        raise HTTPException(status_code=400, detail="months must be at least 1")
    return BillService(db).detect(months=months, min_transactions=min_transactions)


@app.get("/api/bills/reminders")
def api_bills_reminders(db: Session = Depends(get_db)):
    return BillService(db).due_reminders()


@app.get("/api/bills/{bill_id}")
def api_bill(bill_id: int, db: Session = Depends(get_db)):
    try:
        return BillService(db).get_with_status(bill_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.put("/api/bills/{bill_id}")
def api_update_bill(bill_id: int, data: BillUpdateIn, db: Session = Depends(get_db)):
    service = BillService(db)
    try:
        service.update(bill_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return service.get_with_status(bill_id)


@app.delete("/api/bills/{bill_id}", status_code=204)
def api_delete_bill(bill_id: int, db: Session = Depends(get_db)):
    try:
        BillService(db).delete(bill_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@app.post("/api/bills/{bill_id}/pay")
def api_mark_bill_paid(
    bill_id: int, data: Optional[MarkPaidIn] = None, db: Session = Depends(get_db)
):
    try:
        return BillService(db).mark_paid(bill_id, data or MarkPaidIn())
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/bills/{bill_id}/payments")
def api_bill_payments(bill_id: int, db: Session = Depends(get_db)):
    try:
        payments = BillService(db).payments(bill_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return [payment_to_record(p) for p in payments]


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
