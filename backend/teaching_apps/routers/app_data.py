from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from .. import store
from .password_gate import require_access

router = APIRouter(prefix="/app-data", tags=["app-data"], dependencies=[Depends(require_access)])

logger = logging.getLogger(__name__)


class InsertRequest(BaseModel):
	app_id: str
	data: Any


class DeleteByFieldRequest(BaseModel):
	app_id: str
	field: str
	value: Any


def _require_app_id(app_id: Optional[str]) -> str:
	app_id = (app_id or "").strip()
	if not app_id:
		raise HTTPException(status_code=400, detail="app_id is required")
	return app_id


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
	# created_at is stored as naive UTC
	if value is None or value.tzinfo is None:
		return value
	return value.astimezone(timezone.utc).replace(tzinfo=None)


@router.post("", status_code=201)
def insert(req: InsertRequest, db: Session = Depends(get_db)):
	app_id = _require_app_id(req.app_id)
	try:
		row = store.insert_row(db, app_id, req.data)
	except SQLAlchemyError as e:
		db.rollback()
		logger.exception("Error saving row for %s", app_id)
		raise HTTPException(status_code=500, detail=str(e))
	return {"success": True, "id": row.id}


@router.get("")
def select(
	app_id: Optional[str] = Query(default=None),
	start: Optional[datetime] = Query(default=None),
	end: Optional[datetime] = Query(default=None),
	db: Session = Depends(get_db),
):
	app_id = _require_app_id(app_id)
	start, end = _as_utc(start), _as_utc(end)
	if start is not None and end is not None and start > end:
		raise HTTPException(status_code=400, detail="start must not be after end")
	rows = store.select_rows(db, app_id, start, end)
	return {"rows": [store.row_to_dict(r) for r in rows]}


@router.delete("/{row_id}")
def delete_one(row_id: int, db: Session = Depends(get_db)):
	if not store.delete_row(db, row_id):
		raise HTTPException(status_code=404, detail="row not found")
	return {"success": True}


@router.delete("")
def delete_by_field(req: DeleteByFieldRequest, db: Session = Depends(get_db)):
	app_id = _require_app_id(req.app_id)
	if not req.field:
		raise HTTPException(status_code=400, detail="field is required")
	deleted = store.delete_rows_by_field(db, app_id, req.field, req.value)
	return {"success": True, "deleted": deleted}
