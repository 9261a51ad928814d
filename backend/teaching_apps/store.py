from __future__ import annotations
import json
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import AppData


def row_to_dict(row: AppData) -> Dict[str, Any]:
	return {
		"id": row.id,
		"app_id": row.app_id,
		"data": json.loads(row.data),
		"created_at": row.created_at.isoformat(),
	}


def insert_row(db: Session, app_id: str, data: Any) -> AppData:
	row = AppData(app_id=app_id, data=json.dumps(data))
	db.add(row)
	db.commit()
	db.refresh(row)
	return row


def select_rows(
	db: Session,
	app_id: str,
	start: Optional[datetime] = None,
	end: Optional[datetime] = None,
) -> List[AppData]:
	# Both ends of the range are inclusive
	query = db.query(AppData).filter(AppData.app_id == app_id)
	if start is not None:
		query = query.filter(AppData.created_at >= start)
	if end is not None:
		query = query.filter(AppData.created_at <= end)
	return query.order_by(AppData.created_at, AppData.id).all()


def delete_row(db: Session, row_id: int) -> bool:
	res = db.execute(delete(AppData).where(AppData.id == row_id))
	db.commit()
	return bool(res.rowcount)


def delete_rows_by_field(db: Session, app_id: str, field: str, value: Any) -> int:
	"""Delete an app's rows whose payload has ``field`` equal to ``value``.

	Values are compared as text, the way ``data->>field`` compares in Postgres.
	The payload is stored as a JSON string, so matching happens in Python.
	"""
	wanted = str(value)
	ids: List[int] = []
	for row in db.query(AppData).filter(AppData.app_id == app_id).all():
		try:
			payload = json.loads(row.data)
		except ValueError:
			continue
		if isinstance(payload, dict) and field in payload and _as_text(payload[field]) == wanted:
			ids.append(row.id)
	if not ids:
		return 0
	res = db.execute(delete(AppData).where(AppData.id.in_(ids)))
	db.commit()
	return res.rowcount or 0


def _as_text(value: Any) -> str:
	if isinstance(value, str):
		return value
	if isinstance(value, bool):
		return "true" if value else "false"
	if value is None:
		return "null"
	if isinstance(value, (dict, list)):
		return json.dumps(value)
	return str(value)
