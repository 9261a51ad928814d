from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text
from .db import Base


class AppData(Base):
	__tablename__ = "app_data"
	id = Column(Integer, primary_key=True, autoincrement=True)
	# Rows are scoped by the app that wrote them; payload shape is up to the app
	app_id = Column(String(128), nullable=False, index=True)
	data = Column(Text, nullable=False)  # JSON string
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
