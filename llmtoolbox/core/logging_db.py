from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional, List

from sqlalchemy import (
    Column, DateTime, Integer, String, Text, create_engine, desc, select
)
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

class CallEvent(Base):
    __tablename__ = "call_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    event_type = Column(String(64), nullable=False, index=True)
    function_name = Column(String(256), nullable=True, index=True)

    payload_json = Column(Text, nullable=False)


class CallJournal:
    """Append-only record of dispatch events (rejections, results, tool failures)."""

    def __init__(self, database_url: str):
        self.engine = create_engine(database_url, future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, autoflush=False, autocommit=False, future=True)

    def record(
            self,
            event_type: str,
            payload: Dict[str, Any],
            *,
            function_name: Optional[str] = None,
            created_at: Optional[datetime] = None,
    ) -> int:
        ts = created_at or datetime.now(timezone.utc)
        row = CallEvent(
            created_at=ts,
            event_type=event_type,
            function_name=function_name,
            payload_json=json.dumps(payload, ensure_ascii=False, default=repr),
        )
        with self.Session() as s:
            s.add(row)
            s.commit()
            s.refresh(row)
            return int(row.id)

    def recent_events(self, limit: int = 50, function_name: Optional[str] = None) -> List[Dict[str, Any]]:
        stmt = select(CallEvent).order_by(desc(CallEvent.id)).limit(limit)
        if function_name:
            stmt = stmt.where(CallEvent.function_name == function_name)
        with self.Session() as s:
            rows = s.execute(stmt).scalars().all()
        return [
            {
                "id": r.id,
                "created_at": r.created_at.isoformat(),
                "event_type": r.event_type,
                "function_name": r.function_name,
                "payload": json.loads(r.payload_json),
            }
            for r in rows
        ]
