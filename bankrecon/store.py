"""Statement persistence with idempotent upserts.

A statement is identified by (bank, statement_date, checksum); submitting
identical content twice leaves a single row.
"""
import json
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    BigInteger, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, create_engine, select,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from .models import BankStatement, RECORD_KINDS, Result

logger = logging.getLogger(__name__)

Base = declarative_base()


class StatementRow(Base):
    __tablename__ = 'statements'

    id = Column(Integer, primary_key=True)
    bank = Column(String(20), nullable=False)
    statement_date = Column(String(10), nullable=False)
    checksum = Column(String(64), nullable=False)
    opening_balance = Column(BigInteger, default=0)
    closing_balance = Column(BigInteger, default=0)
    source = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    items = relationship('LineItemRow', backref='statement', lazy=True, cascade='all, delete-orphan',
                         order_by='LineItemRow.id')

    __table_args__ = (UniqueConstraint('bank', 'statement_date', 'checksum', name='uq_statement_identity'),)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'bank': self.bank,
            'statement_date': self.statement_date,
            'checksum': self.checksum,
            'opening_balance': self.opening_balance,
            'closing_balance': self.closing_balance,
            'source': self.source,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'items': [item.to_dict() for item in self.items],
        }


class LineItemRow(Base):
    __tablename__ = 'statement_items'

    id = Column(Integer, primary_key=True)
    statement_id = Column(Integer, ForeignKey('statements.id'), nullable=False)
    kind = Column(String(20), nullable=False)
    position = Column(Integer, nullable=False)
    amount = Column(BigInteger, default=0)
    payload = Column(Text, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind, 'position': self.position, 'amount': self.amount,
                'record': json.loads(self.payload)}


class StatementStore:
    """SQLAlchemy-backed store for extracted statements."""

    def __init__(self, database_url: str = "sqlite:///:memory:", echo: bool = False):
        self.engine = create_engine(database_url, echo=echo)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)

    def upsert(self, statement: BankStatement) -> Result:
        """Insert the statement unless identical content is already stored."""
        checksum = statement.checksum
        with self.Session() as session:
            existing = session.execute(
                select(StatementRow).filter_by(bank=statement.bank, statement_date=statement.statement_date,
                                               checksum=checksum)
            ).scalar_one_or_none()
            if existing is not None:
                logger.info(f"{statement.bank} {statement.statement_date} already stored (id {existing.id})")
                return Result(success=True, data={'id': existing.id, 'checksum': checksum, 'inserted': False})

            row = StatementRow(
                bank=statement.bank,
                statement_date=statement.statement_date,
                checksum=checksum,
                opening_balance=statement.opening_balance,
                closing_balance=statement.closing_balance,
                source=statement.metadata.get('source'),
            )
            for kind in RECORD_KINDS:
                for position, record in enumerate(statement.records(kind)):
                    data = asdict(record)
                    row.items.append(LineItemRow(
                        kind=kind,
                        position=position,
                        amount=data.get('amount', data.get('limit_amount', 0)),
                        payload=json.dumps(data, sort_keys=True),
                    ))
            session.add(row)
            session.commit()
            logger.info(f"Stored {statement.bank} {statement.statement_date} as id {row.id}")
            return Result(success=True, data={'id': row.id, 'checksum': checksum, 'inserted': True})

    def find(self, bank: str, statement_date: Optional[str] = None) -> List[Dict[str, Any]]:
        with self.Session() as session:
            query = select(StatementRow).filter_by(bank=bank)
            if statement_date:
                query = query.filter_by(statement_date=statement_date)
            rows = session.execute(query.order_by(StatementRow.id)).scalars().all()
            return [row.to_dict() for row in rows]

    def count(self) -> int:
        with self.Session() as session:
            return len(session.execute(select(StatementRow.id)).all())
