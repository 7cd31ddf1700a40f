from sqlalchemy import (
    JSON, Column, Integer, BigInteger, String, Text, Index, DateTime, func
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB

Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY columns
PrimaryKey = BigInteger().with_variant(Integer(), "sqlite")
JsonColumn = JSON().with_variant(JSONB(), "postgresql")

class Trigger(Base):
    __tablename__ = "triggers"
    id = Column(PrimaryKey, primary_key=True, autoincrement=True)
    key = Column(String(255), nullable=False, unique=True)  # job name
    cron = Column(String(128), nullable=False)  # engine-native expression
    payload = Column(JsonColumn, nullable=False)  # {"targets": [...], "flag": bool}
    next_run_time = Column(BigInteger, nullable=False)  # epoch seconds
    last_run_time = Column(BigInteger, nullable=True)
    segment = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

Index("ix_triggers_next_segment", Trigger.next_run_time, Trigger.segment)

class TriggerExecution(Base):
    __tablename__ = "trigger_executions"
    id = Column(PrimaryKey, primary_key=True, autoincrement=True)
    trigger_key = Column(String(255), nullable=False, index=True)
    target = Column(Text, nullable=False)
    worker_id = Column(String(128), nullable=True)
    status = Column(String(32), nullable=False, default="running")
    status_code = Column(Integer, nullable=True)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)
    error = Column(Text, nullable=True)
