"""Modelos SQLAlchemy del store de tickets"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from shared.database.connection import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(String, primary_key=True)
    organizer_id = Column(String, nullable=True, index=True)
    title = Column(String, nullable=False)
    location = Column(String, nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relaciones
    tickets = relationship("Ticket", back_populates="event")


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(String, primary_key=True)
    event_id = Column(String, ForeignKey("events.id"), nullable=False, index=True)  # Inmutable tras la emisión
    holder_id = Column(String, nullable=True)  # Usuario que compró el ticket
    ticket_type = Column(String, nullable=False, server_default="general")
    status = Column(String, nullable=False, server_default="pending")  # pending, confirmed, cancelled, refunded
    validated_at = Column(DateTime(timezone=True), nullable=True)  # Check-in; solo lo escribe el CheckinRecorder
    validated_by = Column(String, nullable=True)  # Scanner que hizo el check-in
    amount = Column(Numeric(12, 2), nullable=False, server_default="0")
    currency = Column(String, nullable=False, server_default="USD")
    attendee_name = Column(String, nullable=True)
    attendee_email = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relaciones
    event = relationship("Event", back_populates="tickets")
