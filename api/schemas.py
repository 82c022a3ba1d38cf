"""
api.schemas
===========

Request bodies accepted by the HTTP layer.  Responses are the core's own
dataclasses, serialised by FastAPI.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class StatusChange(BaseModel):
    status: str = Field(..., description="Target status")


class PrescriptionIn(BaseModel):
    patient_name: str = Field(..., min_length=1)
    medication: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    quantity: int = Field(..., description="Positive number of units")
    prescriber: str = Field(..., min_length=1)
    patient_dob: Optional[str] = None
    patient_phone: Optional[str] = None
    patient_address: Optional[str] = None
    insurance_info: Optional[str] = None
    special_instructions: Optional[str] = None
    renewal_due_date: Optional[datetime] = None


class ReminderIn(BaseModel):
    channel: str = Field(..., description="'email' or 'sms'")


class BulkReminderIn(BaseModel):
    prescription_ids: List[str] = Field(..., min_length=1)
    channel: str


class OrderIn(BaseModel):
    customer_name: str = Field(..., min_length=1)
    item_name: str = Field(..., min_length=1)
    order_type: str = Field(..., description="special_order, missed_pickup or back_order")
    status: Optional[str] = None
    customer_phone: Optional[str] = None
    expected_date: Optional[datetime] = None
    notes: Optional[str] = None


class StockItemIn(BaseModel):
    name: str = Field(..., min_length=1)
    current_stock: int = 0
    minimum_stock: int = 0
    location: Optional[str] = None
    supplier: Optional[str] = None
    supplier_contact: Optional[str] = None


class StockCount(BaseModel):
    current_stock: int


class ReorderIn(BaseModel):
    order_quantity: int
    notes: Optional[str] = None


class DeliveryIn(BaseModel):
    item_name: str = Field(..., min_length=1)
    quantity_received: int
    supplier: str = Field(..., min_length=1)
    notes: Optional[str] = None
