from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class FilterSpecModel(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    om: str = "TODAS"
    status: str = "TODOS"
    workshop: str = "TODAS"


class WorkshopEmailsModel(BaseModel):
    emails: Dict[str, str] = Field(default_factory=dict)


class MetaOptionsResponse(BaseModel):
    oms: List[str]
    statuses: List[str]
    workshops: List[str]
