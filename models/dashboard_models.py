"""
Signup Hub — Dashboard API Models
===================================

Request/response models for the signup analytics endpoints.
"""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# ─── Recommendations ────────────────────────────────────────

class RecommendationRequest(BaseModel):
    """Summary figures for one dashboard view."""
    dashboard_type: Literal["freesignup", "compare", "whatsapp"]
    data: Dict[str, Any] = Field(default_factory=dict)
    month: Optional[str] = None
    provider: Optional[Literal["groq", "claude"]] = None


class RecommendationSet(BaseModel):
    current_week: List[str] = Field(default_factory=list)
    next_week: List[str] = Field(default_factory=list)


class RecommendationResponse(BaseModel):
    recommendations: RecommendationSet
    timestamp: str
    dashboard_type: str
    month: Optional[str] = None


# ─── Cache ──────────────────────────────────────────────────

class CacheClearResponse(BaseModel):
    cleared: bool = True
    key: Optional[str] = None


# ─── Single-sheet reads ─────────────────────────────────────

class DemoStatusResponse(BaseModel):
    """Demo-status lookups keyed by raw phone and by normalized name."""
    sheet_name: str
    total_demo_records: int
    total_with_phone_numbers: int
    total_with_names: int
    phone_number_mapping: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    name_mapping: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class ConversionResponse(BaseModel):
    sheet_name: str
    data: List[Dict[str, Any]] = Field(default_factory=list)
    analytics: Dict[str, Any] = Field(default_factory=dict)
