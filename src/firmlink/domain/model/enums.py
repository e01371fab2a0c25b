"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class MatchLevel(StrEnum):
    """Coarse confidence bucket derived from a numeric confidence score."""

    MATCH = "MATCH"
    PROBABLE = "PROBABLE"
    NO_MATCH = "NO_MATCH"


class CrossCheckField(StrEnum):
    COMPANY_NAME = "company_name"
    ADDRESS = "address"
    REPRESENTATIVE = "representative"
    INDUSTRY_CODE = "industry_code"
