"""National pension service workplace registry (XML, masked BRNOs)."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from firmlink.domain.model import SourceRecord
from firmlink.domain.normalize import normalize_brno
from firmlink.domain.ports import SearchCandidate, SourceRequest

from .schema import DataGoKrAPIError, extract_items, text_field

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

log = getLogger(__name__)

NPS_BASE_URL: Final[str] = "https://apis.data.go.kr/B552015/NpsBplcInfoInqireServiceV2"
SEARCH_ROWS: Final[int] = 50
BRNO_LENGTH: Final[int] = 10
# scsnDt of a workplace that never left the scheme
NO_LEAVE_DATE: Final[str] = "00010101"


def _int_or_none(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def unmasked_brno(value: str | None) -> str | None:
    """The BRNO if it is complete; ``124810****`` style values give ``None``."""

    if value is None or "*" in value:
        return None
    digits = normalize_brno(value)
    return digits if digits is not None and len(digits) == BRNO_LENGTH else None


def _first_item(payload: object | None, *, step: str) -> Mapping[str, object] | None:
    if payload is None:
        return None
    try:
        items = extract_items(payload)
    except DataGoKrAPIError as exc:
        log.warning("Ignoring unreadable pension %s answer: %s", step, exc)
        return None
    return items[0] if items else None


@dataclass(frozen=True, slots=True)
class NpsWorkplaceSource:
    service_key: str = field(repr=False)
    id: str = "nps_workplace"
    name: str = "국민연금공단_가입사업장내역"

    def _request(self, operation: str, **params: object) -> SourceRequest:
        return SourceRequest(
            url=f"{NPS_BASE_URL}/{operation}",
            params={"serviceKey": self.service_key, "pageNo": 1, **params},
        )

    def build_search_request(self, name_variant: str) -> SourceRequest:
        return self._request("getBassInfoSearchV2", wkplNm=name_variant, numOfRows=SEARCH_ROWS)

    def extract_candidates(self, payload: object) -> Sequence[SearchCandidate]:
        return [
            SearchCandidate(
                record=SourceRecord(
                    brno=text_field(item, "bzowrRgstNo"),
                    company_name=text_field(item, "wkplNm"),
                    address=text_field(item, "wkplRoadNmDtlAddr"),
                    raw_data=item,
                ),
                sequence_id=text_field(item, "seq"),
            )
            for item in extract_items(payload)
        ]

    def build_followup_requests(self, sequence_id: str) -> Mapping[str, SourceRequest]:
        return {
            "detail": self._request("getDetailInfoSearchV2", seq=sequence_id, numOfRows=1),
            "period": self._request("getPdAcctoSttusInfoSearchV2", seq=sequence_id, numOfRows=1),
        }

    def assemble_record(
        self,
        candidate: SearchCandidate,
        followups: Mapping[str, object],
    ) -> SourceRecord:
        detail = _first_item(followups.get("detail"), step="detail")
        period = _first_item(followups.get("period"), step="period")
        found = candidate.record

        if detail is None:
            return SourceRecord(
                brno=unmasked_brno(found.brno),
                company_name=found.company_name,
                address=found.address,
                raw_data={"candidate": found.raw_data, "detail": None, "period": None},
            )

        leave_date = text_field(detail, "scsnDt")
        return SourceRecord(
            brno=unmasked_brno(text_field(detail, "bzowrRgstNo") or found.brno),
            company_name=text_field(detail, "wkplNm") or found.company_name,
            address=text_field(detail, "wkplRoadNmDtlAddr") or found.address,
            industry_code=text_field(detail, "wkplIntpCd"),
            raw_data={
                "candidate": found.raw_data,
                "detail": {
                    "employee_count": _int_or_none(text_field(detail, "jnngpCnt")),
                    "monthly_pension_amount": _int_or_none(text_field(detail, "crrmmNtcAmt")),
                    "industry_name": text_field(detail, "vldtVlKrnNm"),
                    "join_date": text_field(detail, "adptDt"),
                    "leave_date": None if leave_date == NO_LEAVE_DATE else leave_date,
                    "status": text_field(detail, "wkplJnngStcd"),
                },
                "period": None
                if period is None
                else {
                    "new_subscribers": _int_or_none(text_field(period, "nwAcqzrCnt")),
                    "lost_subscribers": _int_or_none(text_field(period, "lssJnngpCnt")),
                },
            },
        )
