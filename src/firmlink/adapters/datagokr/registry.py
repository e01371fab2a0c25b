"""Declarative catalogue of the data.go.kr sources used for company lookups."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from firmlink.domain.model import SourceRecord
from firmlink.domain.ports import (
    BulkStrategy,
    QueryKeyType,
    QueryPattern,
    SourceRegistry,
    SourceRequest,
)

from .nps import NpsWorkplaceSource
from .schema import extract_items, extract_nts_items, text_field

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from firmlink.domain.ports import ExtractedRecords

DATA_GO_KR_BASE_URL: Final[str] = "https://apis.data.go.kr"
NTS_STATUS_URL: Final[str] = "https://api.odcloud.kr/api/nts-businessman/v1/status"
FSC_BASIC_URL: Final[str] = (
    f"{DATA_GO_KR_BASE_URL}/1160100/service/GetCorpBasicInfoService_V2/getCorpOutline_V2"
)
DISCOVERY_ROWS: Final[int] = 5


@dataclass(frozen=True, slots=True)
class FieldMap:
    """Item keys holding each record field; the first non-blank key wins."""

    company_name: tuple[str, ...] = ()
    brno: tuple[str, ...] = ()
    crno: tuple[str, ...] = ()
    address: tuple[str, ...] = ()
    representative: tuple[str, ...] = ()
    industry_code: tuple[str, ...] = ()

    def to_record(self, item: Mapping[str, object], *, raw_data: object) -> SourceRecord:
        return SourceRecord(
            brno=text_field(item, *self.brno),
            crno=text_field(item, *self.crno),
            company_name=text_field(item, *self.company_name),
            address=text_field(item, *self.address),
            representative=text_field(item, *self.representative),
            industry_code=text_field(item, *self.industry_code),
            raw_data=raw_data,
        )


FSC_FIELDS: Final = FieldMap(
    company_name=("corpNm", "fncoNm"),
    brno=("bzno",),
    crno=("crno",),
    address=("enpBsadr",),
    representative=("enpRprFnm",),
)
FSC_BASIC_FIELDS: Final = FieldMap(
    company_name=("corpNm",),
    brno=("bzno",),
    crno=("crno",),
    address=("enpBsadr",),
    representative=("enpRprFnm",),
    industry_code=("enpKrxLstgAbbr",),
)
FSC_IDENTITY_FIELDS: Final = FieldMap(company_name=("corpNm",), brno=("bzno",), crno=("crno",))
FTC_ECOMMERCE_FIELDS: Final = FieldMap(
    company_name=("bsnmNm",),
    brno=("brno",),
    address=("rprsBpladrs",),
    representative=("rprsNm",),
)
KISED_FIELDS: Final = FieldMap(
    company_name=("applyBsnmNm",),
    brno=("applyBrno",),
    crno=("applyCrno",),
    representative=("applyRprsvNm",),
)
FTC_GROUP_FIELDS: Final = FieldMap(company_name=("bzentyNm", "corpNm"), crno=("crno",))


@dataclass(frozen=True, slots=True)
class DataGoKrSource:
    """Single-call source; direct sources yield one record, the others one per row."""

    id: str
    name: str
    pattern: QueryPattern
    query_key_type: QueryKeyType
    url: str
    key_param: str | None
    fields: FieldMap
    service_key: str = field(repr=False)
    params: Mapping[str, object] = field(default_factory=dict)
    data_key: str | None = None

    def build_request(self, key: str) -> SourceRequest:
        params: dict[str, object] = {"serviceKey": self.service_key, "pageNo": 1, **self.params}
        if self.key_param is not None:
            params[self.key_param] = key
        return SourceRequest(url=self.url, params=params)

    def extract_response(self, payload: object) -> ExtractedRecords:
        items = extract_items(payload, data_key=self.data_key)
        if not items:
            return None
        if self.pattern is QueryPattern.DIRECT:
            return self.fields.to_record(items[0], raw_data=items)
        return [self.fields.to_record(item, raw_data=item) for item in items]


@dataclass(frozen=True, slots=True)
class NtsStatusSource:
    """Business status lookup of the national tax service; carries no company name."""

    service_key: str = field(repr=False)
    id: str = "nts_status"
    name: str = "국세청_사업자등록상태조회"
    pattern: QueryPattern = QueryPattern.DIRECT
    query_key_type: QueryKeyType = QueryKeyType.BRNO

    def build_request(self, key: str) -> SourceRequest:
        return SourceRequest(
            url=NTS_STATUS_URL,
            method="POST",
            params={"serviceKey": self.service_key},
            body={"b_no": [key]},
        )

    def extract_response(self, payload: object) -> ExtractedRecords:
        items = extract_nts_items(payload)
        if not items:
            return None
        item = items[0]
        return SourceRecord(brno=text_field(item, "b_no"), raw_data=item)


@dataclass(frozen=True, slots=True)
class FscDiscoverySource:
    """Corporate outline search used to complete a BRNO or a name into identifiers."""

    service_key: str = field(repr=False)
    id: str = "fsc_discovery"
    name: str = "금융위_기업기본정보(Discovery)"
    direct_twin_id: str | None = "fsc_basic"

    def build_request(
        self, *, brno: str | None = None, company_name: str | None = None
    ) -> SourceRequest:
        params: dict[str, object] = {
            "serviceKey": self.service_key,
            "pageNo": 1,
            "numOfRows": DISCOVERY_ROWS,
            "resultType": "json",
        }
        if brno:
            params["bzno"] = brno
        elif company_name:
            params["corpNm"] = company_name
        else:
            raise ValueError("Discovery needs a BRNO or a company name")
        return SourceRequest(url=FSC_BASIC_URL, params=params)

    def extract_candidates(self, payload: object) -> Sequence[SourceRecord]:
        return [
            FSC_BASIC_FIELDS.to_record(item, raw_data=item) for item in extract_items(payload)
        ]


@dataclass(frozen=True, slots=True)
class DataGoKrBulkSource:
    id: str
    name: str
    url: str
    brno_field: str
    name_field: str
    service_key: str = field(repr=False)
    strategy: BulkStrategy = BulkStrategy.MEMORY
    params: Mapping[str, object] = field(default_factory=dict)

    def build_page_request(self, page_no: int, page_size: int) -> SourceRequest:
        return SourceRequest(
            url=self.url,
            params={
                "serviceKey": self.service_key,
                "pageNo": page_no,
                "numOfRows": page_size,
                **self.params,
            },
        )

    def extract_items(self, payload: object) -> Sequence[Mapping[str, object]]:
        return extract_items(payload)

    def extract_brno(self, item: Mapping[str, object]) -> str | None:
        return text_field(item, self.brno_field)

    def extract_name(self, item: Mapping[str, object]) -> str | None:
        return text_field(item, self.name_field)


def _fsc(
    service_key: str,
    source_id: str,
    name: str,
    path: str,
    *,
    rows: int = 10,
    fields: FieldMap = FSC_FIELDS,
) -> DataGoKrSource:
    return DataGoKrSource(
        id=source_id,
        name=name,
        pattern=QueryPattern.DIRECT,
        query_key_type=QueryKeyType.CRNO,
        url=f"{DATA_GO_KR_BASE_URL}/1160100/{path}",
        key_param="crno",
        fields=fields,
        service_key=service_key,
        params={"numOfRows": rows, "resultType": "json"},
    )


def _ftc_group(
    service_key: str,
    source_id: str,
    name: str,
    path: str,
    *,
    key_param: str = "groupNm",
) -> DataGoKrSource:
    return DataGoKrSource(
        id=source_id,
        name=name,
        pattern=QueryPattern.REVERSE_MATCH,
        query_key_type=QueryKeyType.GROUP_NAME,
        url=f"{DATA_GO_KR_BASE_URL}/1130000/{path}",
        key_param=key_param,
        fields=FTC_GROUP_FIELDS,
        service_key=service_key,
        params={"numOfRows": 100, "type": "json"},
    )


def direct_sources(service_key: str) -> list[DataGoKrSource | NtsStatusSource]:
    return [
        NtsStatusSource(service_key=service_key),
        DataGoKrSource(
            id="ftc_ecommerce",
            name="공정위_통신판매사업자",
            pattern=QueryPattern.DIRECT,
            query_key_type=QueryKeyType.BRNO,
            url=f"{DATA_GO_KR_BASE_URL}/1130000/MllBs_2Service/getMllBs_2",
            key_param="brno",
            fields=FTC_ECOMMERCE_FIELDS,
            service_key=service_key,
            params={"numOfRows": 10, "type": "json"},
        ),
        _fsc(
            service_key,
            "fsc_basic",
            "금융위_기업기본정보",
            "service/GetCorpBasicInfoService_V2/getCorpOutline_V2",
            rows=1,
            fields=FSC_BASIC_FIELDS,
        ),
        _fsc(
            service_key,
            "fsc_financial",
            "금융위_기업재무정보",
            "service/GetFinaStatInfoService_V2/getBs_V2",
            rows=100,
            fields=FSC_IDENTITY_FIELDS,
        ),
        _fsc(
            service_key,
            "fsc_governance",
            "금융위_기업지배구조",
            "GetCGDiscInfoService/getCGDiscInfo",
        ),
        _fsc(
            service_key,
            "fsc_short_term",
            "금융위_단기금융증권",
            "service/GetShorTermSecuIssuInfoService/getShorTermSecuIssuInfo",
        ),
        _fsc(
            service_key,
            "fsc_disclosure",
            "금융위_금융회사공시",
            "service/GetFnCoDiscInfoService_V2/getFnCoDiscInfo_V2",
        ),
        _fsc(
            service_key,
            "fsc_bond",
            "금융위_채권발행",
            "service/GetBondTradInfoService/getBondTradInfo",
        ),
        _fsc(
            service_key,
            "fsc_fn_basic",
            "금융위_금융회사기본",
            "service/GetFnCoBasiInfoService/getFnCoBasiInfo",
        ),
        _fsc(
            service_key,
            "fsc_stock",
            "금융위_주식발행",
            "service/GetStocIssuInfoService_V2/getStocIssuStat_V2",
        ),
        _fsc(
            service_key,
            "fsc_dividend",
            "금융위_주식배당",
            "service/GetStocDiviInfoService/getStocDiviInfo",
        ),
    ]


def two_step_sources(service_key: str) -> list[DataGoKrSource]:
    return [
        DataGoKrSource(
            id="ksd_corp",
            name="한국예탁결제원_기업정보",
            pattern=QueryPattern.TWO_STEP,
            query_key_type=QueryKeyType.COMPANY_NAME,
            url=FSC_BASIC_URL,
            key_param="corpNm",
            fields=FSC_FIELDS,
            service_key=service_key,
            params={"numOfRows": 20, "resultType": "json"},
        ),
        DataGoKrSource(
            id="kised_startup",
            name="창업진흥원_창업기업",
            pattern=QueryPattern.TWO_STEP,
            query_key_type=QueryKeyType.COMPANY_NAME,
            url=f"{DATA_GO_KR_BASE_URL}/B552735/kisedCertService/getCertList",
            key_param="applyBsnmNm",
            fields=KISED_FIELDS,
            service_key=service_key,
            params={"numOfRows": 20, "type": "json"},
        ),
    ]


def reverse_match_sources(service_key: str) -> list[DataGoKrSource]:
    return [
        _ftc_group(
            service_key,
            "ftc_group_affiliate",
            "공정위_대규모기업집단_소속회사",
            "appnGroupAffiList/getappnGroupAffiList",
            key_param="bzentyNm",
        ),
        _ftc_group(
            service_key,
            "ftc_group_overview",
            "공정위_소속회사개요",
            "affiliationCompSttusList/getaffiliationCompSttusList",
        ),
        _ftc_group(
            service_key,
            "ftc_group_finance",
            "공정위_소속회사재무",
            "financeCompSttusList/getfinanceCompSttusList",
        ),
        _ftc_group(
            service_key,
            "ftc_group_stockholder",
            "공정위_소속회사주주",
            "stockholderCompSttusList/getstockholderCompSttusList",
        ),
        _ftc_group(
            service_key,
            "ftc_group_executive",
            "공정위_소속회사임원",
            "executiveCompSttusList/getexecutiveCompSttusList",
        ),
        DataGoKrSource(
            id="ftc_holding_subsidiaries",
            name="공정위_지주회사_자회사손자회사",
            pattern=QueryPattern.REVERSE_MATCH,
            query_key_type=QueryKeyType.NONE,
            url=(
                f"{DATA_GO_KR_BASE_URL}/1130000/holdingProgCompSttusList"
                "/holdingProgCompStusListApi"
            ),
            key_param=None,
            fields=FTC_GROUP_FIELDS,
            service_key=service_key,
            params={"numOfRows": 100, "type": "json"},
            data_key="holdingProgCompSttus",
        ),
    ]


def bulk_sources(service_key: str) -> list[DataGoKrBulkSource]:
    return [
        DataGoKrBulkSource(
            id="comwel_insurance",
            name="근로복지공단_고용산재보험",
            url=f"{DATA_GO_KR_BASE_URL}/B490001/gySjbPstateInfoService/getGySjBoheomBsshItem",
            brno_field="saeopjaDrno",
            name_field="saeopjangNm",
            service_key=service_key,
            # six million rows: only usable once materialised
            strategy=BulkStrategy.DATABASE,
        ),
    ]


def build_registry(service_key: str) -> SourceRegistry:
    return SourceRegistry(
        adapters=(
            *direct_sources(service_key),
            *two_step_sources(service_key),
            *reverse_match_sources(service_key),
        ),
        discovery=FscDiscoverySource(service_key=service_key),
        phonetic=(NpsWorkplaceSource(service_key=service_key),),
        bulk_sources=tuple(bulk_sources(service_key)),
    )
