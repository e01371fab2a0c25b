"""Pydantic models and item extraction for data.go.kr payloads.

Most services wrap their rows in ``response.header``/``response.body.items.item``,
where ``item`` is a list, a single object, or missing altogether when nothing
matched. A few services put the rows under a service-specific top-level key, and
the pension registry answers in XML only.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final, cast
from xml.etree import ElementTree

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

SUCCESS_CODES: Final[frozenset[str]] = frozenset({"00", "0", "0000", "INFO-000"})
NO_DATA_CODES: Final[frozenset[str]] = frozenset({"03", "INFO-200"})

type Item = dict[str, object]


class DataGoKrAPIError(RuntimeError):
    """Raised when the portal answers with an application-level error."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class DataGoKrBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ResponseHeader(DataGoKrBaseModel):
    result_code: str = Field(alias="resultCode")
    result_msg: str | None = Field(default=None, alias="resultMsg")

    @field_validator("result_code", mode="before")
    @classmethod
    def _code_as_text(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value


class ResponseItems(DataGoKrBaseModel):
    item: list[dict[str, object]] = Field(default_factory=list)

    @field_validator("item", mode="before")
    @classmethod
    def _wrap_single_item(cls, value: object) -> object:
        if value is None or value == "":
            return []
        if isinstance(value, Mapping):
            return [value]
        return value


class ResponseBody(DataGoKrBaseModel):
    items: ResponseItems = Field(default_factory=ResponseItems)
    total_count: int | None = Field(default=None, alias="totalCount")
    page_no: int | None = Field(default=None, alias="pageNo")
    num_of_rows: int | None = Field(default=None, alias="numOfRows")

    @field_validator("items", mode="before")
    @classmethod
    def _blank_items(cls, value: object) -> object:
        # empty result sets come back as "items": ""
        if value is None or value == "":
            return {}
        if isinstance(value, list):
            return {"item": value}
        return value


class ResponseEnvelope(DataGoKrBaseModel):
    header: ResponseHeader
    body: ResponseBody | None = None


class DataGoKrResponse(DataGoKrBaseModel):
    response: ResponseEnvelope


class NtsStatusResponse(DataGoKrBaseModel):
    """Business status answer of the national tax service (odcloud gateway)."""

    status_code: str | None = None
    request_cnt: int | None = None
    match_cnt: int | None = None
    data: list[dict[str, object]] = Field(default_factory=list)


def _check_result_code(code: str, message: str | None) -> bool:
    """True when rows can be read, False for an empty result, raise otherwise."""

    if code in SUCCESS_CODES:
        return True
    if code in NO_DATA_CODES:
        return False
    raise DataGoKrAPIError(f"data.go.kr error {code}: {message or 'no message'}", code=code)


def parse_xml_items(text: str) -> list[Item]:
    try:
        root = ElementTree.fromstring(text.strip())
    except ElementTree.ParseError as exc:
        raise DataGoKrAPIError(f"Malformed XML payload: {exc}") from exc

    # gateway-level rejections (bad key, quota) use a different envelope
    reason = root.findtext(".//returnReasonCode")
    if reason is not None:
        auth_message = root.findtext(".//returnAuthMsg") or root.findtext(".//errMsg")
        raise DataGoKrAPIError(f"data.go.kr gateway error {reason}: {auth_message}", code=reason)

    code = root.findtext(".//header/resultCode")
    if code is not None and not _check_result_code(
        code.strip(), root.findtext(".//header/resultMsg")
    ):
        return []

    return [
        {child.tag: (child.text or "").strip() for child in element}
        for element in root.iter("item")
    ]


def extract_items(payload: object, *, data_key: str | None = None) -> list[Item]:
    """Rows of a data.go.kr answer in any of its JSON or XML shapes."""

    if isinstance(payload, str):
        if payload.lstrip().startswith("<"):
            return parse_xml_items(payload)
        raise DataGoKrAPIError(f"Unexpected text payload: {payload[:80]!r}")
    if not isinstance(payload, Mapping):
        raise DataGoKrAPIError(f"Unexpected payload type: {type(payload).__name__}")

    mapping = cast(Mapping[str, object], payload)
    if data_key is not None and data_key in mapping:
        rows = mapping[data_key]
        if isinstance(rows, Mapping):
            return [dict(cast(Mapping[str, object], rows))]
        if isinstance(rows, list):
            return [dict(row) for row in cast(list[Mapping[str, object]], rows)]
        return []

    if "response" not in mapping:
        raise DataGoKrAPIError("Payload has no response envelope")
    try:
        envelope = DataGoKrResponse.model_validate(mapping).response
    except ValidationError as exc:
        raise DataGoKrAPIError(f"Malformed response envelope: {exc}") from exc
    if not _check_result_code(envelope.header.result_code, envelope.header.result_msg):
        return []
    if envelope.body is None:
        return []
    return envelope.body.items.item


def extract_nts_items(payload: object) -> list[Item]:
    if not isinstance(payload, Mapping):
        raise DataGoKrAPIError(f"Unexpected NTS payload type: {type(payload).__name__}")
    try:
        response = NtsStatusResponse.model_validate(payload)
    except ValidationError as exc:
        raise DataGoKrAPIError(f"Malformed NTS payload: {exc}") from exc
    if response.status_code not in {None, "OK"}:
        raise DataGoKrAPIError(
            f"NTS status error: {response.status_code}", code=response.status_code
        )
    return response.data


def should_cache_payload(payload: object) -> bool:
    """Cache answers that carry rows or a definite empty result, never errors."""

    if not isinstance(payload, Mapping):
        return True
    mapping = cast(Mapping[str, object], payload)
    if "response" not in mapping:
        return mapping.get("status_code", "OK") == "OK"
    try:
        header = DataGoKrResponse.model_validate(mapping).response.header
    except ValidationError:
        return False
    return header.result_code in SUCCESS_CODES | NO_DATA_CODES


def text_field(item: Mapping[str, object], *names: str) -> str | None:
    """First non-blank value among ``names``, as text."""

    for name in names:
        value = item.get(name)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None
