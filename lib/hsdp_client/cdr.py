from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote

from .codecs import check_xml, decode_json
from .descriptor import Pairs, RequestDescriptor, to_pairs
from .transport import HttpClient

API_VERSION = "1"
FHIR_VERSION = "3.0"


class FormatParameter(str, Enum):
    JSON = "json"
    XML = "xml"

    @property
    def accept(self) -> str:
        return f"application/fhir+{self.value}; fhirVersion={FHIR_VERSION}"


@dataclass(frozen=True)
class CdrSearchResponse:
    """Result of a resource search or read.

    ``body`` is the FHIR payload as returned, in JSON or XML depending on
    the requested format.
    """

    status: int
    body: str


class CDR:
    """Clinical Data Repository (FHIR STU3) endpoints."""

    def __init__(self, base_url: str, http_client: HttpClient):
        self._base_url = base_url.rstrip("/")
        self._http = http_client

    def search(
            self,
            resource_type: str,
            query: Pairs | None = None,
            *,
            format: FormatParameter = FormatParameter.JSON,
    ) -> CdrSearchResponse:
        params = [p for p in to_pairs(query) if p[0] != "_format"]
        params.append(("_format", format.value))
        return self._get(f"/{quote(resource_type)}", params, format)

    def read(
            self,
            resource_type: str,
            resource_id: str,
            *,
            format: FormatParameter = FormatParameter.JSON,
    ) -> CdrSearchResponse:
        path = f"/{quote(resource_type)}/{quote(resource_id)}"
        return self._get(path, [("_format", format.value)], format)

    def _get(self, path: str, params: list[tuple[str, str]], format: FormatParameter) -> CdrSearchResponse:
        descriptor = RequestDescriptor(
            "GET",
            path,
            query=params,
            headers={"Api-Version": API_VERSION, "Accept": format.accept},
            base_url=self._base_url,
        )
        success = self._http.execute(descriptor).unwrap()
        if format is FormatParameter.XML:
            check_xml(success)
        else:
            decode_json(success)
        return CdrSearchResponse(status=success.status_code, body=success.text)
