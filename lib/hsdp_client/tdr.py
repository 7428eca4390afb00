from __future__ import annotations

from enum import Enum
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from .codecs import decode_model
from .config_types import JSON_UTF8
from .descriptor import Pairs, RequestDescriptor, to_pairs
from .models import HsdpModel
from .transport import HttpClient

DATA_ITEM_PATH = "/store/tdr/DataItem"
API_VERSION = "5"


class Relation(str, Enum):
    SELF = "self"
    NEXT = "next"
    PREVIOUS = "previous"
    FIRST = "first"
    LAST = "last"


class Link(HsdpModel):
    # any other relation fails validation of the whole bundle
    relation: Relation
    url: str


class Meta(HsdpModel):
    last_updated: str | None = None
    version_id: str | None = None


class DataItem(HsdpModel):
    id: str | None = None
    meta: Meta | None = None
    timestamp: str | None = None
    sequence_number: int | None = None
    device: dict[str, Any] | None = None
    user: dict[str, Any] | None = None
    related_peripheral: dict[str, Any] | None = None
    related_user: dict[str, Any] | None = None
    data_type: dict[str, Any] | None = None
    organization: str | None = None
    application: str | None = None
    proposition: str | None = None
    subscription: str | None = None
    data_source: str | None = None
    data_category: str | None = None
    data: dict[str, Any] | None = None
    blob: str | None = None
    delete_timestamp: str | None = None
    creation_timestamp: str | None = None
    tombstone: bool | None = None


class DataItemEntry(HsdpModel):
    full_url: str | None = None
    resource: DataItem


class DataItemsBundle(HsdpModel):
    type: str | None = None
    total: int | None = None
    link: list[Link] = []
    entry: list[DataItemEntry] = []

    def next_link(self) -> str | None:
        for link in self.link:
            if link.relation == Relation.NEXT:
                return link.url
        return None


class TDR:
    """Tenant Data Repository data item endpoints."""

    def __init__(self, base_url: str, http_client: HttpClient):
        self._base_url = base_url.rstrip("/")
        self._http = http_client

    def search_data_items(
            self,
            *,
            organization: str | None = None,
            data_type: str | None = None,
            user: str | None = None,
            device: str | None = None,
            count: int | None = None,
            start_at: int | None = None,
            extra: Pairs | None = None,
    ) -> DataItemsBundle:
        query: list[tuple[str, str]] = []
        if organization:
            query.append(("organization", organization))
        if data_type:
            query.append(("dataType", data_type))
        if user:
            query.append(("user", user))
        if device:
            query.append(("device", device))
        if count is not None:
            query.append(("_count", str(int(count))))
        if start_at is not None:
            query.append(("_startAt", str(int(start_at))))
        query.extend(to_pairs(extra))
        return self._search(self._base_url, DATA_ITEM_PATH, query)

    def next_page(self, bundle: DataItemsBundle) -> DataItemsBundle | None:
        """Follow the bundle's ``next`` link, or return None on the last page."""
        url = bundle.next_link()
        if not url:
            return None
        parts = urlsplit(url)
        base_url = f"{parts.scheme}://{parts.netloc}" if parts.netloc else self._base_url
        query = parse_qsl(parts.query, keep_blank_values=True)
        return self._search(base_url, parts.path, query)

    def _search(self, base_url: str, path: str, query: list[tuple[str, str]]) -> DataItemsBundle:
        descriptor = RequestDescriptor(
            "GET",
            path,
            query=query,
            headers={"Api-Version": API_VERSION, "Accept": JSON_UTF8},
            base_url=base_url,
        )
        success = self._http.execute(descriptor).unwrap()
        return decode_model(DataItemsBundle, success)
