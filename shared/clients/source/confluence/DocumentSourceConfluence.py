"""Confluence Cloud (REST v2) document source.

Documents are either an explicit list of tracked page ids
(SOURCE_CONFLUENCE_PAGE_IDS) or every page of one space
(SOURCE_CONFLUENCE_SPACE_ID). Page bodies are fetched in storage format
and reduced to plain text.
"""

import base64
import html
import re

from shared.clients.source.DocumentSourceInterface import DocumentSourceInterface
from shared.errors import ConfigurationError, DocumentSourceError, is_transient_status
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.document import Document

_TAG_PATTERN = re.compile(r"<[^>]+>")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_CONTROL_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def storage_to_text(storage: str) -> str:
    """Reduce Confluence storage-format XHTML to normalized plain text."""
    text = _TAG_PATTERN.sub(" ", storage)
    text = html.unescape(text)
    text = _CONTROL_PATTERN.sub("", text)
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


class DocumentSourceConfluence(DocumentSourceInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._email = self.get_config_val("EMAIL", default=None, val_type="string")
        self._api_token = self.get_config_val("API_TOKEN", default=None, val_type="string")
        self._page_ids: list[str] = self.get_config_val("PAGE_IDS", default=[], val_type="list")
        self._space_id: str = self.get_config_val("SPACE_ID", default="", val_type="string")
        if not self._page_ids and not self._space_id:
            raise ConfigurationError("Confluence source needs SOURCE_CONFLUENCE_PAGE_IDS or SOURCE_CONFLUENCE_SPACE_ID.")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Confluence"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="EMAIL", val_type="string", default=None),
            EnvConfig(env_key="API_TOKEN", val_type="string", default=None),
            EnvConfig(env_key="PAGE_IDS", val_type="list", default=[]),
            EnvConfig(env_key="SPACE_ID", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        token = base64.b64encode(f"{self._email}:{self._api_token}".encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {token}", "Accept": "application/json"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/wiki/api/v2/spaces?limit=1"

    def _get_endpoint_page(self, page_id: str) -> str:
        return f"/wiki/api/v2/pages/{page_id}?body-format=storage"

    def _get_endpoint_space_pages(self) -> str:
        return f"/wiki/api/v2/spaces/{self._space_id}/pages?body-format=storage&limit={self.page_size}"

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def _parse_page(self, page: dict) -> Document:
        storage = ((page.get("body") or {}).get("storage") or {}).get("value")
        version = page.get("version") or {}
        metadata = {"space_id": str(page.get("spaceId", "")), "status": str(page.get("status", ""))}
        webui = (page.get("_links") or {}).get("webui")
        if webui:
            metadata["url"] = f"{self._base_url.rstrip('/')}/wiki{webui}"
        return Document(
            id=str(page.get("id")),
            title=page.get("title") or "Untitled",
            body=storage_to_text(storage) if storage is not None else None,
            last_modified=self.parse_timestamp(version.get("createdAt")),
            version=int(version.get("number") or 0),
            metadata=metadata,
        )

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_list_documents(self) -> list[Document]:
        if self._page_ids:
            return await self._fetch_tracked_pages()
        return await self._fetch_space_pages()

    async def _fetch_tracked_pages(self) -> list[Document]:
        documents: list[Document] = []
        for page_id in self._page_ids:
            resp = await self.do_request(method="GET", endpoint=self._get_endpoint_page(page_id))
            if resp.status_code == 404:
                # page is gone upstream, leaving it out lets the sync delete its vector
                self.logging.warning("Tracked Confluence page %s no longer exists.", page_id)
                continue
            if not resp.is_success:
                raise DocumentSourceError(
                    f"Fetching Confluence page {page_id} failed with status {resp.status_code}.",
                    status_code=resp.status_code,
                    transient=is_transient_status(resp.status_code),
                )
            documents.append(self._parse_page(resp.json()))
        self.logging.info("Fetched %d of %d tracked Confluence pages.", len(documents), len(self._page_ids))
        return documents

    async def _fetch_space_pages(self) -> list[Document]:
        documents: list[Document] = []
        endpoint: str | None = self._get_endpoint_space_pages()
        while endpoint:
            resp = await self.do_request(method="GET", endpoint=endpoint, raise_on_error=True)
            data = resp.json()
            documents.extend(self._parse_page(page) for page in data.get("results", []))
            # the next link is relative to the site root and already carries the cursor
            endpoint = (data.get("_links") or {}).get("next")
        self.logging.info("Fetched %d Confluence pages from space %s.", len(documents), self._space_id)
        return documents
