from urllib.parse import parse_qs, urlparse

from shared.clients.source.DocumentSourceInterface import DocumentSourceInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.document import Document


class DocumentSourcePaperless(DocumentSourceInterface):
    """Paperless-ngx document source. Uses the OCR content as body and "modified" as last_modified."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Paperless"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default="")
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Token {self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/api/documents/?page_size=1"

    def _get_endpoint_documents(self, page: int = 1, page_size: int = 100) -> str:
        plain_url = "/api/documents/"
        separator = "?"
        if page:
            plain_url += f"{separator}page={page}"
            separator = "&"
        if page_size:
            plain_url += f"{separator}page_size={page_size}"
        return plain_url

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def _parse_next_page(self, listing_response: dict) -> int | None:
        """
        Parse the number of the next page from a listing response.

        Args:
            listing_response (dict): The raw response from the documents listing endpoint.

        Returns:
            int | None: The next page number, or None on the last page.
        """
        next_url = listing_response.get("next")
        if not next_url:
            return None
        page_values = parse_qs(urlparse(next_url).query).get("page", [])
        if page_values and page_values[0].isdigit():
            return int(page_values[0])
        return None

    def _parse_document(self, response: dict) -> Document:
        metadata: dict[str, str] = {}
        for key in ("created", "correspondent", "document_type", "owner", "original_file_name", "mime_type"):
            if response.get(key) is not None:
                metadata[key] = str(response.get(key))
        if response.get("tags"):
            metadata["tags"] = ",".join(str(tag) for tag in response.get("tags"))
        return Document(
            id=str(response.get("id")),
            title=response.get("title") or "",
            # "content" absent means Paperless produced no OCR text at all
            body=response.get("content"),
            last_modified=self.parse_timestamp(response.get("modified")),
            version=0,
            metadata=metadata,
        )

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_list_documents(self) -> list[Document]:
        documents: list[Document] = []
        page: int | None = 1
        while page:
            resp = await self.do_request(
                method="GET",
                endpoint=self._get_endpoint_documents(page=page, page_size=self.page_size),
                raise_on_error=True,
            )
            data = resp.json()
            documents.extend(self._parse_document(item) for item in data.get("results", []))
            page = self._parse_next_page(data)
        self.logging.info("Fetched %d documents from Paperless.", len(documents))
        return documents
