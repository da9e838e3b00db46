from abc import abstractmethod
from datetime import datetime

from shared.clients.ClientInterface import ClientInterface
from shared.errors import ClientRequestError, DocumentSourceError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Document


class DocumentSourceInterface(ClientInterface):
    """Connector that lists the current documents of an upstream content system.

    Implementations must return stable ids and meaningful last_modified/version
    values. A document that cannot be fetched for a transient reason must raise
    instead of being left out, otherwise it would be detected as deleted.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.page_size = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_PAGE_SIZE", default=100))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "source"
        """
        return "source"

    def _get_error_class(self) -> type[ClientRequestError]:
        return DocumentSourceError

    ##########################################
    ################# OTHER ##################
    ##########################################

    @staticmethod
    def parse_timestamp(raw: str | None) -> datetime | None:
        """Parse an ISO-8601 timestamp as sent by REST APIs ("Z" suffix allowed)."""
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_list_documents(self) -> list[Document]:
        """
        Lists all current documents of the source.

        Returns:
            list[Document]: The normalized documents.

        Raises:
            DocumentSourceError: If the source cannot be listed completely.
        """
        pass
