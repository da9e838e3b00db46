from abc import abstractmethod

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.errors import ClientRequestError, ConfigurationError, VectorStoreError
from shared.helper.HelperConfig import HelperConfig
from shared.models.vector import IndexMetadata, MutationResult, QueryMatch, VectorRecord


class VectorStoreClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.upsert_batch_size = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_UPSERT_BATCH_SIZE", default=500))
        self.delete_batch_size = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_DELETE_BATCH_SIZE", default=1000))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "vector"
        """
        return "vector"

    def _get_error_class(self) -> type[ClientRequestError]:
        return VectorStoreError

    @abstractmethod
    def get_index_name(self) -> str:
        """
        Returns the name of the index (or collection) this client writes to.
        """
        pass

    @abstractmethod
    def ids_are_document_ids(self) -> bool:
        """
        Returns True if the backend stores vectors under the source document id itself.

        Backends that need a derived id (e.g. UUIDs) return False and only
        carry the document id in the "doc_id" metadata field.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_upsert(self) -> str:
        """
        Returns the endpoint path for upsert requests.
        """
        pass

    @abstractmethod
    def _get_endpoint_delete(self) -> str:
        """
        Returns the endpoint path for delete-by-id requests.
        """
        pass

    @abstractmethod
    def _get_endpoint_query(self) -> str:
        """
        Returns the endpoint path for nearest-neighbour queries.
        """
        pass

    @abstractmethod
    def _get_endpoint_index_info(self) -> str:
        """
        Returns the endpoint path that describes the index configuration (dimension, metric).
        """
        pass

    def _get_endpoint_index_stats(self) -> str | None:
        """
        Returns the endpoint path for index statistics, or None if the info endpoint already contains the record count.
        """
        return None

    @abstractmethod
    def _get_endpoint_create_index(self) -> str:
        """
        Returns the endpoint path for index creation requests.
        """
        pass

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    @abstractmethod
    def get_upsert_request(self, records: list[VectorRecord]) -> dict:
        """
        Builds the keyword arguments for do_request() that upsert the given records.

        Args:
            records (list[VectorRecord]): One batch of records.

        Returns:
            dict: do_request() kwargs, e.g. {"method": "PUT", "json": {...}}.
        """
        pass

    @abstractmethod
    def get_delete_payload(self, ids: list[str]) -> dict:
        """
        Builds the backend-specific request body for a delete-by-id call.
        """
        pass

    @abstractmethod
    def get_query_payload(self, vector: list[float], top_k: int) -> dict:
        """
        Builds the backend-specific request body for a nearest-neighbour query.
        """
        pass

    @abstractmethod
    def get_create_index_request(self, dimension: int, metric: str) -> dict:
        """
        Builds the do_request() kwargs that provision the index.
        """
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def extract_query_matches(self, raw_response: dict) -> list[QueryMatch]:
        """
        Translates a raw query response into QueryMatch models.
        """
        pass

    @abstractmethod
    def extract_index_metadata(self, raw_response: dict) -> IndexMetadata:
        """
        Translates a raw index description into IndexMetadata. The metric is lower-cased.

        Raises:
            ValueError: If dimension or metric are missing.
        """
        pass

    def _get_mutation_id(self, resp: httpx.Response) -> str | None:
        """
        Returns the mutation id of a successful write, or None if the body does not carry one.
        """
        try:
            raw_response = resp.json()
        except ValueError:
            self.logging.warning("Write to '%s' succeeded but the response is not JSON, no mutation id recorded.", self.get_index_name())
            return None
        if not isinstance(raw_response, dict):
            return None
        return self.extract_mutation_id(raw_response)

    def extract_record_count(self, raw_response: dict) -> int | None:
        """
        Extracts the record count from a raw stats response.
        """
        return None

    @abstractmethod
    def extract_mutation_id(self, raw_response: dict) -> str | None:
        """
        Extracts the backend operation/mutation id from a raw upsert or delete response.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the index exists in the vector store.

        Returns:
            bool: True if the index exists, False if the backend reports 404.

        Raises:
            VectorStoreError: If the backend answers with any other error status.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_index_info())
        if resp.is_success:
            return True
        if resp.status_code in (404, 410):
            return False
        raise VectorStoreError(
            f"Existence check for index '{self.get_index_name()}' failed with status {resp.status_code}.",
            status_code=resp.status_code,
        )

    async def do_create_index(self, dimension: int, metric: str = "cosine") -> None:
        """Create the index with the given dimension and distance metric.

        Args:
            dimension (int): Vector dimension of the index.
            metric (str): Distance metric (e.g. "cosine").
        """
        await self.do_request(**self.get_create_index_request(dimension, metric.lower()), raise_on_error=True)
        self.logging.info(
            "Created index '%s' on '%s' (dimension=%d, metric=%s).",
            self.get_index_name(), self.get_engine_name(), dimension, metric,
        )

    async def do_ensure_index(self, dimension: int, metric: str = "cosine") -> bool:
        """Create the index if it does not exist yet.

        Returns:
            bool: True if the index was created, False if it already existed.
        """
        if await self.do_existence_check():
            return False
        await self.do_create_index(dimension, metric)
        return True

    async def do_fetch_index_info(self) -> IndexMetadata:
        """Fetch dimension, metric and record count of the index.

        Returns:
            IndexMetadata: The index description.

        Raises:
            VectorStoreError: If the index cannot be described.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_index_info(), raise_on_error=True)
        try:
            info = self.extract_index_metadata(resp.json())
        except ValueError as e:
            raise VectorStoreError(f"Malformed index description from '{self.get_engine_name()}': {e}") from e

        stats_endpoint = self._get_endpoint_index_stats()
        if stats_endpoint:
            stats = await self.do_request(method="GET", endpoint=stats_endpoint, raise_on_error=True)
            info.record_count = self.extract_record_count(stats.json())
        return info

    async def do_upsert(self, records: list[VectorRecord], expected_dimension: int | None = None) -> MutationResult:
        """Insert or replace vectors by id.

        Upserting the same record twice yields the same stored state. Records are
        sent in batches of upsert_batch_size; the store does not make a multi-batch
        call atomic, so a failure after earlier batches succeeded is reported with
        the number of records already written.

        Args:
            records (list[VectorRecord]): The records to write.
            expected_dimension (int | None): If set, every record must have exactly this many values.

        Returns:
            MutationResult: Ids of the backend mutations and the number of batches sent.

        Raises:
            ConfigurationError: If a record does not match expected_dimension.
            VectorStoreError: If any batch is rejected.
        """
        if expected_dimension is not None:
            for record in records:
                if len(record.values) != expected_dimension:
                    raise ConfigurationError(
                        f"Vector for '{record.id}' has dimension {len(record.values)}, "
                        f"index '{self.get_index_name()}' expects {expected_dimension}."
                    )

        result = MutationResult(requested=len(records))
        written = 0
        for batch_start in range(0, len(records), self.upsert_batch_size):
            batch = records[batch_start: batch_start + self.upsert_batch_size]
            try:
                resp = await self.do_request(
                    endpoint=self._get_endpoint_upsert(),
                    raise_on_error=True,
                    **self.get_upsert_request(batch),
                )
            except VectorStoreError as e:
                raise VectorStoreError(
                    f"Upsert batch {result.batches + 1} failed after {written} of {len(records)} records were written: {e}",
                    status_code=e.status_code,
                    transient=e.transient,
                ) from e
            written += len(batch)
            result.batches += 1
            mutation_id = self._get_mutation_id(resp)
            if mutation_id:
                result.mutation_ids.append(mutation_id)

        self.logging.debug("Upserted %d records into '%s' in %d batch(es).", written, self.get_index_name(), result.batches)
        return result

    async def do_delete_by_ids(self, ids: list[str]) -> MutationResult:
        """Delete vectors by id. Unknown ids are ignored by the store.

        Args:
            ids (list[str]): Document ids whose vectors should be removed.

        Returns:
            MutationResult: Ids of the backend mutations and the number of batches sent.

        Raises:
            VectorStoreError: If any batch is rejected.
        """
        result = MutationResult(requested=len(ids))
        for batch_start in range(0, len(ids), self.delete_batch_size):
            batch = ids[batch_start: batch_start + self.delete_batch_size]
            resp = await self.do_request(
                method="POST",
                json=self.get_delete_payload(batch),
                endpoint=self._get_endpoint_delete(),
                raise_on_error=True,
            )
            result.batches += 1
            mutation_id = self._get_mutation_id(resp)
            if mutation_id:
                result.mutation_ids.append(mutation_id)
        return result

    async def do_query(self, vector: list[float], top_k: int) -> list[QueryMatch]:
        """Return the top_k nearest neighbours of the vector.

        Args:
            vector (list[float]): The query vector.
            top_k (int): Number of candidates to request.

        Returns:
            list[QueryMatch]: Matches as returned by the backend.

        Raises:
            VectorStoreError: If the query fails or the response is malformed.
        """
        resp = await self.do_request(
            method="POST",
            json=self.get_query_payload(vector, top_k),
            endpoint=self._get_endpoint_query(),
            raise_on_error=True,
        )
        try:
            return self.extract_query_matches(resp.json())
        except ValueError as e:
            raise VectorStoreError(f"Malformed query response from '{self.get_engine_name()}': {e}") from e
