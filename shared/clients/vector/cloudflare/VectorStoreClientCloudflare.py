"""Cloudflare Vectorize (v2 API) implementation of VectorStoreClientInterface.

Vectors are stored under the source document id. Upserts are sent as
NDJSON, one record per line.
"""

import json

from shared.clients.vector.VectorStoreClientInterface import VectorStoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.vector import IndexMetadata, QueryMatch, VectorRecord


class VectorStoreClientCloudflare(VectorStoreClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.cloudflare.com/client/v4", val_type="string")
        self._account_id = self.get_config_val("ACCOUNT_ID", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._index_name = self.get_config_val("INDEX", default="confluence-pages-index", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Cloudflare"

    def get_index_name(self) -> str:
        return self._index_name

    def ids_are_document_ids(self) -> bool:
        return True

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="ACCOUNT_ID", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="INDEX", val_type="string", default="confluence-pages-index"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/user/tokens/verify"

    def _get_endpoint_indexes(self) -> str:
        return f"/accounts/{self._account_id}/vectorize/v2/indexes"

    def _get_endpoint_index_info(self) -> str:
        return f"{self._get_endpoint_indexes()}/{self._index_name}"

    def _get_endpoint_index_stats(self) -> str | None:
        return f"{self._get_endpoint_index_info()}/info"

    def _get_endpoint_upsert(self) -> str:
        return f"{self._get_endpoint_index_info()}/upsert"

    def _get_endpoint_delete(self) -> str:
        return f"{self._get_endpoint_index_info()}/delete_by_ids"

    def _get_endpoint_query(self) -> str:
        return f"{self._get_endpoint_index_info()}/query"

    def _get_endpoint_create_index(self) -> str:
        return self._get_endpoint_indexes()

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_upsert_request(self, records: list[VectorRecord]) -> dict:
        ndjson = "\n".join(
            json.dumps({"id": record.id, "values": record.values, "metadata": record.metadata})
            for record in records
        )
        return {
            "method": "POST",
            "content": ndjson.encode("utf-8"),
            "additional_headers": {"Content-Type": "application/x-ndjson"},
        }

    def get_delete_payload(self, ids: list[str]) -> dict:
        return {"ids": ids}

    def get_query_payload(self, vector: list[float], top_k: int) -> dict:
        return {
            "vector": vector,
            "topK": top_k,
            "returnValues": False,
            "returnMetadata": "all",
        }

    def get_create_index_request(self, dimension: int, metric: str) -> dict:
        return {
            "method": "POST",
            "endpoint": self._get_endpoint_create_index(),
            "json": {
                "name": self._index_name,
                "description": "Document vector index",
                "config": {"dimensions": dimension, "metric": metric},
            },
        }

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_query_matches(self, raw_response: dict) -> list[QueryMatch]:
        result = raw_response.get("result")
        if not isinstance(result, dict):
            raise ValueError("response has no result object")
        matches: list[QueryMatch] = []
        for match in result.get("matches") or []:
            matches.append(
                QueryMatch(
                    id=str(match.get("id", "")),
                    score=float(match.get("score", 0.0)),
                    metadata=match.get("metadata") or {},
                )
            )
        return matches

    def extract_index_metadata(self, raw_response: dict) -> IndexMetadata:
        result = raw_response.get("result") or {}
        config = result.get("config") or {}
        if "dimensions" not in config or "metric" not in config:
            raise ValueError("index config lacks dimensions or metric")
        return IndexMetadata(
            name=result.get("name", self._index_name),
            dimension=int(config["dimensions"]),
            metric=str(config["metric"]).lower(),
        )

    def extract_record_count(self, raw_response: dict) -> int | None:
        count = (raw_response.get("result") or {}).get("vectorCount")
        return int(count) if count is not None else None

    def extract_mutation_id(self, raw_response: dict) -> str | None:
        return (raw_response.get("result") or {}).get("mutationId")
