"""Qdrant implementation of VectorStoreClientInterface.

Qdrant only accepts unsigned integers or UUIDs as point ids, so each
document id is mapped to a deterministic UUIDv5. The original document id
travels in the "doc_id" payload field.
"""

import uuid

from shared.clients.vector.VectorStoreClientInterface import VectorStoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.vector import IndexMetadata, QueryMatch, VectorRecord

# Fixed namespace for deterministic UUIDv5 point IDs.
# Changing this value would invalidate all existing point IDs in Qdrant.
_POINT_ID_NAMESPACE = uuid.UUID("6f4d3c2b-1a09-4e5f-8b7c-6d5e4f3a2b1c")

_DISTANCE_NAMES = {"cosine": "Cosine", "euclidean": "Euclid", "euclid": "Euclid", "dot": "Dot", "dot-product": "Dot", "manhattan": "Manhattan"}


def make_point_id(doc_id: str) -> str:
    """Build the deterministic Qdrant point id for a document id."""
    return str(uuid.uuid5(_POINT_ID_NAMESPACE, doc_id))


class VectorStoreClientQdrant(VectorStoreClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    def get_index_name(self) -> str:
        return self._collection_name

    def ids_are_document_ids(self) -> bool:
        return False

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default=None)
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_index_info(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_upsert(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_delete(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    def _get_endpoint_query(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_create_index(self) -> str:
        return f"/collections/{self._collection_name}"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_upsert_request(self, records: list[VectorRecord]) -> dict:
        points = [
            {
                "id": make_point_id(record.id),
                "vector": record.values,
                "payload": {**record.metadata, "doc_id": record.id},
            }
            for record in records
        ]
        return {"method": "PUT", "json": {"points": points}, "params": {"wait": "true"}}

    def get_delete_payload(self, ids: list[str]) -> dict:
        return {"points": [make_point_id(doc_id) for doc_id in ids]}

    def get_query_payload(self, vector: list[float], top_k: int) -> dict:
        return {"vector": vector, "limit": top_k, "with_payload": True, "with_vector": False}

    def get_create_index_request(self, dimension: int, metric: str) -> dict:
        return {
            "method": "PUT",
            "endpoint": self._get_endpoint_create_index(),
            "json": {
                "vectors": {
                    "size": dimension,
                    "distance": _DISTANCE_NAMES.get(metric, metric.capitalize()),
                }
            },
        }

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_query_matches(self, raw_response: dict) -> list[QueryMatch]:
        result = raw_response.get("result")
        if not isinstance(result, list):
            raise ValueError("response result is not a list of points")
        return [
            QueryMatch(
                id=str(point.get("id", "")),
                score=float(point.get("score", 0.0)),
                metadata=point.get("payload") or {},
            )
            for point in result
        ]

    def extract_index_metadata(self, raw_response: dict) -> IndexMetadata:
        result = raw_response.get("result") or {}
        vectors = ((result.get("config") or {}).get("params") or {}).get("vectors") or {}
        if "size" not in vectors or "distance" not in vectors:
            raise ValueError("collection config lacks vectors.size or vectors.distance")
        metric = str(vectors["distance"]).lower()
        return IndexMetadata(
            name=self._collection_name,
            dimension=int(vectors["size"]),
            metric="euclidean" if metric == "euclid" else metric,
            record_count=result.get("points_count"),
        )

    def extract_mutation_id(self, raw_response: dict) -> str | None:
        operation_id = (raw_response.get("result") or {}).get("operation_id")
        return str(operation_id) if operation_id is not None else None
