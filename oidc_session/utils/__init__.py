"""Small URL, hashing and JWT helpers used by the session manager."""

from __future__ import annotations

from .hashing import fnv1a_hash_to_hex
from .jwt import read_expiration_time_in_jwt
from .query_params import QueryParamResult, add_query_param_to_url, retrieve_query_param_from_url


__all__ = [
    "QueryParamResult",
    "add_query_param_to_url",
    "fnv1a_hash_to_hex",
    "read_expiration_time_in_jwt",
    "retrieve_query_param_from_url",
]
