"""
Response Models

Pydantic models for API responses.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CacheStats(BaseModel):
    """Store-level statistics reported to administrators."""

    total_keys: int
    used_memory: Optional[int] = None
    used_memory_human: Optional[str] = None
    connected_clients: Optional[int] = None
    total_commands_processed: Optional[int] = None
    keyspace_hits: Optional[int] = None
    keyspace_misses: Optional[int] = None
    hit_rate: Optional[float] = Field(default=None, description="Keyspace hit rate in percent")


class BaseResponse(BaseModel):
    """Base response model for all API responses."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "success": True,
                    "message": "Operation completed successfully"
                }
            ]
        }
    )

    success: bool = Field(
        ...,
        description="Whether the operation was successful"
    )
    message: Optional[str] = Field(
        default=None,
        description="Human-readable message"
    )


class ErrorResponse(BaseModel):
    """Error response model."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": "ValidationError",
                    "message": "Cache pattern must not be empty",
                    "details": {}
                }
            ]
        }
    )

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details"
    )


class RateLimitErrorResponse(BaseModel):
    """Body of a 429 Too Many Requests response."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "statusCode": 429,
                    "error": "Too Many Requests",
                    "message": "Too many requests, please try again later",
                    "retryAfter": 60
                }
            ]
        }
    )

    statusCode: int = 429
    error: str = "Too Many Requests"
    message: str
    retryAfter: Optional[int] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="'ok' when every dependency answers, else 'degraded'")
    version: str
    checks: Dict[str, bool] = Field(
        default_factory=dict,
        description="Reachability of each dependency"
    )


class CacheStatsResponse(BaseResponse):
    data: CacheStats


class CacheKeysResponse(BaseResponse):
    pattern: str
    count: int
    keys: List[str]


class CacheDeleteResponse(BaseResponse):
    """Outcome of a cache purge."""

    deleted: Optional[int] = Field(
        default=None,
        description="Number of keys removed (absent for a full flush)"
    )


class ReindexResponse(BaseResponse):
    indexed: int
