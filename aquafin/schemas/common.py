"""
Error envelopes shared by every endpoint.

Declared in each route's ``responses`` so the OpenAPI document shows the
error contract next to the happy path.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Envelope for domain errors (404, 409, 422 business rules, 503)."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(
        ...,
        description="Human-readable error description",
        examples=["Payouts have already been distributed for cycle '…'"],
    )
    details: Optional[Any] = Field(
        default=None, description="Per-field problems, when the error has any"
    )


class ValidationErrorDetail(BaseModel):
    """Single field-level validation failure."""

    field: str = Field(
        ...,
        description="Path to the invalid field",
        examples=["body -> harvest_weight"],
    )
    message: str = Field(
        ...,
        description="Explanation of the validation failure",
        examples=["Input should be greater than 0"],
    )


class ValidationErrorResponse(BaseModel):
    """422 body for request validation failures."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(default="Validation failed", description="Summary message")
    details: List[ValidationErrorDetail] = Field(..., description="Per-field validation failures")
