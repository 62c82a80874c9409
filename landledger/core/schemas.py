"""
Pydantic schemas for ledger requests.

These models validate the input of the ledger operations. Field aliases
accept the camelCase shape used by existing land-record seed files
(e.g. "referenceNumber") as well as snake_case names.
"""

from typing import Any
from pydantic import BaseModel, Field, ConfigDict, field_validator, ValidationError

from landledger.core.exceptions import InvalidRequestError

# Largest amount a signed 64-bit BIGINT column holds
MAX_AMOUNT = 2**63 - 1


class AccountCreateRequest(BaseModel):
    """Request schema for creating an account"""
    model_config = ConfigDict(
        json_schema_extra = {
            "example": {
                "name": "John",
                "credit": 1000000
            }
        }
    )

    name: str = Field(..., min_length=1, description="Display name of the account holder")
    credit: int = Field(0, ge=0, le=MAX_AMOUNT, description="Initial credit balance")


class ParcelRecordRequest(BaseModel):
    """Request schema for recording a new land parcel"""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra = {
            "example": {
                "referenceNumber": "LK23GH6",
                "size": "10Ha",
                "price": 100000
            }
        }
    )

    reference_number: str = Field(..., alias="referenceNumber", min_length=1, description="Parcel reference number")
    size: str = Field(..., description="Descriptive parcel size")
    price: int = Field(..., ge=0, le=MAX_AMOUNT, description="Parcel price")

    @field_validator("reference_number")
    @classmethod
    def reference_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("reference number must not be blank")
        return value

    @field_validator("size", mode="before")
    @classmethod
    def size_as_text(cls, value: Any) -> Any:
        # Seed files sometimes carry numeric sizes
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class SeedRequest(BaseModel):
    """Request schema for the initial seeding of accounts and parcels"""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra = {
            "example": {
                "users": [{"name": "John", "credit": 1000000}],
                "records": [{"referenceNumber": "LK23GH6", "size": "10Ha", "price": 100000}]
            }
        }
    )

    accounts: list[AccountCreateRequest] = Field(default_factory=list, alias="users")
    records: list[ParcelRecordRequest] = Field(default_factory=list)


class TransferRequest(BaseModel):
    """Request schema for transferring a parcel to an account"""
    model_config = ConfigDict(populate_by_name=True)

    reference_number: str = Field(..., alias="referenceNumber", min_length=1)
    account_id: str = Field(..., alias="userId", min_length=1)


def parse_request(schema: type[BaseModel], data: Any) -> Any:
    """
    Validate request data against a schema.

    Args:
        schema: Pydantic model class
        data: Model instance or raw mapping

    Returns:
        Validated model instance

    Raises:
        InvalidRequestError: If the data does not satisfy the schema
    """
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise InvalidRequestError(
            f"Invalid {schema.__name__}: {e.error_count()} validation error(s)",
            errors=e.errors(include_url=False)
        ) from e
