"""Pydantic base schema utilities for trust core models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """
    Base Pydantic model for all domain schemas.

    Configures common Pydantic behaviors:
    - ``populate_by_name=True``: Allow initialization by alias or field name.
    - ``extra="forbid"``: Prevent unknown fields from slipping into the model, ensuring strict validation.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
    )


class FrozenSchema(BaseSchema):
    """
    Immutable variant of ``BaseSchema``.

    Used for request-scoped values (operations, decisions) and append-only
    records that must never change once created.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )


class PolicySchema(BaseSchema):
    """
    Base for the policy document.

    The policy file is authored in camelCase (``autoApprove``,
    ``maxAutoApprovalPerHour``); fields keep snake_case names in Python.
    Dump with ``by_alias=True`` to get the file format back.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
    )
