"""
Document models for pkio.

Entities and containers travel as JSON documents with a common envelope:
scope, version, type, options and body. The models validate that shape
on load and produce it again on dump.
"""

import json
from typing import Any, Dict, Literal, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .canonicalization import canonicalize_str
from .errors import InvalidEncoding

SCOPE = "pki.io"
DOCUMENT_VERSION = 1

ENTITY_DOCUMENT_TYPE = "entity-document"
CONTAINER_DOCUMENT_TYPE = "container"

D = TypeVar("D", bound="PkioDocument")


class _Strict(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class PkioDocument(_Strict):
    """Common envelope of every pkio document."""
    scope: str = SCOPE
    version: int = DOCUMENT_VERSION

    @classmethod
    def load(cls: Type[D], data: Union[str, bytes, Dict[str, Any]]) -> D:
        """
        Parse and validate a document from JSON text or a dict.

        Raises:
            InvalidEncoding: If the input is not JSON or does not match the schema
        """
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise InvalidEncoding(f"{cls.__name__} is not valid JSON") from e
        if not isinstance(data, dict):
            raise InvalidEncoding(f"{cls.__name__} must be a JSON object")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidEncoding(
                f"{cls.__name__} failed validation: {e.error_count()} error(s)"
            ) from e

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def dump(self) -> str:
        """Canonical JSON for this document."""
        try:
            return canonicalize_str(self.to_dict())
        except ValueError as e:
            raise InvalidEncoding(f"{type(self).__name__} cannot be serialized: {e}") from e


# ============================================================
# Entity document
# ============================================================

class EntityBody(_Strict):
    id: str = ""
    name: str = ""
    key_type: str = Field(default="ec", alias="key-type")
    public_signing_key: str = Field(default="", alias="public-signing-key")
    private_signing_key: str = Field(default="", alias="private-signing-key")
    public_encryption_key: str = Field(default="", alias="public-encryption-key")
    private_encryption_key: str = Field(default="", alias="private-encryption-key")


class EntityDocument(PkioDocument):
    type: Literal["entity-document"] = ENTITY_DOCUMENT_TYPE
    options: str = ""
    body: EntityBody = Field(default_factory=EntityBody)


# ============================================================
# Container document
# ============================================================

class ContainerOptions(_Strict):
    source: str = ""
    signature_mode: str = Field(default="", alias="signature-mode")
    signature_inputs: Dict[str, str] = Field(default_factory=dict, alias="signature-inputs")
    signature: str = ""
    encryption_keys: Dict[str, str] = Field(default_factory=dict, alias="encryption-keys")
    encryption_mode: str = Field(default="", alias="encryption-mode")
    encryption_inputs: Dict[str, str] = Field(default_factory=dict, alias="encryption-inputs")


class ContainerDocument(PkioDocument):
    type: Literal["container"] = CONTAINER_DOCUMENT_TYPE
    options: ContainerOptions = Field(default_factory=ContainerOptions)
    body: str = ""
