"""
Storage models for persisted block vectors and search hits.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, field_validator

from .entities import BlockRange, CodeElementType


class VectorRecord(BaseModel):
    """Persisted shape of one embedded block, keyed by (document, block)"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    document_identity: str
    block_identifier: str
    kind: CodeElementType
    vector: List[float]
    source_range: BlockRange

    @field_validator('document_identity', 'block_identifier')
    @classmethod
    def validate_key_part(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('Record key parts cannot be empty')
        return v

    @field_validator('vector')
    @classmethod
    def validate_vector(cls, v: List[float]) -> List[float]:
        if not v:
            raise ValueError('Vector cannot be empty')
        return v

    @property
    def key(self) -> tuple:
        return (self.document_identity, self.block_identifier)

    def to_payload(self) -> Dict[str, Any]:
        """Payload representation without the vector"""
        return {
            "document_identity": self.document_identity,
            "block_identifier": self.block_identifier,
            "kind": self.kind.value,
            "source_range": self.source_range.to_dict()
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], vector: List[float]) -> 'VectorRecord':
        return cls(
            document_identity=payload["document_identity"],
            block_identifier=payload["block_identifier"],
            kind=CodeElementType(payload["kind"]),
            vector=vector,
            source_range=BlockRange.from_dict(payload["source_range"])
        )


class SearchHit(BaseModel):
    """Nearest-neighbour result"""
    model_config = ConfigDict(frozen=True)

    record: VectorRecord
    score: float
    rank: int = 1
