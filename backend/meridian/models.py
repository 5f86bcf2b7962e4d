"""
Value types shared by the row mapper, chunk splitter, oracle layer
and reconciler. All are immutable once produced.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Literal, Mapping

from .config import DEFAULT_CLASSIFICATION, DEFAULT_CONFIDENCE, FAILED_TIER
from .standardizer import StandardizationResult, StandardizationStats

Classification = Literal["Business", "Individual"]
ResultStatus = Literal["success", "failed"]


@dataclass(frozen=True)
class RowMapping:
    """Links one original row to its entry in the unique payee list."""
    original_row_index: int
    payee_name: str
    normalized_payee_name: str
    unique_payee_index: int
    standardization_result: StandardizationResult

    def to_dict(self) -> dict:
        return {
            "original_row_index": self.original_row_index,
            "payee_name": self.payee_name,
            "normalized_payee_name": self.normalized_payee_name,
            "unique_payee_index": self.unique_payee_index,
            "standardization_result": {
                "original": self.standardization_result.original,
                "normalized": self.standardization_result.normalized,
                "cleaning_steps": list(self.standardization_result.cleaning_steps),
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RowMapping":
        std = data["standardization_result"]
        return cls(
            original_row_index=int(data["original_row_index"]),
            payee_name=data["payee_name"],
            normalized_payee_name=data["normalized_payee_name"],
            unique_payee_index=int(data["unique_payee_index"]),
            standardization_result=StandardizationResult(
                original=std["original"],
                normalized=std["normalized"],
                cleaning_steps=tuple(std.get("cleaning_steps", ())),
            ),
        )


@dataclass(frozen=True)
class PayeeRowData:
    """
    Aggregate produced by the row mapper for one upload session.

    unique_payee_names holds the first-seen original spelling for each
    normalized key; unique_normalized_names is parallel to it.
    """
    unique_payee_names: tuple[str, ...]
    unique_normalized_names: tuple[str, ...]
    row_mappings: tuple[RowMapping, ...]
    original_file_data: tuple[Mapping[str, Any], ...]
    standardization_stats: StandardizationStats
    payee_column: str = ""

    @property
    def row_count(self) -> int:
        return len(self.original_file_data)

    @property
    def unique_count(self) -> int:
        return len(self.unique_payee_names)

    def to_dict(self) -> dict:
        """Plain-JSON form for storage and re-hydration across sessions."""
        return {
            "payee_column": self.payee_column,
            "unique_payee_names": list(self.unique_payee_names),
            "unique_normalized_names": list(self.unique_normalized_names),
            "row_mappings": [m.to_dict() for m in self.row_mappings],
            "original_file_data": [dict(row) for row in self.original_file_data],
            "standardization_stats": self.standardization_stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PayeeRowData":
        return cls(
            unique_payee_names=tuple(data["unique_payee_names"]),
            unique_normalized_names=tuple(data["unique_normalized_names"]),
            row_mappings=tuple(RowMapping.from_dict(m) for m in data["row_mappings"]),
            original_file_data=tuple(data["original_file_data"]),
            standardization_stats=StandardizationStats.from_dict(data["standardization_stats"]),
            payee_column=data.get("payee_column", ""),
        )


@dataclass(frozen=True)
class ClassificationResult:
    """Oracle verdict for one unique payee."""
    payee_name: str
    classification: Classification = DEFAULT_CLASSIFICATION
    confidence: float = DEFAULT_CONFIDENCE
    reasoning: str = ""
    industry_code: str | None = None
    industry_description: str | None = None
    status: ResultStatus = "success"
    error: str | None = None
    processing_tier: str = "AI-Powered"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def failure(cls, payee_name: str, error: str) -> "ClassificationResult":
        """Conservative placeholder for a name the oracle could not classify."""
        return cls(
            payee_name=payee_name,
            classification=DEFAULT_CLASSIFICATION,
            confidence=DEFAULT_CONFIDENCE,
            reasoning=f"Classification failed: {error}",
            status="failed",
            error=error,
            processing_tier=FAILED_TIER,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Chunk:
    """One oracle-sized slice of the unique payee list."""
    chunk_index: int
    total_chunks: int
    unique_payee_names: tuple[str, ...]
    unique_offset: int
    row_mappings: tuple[RowMapping, ...]
    original_file_data: Mapping[int, Mapping[str, Any]] = field(default_factory=dict)

    @property
    def chunk_id(self) -> str:
        return f"chunk-{self.chunk_index}"

    @property
    def size(self) -> int:
        return len(self.unique_payee_names)
