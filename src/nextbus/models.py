from enum import Enum
from typing import List, Union

from pydantic import BaseModel, Field, model_validator


class Source(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    NONE = "none"


class PointEstimate(BaseModel):
    minutes: int = Field(..., ge=0, description="Predicted minutes until the bus reaches the stop")

    @property
    def lower(self) -> int:
        return self.minutes


class RangeEstimate(BaseModel):
    min: int = Field(..., ge=0, description="Earliest predicted arrival, in minutes")
    max: int = Field(..., ge=0, description="Latest predicted arrival, in minutes")

    @model_validator(mode="after")
    def _check_bounds(self) -> "RangeEstimate":
        if self.min > self.max:
            raise ValueError(f"range min {self.min} is greater than max {self.max}")
        return self

    @property
    def lower(self) -> int:
        return self.min


ArrivalEstimate = Union[PointEstimate, RangeEstimate]


class SourceResult(BaseModel):
    """Estimates reported by one upstream. An empty list is "no data", not an error."""

    source: Source
    estimates: List[ArrivalEstimate] = Field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return bool(self.estimates)

    @classmethod
    def empty(cls, source: Source) -> "SourceResult":
        return cls(source=source, estimates=[])


# The single result the arbitrator settles on for a request.
ArbitrationDecision = SourceResult


class ArrivalsResponse(BaseModel):
    estimates: List[ArrivalEstimate]
    source: Source

    @classmethod
    def from_decision(cls, decision: ArbitrationDecision) -> "ArrivalsResponse":
        return cls(estimates=decision.estimates, source=decision.source)
