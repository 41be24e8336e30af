from datetime import datetime
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Optional, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from app.utils.image import parse_data_uri


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python; both accepted on input"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ============================================================================#
# Diagnosis
# ============================================================================#

class DiagnoseDiseaseInput(CamelModel):
    photo_data_uri: str = Field(
        ...,
        description=(
            "A photo of a plant, as a data URI that must include a MIME type and use "
            "Base64 encoding. Expected format: 'data:<mimetype>;base64,<encoded_data>'."
        ),
    )

    @field_validator("photo_data_uri")
    @classmethod
    def _check_data_uri(cls, value: str) -> str:
        if parse_data_uri(value) is None:
            raise PydanticCustomError("data_uri", "Invalid image data URI")
        return value


class Diagnosis(CamelModel):
    model_config = ConfigDict(frozen=True)

    plant_name: Optional[str] = Field(None, description="The common name of the plant in the image.")
    disease_name: str = Field(..., min_length=1, description="The name of the identified disease, if any.")
    confidence: float = Field(..., ge=0, le=1, description="The confidence level of the disease identification (0-1).")
    description: str = Field(
        ...,
        min_length=1,
        description="A description of the disease, its causes, and potential treatments.",
    )


# ============================================================================#
# Treatment
# ============================================================================#

class TreatmentRequest(CamelModel):
    """Input of the recommend-treatment call, and the handoff from a diagnosis"""
    disease_name: str = Field(..., min_length=1, description="The name of the diagnosed plant disease.")
    symptoms: str = Field(..., min_length=1, description="A description of the symptoms observed on the plant.")

    @classmethod
    def from_diagnosis(cls, diagnosis: Diagnosis) -> "TreatmentRequest":
        return cls(disease_name=diagnosis.disease_name, symptoms=diagnosis.description)


class HazardLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Labels seen in model output besides the canonical values
HAZARD_LABELS = {
    "ít nguy hiểm": HazardLevel.LOW,
    "nguy hiểm trung bình": HazardLevel.MEDIUM,
    "rất nguy hiểm": HazardLevel.HIGH,
    "moderate": HazardLevel.MEDIUM,
}


class Medicine(CamelModel):
    name: str = Field(..., min_length=1)
    hazard_level: HazardLevel

    @field_validator("hazard_level", mode="before")
    @classmethod
    def _normalize_hazard(cls, value: Any) -> Any:
        if isinstance(value, str):
            label = value.strip().lower()
            return HAZARD_LABELS.get(label, label)
        return value


class Treatment(CamelModel):
    """Canonical treatment record handed to the client"""
    chemical_treatment: str = ""
    biological_treatment: str = ""
    general_recommendation: str = ""
    suggested_medicines: str = ""
    chemical_medicines: List[Medicine] = Field(default_factory=list)
    biological_medicines: List[Medicine] = Field(default_factory=list)


def _join_if_list(value: Any) -> Any:
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return value


# Some models return the flat medicine field as a list of names
MedicineText = Annotated[str, BeforeValidator(_join_if_list)]


class CombinedTreatment(CamelModel):
    shape: ClassVar[str] = "combined"

    treatment_recommendation: str = Field(..., min_length=1)
    suggested_medicines: MedicineText

    def to_treatment(self) -> Treatment:
        return Treatment(
            general_recommendation=self.treatment_recommendation,
            suggested_medicines=self.suggested_medicines,
        )


class SplitTreatment(CamelModel):
    shape: ClassVar[str] = "split"

    chemical_treatment: str = Field(..., min_length=1)
    biological_treatment: str = Field(..., min_length=1)
    suggested_medicines: MedicineText

    def to_treatment(self) -> Treatment:
        return Treatment(
            chemical_treatment=self.chemical_treatment,
            biological_treatment=self.biological_treatment,
            suggested_medicines=self.suggested_medicines,
        )


class StructuredTreatment(CamelModel):
    shape: ClassVar[str] = "structured"

    chemical_treatment: str = Field(..., min_length=1, description="Chemical treatment plan.")
    biological_treatment: str = Field(..., min_length=1, description="Biological or organic treatment plan.")
    chemical_medicines: List[Medicine] = Field(..., description="Suggested chemical products.")
    biological_medicines: List[Medicine] = Field(..., description="Suggested biological products.")

    def to_treatment(self) -> Treatment:
        names = [m.name for m in self.chemical_medicines + self.biological_medicines]
        return Treatment(
            chemical_treatment=self.chemical_treatment,
            biological_treatment=self.biological_treatment,
            suggested_medicines=", ".join(names),
            chemical_medicines=list(self.chemical_medicines),
            biological_medicines=list(self.biological_medicines),
        )


# Checked in order: the structured shape also carries the split keys
_SHAPE_MARKERS = (
    ("structured", {"chemicalMedicines", "biologicalMedicines", "chemical_medicines", "biological_medicines"}),
    ("split", {"chemicalTreatment", "biologicalTreatment", "chemical_treatment", "biological_treatment"}),
    ("combined", {"treatmentRecommendation", "treatment_recommendation"}),
)


def treatment_shape(value: Any) -> Optional[str]:
    """Pick the union member for a raw treatment payload from its keys"""
    if isinstance(value, dict):
        keys = set(value)
        for shape, markers in _SHAPE_MARKERS:
            if keys & markers:
                return shape
        return None
    return getattr(value, "shape", None)


TreatmentResponse = Annotated[
    Union[
        Annotated[StructuredTreatment, Tag("structured")],
        Annotated[SplitTreatment, Tag("split")],
        Annotated[CombinedTreatment, Tag("combined")],
    ],
    Discriminator(
        treatment_shape,
        custom_error_type="treatment_shape",
        custom_error_message="Unrecognized treatment response shape",
    ),
]

treatment_response_adapter = TypeAdapter(TreatmentResponse)


# ============================================================================#
# Results / History
# ============================================================================#

class ErrorResult(BaseModel):
    error: str = Field(..., min_length=1)


class HistoryEntry(CamelModel):
    """A completed (image, diagnosis, treatment) triple.

    Diagnosis and treatment stay plain dicts: older entries may carry other
    shapes than the current models.
    """
    model_config = ConfigDict(extra="allow")

    timestamp: datetime
    image: Optional[str] = None
    diagnosis: Dict[str, Any]
    treatment: Dict[str, Any]
