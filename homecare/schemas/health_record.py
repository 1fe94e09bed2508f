from pydantic import ConfigDict, model_validator
from typing import Optional, List, Dict, Any, Union, NamedTuple, Tuple, Type
from datetime import datetime

from homecare.core.constants import (
    RecordTypeEnum,
    FormModeEnum,
    UpdatedByRoleEnum,
    MOOD_CHOICES,
    APPETITE_CHOICES,
    MOBILITY_CHOICES,
    INJURY_TYPE_CHOICES,
    MOBILITY_LEVEL_CHOICES,
)
from homecare.schemas.base import CamelModel


class RecordDataBase(CamelModel):
    model_config = ConfigDict(extra="ignore")

class VitalData(RecordDataBase):
    blood_pressure: Optional[str] = None # "systolic/diastolic"
    heart_rate: Optional[int] = None
    temperature: Optional[float] = None # F
    weight: Optional[float] = None # lbs
    height: Optional[float] = None # inches
    bmi: Optional[float] = None
    bmi_category: Optional[str] = None
    blood_sugar: Optional[float] = None # mg/dL
    oxygen_saturation: Optional[float] = None

class MedicationData(RecordDataBase):
    medication: Optional[str] = None
    dosage: Optional[str] = None
    taken: Optional[bool] = None

class SymptomData(RecordDataBase):
    symptoms: List[str] = []
    pain_level: Optional[int] = None

class ObservationData(RecordDataBase):
    """General note and treatment records share the same observation fields."""
    mood: Optional[str] = None
    sleep: Optional[float] = None
    appetite: Optional[str] = None
    mobility: Optional[str] = None

class AssessmentData(RecordDataBase):
    injury_type: Optional[str] = None
    pain_scale: Optional[int] = None
    mobility_level: Optional[str] = None
    next_appointment: Optional[str] = None
    chief_complaint: Optional[str] = None
    medical_history: Optional[str] = None
    examination: Optional[str] = None
    diagnosis: Optional[str] = None
    affected_area: List[str] = []
    functional_limitations: List[str] = []
    current_medications: List[str] = []
    goals: List[str] = []
    recommendations: List[str] = []
    assessment_notes: Optional[str] = None

RecordData = Union[VitalData, MedicationData, SymptomData, ObservationData, AssessmentData]

RECORD_DATA_MODELS: Dict[RecordTypeEnum, Type[RecordDataBase]] = {
    RecordTypeEnum.VITAL: VitalData,
    RecordTypeEnum.MEDICATION: MedicationData,
    RecordTypeEnum.SYMPTOM: SymptomData,
    RecordTypeEnum.NOTE: ObservationData,
    RecordTypeEnum.ASSESSMENT: AssessmentData,
    RecordTypeEnum.TREATMENT: ObservationData,
}


class FieldSpec(NamedTuple):
    kind: str  # text | int | float | bool | list | choice | date | derived
    choices: Tuple[str, ...] = ()
    min_value: Optional[float] = None
    max_value: Optional[float] = None

_OBSERVATION_FIELDS = {
    "mood": FieldSpec("choice", MOOD_CHOICES),
    "sleep": FieldSpec("int", min_value=0),
    "appetite": FieldSpec("choice", APPETITE_CHOICES),
    "mobility": FieldSpec("choice", MOBILITY_CHOICES),
}

# Form field set per record type, keyed by wire name.
RECORD_FIELDS: Dict[RecordTypeEnum, Dict[str, FieldSpec]] = {
    RecordTypeEnum.VITAL: {
        "bloodPressure": FieldSpec("text"),
        "heartRate": FieldSpec("int"),
        "temperature": FieldSpec("float"),
        "weight": FieldSpec("float"),
        "height": FieldSpec("float"),
        "bmi": FieldSpec("derived"),
        "bmiCategory": FieldSpec("derived"),
        "bloodSugar": FieldSpec("float"),
        "oxygenSaturation": FieldSpec("float"),
    },
    RecordTypeEnum.MEDICATION: {
        "medication": FieldSpec("text"),
        "dosage": FieldSpec("text"),
        "taken": FieldSpec("bool"),
    },
    RecordTypeEnum.SYMPTOM: {
        "symptoms": FieldSpec("list"),
        "painLevel": FieldSpec("int", min_value=1, max_value=10),
    },
    RecordTypeEnum.NOTE: _OBSERVATION_FIELDS,
    RecordTypeEnum.TREATMENT: _OBSERVATION_FIELDS,
    RecordTypeEnum.ASSESSMENT: {
        "injuryType": FieldSpec("choice", INJURY_TYPE_CHOICES),
        "painScale": FieldSpec("int", min_value=1, max_value=10),
        "mobilityLevel": FieldSpec("choice", MOBILITY_LEVEL_CHOICES),
        "nextAppointment": FieldSpec("date"),
        "chiefComplaint": FieldSpec("text"),
        "medicalHistory": FieldSpec("text"),
        "examination": FieldSpec("text"),
        "diagnosis": FieldSpec("text"),
        "affectedArea": FieldSpec("list"),
        "functionalLimitations": FieldSpec("list"),
        "currentMedications": FieldSpec("list"),
        "goals": FieldSpec("list"),
        "recommendations": FieldSpec("list"),
        "assessmentNotes": FieldSpec("text"),
    },
}

ALL_FIELDS: Dict[str, FieldSpec] = {}
for _fields in RECORD_FIELDS.values():
    ALL_FIELDS.update(_fields)


def parse_record_type(value: Any) -> RecordTypeEnum:
    """Backend sends upper-case record types; anything unknown reads as a note."""
    if isinstance(value, RecordTypeEnum):
        return value
    try:
        return RecordTypeEnum(str(value or "").lower())
    except ValueError:
        return RecordTypeEnum.NOTE

def parse_updated_by_role(value: Any) -> UpdatedByRoleEnum:
    if isinstance(value, UpdatedByRoleEnum):
        return value
    try:
        return UpdatedByRoleEnum(str(value or "").lower())
    except ValueError:
        return UpdatedByRoleEnum.NURSE


class HealthRecordUpdate(CamelModel):
    id: str
    patient_id: str
    patient_name: str = "Unknown Patient"
    updated_by: Optional[str] = None
    updated_by_name: Optional[str] = None
    updated_by_role: UpdatedByRoleEnum = UpdatedByRoleEnum.NURSE
    record_type: RecordTypeEnum
    data: RecordData
    timestamp: Optional[datetime] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    verified: bool = False
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_wire_record(cls, values: Any):
        if not isinstance(values, dict):
            return values
        values = dict(values)
        record_type = parse_record_type(values.get("recordType", values.get("record_type")))
        values["recordType"] = record_type
        values.pop("record_type", None)

        role = values.get("updatedByRole", values.get("updated_by_role"))
        values["updatedByRole"] = parse_updated_by_role(role)
        values.pop("updated_by_role", None)

        patient = values.get("patient") or {}
        values["patientName"] = (
            patient.get("name") or values.get("patientName") or values.get("patient_name") or "Unknown Patient"
        )
        values.pop("patient_name", None)
        values["verified"] = bool(values.get("verified"))

        data = values.get("data")
        if not isinstance(data, RecordDataBase):
            values["data"] = RECORD_DATA_MODELS[record_type].model_validate(data or {})
        return values

class HealthRecordSearchParams(CamelModel):
    patient_id: Optional[str] = None
    record_type: Optional[RecordTypeEnum] = None
    updated_by_role: Optional[UpdatedByRoleEnum] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    verified: Optional[bool] = None
    page: Optional[int] = None
    limit: Optional[int] = None

class HealthRecordPayload(CamelModel):
    """Sparse create/update body produced by the record form."""
    record_id: Optional[str] = None
    patient_id: str
    record_type: RecordTypeEnum
    data: Dict[str, Any] = {}
    location: Optional[str] = None
    notes: Optional[str] = None

class VerifyRecordData(CamelModel):
    verified: bool
    notes: Optional[str] = None


class FormFieldView(CamelModel):
    name: str
    kind: str
    choices: List[str] = []
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    read_only: bool = False

class HealthRecordFormView(CamelModel):
    form_id: str
    mode: FormModeEnum
    record_id: Optional[str] = None
    patient_id: str = ""
    patient_locked: bool = False
    record_type: RecordTypeEnum
    location: str = ""
    notes: str = ""
    data: Dict[str, Any] = {}
    form_fields: List[FormFieldView] = []
    is_submitting: bool = False
    error: Optional[str] = None
    closed: bool = False

class OpenRecordForm(CamelModel):
    record_id: Optional[str] = None
    patient_id: Optional[str] = None

class FormFieldUpdates(CamelModel):
    """Field name -> value; data fields are addressed as ``data.<field>``."""
    updates: Dict[str, Any]

class ListItem(CamelModel):
    value: str
