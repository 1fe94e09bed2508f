import copy
import logging
import math
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from homecare.core.constants import FormModeEnum, RecordTypeEnum
from homecare.core.exceptions import ApiError, ValidationError
from homecare.schemas.health_record import (
    ALL_FIELDS,
    RECORD_FIELDS,
    FieldSpec,
    FormFieldView,
    HealthRecordFormView,
    HealthRecordPayload,
    HealthRecordUpdate,
)
from homecare.utils.bmi import calculate_bmi

logger = logging.getLogger(__name__)

TOP_LEVEL_FIELDS = ("patientId", "recordType", "location", "notes")
SAVE_FAILED_MESSAGE = "Unable to save health record. Please try again."


def blank_data() -> Dict[str, Any]:
    data = {}
    for name, spec in ALL_FIELDS.items():
        if spec.kind == "list":
            data[name] = []
        elif spec.kind == "bool":
            data[name] = False
        else:
            data[name] = ""
    return data


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _parse_number(name: str, spec: FieldSpec, text: str, errors: List[str]):
    try:
        number = float(text)
    except ValueError:
        errors.append(f"{name}: must be a number")
        return None
    if not math.isfinite(number):
        errors.append(f"{name}: must be a number")
        return None
    if spec.kind == "int":
        number = int(number)
    if spec.min_value is not None and number < spec.min_value:
        errors.append(f"{name}: must be at least {_to_text(spec.min_value)}")
    if spec.max_value is not None and number > spec.max_value:
        errors.append(f"{name}: must be at most {_to_text(spec.max_value)}")
    return number


class HealthRecordForm:
    """Draft of a single clinical record, shaped by the selected record type.

    All scalar inputs are held as text, as typed; they are parsed to numbers
    only when the payload is built. Switching the record type keeps the other
    types' inputs, but only the selected type's fields are sent.
    """

    def __init__(self, mode: FormModeEnum = FormModeEnum.ADD, form_id: Optional[str] = None):
        self.form_id = form_id or uuid.uuid4().hex
        self.mode = mode
        self.record_id: Optional[str] = None
        self.patient_id = ""
        self.patient_locked = False
        self.record_type = RecordTypeEnum.VITAL
        self.location = ""
        self.notes = ""
        self.data = blank_data()
        self.is_submitting = False
        self.error: Optional[str] = None
        self.closed = False

    @classmethod
    def for_add(cls, patient_id: Optional[str] = None) -> "HealthRecordForm":
        form = cls(FormModeEnum.ADD)
        if patient_id:
            form.patient_id = patient_id
            form.patient_locked = True
        return form

    @classmethod
    def for_edit(cls, record: HealthRecordUpdate) -> "HealthRecordForm":
        form = cls(FormModeEnum.EDIT)
        form.record_id = record.id
        form.patient_id = record.patient_id
        form.record_type = record.record_type
        form.location = record.location or ""
        form.notes = record.notes or ""

        stored = record.data.model_dump(by_alias=True)
        for name, value in stored.items():
            spec = ALL_FIELDS.get(name)
            if spec is None:
                continue
            if spec.kind == "list":
                form.data[name] = list(value or [])
            elif spec.kind == "bool":
                form.data[name] = bool(value)
            else:
                form.data[name] = _to_text(value)

        if form.data["weight"] and form.data["height"]:
            form._recompute_bmi()
        return form

    def _recompute_bmi(self):
        self.data["bmi"], self.data["bmiCategory"] = calculate_bmi(self.data["weight"], self.data["height"])

    def set_field(self, name: str, value: Any):
        if name == "patientId":
            if self.patient_locked:
                raise ValidationError("The patient cannot be changed for this record.", errors=[name])
            self.patient_id = _to_text(value)
        elif name == "recordType":
            try:
                self.record_type = RecordTypeEnum(str(value).lower())
            except ValueError:
                raise ValidationError(f"Unknown record type: {value}", errors=[name])
        elif name in ("location", "notes"):
            setattr(self, name, _to_text(value))
        elif name.startswith("data."):
            self._set_data_field(name[len("data."):], value)
        else:
            raise ValidationError(f"Unknown field: {name}", errors=[name])

    def _set_data_field(self, name: str, value: Any):
        spec = ALL_FIELDS.get(name)
        if spec is None:
            raise ValidationError(f"Unknown field: data.{name}", errors=[f"data.{name}"])
        if spec.kind == "derived":
            raise ValidationError(f"{name} is calculated and cannot be edited.", errors=[f"data.{name}"])

        if spec.kind == "list":
            if not isinstance(value, list):
                raise ValidationError(f"{name} must be a list.", errors=[f"data.{name}"])
            self.data[name] = [str(item).strip() for item in value if str(item).strip()]
        elif spec.kind == "bool":
            if not isinstance(value, bool):
                raise ValidationError(f"{name} must be true or false.", errors=[f"data.{name}"])
            self.data[name] = value
        elif spec.kind == "choice":
            text = _to_text(value)
            if text and text not in spec.choices:
                raise ValidationError(
                    f"Invalid value for {name}: {text}", errors=[f"data.{name}: one of {', '.join(spec.choices)}"]
                )
            self.data[name] = text
        else:
            self.data[name] = _to_text(value)

        if name in ("weight", "height"):
            self._recompute_bmi()

    def _require_list_field(self, name: str):
        spec = ALL_FIELDS.get(name)
        if spec is None or spec.kind != "list":
            raise ValidationError(f"{name} is not a list field.", errors=[f"data.{name}"])

    def add_list_item(self, name: str, value: str) -> bool:
        self._require_list_field(name)
        item = (value or "").strip()
        if not item:
            return False
        self.data[name].append(item)
        return True

    def remove_list_item(self, name: str, index: int) -> bool:
        self._require_list_field(name)
        items = self.data[name]
        if not 0 <= index < len(items):
            return False
        del items[index]
        return True

    @property
    def fields(self) -> Dict[str, FieldSpec]:
        return RECORD_FIELDS[self.record_type]

    def _parse(self) -> Dict[str, Any]:
        errors = []
        if not self.patient_id.strip():
            errors.append("patientId: Please select a patient")

        parsed: Dict[str, Any] = {}
        for name, spec in self.fields.items():
            value = self.data.get(name)
            if spec.kind in ("int", "float"):
                text = _to_text(value).strip()
                value = _parse_number(name, spec, text, errors) if text else None
            elif spec.kind == "derived" and name == "bmi":
                value = float(value) if value else None
            elif spec.kind == "choice" and value and value not in spec.choices:
                errors.append(f"{name}: one of {', '.join(spec.choices)}")
            parsed[name] = value

        if errors:
            raise ValidationError("Please check your input and try again.", errors=errors)
        return parsed

    def validate(self):
        self._parse()

    def build_payload(self) -> HealthRecordPayload:
        parsed = self._parse()
        data = {name: value for name, value in parsed.items() if value is not None and value != ""}
        return HealthRecordPayload(
            record_id=self.record_id if self.mode == FormModeEnum.EDIT else None,
            patient_id=self.patient_id.strip(),
            record_type=self.record_type,
            data=data,
            location=self.location.strip() or None,
            notes=self.notes.strip() or None,
        )

    def _reset(self):
        self.data = blank_data()
        self.location = ""
        self.notes = ""
        if not self.patient_locked:
            self.patient_id = ""

    async def submit(self, on_save: Callable[[HealthRecordPayload], Awaitable[Any]]) -> Optional[Any]:
        """Save through ``on_save``; a repeat call while one is in flight is ignored."""
        if self.is_submitting or self.closed:
            return None

        self.is_submitting = True
        self.error = None
        try:
            result = await on_save(self.build_payload())
        except ApiError as e:
            self.error = e.message or SAVE_FAILED_MESSAGE
            logger.warning(f"Health record form {self.form_id} failed to save: {self.error}")
            raise
        finally:
            self.is_submitting = False

        self.closed = True
        self._reset()
        return result

    def cancel(self):
        self.closed = True
        self._reset()

    def view(self) -> HealthRecordFormView:
        return HealthRecordFormView(
            form_id=self.form_id,
            mode=self.mode,
            record_id=self.record_id,
            patient_id=self.patient_id,
            patient_locked=self.patient_locked,
            record_type=self.record_type,
            location=self.location,
            notes=self.notes,
            data={name: copy.deepcopy(self.data[name]) for name in self.fields},
            form_fields=[
                FormFieldView(
                    name=name,
                    kind=spec.kind,
                    choices=list(spec.choices),
                    min_value=spec.min_value,
                    max_value=spec.max_value,
                    read_only=spec.kind == "derived",
                )
                for name, spec in self.fields.items()
            ],
            is_submitting=self.is_submitting,
            error=self.error,
            closed=self.closed,
        )

    def to_cache(self) -> Dict[str, Any]:
        return {
            "form_id": self.form_id,
            "mode": self.mode.value,
            "record_id": self.record_id,
            "patient_id": self.patient_id,
            "patient_locked": self.patient_locked,
            "record_type": self.record_type.value,
            "location": self.location,
            "notes": self.notes,
            "data": copy.deepcopy(self.data),
            "error": self.error,
            "closed": self.closed,
        }

    @classmethod
    def from_cache(cls, cached: Dict[str, Any]) -> "HealthRecordForm":
        form = cls(FormModeEnum(cached["mode"]), form_id=cached["form_id"])
        form.record_id = cached.get("record_id")
        form.patient_id = cached.get("patient_id", "")
        form.patient_locked = cached.get("patient_locked", False)
        form.record_type = RecordTypeEnum(cached.get("record_type", RecordTypeEnum.VITAL.value))
        form.location = cached.get("location", "")
        form.notes = cached.get("notes", "")
        form.data.update(copy.deepcopy(cached.get("data") or {}))
        form.error = cached.get("error")
        form.closed = cached.get("closed", False)
        return form
