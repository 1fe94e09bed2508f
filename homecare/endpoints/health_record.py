from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from homecare.core.constants import RecordTypeEnum, UpdatedByRoleEnum
from homecare.core.exceptions import ApiError, InvalidStateError
from homecare.schemas.health_record import (
    FormFieldUpdates,
    HealthRecordFormView,
    HealthRecordSearchParams,
    HealthRecordUpdate,
    ListItem,
    OpenRecordForm,
    VerifyRecordData,
)
from homecare.schemas.patient import Patient, PatientQueryParams
from homecare.schemas.response import APIResponse, Page
from homecare.schemas.user import UserContext
from homecare.services.health_record import HealthRecordService
from homecare.services.health_record_form import HealthRecordForm
from homecare.services.patient import PatientService
from homecare.services.sessions import discard_record_form, load_record_form, save_record_form, submit_lock
from homecare.utils import deps
from homecare.utils.events import HEALTH_RECORD_SAVED, event_bus

router = APIRouter()


@router.get("", response_model=APIResponse[Page[HealthRecordUpdate]])
async def get_health_records(
    *,
    health_record_service: HealthRecordService = Depends(deps.get_health_record_service),
    context: UserContext = Depends(deps.get_current_user_with_context),
    patient_id: Optional[str] = Query(None, alias="patientId"),
    record_type: Optional[RecordTypeEnum] = Query(None, alias="recordType"),
    updated_by_role: Optional[UpdatedByRoleEnum] = Query(None, alias="updatedByRole"),
    verified: Optional[bool] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None
):
    params = HealthRecordSearchParams(
        patient_id=patient_id,
        record_type=record_type,
        updated_by_role=updated_by_role,
        verified=verified,
        page=page,
        limit=limit,
    )
    records = await health_record_service.get_health_records(params)
    return APIResponse(message="Health records retrieved successfully", data=records)


@router.get("/patients", response_model=APIResponse[Page[Patient]])
async def get_patients(
    *,
    patient_service: PatientService = Depends(deps.get_patient_service),
    context: UserContext = Depends(deps.require_record_editor),
    search: Optional[str] = None,
    patient_status: Optional[str] = Query(None, alias="status"),
    page: Optional[int] = None,
    limit: Optional[int] = None
):
    patients = await patient_service.get_patients(
        PatientQueryParams(search=search, status=patient_status, page=page, limit=limit)
    )
    return APIResponse(message="Patients retrieved successfully", data=patients)


@router.get("/patients/{patient_id}", response_model=APIResponse[List[HealthRecordUpdate]])
async def get_patient_records(
    *,
    patient_id: str,
    health_record_service: HealthRecordService = Depends(deps.get_health_record_service),
    patient_service: PatientService = Depends(deps.get_patient_service),
    context: UserContext = Depends(deps.get_current_user_with_context),
    record_type: Optional[RecordTypeEnum] = Query(None, alias="recordType")
):
    await patient_service.get_patient(patient_id)
    if record_type == RecordTypeEnum.VITAL:
        records = await health_record_service.get_vital_signs(patient_id)
    elif record_type == RecordTypeEnum.MEDICATION:
        records = await health_record_service.get_medications(patient_id)
    elif record_type == RecordTypeEnum.SYMPTOM:
        records = await health_record_service.get_symptoms(patient_id)
    else:
        records = await health_record_service.get_patient_health_records(patient_id)
        if record_type:
            records = [r for r in records if r.record_type == record_type]
    return APIResponse(message="Patient health records retrieved successfully", data=records)


@router.post("/forms", response_model=APIResponse[HealthRecordFormView], status_code=status.HTTP_201_CREATED)
async def open_form(
    *,
    request: OpenRecordForm,
    health_record_service: HealthRecordService = Depends(deps.get_health_record_service),
    context: UserContext = Depends(deps.require_record_editor)
):
    if request.record_id:
        record = await health_record_service.get_health_record(request.record_id)
        form = HealthRecordForm.for_edit(record)
    else:
        form = HealthRecordForm.for_add(request.patient_id)
    await save_record_form(context.user_id, form)
    return APIResponse(message="Health record form opened", data=form.view())


@router.get("/forms/{form_id}", response_model=APIResponse[HealthRecordFormView])
async def get_form(
    *,
    form_id: str,
    context: UserContext = Depends(deps.require_record_editor)
):
    form = await load_record_form(context.user_id, form_id)
    return APIResponse(message="Health record form retrieved", data=form.view())


@router.patch("/forms/{form_id}", response_model=APIResponse[HealthRecordFormView])
async def update_form(
    *,
    form_id: str,
    request: FormFieldUpdates,
    context: UserContext = Depends(deps.require_record_editor)
):
    form = await load_record_form(context.user_id, form_id)
    for name, value in request.updates.items():
        form.set_field(name, value)
    await save_record_form(context.user_id, form)
    return APIResponse(message="Health record form updated", data=form.view())


@router.post("/forms/{form_id}/lists/{field}", response_model=APIResponse[HealthRecordFormView])
async def add_list_item(
    *,
    form_id: str,
    field: str,
    item: ListItem,
    context: UserContext = Depends(deps.require_record_editor)
):
    form = await load_record_form(context.user_id, form_id)
    form.add_list_item(field, item.value)
    await save_record_form(context.user_id, form)
    return APIResponse(message="Item added", data=form.view())


@router.delete("/forms/{form_id}/lists/{field}/{index}", response_model=APIResponse[HealthRecordFormView])
async def remove_list_item(
    *,
    form_id: str,
    field: str,
    index: int,
    context: UserContext = Depends(deps.require_record_editor)
):
    form = await load_record_form(context.user_id, form_id)
    form.remove_list_item(field, index)
    await save_record_form(context.user_id, form)
    return APIResponse(message="Item removed", data=form.view())


@router.post("/forms/{form_id}/submit", response_model=APIResponse[HealthRecordUpdate])
async def submit_form(
    *,
    form_id: str,
    health_record_service: HealthRecordService = Depends(deps.get_health_record_service),
    context: UserContext = Depends(deps.require_record_editor)
):
    async with submit_lock(context.user_id, form_id):
        form = await load_record_form(context.user_id, form_id)
        try:
            record = await form.submit(health_record_service.save)
        except ApiError:
            # keep the draft and its error for the next render
            await save_record_form(context.user_id, form)
            raise

        if record is None:
            raise InvalidStateError("This form is already being saved or has been closed.")

        await discard_record_form(context.user_id, form_id)

    await event_bus.publish(HEALTH_RECORD_SAVED, {
        "record_id": record.id,
        "patient_id": record.patient_id,
        "updated_by": context.user_id,
        "message": f"{record.record_type.value.title()} record saved for {record.patient_name}",
    })
    return APIResponse(message="Health record saved successfully", data=record)


@router.delete("/forms/{form_id}", response_model=APIResponse[HealthRecordFormView])
async def cancel_form(
    *,
    form_id: str,
    context: UserContext = Depends(deps.require_record_editor)
):
    form = await load_record_form(context.user_id, form_id)
    form.cancel()
    await discard_record_form(context.user_id, form_id)
    return APIResponse(message="Health record form closed", data=form.view())


@router.patch("/{record_id}/verify", response_model=APIResponse[HealthRecordUpdate])
async def verify_record(
    *,
    record_id: str,
    request: VerifyRecordData,
    health_record_service: HealthRecordService = Depends(deps.get_health_record_service),
    context: UserContext = Depends(deps.require_record_verifier)
):
    record = await health_record_service.verify_record(record_id, request)
    return APIResponse(message="Health record verified", data=record)
