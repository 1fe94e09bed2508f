import logging
from fastapi import APIRouter, Depends

from homecare.core.constants import CertificateStatusEnum, ExamStatusEnum, RoleEnum
from homecare.schemas.dashboard import DashboardSection, DashboardStat, DashboardView
from homecare.schemas.exam import CertificateQueryParams, ExamQueryParams
from homecare.schemas.health_record import HealthRecordSearchParams
from homecare.schemas.response import APIResponse
from homecare.schemas.user import UserContext
from homecare.services.exam import ExamService
from homecare.services.health_record import HealthRecordService
from homecare.utils import deps
from homecare.utils.permission import PermissionHelper

logger = logging.getLogger(__name__)

router = APIRouter()

HEADERS = {
    RoleEnum.NURSE: ("Nurse Dashboard", "Manage your patients and schedule"),
    RoleEnum.RECEPTIONIST: ("Receptionist Dashboard", "Manage patients, appointments, and billing"),
    RoleEnum.DOCTOR: ("Doctor Dashboard", "Review patients and manage referrals"),
    RoleEnum.SPECIALIST: ("Specialist Dashboard", "Treat patients and prepare for discharge"),
    RoleEnum.BILLER: ("Biller Dashboard", "Manage patient bills and payments"),
}
ADMIN_HEADER = ("Admin Dashboard", "Monitor system performance and operations")


@router.get("", response_model=APIResponse[DashboardView])
async def get_dashboard(
    *,
    exam_service: ExamService = Depends(deps.get_exam_service),
    health_record_service: HealthRecordService = Depends(deps.get_health_record_service),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    title, subtitle = HEADERS.get(context.role, ADMIN_HEADER)
    view = DashboardView(role=context.role, title=title, subtitle=subtitle)

    if PermissionHelper.can_take_exams(context):
        certificates = await exam_service.get_my_certificates()
        approved = [c for c in certificates if c.status == CertificateStatusEnum.APPROVED]
        exams = await exam_service.get_exams(ExamQueryParams(status=ExamStatusEnum.PUBLISHED, limit=5))
        view.stats.append(DashboardStat(name="Certificates Earned", value=len(approved)))
        view.stats.append(DashboardStat(name="Pending Certificates", value=len(certificates) - len(approved)))
        view.sections.append(DashboardSection(
            title="Available Exams",
            items=[{"id": e.id, "title": e.title, "duration": e.duration} for e in exams.items],
            empty_message="No exams are available right now.",
        ))

    if PermissionHelper.can_edit_health_records(context):
        records = await health_record_service.get_health_records(HealthRecordSearchParams(limit=5))
        unverified = [r for r in records.items if not r.verified]
        view.stats.append(DashboardStat(name="Unverified Records", value=len(unverified)))
        view.sections.append(DashboardSection(
            title="Recent Health Records",
            items=[
                {"id": r.id, "patientName": r.patient_name, "recordType": r.record_type.value, "verified": r.verified}
                for r in records.items
            ],
            empty_message="No health records yet.",
        ))

    if PermissionHelper.can_manage_training(context):
        pending = await exam_service.get_certificates(
            CertificateQueryParams(status=CertificateStatusEnum.PENDING, limit=10)
        )
        total = pending.pagination.total if pending.pagination and pending.pagination.total is not None else None
        view.stats.append(DashboardStat(
            name="Certificates Awaiting Approval", value=total if total is not None else len(pending.items)
        ))
        view.sections.append(DashboardSection(
            title="Certificates Awaiting Approval",
            items=[
                {"id": c.id, "userName": c.user_name, "examTitle": c.exam_title, "score": c.score}
                for c in pending.items
            ],
            empty_message="No certificates are waiting for approval.",
        ))

    logger.debug(f"Dashboard built for {context.role.value} {context.user_id}")
    return APIResponse(message="Dashboard retrieved successfully", data=view)
