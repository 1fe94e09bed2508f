from enum import Enum


UNANSWERED = -1

class RoleEnum(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    NURSE = "nurse"
    SPECIALIST = "specialist"
    THERAPIST = "therapist"
    RECEPTIONIST = "receptionist"
    BILLER = "biller"
    LAB_ATTENDANT = "lab_attendant"
    PATIENT = "patient"

class ExamStatusEnum(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"

class QuestionTypeEnum(str, Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"

class ExamAttemptStatusEnum(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    TIMED_OUT = "TIMED_OUT"

class AttemptStateEnum(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"

class CertificateStatusEnum(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class CertificateStateEnum(str, Enum):
    NONE = "none"
    PENDING_GENERATION = "pending_generation"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"

class RecordTypeEnum(str, Enum):
    VITAL = "vital"
    MEDICATION = "medication"
    SYMPTOM = "symptom"
    NOTE = "note"
    ASSESSMENT = "assessment"
    TREATMENT = "treatment"

class UpdatedByRoleEnum(str, Enum):
    PATIENT = "patient"
    NURSE = "nurse"
    DOCTOR = "doctor"
    CAREGIVER = "caregiver"
    SPECIALIST = "specialist"

class FormModeEnum(str, Enum):
    ADD = "add"
    EDIT = "edit"

class BMICategoryEnum(str, Enum):
    UNDERWEIGHT = "Underweight"
    NORMAL = "Normal weight"
    OVERWEIGHT = "Overweight"
    OBESE = "Obese"

class NotificationTypeEnum(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"

MOOD_CHOICES = ("Excellent", "Good", "Fair", "Poor", "Very Poor")
APPETITE_CHOICES = ("Excellent", "Good", "Fair", "Poor", "None")
MOBILITY_CHOICES = ("Independent", "Assisted", "Dependent")
INJURY_TYPE_CHOICES = (
    "musculoskeletal",
    "neurological",
    "cardiovascular",
    "respiratory",
    "sports",
    "post-surgical",
    "chronic-pain",
    "other",
)
MOBILITY_LEVEL_CHOICES = ("independent", "assisted", "dependent")
