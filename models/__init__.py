"""
SQLAlchemy ORM models for DriveAssist Backend.

Importing this package registers every table on ``Base.metadata``.
"""

from .user import User, UserPreference, UserRole
from .authentication import OtpCode, OtpType, UserSession
from .reference import Region, Specialization, VehicleMake, VehicleModel, Setting
from .profile import DriverProfile, ExpertProfile, KycStatus
from .vehicle import Vehicle
from .device import DeviceFingerprint
from .diagnosis import Diagnosis, DiagnosisImage, DiagnosisStatus, DiagnosisInputType, UrgencyLevel
from .package import (
    LeadPackage,
    DiagnosisPackage,
    SubscriptionPlan,
    ExpertSubscription,
    LeadPackagePurchase,
    DiagnosisPackagePurchase,
    Payment,
)
from .lead import Lead, LeadActivity, LeadStatus, Review
from .messaging import Conversation, Message, MessageType
from .appointment import (
    Appointment,
    AppointmentService,
    AppointmentStatus,
    ServicePackage,
    ServiceType,
)
from .maintenance import MaintenanceLog, MaintenanceReminder, MaintenanceType, ReminderStatus
from .learning import (
    ArticleCategory,
    Article,
    ArticleInteraction,
    RoadSignCategory,
    RoadSign,
    QuizQuestion,
    QuizAttempt,
    VideoCategory,
    VideoResource,
)

__all__ = [
    "User",
    "UserPreference",
    "UserRole",
    "OtpCode",
    "OtpType",
    "UserSession",
    "Region",
    "Specialization",
    "VehicleMake",
    "VehicleModel",
    "Setting",
    "DriverProfile",
    "ExpertProfile",
    "KycStatus",
    "Vehicle",
    "DeviceFingerprint",
    "Diagnosis",
    "DiagnosisImage",
    "DiagnosisStatus",
    "DiagnosisInputType",
    "UrgencyLevel",
    "LeadPackage",
    "DiagnosisPackage",
    "SubscriptionPlan",
    "ExpertSubscription",
    "LeadPackagePurchase",
    "DiagnosisPackagePurchase",
    "Payment",
    "Lead",
    "LeadActivity",
    "LeadStatus",
    "Review",
    "Conversation",
    "Message",
    "MessageType",
    "Appointment",
    "AppointmentService",
    "AppointmentStatus",
    "ServicePackage",
    "ServiceType",
    "MaintenanceLog",
    "MaintenanceReminder",
    "MaintenanceType",
    "ReminderStatus",
    "ArticleCategory",
    "Article",
    "ArticleInteraction",
    "RoadSignCategory",
    "RoadSign",
    "QuizQuestion",
    "QuizAttempt",
    "VideoCategory",
    "VideoResource",
]
