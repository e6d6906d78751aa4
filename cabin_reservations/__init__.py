from .booking import DateRange, ReservationStatus, find_primary_conflict, has_date_overlap, parse_calendar_date
from .errors import (
	InvalidRangeError,
	InvalidTarget,
	InvariantViolationError,
	NotFound,
	PermissionDenied,
	ReservationConflictError,
	ReservationError,
	ReservationStorageError,
	UserNotFound,
	ValidationError,
)
from .models import UNSET, ReservationPatch, ReservationRecord, Role, User
from .repository import InMemoryReservationRepository, InMemoryUserDirectory, ReservationRepository, UserDirectory
from .authorization import Authorizer
from .lifecycle import ReservationLifecycle
from .assignment import AssignmentService
from .service import CabinReservationService
from .yaml_store import ReservationYamlRepository, YamlUserDirectory

__all__ = [
	"DateRange",
	"ReservationStatus",
	"find_primary_conflict",
	"has_date_overlap",
	"parse_calendar_date",
	"InvalidRangeError",
	"InvalidTarget",
	"InvariantViolationError",
	"NotFound",
	"PermissionDenied",
	"ReservationConflictError",
	"ReservationError",
	"ReservationStorageError",
	"UserNotFound",
	"ValidationError",
	"UNSET",
	"ReservationPatch",
	"ReservationRecord",
	"Role",
	"User",
	"InMemoryReservationRepository",
	"InMemoryUserDirectory",
	"ReservationRepository",
	"UserDirectory",
	"Authorizer",
	"ReservationLifecycle",
	"AssignmentService",
	"CabinReservationService",
	"ReservationYamlRepository",
	"YamlUserDirectory",
]
