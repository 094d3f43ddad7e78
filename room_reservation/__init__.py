from .booking import (
	COMPANIES,
	ROOMS,
	ErrorCode,
	Reservation,
	ReservationFilter,
	ReservationPatch,
	ReservationRequest,
	Room,
	ValidationResult,
	find_conflicts,
	is_available,
	overlaps,
	validate_date,
	validate_times,
)
from .schedule import CalendarView, DaySchedule, RoomSchedule, TimeSlot, build_calendar, generate_slots
from .service import ReservationOutcome, ReservationService
from .store import ReservationNotFound, ReservationStorageError, ReservationStore, StoreUnavailable
from .yaml_store import YamlReservationStore

__all__ = [
	"COMPANIES",
	"ROOMS",
	"ErrorCode",
	"Reservation",
	"ReservationFilter",
	"ReservationPatch",
	"ReservationRequest",
	"Room",
	"ValidationResult",
	"find_conflicts",
	"is_available",
	"overlaps",
	"validate_date",
	"validate_times",
	"CalendarView",
	"DaySchedule",
	"RoomSchedule",
	"TimeSlot",
	"build_calendar",
	"generate_slots",
	"ReservationOutcome",
	"ReservationService",
	"ReservationNotFound",
	"ReservationStorageError",
	"ReservationStore",
	"StoreUnavailable",
	"YamlReservationStore",
]
