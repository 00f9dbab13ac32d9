from booking_widget.scheduling.availability import available_days, free_slots
from booking_widget.scheduling.service import SchedulingService
from booking_widget.scheduling.store import AppointmentStore, InMemoryAppointmentStore

__all__ = [
    "available_days", "free_slots",
    "AppointmentStore", "InMemoryAppointmentStore", "SchedulingService",
]
