"""Domain enumerations and step-transition rules."""

import enum


class BookingStep(enum.IntEnum):
    SELECT_DEPARTURE = 1
    CONFIRM_DEPARTURE = 2
    SELECT_ARRIVAL = 3
    CONFIRM_ARRIVAL = 4
    TRIP_ACTIVE = 5
    TRIP_COMPLETED = 6  # legacy terminal step, reset by the recovery monitor


# Steps in which each station operation may run
DEPARTURE_SELECT_STEPS: frozenset[BookingStep] = frozenset(
    {BookingStep.SELECT_DEPARTURE, BookingStep.CONFIRM_DEPARTURE}
)
ARRIVAL_SELECT_STEPS: frozenset[BookingStep] = frozenset(
    {BookingStep.SELECT_ARRIVAL, BookingStep.CONFIRM_ARRIVAL}
)
DEPARTURE_CLEAR_STEPS: frozenset[BookingStep] = frozenset(
    {
        BookingStep.SELECT_DEPARTURE,
        BookingStep.CONFIRM_DEPARTURE,
        BookingStep.SELECT_ARRIVAL,
    }
)
ARRIVAL_CLEAR_STEPS: frozenset[BookingStep] = ARRIVAL_SELECT_STEPS

# Steps that only make sense while a trip session is alive
TRIP_STEPS: frozenset[BookingStep] = frozenset(
    {BookingStep.TRIP_ACTIVE, BookingStep.TRIP_COMPLETED}
)


class SelectionMode(str, enum.Enum):
    DEPARTURE = "departure"
    ARRIVAL = "arrival"


def selection_mode_for(step: BookingStep) -> SelectionMode:
    if step in DEPARTURE_SELECT_STEPS:
        return SelectionMode.DEPARTURE
    return SelectionMode.ARRIVAL


class RouteKind(str, enum.Enum):
    ROUTE = "route"  # departure -> arrival
    DISPATCH = "dispatch"  # dispatch hub -> departure


class ChargeKind(str, enum.Enum):
    STARTING_FARE = "STARTING_FARE"
    USAGE = "USAGE"


class NotificationLevel(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
