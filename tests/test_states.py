import pytest

from app.core.exceptions import InvalidTransitionError, ValidationError
from app.domain.states import (
    BookingRequestEvent, SlotEvent, StudentBookingEvent,
    can_publish, next_booking_request_state, next_slot_state, next_student_booking_state,
)
from db.models import BookingRequestState, SlotState, StudentBookingState


class TestBookingRequestStates:
    def test_happy_path(self):
        state = BookingRequestState.CREATED
        state = next_booking_request_state(state, BookingRequestEvent.INVITE)
        assert state == BookingRequestState.AWAITING_AVAILABILITY
        state = next_booking_request_state(state, BookingRequestEvent.AVAILABILITY_SUBMITTED)
        assert state == BookingRequestState.AVAILABILITY_COLLECTED
        state = next_booking_request_state(state, BookingRequestEvent.PUBLISH)
        assert state == BookingRequestState.PUBLISHED
        state = next_booking_request_state(state, BookingRequestEvent.CLOSE)
        assert state == BookingRequestState.CLOSED

    def test_admin_override_skips_waiting(self):
        assert next_booking_request_state(
            BookingRequestState.AWAITING_AVAILABILITY, BookingRequestEvent.ADMIN_OVERRIDE
        ) == BookingRequestState.AVAILABILITY_COLLECTED

    def test_cannot_publish_before_availability(self):
        assert not can_publish(BookingRequestState.CREATED)
        assert not can_publish(BookingRequestState.AWAITING_AVAILABILITY)
        assert can_publish(BookingRequestState.AVAILABILITY_COLLECTED)
        assert can_publish(BookingRequestState.PUBLISHED)
        with pytest.raises(InvalidTransitionError):
            next_booking_request_state(BookingRequestState.AWAITING_AVAILABILITY, BookingRequestEvent.PUBLISH)

    @pytest.mark.parametrize("event", list(BookingRequestEvent))
    def test_closed_is_terminal(self, event):
        with pytest.raises(InvalidTransitionError):
            next_booking_request_state(BookingRequestState.CLOSED, event)


class TestSlotStates:
    def test_claim_goes_straight_to_confirmed(self):
        assert next_slot_state(SlotState.AVAILABLE, SlotEvent.CONFIRM) == SlotState.CONFIRMED

    def test_hold_then_confirm_or_expire(self):
        assert next_slot_state(SlotState.AVAILABLE, SlotEvent.HOLD) == SlotState.RESERVED
        assert next_slot_state(SlotState.RESERVED, SlotEvent.CONFIRM) == SlotState.CONFIRMED
        assert next_slot_state(SlotState.RESERVED, SlotEvent.EXPIRE) == SlotState.AVAILABLE

    def test_cancellation_targets(self):
        assert next_slot_state(SlotState.CONFIRMED, SlotEvent.CANCEL_RELEASE) == SlotState.AVAILABLE
        assert next_slot_state(SlotState.CONFIRMED, SlotEvent.CANCEL_WITHDRAW) == SlotState.RELEASED

    def test_confirmed_cannot_be_confirmed_again(self):
        with pytest.raises(InvalidTransitionError):
            next_slot_state(SlotState.CONFIRMED, SlotEvent.CONFIRM)

    def test_released_slot_can_only_be_restored(self):
        assert next_slot_state(SlotState.RELEASED, SlotEvent.RESTORE) == SlotState.AVAILABLE

    @pytest.mark.parametrize("event", [e for e in SlotEvent if e != SlotEvent.RESTORE])
    def test_released_accepts_no_other_event(self, event):
        with pytest.raises(InvalidTransitionError):
            next_slot_state(SlotState.RELEASED, event)


class TestStudentBookingStates:
    def test_confirm_and_cancel(self):
        state = next_student_booking_state(StudentBookingState.PENDING_CLAIM, StudentBookingEvent.CONFIRM)
        assert state == StudentBookingState.CONFIRMED
        assert next_student_booking_state(state, StudentBookingEvent.CANCEL) == StudentBookingState.CANCELLED

    def test_repeated_cancel_is_noop(self):
        assert next_student_booking_state(
            StudentBookingState.CANCELLED, StudentBookingEvent.CANCEL
        ) == StudentBookingState.CANCELLED

    def test_rejected_is_terminal(self):
        with pytest.raises(InvalidTransitionError):
            next_student_booking_state(StudentBookingState.REJECTED, StudentBookingEvent.CONFIRM)

    def test_invalid_transition_is_a_validation_error(self):
        with pytest.raises(ValidationError) as exc:
            next_student_booking_state(StudentBookingState.CANCELLED, StudentBookingEvent.CONFIRM)
        assert exc.value.code == "invalid_transition"
        assert exc.value.status_code == 400
