# tests/core/test_transitions.py
"""
Тесты автомата статусов бронирования.
"""

from __future__ import annotations

from datetime import datetime, timezone
from itertools import product

import pytest

from src.common.constants import BookingStatus, BookingType, UserRole
from src.common.errors import (
    ConflictError,
    InvalidTransitionError,
    PreconditionFailedError,
    UnauthorizedError,
)
from src.core.bookings.models import Actor
from src.core.bookings.transitions import (
    ROLE_TARGETS,
    TRANSITION_TABLE,
    RejectionKind,
    StatusTransitionAuthority,
    TransitionAccepted,
    TransitionRejected,
)

S = BookingStatus
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def authority() -> StatusTransitionAuthority:
    return StatusTransitionAuthority()


class TestTransitionGraph:
    """Тесты графа переходов."""

    def test_drive_in_has_no_pickup_states(self) -> None:
        """drive_in начинается с waiting_bay."""
        graph = TRANSITION_TABLE[BookingType.DRIVE_IN]
        assert S.PENDING not in graph
        assert S.PICKED_UP_PENDING_CONFIRMATION not in graph
        assert graph[S.WAITING_BAY] == frozenset({S.WASHING_BAY})

    def test_drying_bay_is_optional(self) -> None:
        graph = TRANSITION_TABLE[BookingType.PICKUP_DELIVERY]
        assert graph[S.WASHING_BAY] == frozenset({S.DRYING_BAY, S.WASH_COMPLETED})

    def test_path_skips_optional_branch(self, authority: StatusTransitionAuthority) -> None:
        """Кратчайший путь до wash_completed не заходит в drying_bay."""
        path = authority.path(BookingType.PICKUP_DELIVERY, S.WAITING_BAY, S.WASH_COMPLETED)
        assert path == (S.WASHING_BAY, S.WASH_COMPLETED)

    def test_path_backwards_is_none(self, authority: StatusTransitionAuthority) -> None:
        assert authority.path(BookingType.PICKUP_DELIVERY, S.WASHING_BAY, S.ACCEPTED) is None

    def test_path_to_self_is_none(self, authority: StatusTransitionAuthority) -> None:
        assert authority.path(BookingType.DRIVE_IN, S.WAITING_BAY, S.WAITING_BAY) is None


class TestRoleRules:
    """Тесты таблицы ролей."""

    def test_driver_accepts_pending(self, authority, driver, make_booking) -> None:
        decision = authority.decide(driver, make_booking(), S.ACCEPTED, NOW)

        assert isinstance(decision, TransitionAccepted)
        assert decision.to_status == S.ACCEPTED
        assert decision.changes() == {"status": S.ACCEPTED}

    def test_driver_picked_up_goes_to_pending_confirmation(self, authority, driver, make_booking) -> None:
        """Водитель не может сам завершить забор."""
        decision = authority.decide(driver, make_booking(status=S.ACCEPTED), S.PICKED_UP, NOW)

        assert isinstance(decision, TransitionAccepted)
        assert decision.to_status == S.PICKED_UP_PENDING_CONFIRMATION
        # Время забора ставится только после подтверждения клиента
        assert "actual_pickup_time" not in decision.stamps

    def test_client_confirms_pickup(self, authority, client, make_booking) -> None:
        booking = make_booking(status=S.PICKED_UP_PENDING_CONFIRMATION)

        decision = authority.decide(client, booking, S.PICKED_UP, NOW)

        assert isinstance(decision, TransitionAccepted)
        assert decision.to_status == S.PICKED_UP
        assert decision.stamps == {"actual_pickup_time": NOW}

    @pytest.mark.parametrize("status", [S.PENDING, S.ACCEPTED, S.PICKED_UP, S.AT_WASH, S.WASHING_BAY])
    def test_client_confirm_in_other_status_fails_precondition(
        self, authority, client, make_booking, status
    ) -> None:
        decision = authority.decide(client, make_booking(status=status), S.PICKED_UP, NOW)

        assert isinstance(decision, TransitionRejected)
        assert decision.kind == RejectionKind.PRECONDITION_FAILED
        error = decision.to_error()
        assert isinstance(error, PreconditionFailedError)
        assert error.error_code == "precondition_failed"

    def test_target_outside_role_set_is_invalid(self, authority, client, make_booking) -> None:
        decision = authority.decide(client, make_booking(status=S.AT_WASH), S.WAITING_BAY, NOW)

        assert isinstance(decision, TransitionRejected)
        assert decision.kind == RejectionKind.INVALID_TRANSITION
        assert isinstance(decision.to_error(), InvalidTransitionError)

    def test_role_target_not_on_graph_edge_is_invalid(self, authority, carwash, make_booking) -> None:
        """Мойка не может перескочить из at_wash сразу в washing_bay."""
        decision = authority.decide(carwash, make_booking(status=S.AT_WASH), S.WASHING_BAY, NOW)

        assert isinstance(decision, TransitionRejected)
        assert decision.kind == RejectionKind.INVALID_TRANSITION
        assert decision.details["current_status"] == "at_wash"

    def test_stranger_gets_generic_unauthorized(self, authority, make_booking, new_id) -> None:
        other_driver = Actor(user_id=new_id(), role=UserRole.DRIVER)

        decision = authority.decide(other_driver, make_booking(), S.ACCEPTED, NOW)

        assert isinstance(decision, TransitionRejected)
        error = decision.to_error()
        assert isinstance(error, UnauthorizedError)
        assert error.message == "Not authorized to perform this action"
        assert error.details == {}

    def test_ownership_is_checked_before_role_table(self, authority, make_booking, new_id) -> None:
        """Чужая мойка получает отказ по доступу, а не по таблице ролей."""
        other_wash = Actor(user_id=new_id(), role=UserRole.CARWASH)

        decision = authority.decide(other_wash, make_booking(), S.ACCEPTED, NOW)

        assert decision.kind == RejectionKind.NOT_AUTHORIZED

    def test_carwash_walks_wash_stage(self, authority, carwash, make_booking) -> None:
        booking = make_booking(status=S.WAITING_BAY)

        decision = authority.decide(carwash, booking, S.WASHING_BAY, NOW)

        assert isinstance(decision, TransitionAccepted)
        assert decision.stamps == {"wash_start_time": NOW}

    def test_stamp_is_write_once(self, authority, carwash, make_booking) -> None:
        earlier = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
        booking = make_booking(status=S.WASHING_BAY, wash_complete_time=earlier)

        decision = authority.decide(carwash, booking, S.WASH_COMPLETED, NOW)

        assert isinstance(decision, TransitionAccepted)
        assert "wash_complete_time" not in decision.stamps


class TestDriverClaim:
    """Свободное pickup_delivery бронирование принимает первый водитель."""

    def test_driver_claims_unassigned_booking(self, authority, driver, make_booking) -> None:
        decision = authority.decide(driver, make_booking(driver_id=None), S.ACCEPTED, NOW)

        assert isinstance(decision, TransitionAccepted)
        assert decision.to_status == S.ACCEPTED
        assert decision.changes() == {"status": S.ACCEPTED, "driver_id": driver.user_id}

    def test_claimed_booking_rejects_other_driver(self, authority, make_booking, new_id) -> None:
        other = Actor(user_id=new_id(), role=UserRole.DRIVER)
        claimed = make_booking(status=S.ACCEPTED)

        decision = authority.decide(other, claimed, S.ACCEPTED, NOW)

        assert isinstance(decision, TransitionRejected)
        assert decision.kind == RejectionKind.NOT_AUTHORIZED

    def test_assigned_pending_booking_is_not_open(self, authority, make_booking, new_id) -> None:
        """Водитель, назначенный при создании, не может быть перехвачен."""
        other = Actor(user_id=new_id(), role=UserRole.DRIVER)

        decision = authority.decide(other, make_booking(), S.ACCEPTED, NOW)

        assert isinstance(decision, TransitionRejected)
        assert decision.kind == RejectionKind.NOT_AUTHORIZED

    def test_open_booking_only_accepts_accepted(self, authority, driver, make_booking) -> None:
        decision = authority.decide(driver, make_booking(driver_id=None), S.DECLINED, NOW)

        assert isinstance(decision, TransitionRejected)
        assert decision.kind == RejectionKind.NOT_AUTHORIZED

    def test_client_cannot_claim(self, authority, client, make_booking) -> None:
        decision = authority.decide(client, make_booking(driver_id=None), S.ACCEPTED, NOW)

        assert isinstance(decision, TransitionRejected)
        assert decision.kind == RejectionKind.INVALID_TRANSITION

    def test_open_booking_visibility(self, driver, client, make_booking, new_id) -> None:
        open_booking = make_booking(driver_id=None)

        assert open_booking.is_open_for_drivers
        assert open_booking.is_visible_to(driver)
        assert not open_booking.is_party(driver)
        assert not open_booking.is_visible_to(Actor(user_id=new_id(), role=UserRole.CLIENT))
        assert not make_booking(driver_id=None, status=S.ACCEPTED).is_open_for_drivers


class TestTransitionTableProperty:
    """Для любой пары (статус, цель) результат совпадает с таблицами."""

    @pytest.mark.parametrize("role", [UserRole.CLIENT, UserRole.DRIVER, UserRole.CARWASH])
    def test_only_table_transitions_accepted(self, authority, make_booking, role) -> None:
        graph = TRANSITION_TABLE[BookingType.PICKUP_DELIVERY]
        actor_ids = {
            UserRole.CLIENT: make_booking().client_id,
            UserRole.DRIVER: make_booking().driver_id,
            UserRole.CARWASH: make_booking().car_wash_id,
        }
        actor = Actor(user_id=actor_ids[role], role=role)

        for current, requested in product(BookingStatus, BookingStatus):
            if requested == S.CANCELLED:
                continue
            decision = authority.decide(actor, make_booking(status=current), requested, NOW)
            if isinstance(decision, TransitionAccepted):
                assert requested in ROLE_TARGETS[role]
                assert decision.to_status in graph.get(current, frozenset())
                assert decision.to_status != S.PICKED_UP or role == UserRole.CLIENT


class TestOperator:
    """Тесты операторских переходов."""

    def test_operator_jumps_forward_with_all_stamps(self, authority, admin, make_booking) -> None:
        decision = authority.decide(admin, make_booking(status=S.ACCEPTED), S.WASH_COMPLETED, NOW)

        assert isinstance(decision, TransitionAccepted)
        assert decision.path[0] == S.PICKED_UP_PENDING_CONFIRMATION
        assert decision.to_status == S.WASH_COMPLETED
        assert decision.stamps == {
            "actual_pickup_time": NOW,
            "wash_start_time": NOW,
            "wash_complete_time": NOW,
        }

    def test_operator_cannot_regress(self, authority, admin, make_booking) -> None:
        decision = authority.decide(admin, make_booking(status=S.WASHING_BAY), S.PENDING, NOW)

        assert isinstance(decision, TransitionRejected)
        assert decision.kind == RejectionKind.INVALID_TRANSITION

    def test_subadmin_is_operator(self, authority, make_booking, new_id) -> None:
        subadmin = Actor(user_id=new_id(), role=UserRole.SUBADMIN)

        decision = authority.decide(subadmin, make_booking(), S.ACCEPTED, NOW)

        assert isinstance(decision, TransitionAccepted)


class TestCancellation:
    """Тесты отмены."""

    def test_owner_client_cancels(self, authority, client, make_booking) -> None:
        decision = authority.decide(client, make_booking(status=S.PICKED_UP), S.CANCELLED, NOW)

        assert isinstance(decision, TransitionAccepted)
        assert decision.to_status == S.CANCELLED

    def test_driver_cannot_cancel(self, authority, driver, make_booking) -> None:
        decision = authority.decide_cancel(driver, make_booking(), NOW)

        assert isinstance(decision, TransitionRejected)
        assert decision.kind == RejectionKind.NOT_AUTHORIZED

    @pytest.mark.parametrize(
        "status",
        [S.COMPLETED, S.DELIVERED_TO_CLIENT, S.WASH_COMPLETED, S.DELIVERED, S.CANCELLED],
    )
    def test_finished_booking_cancel_is_conflict(self, authority, admin, make_booking, status) -> None:
        decision = authority.decide_cancel(admin, make_booking(status=status), NOW)

        assert isinstance(decision, TransitionRejected)
        error = decision.to_error()
        assert isinstance(error, ConflictError)
        assert status.value in error.message


class TestWalkTo:
    """Системное продвижение по графу."""

    def test_walk_to_stamps_each_step(self, authority, make_booking) -> None:
        booking = make_booking(status=S.AT_WASH)

        decision = authority.walk_to(booking, S.WASH_COMPLETED, NOW)

        assert isinstance(decision, TransitionAccepted)
        assert decision.path == (S.WAITING_BAY, S.WASHING_BAY, S.WASH_COMPLETED)
        assert set(decision.stamps) == {"wash_start_time", "wash_complete_time"}

    def test_walk_to_passed_status_is_rejected(self, authority, make_booking) -> None:
        decision = authority.walk_to(make_booking(status=S.WASH_COMPLETED), S.WASHING_BAY, NOW)

        assert isinstance(decision, TransitionRejected)
