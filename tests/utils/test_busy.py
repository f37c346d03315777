"""Tests for utils/busy.py - one in-flight mutation per record."""

import pytest

from utils.busy import BusyGuard, OperationInProgressError


class TestBusyGuard:
    """Busy-flag discipline: reject, don't queue."""

    def test_marks_key_busy_inside_block(self):
        guard = BusyGuard()
        with guard.hold(("agendamento", 1)):
            assert guard.is_busy(("agendamento", 1))
        assert not guard.is_busy(("agendamento", 1))

    def test_second_hold_on_same_key_rejected(self):
        guard = BusyGuard()
        with guard.hold(("agendamento", 1)):
            with pytest.raises(OperationInProgressError) as exc:
                with guard.hold(("agendamento", 1)):
                    pass
        assert exc.value.key == ("agendamento", 1)

    def test_other_keys_unaffected(self):
        guard = BusyGuard()
        with guard.hold(("agendamento", 1)):
            with guard.hold(("agendamento", 2)):
                assert guard.is_busy(("agendamento", 2))
            with guard.hold(("encaixe", 1)):
                pass

    def test_released_after_error(self):
        guard = BusyGuard()
        with pytest.raises(ValueError):
            with guard.hold("k"):
                raise ValueError("backend said no")
        with guard.hold("k"):
            pass
