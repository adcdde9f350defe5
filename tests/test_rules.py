"""
Unit tests for the pure business rules: priority scoring, SLA tracking,
equipment codes, depreciation and formatting helpers.
"""

from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from app.core.equipment_rules import (
    EquipmentCategory,
    age_in_years,
    calculate_depreciation,
    code_prefix_for,
    is_valid_equipment_code,
    next_equipment_code,
)
from app.core.exceptions import ValidationError
from app.core.formatting import format_cpf, format_file_size, is_valid_cpf, is_valid_email
from app.core.ticket_workflow import TicketPriority, TicketWorkflowEngine, calculate_priority

CREATED = datetime(2026, 3, 2, 9, 0, 0)


@pytest.mark.unit
class TestPriorityScoring:
    """urgency x impact thresholds."""

    @pytest.mark.parametrize(
        "urgency,impact,expected",
        [
            (3, 3, TicketPriority.CRITICAL),
            (2, 3, TicketPriority.HIGH),
            (3, 2, TicketPriority.HIGH),
            (2, 2, TicketPriority.MEDIUM),
            (1, 3, TicketPriority.MEDIUM),
            (1, 2, TicketPriority.LOW),
            (1, 1, TicketPriority.LOW),
        ],
    )
    def test_score_thresholds(self, urgency, impact, expected):
        assert calculate_priority(urgency, impact) == expected

    @pytest.mark.parametrize("urgency,impact", [(0, 2), (4, 1), (2, 5), (True, 2), ("3", 3)])
    def test_out_of_range_rejected(self, urgency, impact):
        with pytest.raises(ValidationError):
            calculate_priority(urgency, impact)


@pytest.mark.unit
class TestSLA:
    """SLA deadlines and breach detection."""

    def setup_method(self):
        self.engine = TicketWorkflowEngine()

    @pytest.mark.parametrize("priority,hours", [("critical", 4), ("high", 24), ("medium", 72), ("low", 168)])
    def test_resolution_deadline(self, priority, hours):
        assert self.engine.calculate_sla_deadline(priority, CREATED) == CREATED + timedelta(hours=hours)

    def test_response_and_resolution_deadlines(self):
        deadlines = self.engine.calculate_sla_deadlines(TicketPriority.HIGH, CREATED)
        assert deadlines["response_deadline"] == CREATED + timedelta(hours=4)
        assert deadlines["resolution_deadline"] == CREATED + timedelta(hours=24)

    def test_unknown_priority_uses_medium(self):
        assert self.engine.calculate_sla_deadline("urgent", CREATED) == CREATED + timedelta(hours=72)

    def test_open_ticket_breach_depends_on_now(self):
        ticket = SimpleNamespace(priority="critical", created_at=CREATED, status="open", resolved_at=None)
        assert not self.engine.is_sla_breached(ticket, CREATED + timedelta(hours=4))
        assert self.engine.is_sla_breached(ticket, CREATED + timedelta(hours=4, seconds=1))

    def test_resolved_ticket_judged_on_resolution_time(self):
        ticket = SimpleNamespace(
            priority="critical", created_at=CREATED, status="resolved", resolved_at=CREATED + timedelta(hours=2)
        )
        assert not self.engine.is_sla_breached(ticket, CREATED + timedelta(days=30))

    def test_status_change_stamps_and_clears_resolved_at(self):
        ticket = SimpleNamespace(status="open", resolved_at=None)
        resolved_time = CREATED + timedelta(hours=1)

        assert self.engine.apply_status_change(ticket, "resolved", resolved_time)
        assert ticket.resolved_at == resolved_time

        # resolved -> closed keeps the first stamp
        assert self.engine.apply_status_change(ticket, "closed", resolved_time + timedelta(hours=5))
        assert ticket.resolved_at == resolved_time

        assert self.engine.apply_status_change(ticket, "in_progress", resolved_time + timedelta(hours=6))
        assert ticket.resolved_at is None

    def test_same_status_is_not_a_change(self):
        ticket = SimpleNamespace(status="open", resolved_at=None)
        assert self.engine.apply_status_change(ticket, "open", CREATED) is False


@pytest.mark.unit
class TestEquipmentCodes:
    """Internal code format and generation."""

    @pytest.mark.parametrize("code", ["NB-001", "MS-042", "KB-1000"])
    def test_valid_codes(self, code):
        assert is_valid_equipment_code(code)

    @pytest.mark.parametrize("code", ["nb-001", "NB-01", "NB001", "NBX-001", "", None])
    def test_invalid_codes(self, code):
        assert not is_valid_equipment_code(code)

    def test_next_code_skips_other_prefixes_and_malformed(self):
        existing = ["NB-001", "NB-009", "MS-020", "NB-abc"]
        assert next_equipment_code("NB", existing) == "NB-010"

    def test_first_code(self):
        assert next_equipment_code("MS", []) == "MS-001"

    def test_code_grows_past_three_digits(self):
        assert next_equipment_code("NB", ["NB-999"]) == "NB-1000"

    @pytest.mark.parametrize(
        "category,type_,prefix",
        [
            (EquipmentCategory.NOTEBOOK, "Notebook", "NB"),
            (EquipmentCategory.PERIPHERAL, "Mouse óptico", "MS"),
            (EquipmentCategory.PERIPHERAL, "Teclado USB", "KB"),
            (EquipmentCategory.PERIPHERAL, "Monitor 24", "MN"),
            (EquipmentCategory.PERIPHERAL, "Cabo HDMI", "PR"),
            ("OTHER", None, "EQ"),
        ],
    )
    def test_prefix_for_category_and_type(self, category, type_, prefix):
        assert code_prefix_for(category, type_) == prefix


@pytest.mark.unit
class TestDepreciation:
    """Linear depreciation floored at zero."""

    @pytest.mark.parametrize(
        "value,age,expected",
        [(5000, 0, 5000.0), (5000, 1, 4000.0), (1000, 2.5, 500.0), (5000, 5, 0.0), (5000, 6, 0.0)],
    )
    def test_book_value(self, value, age, expected):
        assert calculate_depreciation(value, age) == expected

    def test_custom_useful_life(self):
        assert calculate_depreciation(3000, 1, useful_life_years=3) == 2000.0

    def test_invalid_useful_life(self):
        with pytest.raises(ValueError):
            calculate_depreciation(1000, 1, useful_life_years=0)

    def test_age_in_years(self):
        assert age_in_years(date(2024, 1, 1), date(2024, 1, 1)) == 0
        assert round(age_in_years(date(2020, 1, 1), date(2024, 1, 1)), 2) == 4.0
        assert age_in_years(date(2025, 1, 1), date(2024, 1, 1)) == 0


@pytest.mark.unit
class TestFormatting:
    """Email, CPF and file size helpers."""

    @pytest.mark.parametrize("email", ["maria@empresa.com.br", "a@b.co"])
    def test_valid_emails(self, email):
        assert is_valid_email(email)

    @pytest.mark.parametrize("email", ["", None, "a@b", "maria empresa@x.com", "@x.com"])
    def test_invalid_emails(self, email):
        assert not is_valid_email(email)

    def test_cpf_validation(self):
        assert is_valid_cpf("123.456.789-01")
        assert is_valid_cpf("12345678901")
        assert not is_valid_cpf("11111111111")
        assert not is_valid_cpf("1234567890")
        assert not is_valid_cpf(None)

    def test_cpf_format(self):
        assert format_cpf("12345678901") == "123.456.789-01"
        with pytest.raises(ValueError):
            format_cpf("123")

    @pytest.mark.parametrize(
        "size,expected",
        [(0, "0 B"), (1023, "1023 B"), (1024, "1.0 KB"), (1536, "1.5 KB"), (1024 * 1024, "1.0 MB")],
    )
    def test_file_size(self, size, expected):
        assert format_file_size(size) == expected

    def test_negative_file_size(self):
        with pytest.raises(ValueError):
            format_file_size(-1)
