from datetime import date

import pytest

from core.settings import LocaleSettings
from services.errors import ValidationFailure
from services.templates import TEMPLATES, format_amount, format_currency, format_date, render_template


def test_format_amount_indian_and_western_grouping():
    assert format_amount(4454, "hi-IN") == "4,454"
    assert format_amount(123456, "hi-IN") == "1,23,456"
    assert format_amount(12345678.5, "en-IN") == "1,23,45,678.50"
    assert format_amount(1234567, "en-US") == "1,234,567"
    assert format_amount(-75000, "hi-IN") == "-75,000"
    assert format_amount(None, "hi-IN") == "0"
    assert format_amount("n/a", "hi-IN") == "n/a"


def test_format_currency_uses_locale_symbol():
    assert format_currency(50000) == "₹50,000"
    assert format_currency(1000, LocaleSettings(locale="en-US", currency_symbol="$")) == "$1,000"


def test_format_date_per_locale():
    day = date(2024, 3, 20)
    assert format_date(day, "hi-IN") == "20/3/2024"
    assert format_date("2024-03-20T09:00:00", "en-US") == "3/20/2024"
    assert format_date(day, "de-DE") == "2024-03-20"
    assert format_date("soon", "hi-IN") == "soon"


def test_emi_reminder_renders_formatted_fields():
    body = render_template(
        "emi_reminder",
        {
            "customer_name": "राहुल शर्मा",
            "loan_id": "L001",
            "emi_number": 2,
            "amount": 4454,
            "due_date": "2024-03-20",
            "days_remaining": 1,
        },
    )

    assert "प्रिय राहुल शर्मा," in body
    assert "• राशि: ₹4,454" in body
    assert "• देय तिथि: 20/3/2024" in body
    assert "• दिन बचे: 1" in body
    assert body.rstrip().endswith("📞 संपर्क: +91-XXXXXXXXXX")


def test_emi_overdue_includes_late_fee():
    body = render_template(
        "emi_overdue",
        {"customer_name": "Amit", "loan_id": "L003", "amount": 4707, "overdue_days": 5, "late_fee": 250},
    )
    assert "• अतिदेय दिन: 5" in body
    assert "• विलंब शुल्क: ₹250" in body


def test_optional_fields_fall_back_to_defaults():
    approved = render_template("loan_approved", {"customer_name": "Priya", "amount": 75000, "emi_amount": 4722})
    assert "• पहली EMI: जल्द ही सूचित किया जाएगा" in approved

    paid = render_template("emi_paid", {"customer_name": "Priya", "amount": 4722})
    assert "• तिथि: पूर्ण" in paid
    assert "• भुगतान माध्यम: नकद" in paid


@pytest.mark.parametrize("kind", sorted(TEMPLATES))
def test_every_template_names_customer_and_company(kind):
    settings = LocaleSettings(company_name="ACME FINANCE")
    data = {"customer_name": "Test Customer", "festival": "दिवाली"}

    body = render_template(kind, data, settings)

    assert "Test Customer" in body
    assert "ACME FINANCE" in body
    assert render_template(kind, data, settings) == body


def test_unknown_template_is_a_validation_failure():
    with pytest.raises(ValidationFailure):
        render_template("promo", {})
