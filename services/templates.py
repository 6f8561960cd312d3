"""Message templates for customer notifications.

``render_template`` is a pure function of the template kind, the structured
data and the locale settings; it performs no I/O and can be tested per kind.
Dates and amounts are formatted according to ``LocaleSettings.locale``.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Mapping, Optional

from core.settings import LOCALE, LocaleSettings
from datetime_utils import parse_day
from services.errors import ValidationFailure


def _group_digits(digits: str, indian: bool) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    size = 2 if indian else 3
    groups = []
    while head:
        groups.insert(0, head[-size:])
        head = head[:-size]
    return ",".join(groups + [tail])


def format_amount(value: Any, locale: str = LOCALE.locale) -> str:
    """Format a number with locale digit grouping (``1,23,456`` for ``*-IN``)."""
    try:
        number = Decimal(str(value if value not in (None, "") else 0))
    except InvalidOperation:
        return str(value)
    negative = number < 0
    number = abs(number)
    if number == number.to_integral_value():
        whole, fraction = str(int(number)), ""
    else:
        whole, fraction = f"{number:.2f}".split(".")
        fraction = "." + fraction
    text = _group_digits(whole, indian=locale.upper().endswith("-IN")) + fraction
    return f"-{text}" if negative else text


def format_currency(value: Any, settings: LocaleSettings = LOCALE) -> str:
    return f"{settings.currency_symbol}{format_amount(value, settings.locale)}"


def format_date(value: Any, locale: str = LOCALE.locale) -> str:
    """Short numeric date: ``20/3/2024`` for Indian locales, ``3/20/2024`` for en-US."""
    if isinstance(value, (date, datetime)):
        day = value.date() if isinstance(value, datetime) else value
    else:
        day = parse_day(value)
    if day is None:
        return "" if value is None else str(value)
    tag = locale.upper()
    if tag == "EN-US":
        return f"{day.month}/{day.day}/{day.year}"
    if tag.endswith("-IN") or tag.endswith("-GB"):
        return f"{day.day}/{day.month}/{day.year}"
    return day.isoformat()


class _Formatter:
    def __init__(self, data: Mapping[str, Any], settings: LocaleSettings) -> None:
        self.data = data
        self.settings = settings

    def text(self, key: str, default: str = "") -> str:
        value = self.data.get(key)
        return default if value in (None, "") else str(value)

    def money(self, key: str) -> str:
        return format_currency(self.data.get(key) or 0, self.settings)

    def day(self, key: str, default: str = "") -> str:
        value = self.data.get(key)
        return default if value in (None, "") else format_date(value, self.settings.locale)

    @property
    def footer(self) -> str:
        return f"*{self.settings.company_name}*"


def _welcome(f: _Formatter) -> str:
    return f"""🎉 *स्वागत है {f.settings.company_name} में!*

प्रिय {f.text('customer_name')},

आपका पंजीकरण सफल हो गया है।

📋 *विवरण:*
• ग्राहक ID: {f.text('customer_id')}
• फोन: {f.text('phone')}
• पंजीकरण तिथि: {f.day('registration_date')}

हमारी सेवाओं के लिए धन्यवाद!

{f.footer}
📞 सहायता: {f.settings.support_phone}"""


def _loan_approved(f: _Formatter) -> str:
    return f"""🎉 *लोन अप्रूवल सूचना*

प्रिय {f.text('customer_name')},

बधाई हो! आपका लोन आवेदन अप्रूव हो गया है।

📋 *लोन विवरण:*
• लोन ID: {f.text('loan_id')}
• राशि: {f.money('amount')}
• अवधि: {f.text('tenure')} महीने
• ब्याज दर: {f.text('interest_rate')}%
• EMI राशि: {f.money('emi_amount')}
• पहली EMI: {f.day('first_emi_date', 'जल्द ही सूचित किया जाएगा')}

जल्द ही हमारे प्रतिनिधि आपसे संपर्क करेंगे।

{f.footer}"""


def _emi_reminder(f: _Formatter) -> str:
    return f"""⏰ *EMI रिमाइंडर*

प्रिय {f.text('customer_name')},

आपकी EMI का भुगतान देय है:

📋 *EMI विवरण:*
• लोन ID: {f.text('loan_id')}
• EMI संख्या: {f.text('emi_number')}
• राशि: {f.money('amount')}
• देय तिथि: {f.day('due_date')}
• दिन बचे: {f.text('days_remaining', '0')}

कृपया समय पर भुगतान करें।

💳 *भुगतान विकल्प:*
• नकद भुगतान
• ऑनलाइन ट्रांसफर
• चेक/DD

{f.footer}
📞 संपर्क: {f.settings.support_phone}"""


def _emi_overdue(f: _Formatter) -> str:
    return f"""🚨 *EMI अतिदेय सूचना*

प्रिय {f.text('customer_name')},

आपकी EMI का भुगतान अतिदेय है:

📋 *विवरण:*
• लोन ID: {f.text('loan_id')}
• EMI संख्या: {f.text('emi_number')}
• राशि: {f.money('amount')}
• देय तिथि: {f.day('due_date')}
• अतिदेय दिन: {f.text('overdue_days', '0')}
• विलंब शुल्क: {f.money('late_fee')}

कृपया तुरंत भुगतान करें।

{f.footer}
📞 तत्काल संपर्क: {f.settings.support_phone}"""


def _emi_paid(f: _Formatter) -> str:
    return f"""✅ *EMI भुगतान पुष्टि*

प्रिय {f.text('customer_name')},

आपका EMI भुगतान सफलतापूर्वक प्राप्त हुआ!

📋 *भुगतान विवरण:*
• रसीद संख्या: {f.text('receipt_number')}
• राशि: {f.money('amount')}
• भुगतान तिथि: {f.day('paid_date')}
• भुगतान माध्यम: {f.text('payment_mode', 'नकद')}

🗓️ *अगली EMI:*
• तिथि: {f.day('next_emi_date', 'पूर्ण')}
• राशि: {f.money('next_emi_amount')}

धन्यवाद!
{f.footer}"""


def _loan_closure(f: _Formatter) -> str:
    return f"""🎊 *लोन समापन सूचना*

प्रिय {f.text('customer_name')},

बधाई हो! आपका लोन सफलतापूर्वक बंद हो गया है।

📋 *समापन विवरण:*
• लोन ID: {f.text('loan_id')}
• कुल राशि: {f.money('total_amount')}
• भुगतान की गई राशि: {f.money('paid_amount')}
• समापन तिथि: {f.day('closure_date')}

आपके साथ व्यापार करके खुशी हुई।

{f.footer}
📞 भविष्य की सेवाओं के लिए: {f.settings.support_phone}"""


def _birthday_wish(f: _Formatter) -> str:
    return f"""🎂 *जन्मदिन की शुभकामनाएं!*

प्रिय {f.text('customer_name')},

आपको जन्मदिन की हार्दिक शुभकामनाएं!

🎉 इस खुशी के मौके पर {f.settings.company_name} परिवार की ओर से ढेर सारी शुभकामनाएं।

आपका आने वाला साल खुशियों से भरा हो!

{f.footer}"""


def _festival_greetings(f: _Formatter) -> str:
    return f"""🪔 *त्योहार की शुभकामनाएं!*

प्रिय {f.text('customer_name')},

{f.text('festival')} की हार्दिक शुभकामनाएं!

🎊 {f.settings.company_name} परिवार की ओर से आपको और आपके परिवार को त्योहार की ढेर सारी शुभकामनाएं।

खुशियों से भरा हो आपका जीवन!

{f.footer}"""


TEMPLATES: Dict[str, Callable[[_Formatter], str]] = {
    "welcome": _welcome,
    "loan_approved": _loan_approved,
    "emi_reminder": _emi_reminder,
    "emi_overdue": _emi_overdue,
    "emi_paid": _emi_paid,
    "loan_closure": _loan_closure,
    "birthday_wish": _birthday_wish,
    "festival_greetings": _festival_greetings,
}


def render_template(
    kind: str,
    data: Mapping[str, Any],
    settings: Optional[LocaleSettings] = None,
) -> str:
    builder = TEMPLATES.get(kind)
    if builder is None:
        raise ValidationFailure(f"Unknown template: {kind}")
    return builder(_Formatter(data, settings or LOCALE))


__all__ = [
    "TEMPLATES",
    "format_amount",
    "format_currency",
    "format_date",
    "render_template",
]
