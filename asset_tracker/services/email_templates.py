"""Borrower email templates.

Each message has an HTML body and a plain-text alternative. The HTML side is
autoescaped because borrower names and PC names are user-entered.
"""

from __future__ import annotations

from typing import Any

from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape

SIGNATURE_HTML = "<p>Best regards,<br>IT Department</p>"
SIGNATURE_TEXT = "Best regards,\nIT Department"

TEMPLATES = {
    "borrow_confirmation.html": """
<h2>Equipment Borrow Confirmation</h2>
<p>Dear {{ borrower_name }},</p>
<p>Your equipment borrow request has been confirmed:</p>
<ul>
  <li><strong>Equipment:</strong> {{ equipment_name }}</li>
  <li><strong>PC Name:</strong> {{ pc_name }}</li>
  <li><strong>Borrow Date:</strong> {{ borrow_date }}</li>
  <li><strong>Expected Return:</strong> {{ expected_return_date }}</li>
</ul>
<p>Please ensure to return the equipment on time.</p>
""" + SIGNATURE_HTML,
    "borrow_confirmation.txt": """Equipment Borrow Confirmation

Dear {{ borrower_name }},

Your equipment borrow request has been confirmed.
Equipment: {{ equipment_name }}
PC Name: {{ pc_name }}
Borrow Date: {{ borrow_date }}
Expected Return: {{ expected_return_date }}

Please ensure to return the equipment on time.

""" + SIGNATURE_TEXT,
    "return_reminder.html": """
<h2>Equipment Return Reminder</h2>
<p>Dear {{ borrower_name }},</p>
<p>This is a reminder that the following equipment is due for return:</p>
<ul>
  <li><strong>Equipment:</strong> {{ equipment_name }}</li>
  <li><strong>PC Name:</strong> {{ pc_name }}</li>
  <li><strong>Due Date:</strong> {{ expected_return_date }}</li>
</ul>
<p>Please return the equipment to the IT department.</p>
""" + SIGNATURE_HTML,
    "return_reminder.txt": """Equipment Return Reminder

Dear {{ borrower_name }},

This is a reminder that the following equipment is due for return.
Equipment: {{ equipment_name }}
PC Name: {{ pc_name }}
Due Date: {{ expected_return_date }}

Please return the equipment to the IT department.

""" + SIGNATURE_TEXT,
    "return_confirmation.html": """
<h2>Equipment Return Confirmation</h2>
<p>Dear {{ borrower_name }},</p>
<p>We confirm that the following equipment has been returned:</p>
<ul>
  <li><strong>Equipment:</strong> {{ equipment_name }}</li>
  <li><strong>PC Name:</strong> {{ pc_name }}</li>
  <li><strong>Return Date:</strong> {{ return_date }}</li>
</ul>
<p>Thank you for returning the equipment.</p>
""" + SIGNATURE_HTML,
    "return_confirmation.txt": """Equipment Return Confirmation

Dear {{ borrower_name }},

We confirm that the following equipment has been returned.
Equipment: {{ equipment_name }}
PC Name: {{ pc_name }}
Return Date: {{ return_date }}

Thank you for returning the equipment.

""" + SIGNATURE_TEXT,
}

SUBJECTS = {
    "borrow_confirmation": "Equipment Borrow Confirmation",
    "return_reminder": "Equipment Return Reminder",
    "return_confirmation": "Equipment Return Confirmation",
}

_env = Environment(
    loader=DictLoader(TEMPLATES),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    undefined=StrictUndefined,
    keep_trailing_newline=False,
)


def render(name: str, context: dict[str, Any]) -> tuple[str, str, str]:
    """Return ``(subject, html, text)`` for template ``name``."""

    if name not in SUBJECTS:
        raise KeyError(f"Unknown email template: {name}")
    html = _env.get_template(f"{name}.html").render(**context).strip()
    text = _env.get_template(f"{name}.txt").render(**context).strip()
    return SUBJECTS[name], html, text
