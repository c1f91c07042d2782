"""Routers package."""

from . import (
    health,
    auth,
    admin_auth,
    dashboard,
    pricing,
    payments,
    questions,
    worker,
    content,
    contact,
    cron,
    admin_billing,
    admin_questions,
    admin_content,
    admin_people,
)
