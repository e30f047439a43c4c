import pytest

from ticket_tool import config
from ticket_tool.models import GroupingMode


@pytest.fixture(autouse=True)
def _default_period_modes(monkeypatch):
    monkeypatch.setattr(config, "APPROVER_PERIOD_MODE", GroupingMode.BI_WEEKLY)
    monkeypatch.setattr(config, "PERIOD_MODE", GroupingMode.MONTHLY)


@pytest.fixture
def snapshot_data() -> dict:
    """Two customers (one approver-driven), February 2026 activity."""
    return {
        "customers": [
            {"id": "C1", "name": "Acme Energy", "regime": "approver", "email": "ap@acme.example"},
            {"id": "C2", "name": "Borealis Mining"},
        ],
        "projects": [
            {"id": "P1", "name": "Compressor Retrofit", "project_number": "25-014", "customer_id": "C1"},
            {"id": "P2", "name": "Mill Controls", "customer_id": "C2"},
        ],
        "employees": [
            {"id": "U1", "first_name": "Jane", "last_name": "Doe"},
            {"id": "U2", "first_name": "Sam", "last_name": "Lee"},
            {"id": "U3", "first_name": "Pat", "last_name": "Kim", "department": "Panel Shop"},
        ],
        "entries": [
            {"id": "E1", "date": "2026-02-10", "hours": 4, "rate_type": "Shop Time",
             "employee_id": "U1", "project_id": "P1"},
            {"id": "E2", "date": "2026-02-10", "hours": 2, "rate_type": "Travel Time",
             "employee_id": "U1", "project_id": "P1"},
            {"id": "E3", "date": "2026-02-11", "hours": 8, "rate_type": "Field Time",
             "user_id": "U2", "project_id": "P2"},
            {"id": "E4", "date": "2026-02-11", "hours": 3, "rate_type": "Shop Time",
             "employee_id": "U3", "project_id": "P2"},
            {"id": "E5", "date": "2026-03-02", "hours": 5, "rate_type": "Shop Time",
             "employee_id": "U1", "project_id": "P1"},
        ],
        "records": [
            {"id": "R1", "ticket_number": "JD_26001", "date": "2026-02-10", "employee_id": "U1",
             "customer_id": "C1", "project_id": "P1", "header_overrides": {"po_afe": "G123"}},
            {"id": "R2", "ticket_number": "SL_26001", "date": "2026-02-11", "user_id": "U2",
             "customer_id": "C2", "project_id": "P2"},
            {"id": "R3", "ticket_number": "JD_26002", "date": "2026-02-12", "employee_id": "U1",
             "customer_id": "C1", "project_id": "P1", "edited_hours": {"Shop Time": 2}},
            {"id": "R4", "ticket_number": "JD_26003", "date": "2026-02-13", "employee_id": "U1",
             "customer_id": "C1", "project_id": "P1", "status": "draft"},
            {"id": "R5", "ticket_number": "JD_26004", "date": "2026-02-14", "employee_id": "U1",
             "customer_id": "C1", "project_id": "P1", "is_discarded": True},
        ],
        "expenses": {
            "R2": [{"quantity": 1, "rate": 50, "expense_type": "Parking", "description": "Site parking"}],
        },
    }
