"""
API tests - Kiểm tra các endpoint qua FastAPI TestClient.
"""

from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from ledger_integrity.main import create_app

ACCOUNTANT = {"X-Actor-Id": "u-ketoan", "X-Actor-Name": quote("Nguyễn Văn Kế"), "X-Actor-Role": "ACCOUNTANT"}
CHIEF = {"X-Actor-Id": "u-ktt", "X-Actor-Name": quote("Trần Thị Trưởng"), "X-Actor-Role": "CHIEF_ACCOUNTANT"}
ADMIN = {"X-Actor-Id": "u-admin", "X-Actor-Name": quote("Lê Quản Trị"), "X-Actor-Role": "ADMIN"}

BALANCED_LINES = [
    {"account_code": "1111", "debit_amount": 11000000, "description": "Thu tiền mặt"},
    {"account_code": "5111", "credit_amount": 10000000, "description": "Doanh thu bán hàng"},
    {"account_code": "33311", "credit_amount": 1000000, "description": "Thuế GTGT đầu ra"},
]
UNBALANCED_LINES = [
    {"account_code": "1111", "debit_amount": 1000000},
    {"account_code": "5111", "credit_amount": 900000},
]


@pytest.fixture
def client(service):
    return TestClient(create_app(service))


@pytest.fixture
def voucher(client):
    response = client.post(
        "/api/v1/documents",
        json={
            "document_type": "VOUCHER",
            "document_date": "2025-01-15",
            "description": "Thu tiền bán hàng Công ty ABC",
            "lines": BALANCED_LINES,
        },
        headers=ACCOUNTANT,
    )
    assert response.status_code == 201
    return response.json()


def transition(client, document_id, action, headers=ACCOUNTANT, **body):
    return client.post(
        f"/api/v1/documents/{document_id}/transitions",
        json={"action": action, **body},
        headers=headers,
    )


class TestMeta:

    def test_root(self, client):
        assert client.get("/").json()["regulation"] == "Thông tư 99/2025/TT-BTC"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_module_level_app(self):
        from ledger_integrity import main

        assert main.app.state.ledger_service is not None


class TestValidateEndpoint:

    def test_balanced(self, client):
        response = client.post("/api/v1/ledger/validate", json={"lines": BALANCED_LINES})
        data = response.json()
        assert response.status_code == 200
        assert data["is_valid"] is True
        assert data["errors"] == []

    def test_unbalanced(self, client):
        data = client.post("/api/v1/ledger/validate", json={"lines": UNBALANCED_LINES}).json()
        assert data["is_valid"] is False
        assert data["errors"][0]["code"] == "UNBALANCED"
        assert data["difference"] == "100000"

    def test_negative_amount_rejected_by_schema(self, client):
        response = client.post(
            "/api/v1/ledger/validate",
            json={"lines": [{"account_code": "1111", "debit_amount": -5}]},
        )
        assert response.status_code == 422


class TestDocumentEndpoints:

    def test_create(self, voucher):
        assert voucher["document_number"] == "CT202501001"
        assert voucher["status"] == "DRAFT"
        assert voucher["period"] == "2025-01"
        assert voucher["total_debit"] == "11000000"
        assert voucher["version"] == 1

    def test_create_requires_actor(self, client):
        response = client.post(
            "/api/v1/documents",
            json={"document_type": "VOUCHER", "document_date": "2025-01-15", "description": "x"},
        )
        assert response.status_code == 422

    def test_get_and_list(self, client, voucher):
        assert client.get(f"/api/v1/documents/{voucher['id']}").json()["id"] == voucher["id"]
        assert len(client.get("/api/v1/documents", params={"period": "2025-01"}).json()) == 1
        assert client.get("/api/v1/documents", params={"status": "POSTED"}).json() == []

    def test_unknown_document(self, client):
        response = client.get("/api/v1/documents/missing")
        assert response.status_code == 404
        assert response.json()["code"] == "DOCUMENT_NOT_FOUND"

    def test_post_and_cancel(self, client, voucher):
        posted = transition(client, voucher["id"], "post")
        assert posted.status_code == 200
        assert posted.json()["status"] == "POSTED"

        missing_reason = transition(client, voucher["id"], "CANCEL", reason="  ")
        assert missing_reason.status_code == 400
        assert missing_reason.json()["code"] == "REASON_REQUIRED"

        cancelled = transition(client, voucher["id"], "CANCEL", reason="Trùng chứng từ")
        assert cancelled.json()["status"] == "CANCELLED"
        assert cancelled.json()["cancel_reason"] == "Trùng chứng từ"

        repost = transition(client, voucher["id"], "POST")
        assert repost.status_code == 409
        assert repost.json()["code"] == "INVALID_TRANSITION"

    def test_unbalanced_post_rejected(self, client):
        created = client.post(
            "/api/v1/documents",
            json={
                "document_type": "VOUCHER",
                "document_date": "2025-01-20",
                "description": "Lệch",
                "lines": UNBALANCED_LINES,
            },
            headers=ACCOUNTANT,
        ).json()
        response = transition(client, created["id"], "POST")
        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "UNBALANCED"
        assert body["imbalance"] == "100000"

    def test_update_draft(self, client, voucher):
        response = client.patch(
            f"/api/v1/documents/{voucher['id']}",
            json={"description": "Thu tiền bán hàng (sửa)", "expected_version": 1},
            headers=ACCOUNTANT,
        )
        assert response.status_code == 200
        assert response.json()["version"] == 2

        stale = client.patch(
            f"/api/v1/documents/{voucher['id']}",
            json={"description": "Sửa lần nữa", "expected_version": 1},
            headers=ACCOUNTANT,
        )
        assert stale.status_code == 409
        assert stale.json()["code"] == "CONCURRENT_MODIFICATION"

    def test_posted_not_editable(self, client, voucher):
        transition(client, voucher["id"], "POST")
        response = client.patch(
            f"/api/v1/documents/{voucher['id']}", json={"description": "Sửa"}, headers=ACCOUNTANT,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "NOT_EDITABLE"

    def test_history(self, client, voucher):
        transition(client, voucher["id"], "POST")
        history = client.get(f"/api/v1/documents/{voucher['id']}/history").json()
        assert [r["action"] for r in history] == ["CREATE", "POST"]
        assert history[1]["changes"][0]["field"] == "status"
        assert history[1]["changes"][0]["new_value"] == "POSTED"

    def test_payroll_generated_lines(self, client):
        response = client.post(
            "/api/v1/documents",
            json={
                "document_type": "PAYROLL",
                "document_date": "2025-01-31",
                "description": "Bảng lương tháng 1",
                "employees": [
                    {"employee_code": "NV001", "employee_name": "Phạm Văn A",
                     "insurance_salary": 10000000, "gross_salary": 20000000, "dependents": 1},
                ],
            },
            headers=ACCOUNTANT,
        )
        data = response.json()
        assert data["document_number"] == "BL-202501"
        assert data["total_debit"] == data["total_credit"]
        overdue = client.get("/api/v1/documents/overdue", params={"as_of": "2025-03-01"}).json()
        assert [d["id"] for d in overdue] == [data["id"]]


class TestPeriodEndpoints:

    def test_lock_flow(self, client, voucher):
        checklist = client.get("/api/v1/periods/2025-01/checklist").json()
        assert checklist["can_lock"] is True

        denied = client.post("/api/v1/periods/2025-01/lock", headers=ACCOUNTANT)
        assert denied.status_code == 403

        locked = client.post("/api/v1/periods/2025-01/lock", headers=CHIEF)
        assert locked.status_code == 200
        assert locked.json()["is_locked"] is True
        assert locked.json()["status"] == "LOCKED"

        blocked = transition(client, voucher["id"], "POST")
        assert blocked.status_code == 409
        assert blocked.json()["code"] == "PERIOD_LOCKED"

        adjusted = transition(client, voucher["id"], "ADJUST", headers=CHIEF, reason="Bổ sung sau khóa sổ")
        assert adjusted.json()["status"] == "POSTED"

        short = client.post("/api/v1/periods/2025-01/unlock", json={"reason": "ngắn"}, headers=ADMIN)
        assert short.status_code == 400
        unlocked = client.post(
            "/api/v1/periods/2025-01/unlock",
            json={"reason": "Kiểm toán yêu cầu điều chỉnh số liệu"},
            headers=ADMIN,
        )
        assert unlocked.json()["status"] == "OPEN"
        assert [p["period"] for p in client.get("/api/v1/periods").json()] == ["2025-01"]

    def test_lock_twice_conflict(self, client):
        client.post("/api/v1/periods/2025-01/lock", headers=CHIEF)
        response = client.post("/api/v1/periods/2025-01/lock", headers=CHIEF)
        assert response.status_code == 409
        assert response.json()["code"] == "PERIOD_LOCK_REJECTED"

    def test_invalid_period(self, client):
        response = client.get("/api/v1/periods/01-2025")
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_open_period_by_default(self, client):
        data = client.get("/api/v1/periods/2025-Q2").json()
        assert data["period"] == "2025-Q2"
        assert data["is_locked"] is False


class TestAuditEndpoints:

    def test_query_and_get(self, client, voucher):
        transition(client, voucher["id"], "POST")
        page = client.get("/api/v1/audit-logs", params={"entity_id": voucher["id"]}).json()
        assert page["total_items"] == 2
        assert [r["action"] for r in page["records"]] == ["POST", "CREATE"]
        assert page["summary"]["by_action"] == {"CREATE": 1, "POST": 1}

        record_id = page["records"][1]["id"]
        record = client.get(f"/api/v1/audit-logs/{record_id}").json()
        assert record["before"] is None
        assert record["after"]["status"] == "DRAFT"

    def test_filter_by_action(self, client, voucher):
        transition(client, voucher["id"], "POST")
        page = client.get("/api/v1/audit-logs", params={"action": "POST"}).json()
        assert page["total_items"] == 1

    def test_correction(self, client, voucher):
        record_id = client.get("/api/v1/audit-logs").json()["records"][0]["id"]
        response = client.post(
            f"/api/v1/audit-logs/{record_id}/corrections",
            json={"reason": "Ghi nhầm người lập"},
            headers=CHIEF,
        )
        assert response.status_code == 201
        assert response.json()["corrects_record_id"] == record_id

    def test_vietnamese_actor_name_decoded(self, client, voucher):
        record = client.get("/api/v1/audit-logs").json()["records"][0]
        assert record["actor_name"] == "Nguyễn Văn Kế"
        assert record["actor_id"] == "u-ketoan"

    def test_naive_time_bounds_treated_as_utc(self, client, voucher):
        response = client.get("/api/v1/audit-logs", params={"from_time": "2025-01-01T00:00:00"})
        assert response.status_code == 200
        assert response.json()["total_items"] == 1
        later = client.get("/api/v1/audit-logs", params={"from_time": "2025-01-01T16:00:00+07:00"})
        assert later.json()["total_items"] == 0

    def test_period_filter_covers_quarter(self, client, voucher):
        assert client.get("/api/v1/audit-logs", params={"period": "2025-Q1"}).json()["total_items"] == 1
        assert client.get("/api/v1/audit-logs", params={"period": "2025-Q2"}).json()["total_items"] == 0
        invalid = client.get("/api/v1/audit-logs", params={"period": "Q1-2025"})
        assert invalid.status_code == 400

    def test_unknown_record(self, client):
        response = client.get("/api/v1/audit-logs/missing")
        assert response.status_code == 404
        assert response.json()["code"] == "AUDIT_RECORD_NOT_FOUND"


class TestReportEndpoints:

    def test_summary_counts_posted_only(self, client, voucher):
        before = client.get("/api/v1/reports/summary", params={"period": "2025-01"}).json()
        assert before["posted_count"] == 0
        assert before["total_debit"] == "0"

        transition(client, voucher["id"], "POST")
        after = client.get("/api/v1/reports/summary", params={"period": "2025-01"}).json()
        assert after["posted_count"] == 1
        assert after["total_debit"] == "11000000"
        assert after["is_balanced"] is True
        assert after["period"] == "2025-01"
