"""
API tests for leave requests, approvals, HR verification and admin endpoints
"""
from datetime import timedelta

from helpers import LEAVE_YEAR, auth_headers, first_monday

API = "/api/v1"


def _create(client, employee, leave_type, days=3, month=5, **extra):
    start = first_monday(LEAVE_YEAR, month)
    payload = {
        "leave_type_id": leave_type.id,
        "from_date": start.isoformat(),
        "to_date": (start + timedelta(days=days - 1)).isoformat(),
        "reason": "Personal",
    }
    payload.update(extra)
    return client.post(f"{API}/leave-requests", json=payload, headers=auth_headers(employee))


def _pending_level_id(client, approver):
    response = client.get(f"{API}/approvals/pending", headers=auth_headers(approver))
    assert response.status_code == 200
    return response.json()["items"][0]["level"]["id"]


def test_requires_bearer_token(client):
    response = client.get(f"{API}/leave-requests/my")
    assert response.status_code in (401, 403)


def test_create_and_read_leave_request(client, org, annual_leave):
    response = _create(client, org.employee, annual_leave)

    assert response.status_code == 201
    body = response.json()
    lr = body["leave_request"]
    assert lr["status"] == "PENDING"
    assert float(lr["total_days"]) == 3
    assert [lvl["approver_id"] for lvl in lr["approval_levels"]] == [org.manager.id]
    assert body["warnings"] == []

    fetched = client.get(f"{API}/leave-requests/{lr['id']}", headers=auth_headers(org.employee))
    assert fetched.status_code == 200
    assert fetched.json()["request_number"] == lr["request_number"]

    mine = client.get(f"{API}/leave-requests/my", params={"status": "PENDING"}, headers=auth_headers(org.employee))
    assert mine.json()["total"] == 1


def test_create_needs_dates_or_selected_dates(client, org, annual_leave):
    response = client.post(
        f"{API}/leave-requests", json={"leave_type_id": annual_leave.id}, headers=auth_headers(org.employee)
    )
    assert response.status_code == 422
    assert response.json()["kind"] == "validation_error"


def test_insufficient_balance_error_body(client, org, annual_leave):
    response = _create(client, org.employee, annual_leave, days=33)

    assert response.status_code == 400
    body = response.json()
    assert body["kind"] == "insufficient_balance"
    assert body["requested"] == 25.0
    assert body["available"] == 20.0


def test_overlap_error_body(client, org, annual_leave):
    _create(client, org.employee, annual_leave)
    response = _create(client, org.employee, annual_leave, days=1)
    assert response.status_code == 409
    assert response.json()["kind"] == "conflict"


def test_not_found_and_forbidden(client, org, annual_leave):
    missing = client.get(f"{API}/leave-requests/9999", headers=auth_headers(org.employee))
    assert missing.status_code == 404
    assert missing.json()["kind"] == "not_found"

    lr_id = _create(client, org.employee, annual_leave).json()["leave_request"]["id"]
    hidden = client.get(f"{API}/leave-requests/{lr_id}", headers=auth_headers(org.lead))
    assert hidden.status_code == 403
    assert hidden.json()["kind"] == "authorization_error"


def test_approve_flow_updates_balance(client, org, annual_leave):
    _create(client, org.employee, annual_leave)
    level_id = _pending_level_id(client, org.manager)

    response = client.post(
        f"{API}/approvals/{level_id}/decision",
        json={"action": "APPROVE", "comments": "ok", "signature_data": "data:mgr"},
        headers=auth_headers(org.manager),
    )

    assert response.status_code == 200
    assert response.json()["leave_request"]["status"] == "APPROVED"
    balances = client.get(f"{API}/balances/me", params={"year": LEAVE_YEAR}, headers=auth_headers(org.employee))
    item = balances.json()["items"][0]
    assert item["leave_type_code"] == "AL"
    assert (item["used"], item["pending"], item["available"]) == (3.0, 0.0, 17.0)


def test_rejection_requires_comments(client, org, annual_leave):
    _create(client, org.employee, annual_leave)
    level_id = _pending_level_id(client, org.manager)

    response = client.post(
        f"{API}/approvals/{level_id}/decision", json={"action": "REJECT"}, headers=auth_headers(org.manager)
    )
    assert response.status_code == 422


def test_wrong_approver_is_forbidden(client, org, annual_leave):
    _create(client, org.employee, annual_leave)
    level_id = _pending_level_id(client, org.manager)

    response = client.post(
        f"{API}/approvals/{level_id}/decision", json={"action": "APPROVE"}, headers=auth_headers(org.director)
    )
    assert response.status_code == 403


def test_self_cancel_twice(client, org, annual_leave):
    lr_id = _create(client, org.employee, annual_leave).json()["leave_request"]["id"]
    url = f"{API}/leave-requests/{lr_id}/cancel"

    first = client.post(url, json={"reason": "No longer needed"}, headers=auth_headers(org.employee))
    assert first.status_code == 200
    assert first.json()["leave_request"]["status"] == "CANCELLED"
    assert first.json()["message"] == "Leave request cancelled"

    second = client.post(url, headers=auth_headers(org.employee))
    assert second.status_code == 200
    assert second.json()["message"] == "Leave request already cancelled"


def test_admin_cancel(client, org, annual_leave):
    lr_id = _create(client, org.employee, annual_leave).json()["leave_request"]["id"]

    denied = client.post(f"{API}/admin/leave-requests/{lr_id}/cancel", headers=auth_headers(org.manager))
    assert denied.status_code == 403

    response = client.post(
        f"{API}/admin/leave-requests/{lr_id}/cancel", json={"reason": "Duplicate"}, headers=auth_headers(org.admin)
    )
    assert response.status_code == 200
    assert response.json()["leave_request"]["cancelled_by_id"] == org.admin.id


def test_hr_verification_endpoint(client, org, medical_leave):
    lr_id = _create(client, org.employee, medical_leave, days=2).json()["leave_request"]["id"]
    url = f"{API}/hr/leave-requests/{lr_id}/verify-documents"

    denied = client.post(url, json={"approved": True}, headers=auth_headers(org.manager))
    assert denied.status_code == 403

    response = client.post(url, json={"approved": True, "notes": "ok"}, headers=auth_headers(org.hr))
    assert response.status_code == 200
    assert response.json()["leave_request"]["hr_verification_status"] == "VERIFIED"
    assert _pending_level_id(client, org.manager)


def test_signature_requirements_and_document(client, org, annual_leave):
    lr_id = _create(client, org.lead, annual_leave, employee_signature="data:lead").json()["leave_request"]["id"]

    reqs = client.get(f"{API}/leave-requests/{lr_id}/signature-requirements", headers=auth_headers(org.lead))
    assert reqs.status_code == 200
    assert [(i["role"], i["required"], i["signed"]) for i in reqs.json()["items"]] == [
        ("employee", True, True),
        ("manager", True, False),
        ("department_manager", False, False),
    ]

    doc = client.get(f"{API}/leave-requests/{lr_id}/document", headers=auth_headers(org.director))
    assert doc.status_code == 200
    body = doc.json()
    assert body["document_status"] == "DRAFT"
    assert body["employee_code"] == "MG002"
    assert [s["role"] for s in body["signatures"]] == ["employee"]


def test_admin_balances_and_year_end(client, org, annual_leave):
    headers = auth_headers(org.hr)

    init = client.post(
        f"{API}/admin/balances/{org.employee.id}/initialize", json={"year": LEAVE_YEAR}, headers=headers
    )
    assert init.status_code == 200
    assert init.json()["items"][0]["entitled"] == 20.0

    year_end = client.post(f"{API}/admin/balances/year-end", json={"year": LEAVE_YEAR}, headers=headers)
    assert year_end.status_code == 200
    assert year_end.json()["rows_with_carry_forward"] == 1

    nxt = client.get(
        f"{API}/admin/balances/{org.employee.id}", params={"year": LEAVE_YEAR + 1}, headers=headers
    )
    assert nxt.json()["items"][0]["carried_forward"] > 0

    denied = client.post(f"{API}/admin/balances/year-end", json={"year": LEAVE_YEAR}, headers=auth_headers(org.manager))
    assert denied.status_code == 403


def test_admin_regenerate_documents(client, org, annual_leave):
    response = client.post(f"{API}/admin/documents/regenerate", headers=auth_headers(org.admin))
    assert response.status_code == 200
    assert response.json()["processed"] == 0
