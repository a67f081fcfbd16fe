from fastapi import status

STRUCTURE = {
    "basic": 30000,
    "hra": 12000,
    "medical_allowance": 2000,
    "provident_fund": 3600,
    "professional_tax": 200,
}


def _create(client, headers, employee_id, month=3, year=2025, **extra):
    payload = {
        "employee_id": employee_id,
        "month": month,
        "year": year,
        "structure": STRUCTURE,
        "working_days": 30,
        "present_days": 30,
    }
    payload.update(extra)
    return client.post("/api/salaries", headers=headers, json=payload)


def test_hr_creates_salary(client, employee, hr_user, auth_headers):
    response = _create(client, auth_headers(hr_user), employee.id)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["gross_salary"] == 44000
    assert data["total_deductions"] == 3800
    assert data["net_salary"] == 40200
    assert data["created_by"] == hr_user.id


def test_employee_cannot_create_salary(client, employee, auth_headers):
    response = _create(client, auth_headers(employee), employee.id)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_duplicate_salary_is_bad_request(client, employee, hr_user, auth_headers):
    _create(client, auth_headers(hr_user), employee.id)
    response = _create(client, auth_headers(hr_user), employee.id)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["errors"][0]["msg"] == "Salary for 3/2025 already exists"


def test_invalid_month_is_validation_error(client, employee, hr_user, auth_headers):
    response = _create(client, auth_headers(hr_user), employee.id, month=13)
    assert response.status_code == 422


def test_salary_visibility(client, employee, make_user, hr_user, auth_headers):
    other = make_user()
    salary = _create(client, auth_headers(hr_user), employee.id).json()

    assert client.get(f"/api/salaries/{salary['id']}", headers=auth_headers(employee)).status_code == 200
    assert client.get(f"/api/salaries/{salary['id']}", headers=auth_headers(other)).status_code == 403
    assert client.get(f"/api/salaries/{salary['id']}", headers=auth_headers(hr_user)).status_code == 200

    mine = client.get("/api/salaries/me", headers=auth_headers(employee)).json()
    assert mine["pagination"]["total"] == 1
    assert client.get("/api/salaries/me", headers=auth_headers(other)).json()["pagination"]["total"] == 0


def test_pay_then_locked(client, employee, hr_user, admin_user, auth_headers):
    salary = _create(client, auth_headers(hr_user), employee.id).json()

    response = client.post(
        f"/api/salaries/{salary['id']}/pay",
        headers=auth_headers(hr_user),
        json={"payment_method": "bank-transfer", "transaction_id": "TXN-42"},
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "paid"

    response = client.patch(
        f"/api/salaries/{salary['id']}", headers=auth_headers(hr_user), json={"remarks": "adjust"}
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = client.delete(f"/api/salaries/{salary['id']}", headers=auth_headers(admin_user))
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_only_admin_deletes(client, employee, hr_user, admin_user, auth_headers):
    salary = _create(client, auth_headers(hr_user), employee.id).json()
    assert client.delete(f"/api/salaries/{salary['id']}", headers=auth_headers(hr_user)).status_code == 403

    response = client.delete(f"/api/salaries/{salary['id']}", headers=auth_headers(admin_user))
    assert response.status_code == status.HTTP_200_OK
    assert client.get(f"/api/salaries/{salary['id']}", headers=auth_headers(admin_user)).status_code == 404


def test_status_update_and_patch(client, employee, hr_user, auth_headers):
    salary = _create(client, auth_headers(hr_user), employee.id).json()

    response = client.put(
        f"/api/salaries/{salary['id']}/status", headers=auth_headers(hr_user), json={"status": "on-hold"}
    )
    assert response.json()["status"] == "on-hold"

    response = client.patch(
        f"/api/salaries/{salary['id']}",
        headers=auth_headers(hr_user),
        json={"present_days": 15, "absent_days": 15, "is_prorated": True},
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["net_salary"] == 20100


def test_bulk_and_statistics(client, make_user, hr_user, auth_headers):
    for _ in range(3):
        make_user()
    response = client.post(
        "/api/salaries/bulk", headers=auth_headers(hr_user), json={"month": 5, "year": 2025}
    )
    assert response.status_code == status.HTTP_200_OK
    assert len(response.json()["success"]) == 3

    listing = client.get("/api/salaries?month=5&year=2025", headers=auth_headers(hr_user)).json()
    assert listing["pagination"]["total"] == 3

    stats = client.get("/api/salaries/statistics?year=2025", headers=auth_headers(hr_user)).json()
    assert stats["by_status"]["pending"]["count"] == 3
    assert stats["by_month"][0]["month"] == 5
