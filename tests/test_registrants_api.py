from io import BytesIO

import pytest
from openpyxl import load_workbook

import main
from app.common.exporter import XLSX_MEDIA_TYPE
from app.common.guard import single_flight
from app.registrants.models import Registrant
from app.registrants.router import get_store
from app.registrants.rules import IMPORT_HEADERS

ANA = {"full_name": "Ana Cruz", "age": 16, "gender": "Female", "church_location": "Calamba"}


def _seed(db_session, *rows):
    for name, age, group in rows:
        db_session.add(Registrant(
            full_name=name, age=age, gender="Male", church_location="Pila", assigned_group=group
        ))
    db_session.commit()


@pytest.fixture
def use_fake_store(fake_store):
    main.app.dependency_overrides[get_store] = lambda: fake_store
    yield fake_store
    main.app.dependency_overrides.pop(get_store, None)


def _upload(client, headers, data, filename="roster.xlsx", content_type=XLSX_MEDIA_TYPE):
    return client.post(
        "/api/registrants/import",
        headers=headers,
        files={"file": (filename, data, content_type)},
    )


# Registration

def test_register_participant(client, admin_headers):
    response = client.post("/api/registrants", json={**ANA, "gender": "female"}, headers=admin_headers)

    assert response.status_code == 201
    body = response.json()
    registrant = body["registrant"]
    assert body["message"] == (
        f"Registration successful! (ID: {registrant['id']}). Group will be assigned later."
    )
    assert registrant["gender"] == "Female"
    assert registrant["assigned_group"] is None


@pytest.mark.parametrize("field, value", [
    ("age", 11),
    ("full_name", " A "),
    ("gender", "Other"),
    ("church_location", "Manila"),
])
def test_register_rejects_invalid_fields(client, admin_headers, field, value):
    response = client.post("/api/registrants", json={**ANA, field: value}, headers=admin_headers)

    assert response.status_code == 422


def test_register_does_not_accept_a_group(client, admin_headers):
    response = client.post("/api/registrants", json={**ANA, "assigned_group": 1}, headers=admin_headers)

    assert response.status_code == 422


def test_register_requires_admin(client, member_headers):
    assert client.post("/api/registrants", json=ANA, headers=member_headers).status_code == 403


def test_register_requires_login(client):
    assert client.post("/api/registrants", json=ANA).status_code == 401


def test_register_store_failure(client, admin_headers, use_fake_store):
    use_fake_store.fail_with = "insert rejected"

    response = client.post("/api/registrants", json=ANA, headers=admin_headers)

    assert response.status_code == 502
    assert response.json()["detail"] == "Registration failed: insert rejected"


# Listing and stats

def test_list_group_tabs(client, member_headers, db_session):
    _seed(db_session, ("Ben", 20, 1), ("Cy", 30, None), ("Dee", 14, 1))

    def names(group, order="group"):
        response = client.get(
            "/api/registrants", params={"group": group, "order": order}, headers=member_headers
        )
        assert response.status_code == 200
        return [r["full_name"] for r in response.json()]

    assert names("all") == ["Ben", "Dee", "Cy"]
    assert names("1") == ["Ben", "Dee"]
    assert names("unassigned") == ["Cy"]
    assert names("3") == []
    assert names("all", order="recent") == ["Dee", "Cy", "Ben"]


def test_list_rejects_bad_filters(client, member_headers):
    assert client.get("/api/registrants", params={"group": "9"}, headers=member_headers).status_code == 400
    assert client.get("/api/registrants", params={"order": "age"}, headers=member_headers).status_code == 400


def test_list_requires_login(client):
    assert client.get("/api/registrants").status_code == 401


def test_stats(client, member_headers, db_session):
    _seed(db_session, ("Ben", 20, 1), ("Cy", 30, None), ("Dee", 14, 1), ("Eve", 40, 5))

    response = client.get("/api/registrants/stats", headers=member_headers)

    assert response.status_code == 200
    assert response.json() == {
        "total": 4, "group1": 2, "group2": 0, "group3": 0, "group4": 0, "group5": 1, "unassigned": 1,
    }


def test_stats_failure(client, member_headers, use_fake_store):
    use_fake_store.fail_with = "timeout"

    response = client.get("/api/registrants/stats", headers=member_headers)

    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to fetch some statistics: timeout"


# Template, import and export

def test_download_template(client, admin_headers):
    response = client.get("/api/registrants/import/template", headers=admin_headers)

    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX_MEDIA_TYPE
    assert 'filename="family-camp-import-template.xlsx"' in response.headers["content-disposition"]
    ws = load_workbook(BytesIO(response.content)).active
    assert [c.value for c in ws[1]] == list(IMPORT_HEADERS)


def test_template_build_failure(client, admin_headers, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr("app.registrants.service.build_import_template", broken)

    response = client.get("/api/registrants/import/template", headers=admin_headers)

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json()["detail"] == "Failed to download template."


def test_template_requires_admin(client, member_headers):
    assert client.get("/api/registrants/import/template", headers=member_headers).status_code == 403


def test_import_upload(client, admin_headers, member_headers, make_workbook):
    data = make_workbook([
        IMPORT_HEADERS,
        ["Ana Cruz", 16, "female", "Calamba"],
        ["Bo", 10, "X", "Nowhere"],
    ])

    response = _upload(client, admin_headers, data)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["processed_rows"] == 2
    assert body["inserted_count"] == 1
    assert body["skipped_count"] == 1
    assert body["errors"][0].startswith("Row 3:")

    listed = client.get("/api/registrants", headers=member_headers).json()
    assert [(r["full_name"], r["gender"], r["assigned_group"]) for r in listed] == [
        ("Ana Cruz", "Female", None)
    ]


def test_import_reports_file_errors_in_body(client, admin_headers, make_workbook):
    response = _upload(client, admin_headers, make_workbook([["Name", "Age", "Gender", "Location"]]))

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["message"].startswith("Import failed: Header mismatch.")


def test_import_rejects_non_excel_upload(client, admin_headers):
    response = _upload(client, admin_headers, b"a,b,c", filename="roster.csv", content_type="text/csv")

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid file type. Please upload an Excel (.xlsx) file."


@pytest.mark.parametrize("filename, content_type", [
    ("roster.xlsx", "application/octet-stream"),
    ("roster.xls", XLSX_MEDIA_TYPE),
])
def test_import_requires_excel_type_and_extension(client, admin_headers, make_workbook, filename, content_type):
    data = make_workbook([IMPORT_HEADERS, ["Ana Cruz", 16, "Female", "Pila"]])

    response = _upload(client, admin_headers, data, filename=filename, content_type=content_type)

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid file type. Please upload an Excel (.xlsx) file."


def test_import_requires_admin(client, member_headers, make_workbook):
    response = _upload(client, member_headers, make_workbook([IMPORT_HEADERS]))

    assert response.status_code == 403


def test_import_while_another_runs(client, admin_headers, admin_profile, make_workbook):
    with single_flight((admin_profile.id, "import")):
        response = _upload(client, admin_headers, make_workbook([IMPORT_HEADERS, ["Ana Cruz", 16, "Female", "Pila"]]))

    assert response.status_code == 409


def test_export(client, admin_headers, db_session):
    _seed(db_session, ("Ben", 20, 1), ("Cy", 30, None))

    response = client.get("/api/registrants/export", headers=admin_headers)

    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX_MEDIA_TYPE
    assert "family-camp-export-" in response.headers["content-disposition"]
    wb = load_workbook(BytesIO(response.content))
    assert wb.sheetnames == ["All Participants", "Group 1", "Unassigned"]


def test_export_build_failure(client, admin_headers, db_session, monkeypatch):
    _seed(db_session, ("Ben", 20, 1))

    def broken(*args, **kwargs):
        raise RuntimeError("bad workbook")

    monkeypatch.setattr("app.registrants.service.build_participants_export", broken)

    response = client.get("/api/registrants/export", headers=admin_headers)

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert "content-disposition" not in response.headers
    assert response.json()["detail"] == "An error occurred during export."


def test_export_with_no_participants(client, admin_headers):
    response = client.get("/api/registrants/export", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "No participant data available to export."


def test_export_while_another_runs(client, admin_headers, admin_profile, db_session):
    _seed(db_session, ("Ben", 20, 1))

    with single_flight((admin_profile.id, "export")):
        response = client.get("/api/registrants/export", headers=admin_headers)

    assert response.status_code == 409


# Group assignment

def test_assign_groups(client, admin_headers, use_fake_store):
    use_fake_store.invoke_result = 7

    response = client.post("/api/registrants/assign-groups", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {
        "message": "Group assignment process finished. Attempted to assign 7 participants.",
        "processed": 7,
    }


def test_assign_groups_failure(client, admin_headers, use_fake_store):
    use_fake_store.fail_with = "function does not exist"

    response = client.post("/api/registrants/assign-groups", headers=admin_headers)

    assert response.status_code == 502
    assert "function does not exist" in response.json()["detail"]


def test_assign_groups_requires_admin(client, member_headers, use_fake_store):
    assert client.post("/api/registrants/assign-groups", headers=member_headers).status_code == 403
