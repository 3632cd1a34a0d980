import io
from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from openpyxl import load_workbook

from gestionmatos.models import Material
from gestionmatos.services import spreadsheet


def test_create_material_and_get(client, admin):
    h = admin[0]
    r = client.post(
        "/materials",
        json={
            "name": "Perceuse",
            "category": "Outils",
            "serial_number": "SN-001",
            "location": "Atelier",
            "purchase_date": "2025-03-01",
            "purchase_price": "129.90",
        },
        headers=h,
    )
    assert r.status_code == 201
    m = r.json()
    assert m["status"] == "available"
    assert m["qr_code"].startswith("MAT_")
    assert m["created_by"] == admin[1]["id"]

    r = client.get(f"/materials/{m['id']}", headers=h)
    assert r.status_code == 200
    detail = r.json()
    assert detail["name"] == "Perceuse"
    assert detail["category_color"] == "#EF4444"
    assert detail["created_by_username"] == "root"


def test_get_missing_material(client, admin):
    r = client.get("/materials/999", headers=admin[0])
    assert r.status_code == 404
    assert r.json() == {"error": "Material not found", "code": "NOT_FOUND"}


def test_plain_user_cannot_create(client, member):
    r = client.post("/materials", json={"name": "Vélo"}, headers=member[0])
    assert r.status_code == 403
    assert r.json()["code"] == "FORBIDDEN"


def test_manager_can_create_but_not_delete(client, manager):
    r = client.post("/materials", json={"name": "Micro"}, headers=manager[0])
    assert r.status_code == 201
    mid = r.json()["id"]

    r = client.delete(f"/materials/{mid}", headers=manager[0])
    assert r.status_code == 403


def test_blank_name_is_rejected(client, admin):
    r = client.post("/materials", json={"name": "   "}, headers=admin[0])
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_duplicate_serial_number(client, admin):
    h = admin[0]
    assert client.post("/materials", json={"name": "A", "serial_number": "X1"}, headers=h).status_code == 201
    r = client.post("/materials", json={"name": "B", "serial_number": "X1"}, headers=h)
    assert r.status_code == 400
    assert r.json() == {"error": "Serial number already in use", "code": "CONFLICT"}

    # blank serials never collide
    assert client.post("/materials", json={"name": "C", "serial_number": ""}, headers=h).status_code == 201
    assert client.post("/materials", json={"name": "D", "serial_number": " "}, headers=h).status_code == 201

    r = client.post("/materials", json={"name": "E", "serial_number": "X2"}, headers=h)
    r = client.put(f"/materials/{r.json()['id']}", json={"serial_number": "X1"}, headers=h)
    assert r.status_code == 400
    assert r.json()["code"] == "CONFLICT"


def test_list_filters(client, admin):
    h = admin[0]
    client.post("/materials", json={"name": "Ordinateur portable", "category": "Informatique"}, headers=h)
    client.post("/materials", json={"name": "Tablette", "category": "Informatique", "serial_number": "TAB-42"}, headers=h)
    r = client.post("/materials", json={"name": "Ballon", "category": "Sport", "description": "taille 5"}, headers=h)
    client.put(f"/materials/{r.json()['id']}", json={"status": "lost"}, headers=h)

    data = client.get("/materials", headers=h).json()
    assert data["total"] == 3
    assert [m["name"] for m in data["items"]] == ["Ballon", "Tablette", "Ordinateur portable"]

    data = client.get("/materials?category=Informatique", headers=h).json()
    assert data["total"] == 2

    data = client.get("/materials?status=lost", headers=h).json()
    assert [m["name"] for m in data["items"]] == ["Ballon"]

    assert client.get("/materials?search=TAB-4", headers=h).json()["total"] == 1
    assert client.get("/materials?search=taille", headers=h).json()["total"] == 1

    data = client.get("/materials?sort=name_asc&limit=2", headers=h).json()
    assert [m["name"] for m in data["items"]] == ["Ballon", "Ordinateur portable"]
    assert data["total"] == 3

    assert client.get("/materials?status=broken", headers=h).status_code == 400


def test_update_material(client, admin, material):
    h = admin[0]
    r = client.put(
        f"/materials/{material['id']}",
        json={"location": "Salle B", "status": "maintenance"},
        headers=h,
    )
    assert r.status_code == 200
    assert r.json()["location"] == "Salle B"
    assert r.json()["status"] == "maintenance"
    assert r.json()["name"] == material["name"]

    r = client.put("/materials/999", json={"location": "x"}, headers=h)
    assert r.status_code == 404


def test_status_cannot_be_forced_to_or_from_borrowed(client, admin, material):
    h = admin[0]
    r = client.put(f"/materials/{material['id']}", json={"status": "borrowed"}, headers=h)
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_STATE"

    r = client.post(
        "/movements/checkout",
        json={"material_id": material["id"], "user_id": admin[1]["id"]},
        headers=h,
    )
    assert r.status_code == 201

    r = client.put(f"/materials/{material['id']}", json={"status": "available"}, headers=h)
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_STATE"

    # other fields of a borrowed material stay editable
    r = client.put(f"/materials/{material['id']}", json={"location": "Car 2"}, headers=h)
    assert r.status_code == 200
    assert r.json()["status"] == "borrowed"


def test_delete_material(client, admin, material):
    h = admin[0]
    r = client.delete(f"/materials/{material['id']}", headers=h)
    assert r.status_code == 200
    assert client.get(f"/materials/{material['id']}", headers=h).status_code == 404
    assert client.delete(f"/materials/{material['id']}", headers=h).status_code == 404


def test_categories_list(client, member):
    r = client.get("/materials/categories/list", headers=member[0])
    assert r.status_code == 200
    names = [c["name"] for c in r.json()]
    assert names == sorted(names)
    assert len(names) == 7
    assert "Informatique" in names


def test_stats_overview(client, admin):
    h = admin[0]
    ids = []
    for name, category in [("A", "Sport"), ("B", "Sport"), ("C", None)]:
        ids.append(client.post("/materials", json={"name": name, "category": category}, headers=h).json()["id"])
    client.put(f"/materials/{ids[1]}", json={"status": "maintenance"}, headers=h)
    client.post("/movements/checkout", json={"material_id": ids[0], "user_id": admin[1]["id"]}, headers=h)

    r = client.get("/materials/stats/overview", headers=h)
    assert r.status_code == 200
    stats = r.json()
    assert stats["overall"] == {"total": 3, "available": 1, "borrowed": 1, "maintenance": 1, "lost": 0}

    by_cat = {row["category"]: row for row in stats["by_category"]}
    assert by_cat["Sport"]["total"] == 2
    assert by_cat["Sport"]["borrowed"] == 1
    assert by_cat[None]["available"] == 1


def test_export_xlsx(client, admin, material):
    r = client.get("/materials/export.xlsx", headers=admin[0])
    assert r.status_code == 200
    assert r.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )

    wb = load_workbook(io.BytesIO(r.content))
    ws = wb.active
    assert ws["A1"].value == "ID"
    assert ws["B2"].value == material["name"]
    assert ws["I2"].value == material["qr_code"]


def test_workbook_cells():
    m = Material(
        id=3,
        name=" Trépied ",
        qr_code="MAT_3",
        purchase_price=Decimal("12.50"),
        updated_at=datetime(2026, 1, 12, 9, 30, tzinfo=ZoneInfo("Europe/Paris")),
    )
    ws = load_workbook(io.BytesIO(spreadsheet.materials_workbook([m]))).active
    assert [c.value for c in ws[1]][:3] == ["ID", "Name", "Category"]
    assert ws["B2"].value == "Trépied"
    assert ws["C2"].value is None
    assert ws["H2"].value == 12.5
    # Paris is UTC+1 in January
    assert ws["J2"].value == datetime(2026, 1, 12, 8, 30)
    assert ws.freeze_panes == "A2"
