def test_profile_read_and_update(client, member):
    h, me = member
    r = client.get("/users/profile", headers=h)
    assert r.status_code == 200
    assert r.json()["id"] == me["id"]
    assert r.json()["role"] == "user"

    r = client.put("/users/profile", json={"first_name": "Alice", "last_name": "Martin"}, headers=h)
    assert r.status_code == 200
    assert r.json()["first_name"] == "Alice"
    assert r.json()["last_name"] == "Martin"
    assert client.get("/users/profile", headers=h).json()["last_name"] == "Martin"


def test_list_users_needs_manager(client, admin, member, manager):
    assert client.get("/users", headers=member[0]).status_code == 403

    r = client.get("/users", headers=manager[0])
    assert r.status_code == 200
    assert {u["username"] for u in r.json()} == {"root", "alice", "mgr"}
    assert all("password_hash" not in u for u in r.json())


def test_get_user_self_or_manager(client, admin, member):
    h, me = member
    assert client.get(f"/users/{me['id']}", headers=h).status_code == 200
    assert client.get(f"/users/{admin[1]['id']}", headers=h).status_code == 403
    assert client.get(f"/users/{me['id']}", headers=admin[0]).status_code == 200
    assert client.get("/users/999", headers=admin[0]).status_code == 404


def test_change_role(client, admin, member, manager):
    uid = member[1]["id"]

    r = client.put(f"/users/{uid}/role", json={"role": "manager"}, headers=manager[0])
    assert r.status_code == 403

    r = client.put(f"/users/{uid}/role", json={"role": "overlord"}, headers=admin[0])
    assert r.status_code == 400

    r = client.put(f"/users/{uid}/role", json={"role": "manager"}, headers=admin[0])
    assert r.status_code == 200
    assert r.json()["role"] == "manager"

    # the existing token picks up the new role
    assert client.post("/materials", json={"name": "Projecteur"}, headers=member[0]).status_code == 201

    assert client.put("/users/999/role", json={"role": "user"}, headers=admin[0]).status_code == 404


def test_delete_user(client, admin, member, manager):
    assert client.delete(f"/users/{member[1]['id']}", headers=manager[0]).status_code == 403

    r = client.delete(f"/users/{admin[1]['id']}", headers=admin[0])
    assert r.status_code == 400
    assert r.json()["error"] == "You cannot delete your own account"

    r = client.delete(f"/users/{member[1]['id']}", headers=admin[0])
    assert r.status_code == 200
    assert client.get(f"/users/{member[1]['id']}", headers=admin[0]).status_code == 404
    assert client.delete(f"/users/{member[1]['id']}", headers=admin[0]).status_code == 404


def test_cannot_delete_user_holding_material(client, admin, member, material):
    h = admin[0]
    uid = member[1]["id"]
    client.post("/movements/checkout", json={"material_id": material["id"], "user_id": uid}, headers=h)

    r = client.delete(f"/users/{uid}", headers=h)
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_STATE"

    client.post("/movements/checkin", json={"material_id": material["id"], "user_id": uid}, headers=h)
    assert client.delete(f"/users/{uid}", headers=h).status_code == 200
