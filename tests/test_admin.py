from family_taxi.models.user import UserRole

API = "/api/v1"

async def test_admin_lists_users(client, auth, create_user, passenger_factory, driver_factory):
    admin = await create_user(UserRole.ADMIN)
    await passenger_factory()
    driver = await driver_factory()

    response = await client.get(f"{API}/admin/users", headers=auth(admin))
    assert response.status_code == 200
    assert len(response.json()) == 3

    response = await client.get(f"{API}/admin/users", params={"role": "driver"}, headers=auth(admin))
    assert [u["id"] for u in response.json()] == [driver.id]

async def test_admin_creates_driver(client, auth, create_user):
    admin = await create_user(UserRole.ADMIN)

    response = await client.post(
        f"{API}/admin/users",
        json={
            "username": "driver_hung",
            "password": "wheels42",
            "full_name": "Tran Van Hung",
            "email": "hung@example.com",
            "phone": "0987654321",
            "role": "driver",
        },
        headers=auth(admin)
    )

    assert response.status_code == 201
    assert response.json()["role"] == "driver"
    assert response.json()["is_online"] is False

    login = await client.post(f"{API}/auth/login", json={"username": "driver_hung", "password": "wheels42"})
    assert login.status_code == 200

async def test_admin_routes_need_admin(client, auth, passenger_factory, driver_factory):
    passenger = await passenger_factory()
    driver = await driver_factory()

    assert (await client.get(f"{API}/admin/users", headers=auth(passenger))).status_code == 403
    assert (await client.delete(f"{API}/admin/users/{passenger.id}", headers=auth(driver))).status_code == 403

async def test_admin_cannot_delete_self_or_admins(client, auth, create_user):
    admin = await create_user(UserRole.ADMIN)
    other_admin = await create_user(UserRole.ADMIN)

    response = await client.delete(f"{API}/admin/users/{admin.id}", headers=auth(admin))
    assert response.status_code == 400

    response = await client.delete(f"{API}/admin/users/{other_admin.id}", headers=auth(admin))
    assert response.status_code == 400

    response = await client.delete(f"{API}/admin/users/999", headers=auth(admin))
    assert response.status_code == 404

async def test_deleting_driver_releases_their_trip(client, auth, create_user, passenger_factory, driver_factory, request_trip):
    admin = await create_user(UserRole.ADMIN)
    passenger = await passenger_factory()
    driver = await driver_factory()
    trip = await request_trip(passenger)
    await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(driver))

    response = await client.delete(f"{API}/admin/users/{driver.id}", headers=auth(admin))
    assert response.status_code == 204

    current = (await client.get(f"{API}/trips/{trip['id']}", headers=auth(passenger))).json()
    assert current["status"] == "requested"
    assert current["driver_id"] is None
    assert current["accepted_at"] is None

    # The deleted driver's token no longer resolves to an account
    assert (await client.get(f"{API}/auth/me", headers=auth(driver))).status_code == 401

async def test_deleting_passenger_cancels_open_trips(client, auth, create_user, passenger_factory, driver_factory, request_trip):
    admin = await create_user(UserRole.ADMIN)
    passenger = await passenger_factory()
    driver = await driver_factory()
    trip = await request_trip(passenger)
    await client.post(
        f"{API}/locations",
        json={"name": "Home", "address": "1 Hang Bai", "latitude": 21.02, "longitude": 105.85},
        headers=auth(passenger)
    )

    response = await client.delete(f"{API}/admin/users/{passenger.id}", headers=auth(admin))
    assert response.status_code == 204

    current = (await client.get(f"{API}/driver/trips/{trip['id']}", headers=auth(driver))).json()
    assert current["status"] == "cancelled"
    assert (await client.get(f"{API}/driver/trips/requests", headers=auth(driver))).json() is None
