import asyncio
from datetime import datetime

import pytest

from family_taxi.core.exceptions import PreconditionFailedError
from family_taxi.repositories.trips import TripRepository
from family_taxi.services.trip_lifecycle import TripLifecycle

API = "/api/v1"

async def test_full_trip_scenario(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()

    trip = await request_trip(passenger)
    assert trip["status"] == "requested"
    assert trip["driver_id"] is None
    assert trip["total_fare"] == pytest.approx(12.5)
    assert trip["requested_at"] is not None
    assert trip["accepted_at"] is None

    response = await client.get(f"{API}/driver/trips/requests", headers=auth(driver))
    assert response.status_code == 200
    offer = response.json()
    assert offer["id"] == trip["id"]
    assert offer["pickup_distance_km"] == pytest.approx(0.15, abs=0.01)
    assert offer["estimated_pickup_minutes"] == 1

    response = await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(driver))
    assert response.status_code == 200
    accepted = response.json()
    assert accepted["status"] == "accepted"
    assert accepted["driver_id"] == driver.id
    assert accepted["accepted_at"] is not None

    response = await client.post(f"{API}/driver/trips/{trip['id']}/arrived", headers=auth(driver))
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"

    response = await client.post(f"{API}/driver/trips/{trip['id']}/start", headers=auth(driver))
    assert response.status_code == 200
    assert response.json()["status"] == "in_progress"
    assert response.json()["started_at"] is not None

    response = await client.post(f"{API}/driver/trips/{trip['id']}/complete", headers=auth(driver))
    assert response.status_code == 200
    completed = response.json()
    assert completed["status"] == "completed"
    assert completed["completed_at"] is not None

    response = await client.get(f"{API}/auth/me", headers=auth(driver))
    assert response.json()["trip_count"] == 1

    response = await client.post(
        f"{API}/trips/{trip['id']}/rate",
        json={"rating": 5, "review": "great"},
        headers=auth(passenger)
    )
    assert response.status_code == 200
    rated = response.json()
    assert rated["driver_rating"] == 5
    assert rated["driver_review"] == "great"

    response = await client.get(f"{API}/users/{driver.id}", headers=auth(passenger))
    assert response.json()["rating"] == pytest.approx(5.0)

    final = (await client.get(f"{API}/trips/{trip['id']}", headers=auth(passenger))).json()
    stamps = [
        datetime.fromisoformat(final[field].replace("Z", "+00:00"))
        for field in ("requested_at", "accepted_at", "started_at", "completed_at")
    ]
    assert stamps == sorted(stamps)

async def test_passenger_sees_trip_progress_by_polling(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()
    trip = await request_trip(passenger)

    await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(driver))

    response = await client.get(f"{API}/trips/{trip['id']}", headers=auth(passenger))
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"
    assert response.json()["driver_id"] == driver.id

async def test_fare_is_computed_from_route_when_omitted(client, auth, passenger_factory, trip_payload):
    passenger = await passenger_factory()
    payload = trip_payload()
    for field in ("distance", "base_fare", "per_km_rate"):
        payload.pop(field)

    response = await client.post(f"{API}/trips", json=payload, headers=auth(passenger))

    assert response.status_code == 201
    trip = response.json()
    assert trip["base_fare"] == 5.0
    assert trip["per_km_rate"] == 1.5
    assert trip["distance"] == pytest.approx(5.6, abs=0.2)
    assert trip["total_fare"] == pytest.approx(5.0 + 1.5 * trip["distance"])

async def test_matching_total_fare_is_accepted(client, auth, passenger_factory, trip_payload):
    passenger = await passenger_factory()
    response = await client.post(
        f"{API}/trips", json=trip_payload(total_fare=12.5), headers=auth(passenger)
    )
    assert response.status_code == 201

async def test_inconsistent_total_fare_is_rejected(client, auth, passenger_factory, trip_payload):
    passenger = await passenger_factory()
    response = await client.post(
        f"{API}/trips", json=trip_payload(total_fare=20.0), headers=auth(passenger)
    )
    assert response.status_code == 400
    assert response.json()["error"] == "validation_failed"

async def test_fare_estimate(client, auth, passenger_factory):
    passenger = await passenger_factory()
    response = await client.post(
        f"{API}/trips/estimate",
        json={
            "pickup_latitude": 21.03, "pickup_longitude": 105.85,
            "destination_latitude": 21.05, "destination_longitude": 105.90,
            "distance": 5.0,
        },
        headers=auth(passenger)
    )
    assert response.status_code == 200
    assert response.json() == {
        "distance_km": 5.0,
        "estimated_minutes": 10,
        "base_fare": 5.0,
        "per_km_rate": 1.5,
        "total_fare": 12.5,
    }

async def test_request_reaffirm_is_idempotent(client, auth, passenger_factory, request_trip):
    passenger = await passenger_factory()
    trip = await request_trip(passenger)

    for _ in range(2):
        response = await client.post(f"{API}/trips/{trip['id']}/request", headers=auth(passenger))
        assert response.status_code == 200
        assert response.json()["status"] == "requested"
        assert response.json()["driver_id"] is None

async def test_reaffirm_after_acceptance_fails(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()
    trip = await request_trip(passenger)
    await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(driver))

    response = await client.post(f"{API}/trips/{trip['id']}/request", headers=auth(passenger))

    assert response.status_code == 400
    assert response.json()["error"] == "precondition_failed"

async def test_second_accept_fails_and_keeps_first_driver(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    first = await driver_factory()
    second = await driver_factory()
    trip = await request_trip(passenger)

    response = await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(first))
    assert response.status_code == 200

    response = await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(second))
    assert response.status_code == 400
    assert response.json()["error"] == "precondition_failed"

    response = await client.get(f"{API}/trips/{trip['id']}", headers=auth(passenger))
    assert response.json()["driver_id"] == first.id
    assert response.json()["status"] == "accepted"

async def test_simultaneous_accepts_have_one_winner(client, auth, passenger_factory, driver_factory, request_trip):
    trip = await request_trip(await passenger_factory())
    drivers = [await driver_factory(), await driver_factory()]

    responses = await asyncio.gather(*[
        client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(driver))
        for driver in drivers
    ])

    assert sorted(r.status_code for r in responses) == [200, 400]

async def test_accept_losing_race_after_read_is_rejected(session_factory, passenger_factory, driver_factory, request_trip):
    trip = await request_trip(await passenger_factory())
    winner, loser = await driver_factory(), await driver_factory()

    async with session_factory() as winner_session, session_factory() as loser_session:
        winning = TripLifecycle(winner_session)
        losing = TripLifecycle(loser_session)
        claim = losing.trips.accept

        # The rival accepts after our status checks passed but before our UPDATE
        async def claim_after_rival(trip_id, driver_id, now):
            await winning.accept(trip_id, winner)
            return await claim(trip_id, driver_id, now)

        losing.trips.accept = claim_after_rival

        with pytest.raises(PreconditionFailedError, match="Trip is not available for acceptance"):
            await losing.accept(trip["id"], loser)

    async with session_factory() as session:
        current = await TripRepository(session).get(trip["id"])
        assert current.status.value == "accepted"
        assert current.driver_id == winner.id

async def test_driver_cannot_win_two_trips_at_once(session_factory, passenger_factory, driver_factory, request_trip):
    first = await request_trip(await passenger_factory())
    second = await request_trip(await passenger_factory())
    driver = await driver_factory()

    async with session_factory() as first_session, session_factory() as second_session:
        taking_first = TripLifecycle(first_session)
        taking_second = TripLifecycle(second_session)
        claim = taking_second.trips.accept

        # The same driver's other accept lands between our busy check and our UPDATE
        async def claim_after_other_accept(trip_id, driver_id, now):
            await taking_first.accept(first["id"], driver)
            return await claim(trip_id, driver_id, now)

        taking_second.trips.accept = claim_after_other_accept

        with pytest.raises(PreconditionFailedError, match="Driver already has an active trip"):
            await taking_second.accept(second["id"], driver)

    async with session_factory() as session:
        trips = TripRepository(session)
        assert (await trips.get(first["id"])).driver_id == driver.id
        untouched = await trips.get(second["id"])
        assert untouched.status.value == "requested"
        assert untouched.driver_id is None
        assert untouched.accepted_at is None

async def test_accept_on_cancelled_trip_leaves_it_unchanged(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()
    trip = await request_trip(passenger)
    await client.post(f"{API}/trips/{trip['id']}/cancel", headers=auth(passenger))

    response = await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(driver))

    assert response.status_code == 400
    current = (await client.get(f"{API}/trips/{trip['id']}", headers=auth(passenger))).json()
    assert current["status"] == "cancelled"
    assert current["driver_id"] is None
    assert current["accepted_at"] is None

async def test_driver_with_active_trip_cannot_accept_another(client, auth, passenger_factory, driver_factory, request_trip):
    driver = await driver_factory()
    first = await request_trip(await passenger_factory())
    second = await request_trip(await passenger_factory())

    await client.post(f"{API}/driver/trips/{first['id']}/accept", headers=auth(driver))
    response = await client.post(f"{API}/driver/trips/{second['id']}/accept", headers=auth(driver))

    assert response.status_code == 400
    assert response.json()["message"] == "Driver already has an active trip"

async def test_driver_can_accept_again_after_completing(client, auth, passenger_factory, driver_factory, request_trip):
    driver = await driver_factory()
    first = await request_trip(await passenger_factory())
    second = await request_trip(await passenger_factory())

    for action in ("accept", "start", "complete"):
        response = await client.post(f"{API}/driver/trips/{first['id']}/{action}", headers=auth(driver))
        assert response.status_code == 200

    response = await client.post(f"{API}/driver/trips/{second['id']}/accept", headers=auth(driver))
    assert response.status_code == 200

async def test_start_requires_assigned_driver(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()
    other = await driver_factory()
    trip = await request_trip(passenger)
    await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(driver))

    response = await client.post(f"{API}/driver/trips/{trip['id']}/start", headers=auth(other))

    assert response.status_code == 403
    assert response.json()["error"] == "not_authorized"

async def test_transitions_out_of_order_fail(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()
    trip = await request_trip(passenger)
    await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(driver))

    response = await client.post(f"{API}/driver/trips/{trip['id']}/complete", headers=auth(driver))
    assert response.status_code == 400

    await client.post(f"{API}/driver/trips/{trip['id']}/start", headers=auth(driver))
    response = await client.post(f"{API}/driver/trips/{trip['id']}/start", headers=auth(driver))
    assert response.status_code == 400

    response = await client.post(f"{API}/driver/trips/{trip['id']}/arrived", headers=auth(driver))
    assert response.status_code == 400

async def test_decline_has_no_effect(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()
    trip = await request_trip(passenger)

    response = await client.post(f"{API}/driver/trips/{trip['id']}/decline", headers=auth(driver))

    assert response.status_code == 200
    assert response.json() == {"success": True}
    current = (await client.get(f"{API}/trips/{trip['id']}", headers=auth(passenger))).json()
    assert current["status"] == "requested"
    assert current["driver_id"] is None

async def test_cancel_after_acceptance_keeps_driver(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()
    trip = await request_trip(passenger)
    await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(driver))

    response = await client.post(f"{API}/trips/{trip['id']}/cancel", headers=auth(passenger))

    assert response.status_code == 200
    cancelled = response.json()
    assert cancelled["status"] == "cancelled"
    assert cancelled["driver_id"] == driver.id
    assert cancelled["cancelled_at"] is not None

    response = await client.get(f"{API}/driver/trips/active", headers=auth(driver))
    assert response.json() is None

async def test_cancel_during_trip(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()
    trip = await request_trip(passenger)
    await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(driver))
    await client.post(f"{API}/driver/trips/{trip['id']}/start", headers=auth(driver))

    response = await client.post(f"{API}/trips/{trip['id']}/cancel", headers=auth(passenger))

    assert response.status_code == 200
    cancelled = response.json()
    assert cancelled["status"] == "cancelled"
    assert cancelled["driver_id"] == driver.id
    assert cancelled["started_at"] is not None
    assert cancelled["cancelled_at"] is not None

    response = await client.post(f"{API}/driver/trips/{trip['id']}/complete", headers=auth(driver))
    assert response.status_code == 400

async def test_cancel_twice_fails(client, auth, passenger_factory, request_trip):
    passenger = await passenger_factory()
    trip = await request_trip(passenger)

    assert (await client.post(f"{API}/trips/{trip['id']}/cancel", headers=auth(passenger))).status_code == 200
    response = await client.post(f"{API}/trips/{trip['id']}/cancel", headers=auth(passenger))
    assert response.status_code == 400

async def test_cancel_by_other_passenger_is_forbidden(client, auth, passenger_factory, request_trip):
    owner = await passenger_factory()
    stranger = await passenger_factory()
    trip = await request_trip(owner)

    response = await client.post(f"{API}/trips/{trip['id']}/cancel", headers=auth(stranger))

    assert response.status_code == 403

async def test_unknown_trip_is_not_found(client, auth, passenger_factory, driver_factory):
    passenger = await passenger_factory()
    driver = await driver_factory()

    assert (await client.get(f"{API}/trips/999", headers=auth(passenger))).status_code == 404
    assert (await client.post(f"{API}/trips/999/cancel", headers=auth(passenger))).status_code == 404
    response = await client.post(f"{API}/driver/trips/999/accept", headers=auth(driver))
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"

async def test_rating_twice_fails_and_keeps_first(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()
    trip = await request_trip(passenger)
    for action in ("accept", "start", "complete"):
        await client.post(f"{API}/driver/trips/{trip['id']}/{action}", headers=auth(driver))

    response = await client.post(f"{API}/trips/{trip['id']}/rate", json={"rating": 4}, headers=auth(passenger))
    assert response.status_code == 200

    response = await client.post(f"{API}/trips/{trip['id']}/rate", json={"rating": 1}, headers=auth(passenger))
    assert response.status_code == 400
    assert response.json()["message"] == "Trip already rated"

    current = (await client.get(f"{API}/trips/{trip['id']}", headers=auth(passenger))).json()
    assert current["driver_rating"] == 4

async def test_rating_requires_completed_trip(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()
    trip = await request_trip(passenger)
    await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(driver))

    response = await client.post(f"{API}/trips/{trip['id']}/rate", json={"rating": 5}, headers=auth(passenger))
    assert response.status_code == 400

    response = await client.post(f"{API}/driver/trips/{trip['id']}/rate", json={"rating": 5}, headers=auth(driver))
    assert response.status_code == 400

async def test_rating_out_of_range_is_a_validation_error(client, auth, passenger_factory, request_trip):
    passenger = await passenger_factory()
    trip = await request_trip(passenger)

    response = await client.post(f"{API}/trips/{trip['id']}/rate", json={"rating": 6}, headers=auth(passenger))

    assert response.status_code == 400
    assert response.json()["error"] == "validation_failed"

async def test_ratings_are_averaged_per_role(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()

    for driver_score, passenger_score in ((4, 3), (5, 4)):
        trip = await request_trip(passenger)
        for action in ("accept", "start", "complete"):
            await client.post(f"{API}/driver/trips/{trip['id']}/{action}", headers=auth(driver))
        await client.post(f"{API}/trips/{trip['id']}/rate", json={"rating": driver_score}, headers=auth(passenger))
        response = await client.post(
            f"{API}/driver/trips/{trip['id']}/rate",
            json={"rating": passenger_score, "review": "on time"},
            headers=auth(driver)
        )
        assert response.status_code == 200
        assert response.json()["passenger_rating"] == passenger_score

    driver_view = (await client.get(f"{API}/users/{driver.id}", headers=auth(passenger))).json()
    passenger_view = (await client.get(f"{API}/users/{passenger.id}", headers=auth(driver))).json()
    assert driver_view["rating"] == pytest.approx(4.5)
    assert driver_view["trip_count"] == 2
    assert passenger_view["rating"] == pytest.approx(3.5)

async def test_driver_rating_by_wrong_driver_is_forbidden(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()
    other = await driver_factory()
    trip = await request_trip(passenger)
    for action in ("accept", "start", "complete"):
        await client.post(f"{API}/driver/trips/{trip['id']}/{action}", headers=auth(driver))

    response = await client.post(f"{API}/driver/trips/{trip['id']}/rate", json={"rating": 2}, headers=auth(other))

    assert response.status_code == 403

async def test_trip_visibility(client, auth, passenger_factory, driver_factory, request_trip):
    owner = await passenger_factory()
    stranger = await passenger_factory()
    driver = await driver_factory()
    other_driver = await driver_factory()
    trip = await request_trip(owner)

    assert (await client.get(f"{API}/trips/{trip['id']}", headers=auth(stranger))).status_code == 403
    # Unassigned trips are visible to any driver
    assert (await client.get(f"{API}/driver/trips/{trip['id']}", headers=auth(other_driver))).status_code == 200

    await client.post(f"{API}/driver/trips/{trip['id']}/accept", headers=auth(driver))

    assert (await client.get(f"{API}/driver/trips/{trip['id']}", headers=auth(driver))).status_code == 200
    assert (await client.get(f"{API}/driver/trips/{trip['id']}", headers=auth(other_driver))).status_code == 403

async def test_role_gates(client, auth, passenger_factory, driver_factory, trip_payload):
    passenger = await passenger_factory()
    driver = await driver_factory()

    response = await client.post(f"{API}/trips", json=trip_payload(), headers=auth(driver))
    assert response.status_code == 403
    assert response.json()["message"] == "Not a passenger"

    response = await client.get(f"{API}/driver/trips/requests", headers=auth(passenger))
    assert response.status_code == 403

    response = await client.post(f"{API}/trips", json=trip_payload())
    assert response.status_code == 401
    assert response.json()["error"] == "not_authenticated"

async def test_recent_trips_newest_first(client, auth, passenger_factory, request_trip):
    passenger = await passenger_factory()
    other = await passenger_factory()
    ids = [(await request_trip(passenger))["id"] for _ in range(3)]
    await request_trip(other)

    response = await client.get(f"{API}/trips/recent", headers=auth(passenger))

    assert response.status_code == 200
    assert [t["id"] for t in response.json()] == list(reversed(ids))

async def test_driver_id_matches_status_through_lifecycle(client, auth, passenger_factory, driver_factory, request_trip):
    passenger = await passenger_factory()
    driver = await driver_factory()
    trip = await request_trip(passenger)
    assigned = {"accepted", "in_progress", "completed"}

    snapshots = [trip]
    for action in ("accept", "start", "complete"):
        response = await client.post(f"{API}/driver/trips/{trip['id']}/{action}", headers=auth(driver))
        snapshots.append(response.json())

    for snapshot in snapshots:
        assert (snapshot["driver_id"] is not None) == (snapshot["status"] in assigned)
