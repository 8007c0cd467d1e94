"""
Tests for the record lookup and summary endpoints.

Covers:
- Today's meals, monthly meal stats and single-meal lookup
- Expense summary and single-expense lookup
- Deposit summary and member edits of pending deposits
"""

from datetime import date

import pytest
from fastapi import status


async def post_meal(client, headers, user, day, meal_type="lunch", guests=0):
    response = await client.post(
        "/meals",
        headers=headers(user),
        json={"date": day, "meal_type": meal_type, "guest_count": guests}
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


async def request_deposit(client, headers, user, amount, day="2024-03-01"):
    response = await client.post(
        "/deposits/request",
        headers=headers(user),
        json={"amount": amount, "date": day}
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


@pytest.mark.asyncio
async def test_today_lists_only_todays_meals(client, auth_headers, alice):
    today = date.today().isoformat()
    await post_meal(client, auth_headers, alice, today, "breakfast")
    await post_meal(client, auth_headers, alice, "2024-03-01")

    response = await client.get("/meals/today", headers=auth_headers(alice))

    assert response.status_code == status.HTTP_200_OK
    assert [meal["meal_type"] for meal in response.json()] == ["breakfast"]


@pytest.mark.asyncio
async def test_monthly_meal_stats(client, auth_headers, admin, alice):
    await post_meal(client, auth_headers, alice, "2024-03-01", "lunch", guests=1)
    await post_meal(client, auth_headers, alice, "2024-03-01", "dinner")

    response = await client.get("/meals/stats/monthly", headers=auth_headers(alice), params={"month": "2024-03"})

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert (body["lunch"], body["dinner"], body["guest_meals"], body["total"]) == (1, 1, 1, 3)

    response = await client.get(
        "/meals/stats/monthly",
        headers=auth_headers(admin),
        params={"month": "2024-03", "user_id": alice.id}
    )
    assert response.json()["total"] == 3


@pytest.mark.asyncio
async def test_get_meal_checks_owner(client, auth_headers, alice, bob):
    meal = await post_meal(client, auth_headers, alice, "2024-03-02")

    response = await client.get(f"/meals/{meal['id']}", headers=auth_headers(alice))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["id"] == meal["id"]

    response = await client.get(f"/meals/{meal['id']}", headers=auth_headers(bob))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "permission_denied"


@pytest.mark.asyncio
async def test_expense_summary_and_lookup(client, auth_headers, admin, alice):
    created = []
    for category, amount in (("grocery", 250), ("gas", 75.5)):
        response = await client.post(
            "/expenses",
            headers=auth_headers(admin),
            json={"category": category, "amount": amount, "date": "2024-03-04", "description": category}
        )
        created.append(response.json())

    response = await client.get("/expenses/summary", headers=auth_headers(alice), params={"month": "2024-03"})

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["total"] == 325.5
    assert body["count"] == 2
    assert body["category_breakdown"]["gas"] == 75.5

    response = await client.get(f"/expenses/{created[0]['id']}", headers=auth_headers(alice))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["amount"] == 250


@pytest.mark.asyncio
async def test_missing_expense_is_not_found(client, auth_headers, alice):
    response = await client.get("/expenses/65f000000000000000000000", headers=auth_headers(alice))

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_deposit_summary_ignores_pending(client, auth_headers, admin, alice):
    response = await client.post(
        "/deposits",
        headers=auth_headers(admin),
        json={"user_id": alice.id, "amount": 400, "date": "2024-03-01"}
    )
    assert response.status_code == status.HTTP_201_CREATED
    await request_deposit(client, auth_headers, alice, 90)

    response = await client.get("/deposits/summary", headers=auth_headers(alice), params={"month": "2024-03"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["total"] == 400
    assert response.json()["count"] == 1


@pytest.mark.asyncio
async def test_member_edits_and_withdraws_pending_deposit(client, auth_headers, alice):
    deposit = await request_deposit(client, auth_headers, alice, 90)

    response = await client.put(f"/deposits/{deposit['id']}", headers=auth_headers(alice), json={"amount": 120})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["amount"] == 120

    response = await client.delete(f"/deposits/{deposit['id']}", headers=auth_headers(alice))
    assert response.status_code == status.HTTP_204_NO_CONTENT


@pytest.mark.asyncio
async def test_member_cannot_edit_approved_deposit(client, auth_headers, admin, alice):
    deposit = await request_deposit(client, auth_headers, alice, 90)
    await client.put(
        f"/deposits/{deposit['id']}/approve",
        headers=auth_headers(admin),
        json={"status": "approved"}
    )

    response = await client.put(f"/deposits/{deposit['id']}", headers=auth_headers(alice), json={"amount": 10})

    assert response.status_code == status.HTTP_403_FORBIDDEN
