"""Tests for bearer token checks in front of the API."""
from datetime import timedelta

import pytest
from fastapi import HTTPException, status

from messbook.core.auth import create_access_token, user_id_from_token


def test_token_round_trips_subject():
    assert user_id_from_token(create_access_token("65a000000000000000000001")) == "65a000000000000000000001"


def test_expired_token_is_rejected():
    token = create_access_token("65a000000000000000000001", expires_delta=timedelta(minutes=-1))

    with pytest.raises(HTTPException) as exc_info:
        user_id_from_token(token)

    assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_garbage_token_is_unauthorized(client):
    response = await client.get("/reports", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_inactive_user_is_unauthorized(client, auth_headers, make_user):
    former = await make_user("Former", is_active=False)

    response = await client.get("/reports", headers=auth_headers(former))

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_member_can_list_reports(client, auth_headers, alice):
    response = await client.get("/reports", headers=auth_headers(alice))

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == []
