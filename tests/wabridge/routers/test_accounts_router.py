def test_get_account(client, setup_counterpart):
    response = client.get(f"/accounts/{setup_counterpart.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == setup_counterpart.name
    assert data["display_name"] == setup_counterpart.name


def test_set_custom_name(client, db, setup_counterpart):
    response = client.patch(
        f"/accounts/{setup_counterpart.id}/name", json={"custom_name": "  Asha (florist) "}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["custom_name"] == "Asha (florist)"
    assert data["display_name"] == "Asha (florist)"
    db.refresh(setup_counterpart)
    assert setup_counterpart.custom_name == "Asha (florist)"


def test_clear_custom_name(client, setup_counterpart):
    client.patch(f"/accounts/{setup_counterpart.id}/name", json={"custom_name": "Asha"})

    response = client.patch(f"/accounts/{setup_counterpart.id}/name", json={"custom_name": ""})

    assert response.status_code == 200
    assert response.json()["custom_name"] is None
    assert response.json()["display_name"] == setup_counterpart.name


def test_unknown_account(client):
    assert client.get("/accounts/000000000000").status_code == 404
    response = client.patch("/accounts/000000000000/name", json={"custom_name": "X"})
    assert response.status_code == 404


def test_accounts_require_header(anonymous_client, setup_counterpart):
    assert anonymous_client.get(f"/accounts/{setup_counterpart.id}").status_code == 401
