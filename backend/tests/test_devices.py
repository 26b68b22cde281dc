"""
Tests pour les jetons d'appareil (rotation, plafond, révocation).
"""
from datetime import timedelta

from noslimites.models import Device
from noslimites.models.db import utcnow
from noslimites.services import devices as device_service


def _refresh(client, device_id, device_token):
    return client.post("/auth/device/refresh", json={"device_id": device_id, "device_token": device_token})


def test_refresh_rotates_device_token(client, alice):
    """Test que le rafraîchissement renvoie une nouvelle session et un nouveau jeton d'appareil."""
    response = _refresh(client, alice["device_id"], alice["device_token"])
    assert response.status_code == 200
    data = response.json()
    assert data["device_id"] == alice["device_id"]
    assert data["user_id"] == alice["user"]["id"]
    assert data["device_token"] != alice["device_token"]

    session = client.get("/auth/session", headers={"Authorization": f"Bearer {data['token']}"})
    assert session.status_code == 200


def test_old_device_token_rejected_after_rotation(client, alice):
    """Test que l'ancien jeton d'appareil est refusé après rotation."""
    assert _refresh(client, alice["device_id"], alice["device_token"]).status_code == 200

    replay = _refresh(client, alice["device_id"], alice["device_token"])
    assert replay.status_code == 401
    assert replay.json()["kind"] == "invalid_or_revoked"


def test_rotated_token_can_be_used_again(client, alice):
    """Test que le nouveau jeton permet un second rafraîchissement."""
    first = _refresh(client, alice["device_id"], alice["device_token"]).json()
    second = _refresh(client, alice["device_id"], first["device_token"])
    assert second.status_code == 200


def test_device_token_stored_as_hmac(client, db, alice):
    """Test que seul un HMAC du jeton est stocké."""
    device = db.query(Device).filter(Device.id == alice["device_id"]).one()
    assert device.refresh_token_hash == device_service.hash_device_token(alice["device_token"])
    assert device.refresh_token_hash != alice["device_token"]


def test_expired_device_is_revoked(client, db, alice):
    """Test qu'un appareil expiré est refusé puis révoqué."""
    device = db.query(Device).filter(Device.id == alice["device_id"]).one()
    device.expires_at = utcnow() - timedelta(days=1)
    db.commit()

    response = _refresh(client, alice["device_id"], alice["device_token"])
    assert response.status_code == 401
    assert response.json()["kind"] == "expired"
    db.refresh(device)
    assert device.revoked is True


def test_device_cap_evicts_least_recently_seen(client, login, monkeypatch):
    """Test qu'au-delà du plafond, l'appareil vu le moins récemment est révoqué."""
    monkeypatch.setattr(device_service, "MAX_DEVICES_PER_USER", 2)
    first = login("alice@mail.fr", device_name="Ordinateur")
    login("alice@mail.fr", device_name="Téléphone")
    third = login("alice@mail.fr", device_name="Tablette")

    listing = client.get("/devices", headers=third["headers"]).json()["devices"]
    active = [d for d in listing if not d["revoked"]]
    assert len(active) == 2
    revoked = [d for d in listing if d["revoked"]]
    assert [d["id"] for d in revoked] == [first["device_id"]]

    assert _refresh(client, first["device_id"], first["device_token"]).status_code == 401


def test_list_devices_hides_token_hash(client, alice):
    """Test que la liste des appareils n'expose pas le condensat du jeton."""
    response = client.get("/devices", headers=alice["headers"])
    assert response.status_code == 200
    devices = response.json()["devices"]
    assert len(devices) == 1
    assert devices[0]["device_name"] == "Navigateur"
    assert "refresh_token_hash" not in devices[0]


def test_revoke_device(client, alice):
    """Test qu'un appareil révoqué ne peut plus rafraîchir la session."""
    response = client.delete(f"/devices/{alice['device_id']}", headers=alice["headers"])
    assert response.status_code == 200
    assert _refresh(client, alice["device_id"], alice["device_token"]).status_code == 401


def test_revoke_other_users_device_forbidden(client, alice, bob):
    """Test qu'on ne peut pas révoquer l'appareil d'un autre utilisateur."""
    response = client.delete(f"/devices/{alice['device_id']}", headers=bob["headers"])
    assert response.status_code == 403
    assert response.json()["kind"] == "forbidden"


def test_revoke_unknown_device(client, alice):
    """Test qu'un appareil inconnu renvoie 404."""
    response = client.delete("/devices/inexistant", headers=alice["headers"])
    assert response.status_code == 404


def test_rename_device(client, alice):
    """Test du renommage d'un appareil."""
    response = client.put(
        f"/devices/{alice['device_id']}",
        json={"device_name": "  Mon téléphone  "},
        headers=alice["headers"],
    )
    assert response.status_code == 200
    assert response.json()["device_name"] == "Mon téléphone"


def test_rename_device_blank_name(client, alice):
    """Test qu'un nom d'appareil vide est refusé."""
    response = client.put(f"/devices/{alice['device_id']}", json={"device_name": "   "}, headers=alice["headers"])
    assert response.status_code == 422
