"""
Tests pour l'authentification par lien magique et les sessions.
"""
from datetime import timedelta

from noslimites import config
from noslimites.models import MagicLink, Session, User
from noslimites.models.db import utcnow
from noslimites.services.magic_links import hash_magic_token


def test_request_magic_link_sends_email(client, emails):
    """Test qu'une demande de lien magique envoie un email contenant le jeton."""
    response = client.post("/auth/magic-link", json={"email": "alice@mail.fr"})
    assert response.status_code == 200
    data = response.json()
    assert "message" in data
    # En développement, le jeton et l'URL sont renvoyés
    assert data["token"]
    assert data["url"].endswith(f"/auth/verify?token={data['token']}")

    assert len(emails.sent) == 1
    assert emails.sent[0]["to"] == "alice@mail.fr"
    assert emails.sent[0]["url"] == data["url"]


def test_magic_link_stores_only_digest(client, db):
    """Test que seul le condensat du jeton est stocké."""
    token = client.post("/auth/magic-link", json={"email": "alice@mail.fr"}).json()["token"]
    link = db.query(MagicLink).one()
    assert link.token_hash == hash_magic_token(token)
    assert link.token_hash != token
    assert link.used is False


def test_magic_link_does_not_create_user(client, db):
    """Test qu'aucun compte n'est créé avant la vérification du lien."""
    client.post("/auth/magic-link", json={"email": "inconnu@mail.fr"})
    assert db.query(User).count() == 0


def test_magic_link_response_same_for_known_and_unknown(client, login):
    """Test que la réponse ne révèle pas si l'email a déjà un compte."""
    login("connu@mail.fr")
    known = client.post("/auth/magic-link", json={"email": "connu@mail.fr"}).json()
    unknown = client.post("/auth/magic-link", json={"email": "inconnu@mail.fr"}).json()
    assert known["message"] == unknown["message"]
    assert set(known) == set(unknown)


def test_magic_link_uses_allowed_origin(client, emails):
    """Test que l'origine de la requête est utilisée seulement si elle est autorisée."""
    client.post(
        "/auth/magic-link",
        json={"email": "alice@mail.fr"},
        headers={"Origin": "https://nos-limites-app.vercel.app"},
    )
    client.post(
        "/auth/magic-link",
        json={"email": "alice@mail.fr"},
        headers={"Origin": "https://attaquant.example.org"},
    )
    assert emails.sent[0]["url"].startswith("https://nos-limites-app.vercel.app/auth/verify")
    assert not emails.sent[1]["url"].startswith("https://attaquant.example.org")


def test_verify_creates_user_and_session(client, db):
    """Test que la vérification crée l'utilisateur, une session et un appareil."""
    token = client.post("/auth/magic-link", json={"email": "Alice@Mail.fr"}).json()["token"]
    response = client.get("/auth/verify", params={"token": token, "device_name": "Firefox"})
    assert response.status_code == 200
    data = response.json()
    assert data["is_new_user"] is True
    assert data["user"]["email"] == "alice@mail.fr"
    assert data["user"]["display_name"] == "alice"
    assert data["token"]
    assert data["device_id"]
    assert data["device_token"]
    assert db.query(Session).count() == 1


def test_verify_twice_returns_already_used(client):
    """Test qu'un lien vérifié une fois est refusé la seconde fois."""
    token = client.post("/auth/magic-link", json={"email": "alice@mail.fr"}).json()["token"]
    first = client.get("/auth/verify", params={"token": token})
    assert first.status_code == 200

    second = client.get("/auth/verify", params={"token": token})
    assert second.status_code == 400
    assert second.json()["kind"] == "already_used"


def test_verify_existing_user_is_not_new(client, login):
    """Test qu'une seconde connexion retrouve le même compte."""
    first = login("alice@mail.fr")
    second = login("alice@mail.fr")
    assert second["is_new_user"] is False
    assert second["user"]["id"] == first["user"]["id"]


def test_verify_expired_link(client, db):
    """Test qu'un lien expiré est refusé avec le type expired."""
    token = client.post("/auth/magic-link", json={"email": "alice@mail.fr"}).json()["token"]
    link = db.query(MagicLink).one()
    link.expires_at = utcnow() - timedelta(minutes=1)
    db.commit()

    response = client.get("/auth/verify", params={"token": token})
    assert response.status_code == 400
    assert response.json()["kind"] == "expired"
    assert db.query(User).count() == 0


def test_verify_unknown_token(client):
    """Test qu'un jeton inconnu renvoie 404."""
    response = client.get("/auth/verify", params={"token": "inexistant"})
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


def test_magic_link_rate_limit(client):
    """Test que plus de 5 demandes par heure pour un email sont refusées."""
    for _ in range(config.MAGIC_LINK_MAX_PER_HOUR):
        assert client.post("/auth/magic-link", json={"email": "alice@mail.fr"}).status_code == 200

    response = client.post("/auth/magic-link", json={"email": "alice@mail.fr"})
    assert response.status_code == 429
    assert response.json()["kind"] == "rate_limited"

    # Un autre email n'est pas concerné
    assert client.post("/auth/magic-link", json={"email": "bob@mail.fr"}).status_code == 200


def test_get_session(client, alice):
    """Test que /auth/session renvoie l'utilisateur courant."""
    response = client.get("/auth/session", headers=alice["headers"])
    assert response.status_code == 200
    assert response.json()["user"]["email"] == "alice@mail.fr"


def test_session_rejects_invalid_token(client):
    """Test qu'un jeton mal formé est refusé."""
    response = client.get("/auth/session", headers={"Authorization": "Bearer pas.un.jwt"})
    assert response.status_code == 401
    assert response.json()["kind"] == "unauthenticated"


def test_logout_revokes_session(client, alice):
    """Test que la déconnexion invalide le jeton de session (politique database)."""
    assert client.post("/auth/logout", headers=alice["headers"]).status_code == 200
    response = client.get("/auth/session", headers=alice["headers"])
    assert response.status_code == 401


def test_session_expired_in_database(client, db, alice):
    """Test qu'une session expirée en base est refusée."""
    for row in db.query(Session).all():
        row.expires_at = utcnow() - timedelta(minutes=1)
    db.commit()
    response = client.get("/auth/session", headers=alice["headers"])
    assert response.status_code == 401


def test_stateless_session_policy(client, db, login, monkeypatch):
    """Test de la politique sans état : aucune session stockée, pas de révocation."""
    monkeypatch.setattr(config, "SESSION_POLICY", "stateless")
    alice = login("alice@mail.fr")
    assert db.query(Session).count() == 0

    assert client.get("/auth/session", headers=alice["headers"]).status_code == 200
    assert client.post("/auth/logout", headers=alice["headers"]).status_code == 200
    # Le jeton reste valide jusqu'à son expiration
    assert client.get("/auth/session", headers=alice["headers"]).status_code == 200
