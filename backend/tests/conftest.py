"""
Fixtures partagées pour tous les tests.
"""
import os

# Configuration de test, avant tout import de l'application
os.environ["APP_ENV"] = "development"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMAIL_PROVIDER"] = "console"
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Base de données de test en mémoire SQLite
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

# Créer un moteur SQLite en mémoire pour les tests
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Importer Base après avoir créé le moteur de test
from noslimites.models import Base, Limit
from noslimites.services.catalog import seed_catalog


class RecordingEmailProvider:
    """Fournisseur d'email qui garde les messages en mémoire."""

    def __init__(self):
        self.sent = []

    def send_magic_link(self, to_email, magic_link_url, expires_in_minutes=15):
        self.sent.append({"to": to_email, "url": magic_link_url, "expires_in_minutes": expires_in_minutes})


@pytest.fixture(scope="function")
def db():
    """
    Crée une nouvelle base de données pour chaque test, catalogue inclus.
    La base est créée au début et supprimée à la fin pour garantir l'isolation.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    seed_catalog(db)
    try:
        yield db
    finally:
        db.rollback()  # Annuler toute transaction en cours
        db.close()
        # Nettoyer toutes les tables après le test
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def emails():
    return RecordingEmailProvider()


@pytest.fixture(scope="function")
def client(db, emails, monkeypatch):
    """
    Crée un client de test FastAPI avec une base de données isolée.
    Remplace SessionLocal, get_db et le fournisseur d'email.
    """
    from noslimites.models import db as models_db
    monkeypatch.setattr(models_db, "SessionLocal", TestingSessionLocal)

    from main import app
    from noslimites.db import get_db
    from noslimites.auth.email import get_email_provider

    def override_get_db():
        try:
            yield db
        finally:
            # Ne pas fermer la session ici, elle sera fermée dans la fixture db
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_provider] = lambda: emails

    with TestClient(app) as test_client:
        yield test_client

    # Nettoyer les overrides après le test
    app.dependency_overrides.clear()


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def login(client):
    """
    Connecte un utilisateur via un lien magique (jeton renvoyé en développement).
    Retourne la réponse de /auth/verify enrichie des en-têtes d'authentification.
    """
    def _login(email, device_name=None):
        response = client.post("/auth/magic-link", json={"email": email})
        assert response.status_code == 200, response.text
        token = response.json()["token"]
        params = {"token": token}
        if device_name:
            params["device_name"] = device_name
        verified = client.get("/auth/verify", params=params)
        assert verified.status_code == 200, verified.text
        data = verified.json()
        data["headers"] = auth_headers(data["token"])
        return data

    return _login


@pytest.fixture
def alice(login):
    return login("alice@mail.fr")


@pytest.fixture
def bob(login):
    return login("bob@mail.fr")


@pytest.fixture
def carol(login):
    return login("carol@mail.fr")


@pytest.fixture
def relationship(client, alice, bob):
    """Relation acceptée entre Alice (invitante) et Bob."""
    invite = client.post("/relationships/invite", headers=alice["headers"])
    assert invite.status_code == 201, invite.text
    token = invite.json()["invitation_token"]
    accepted = client.post(f"/relationships/accept/{token}", headers=bob["headers"])
    assert accepted.status_code == 200, accepted.text
    return accepted.json()["relationship"]


@pytest.fixture
def limit_ids(db):
    """Identifiants des limites du catalogue, dans l'ordre d'affichage."""
    return [lim.id for lim in db.query(Limit).order_by(Limit.subcategory_id, Limit.sort_order).all()]
