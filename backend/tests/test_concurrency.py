"""
Tests de concurrence : plusieurs requêtes simultanées sur une base SQLite fichier.

Chaque fil d'exécution ouvre sa propre session, et une barrière les libère
ensemble pour que les écritures se chevauchent réellement.
"""
import threading

import pytest
from sqlalchemy import create_engine, and_, or_
from sqlalchemy.orm import sessionmaker

from noslimites.errors import NosLimitesError
from noslimites.models import Base, Limit, MagicLink, Notification, Relationship, User, UserLimit
from noslimites.services import magic_links, matching, relationships
from noslimites.services.catalog import seed_catalog

THREADS = 6


@pytest.fixture
def factory(tmp_path):
    """Base SQLite sur disque partagée entre les fils, catalogue inclus."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'concurrence.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    with factory() as db:
        seed_catalog(db)
    yield factory
    engine.dispose()


def _run_concurrently(factory, count, action):
    """
    Lance ``action(db, index)`` dans ``count`` fils en même temps.
    Retourne la liste des résultats : ("ok", valeur), ("error", kind) ou ("crash", nom).
    """
    barrier = threading.Barrier(count)
    results = []

    def worker(index):
        with factory() as db:
            barrier.wait()
            try:
                results.append(("ok", action(db, index)))
            except NosLimitesError as exc:
                results.append(("error", exc.kind))
            except Exception as exc:
                results.append(("crash", type(exc).__name__))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def _make_user(db, email):
    user = User(email=email, display_name=email.split("@")[0], auth_provider="magic_link")
    db.add(user)
    db.commit()
    return user.id


@pytest.fixture
def pair(factory):
    """Alice et Bob, sans relation."""
    with factory() as db:
        return _make_user(db, "alice@mail.fr"), _make_user(db, "bob@mail.fr")


@pytest.fixture
def accepted(factory, pair):
    """Relation acceptée entre Alice et Bob, et une limite du catalogue."""
    alice_id, bob_id = pair
    with factory() as db:
        rel = relationships.create_invitation(db, alice_id)
        relationships.accept_invitation(db, rel.invitation_token, bob_id)
        limit_id = db.query(Limit.id).order_by(Limit.id).first()[0]
        return {"alice": alice_id, "bob": bob_id, "relationship": rel.id, "limit": limit_id}


def _accepted_between(db, user_a, user_b):
    return (
        db.query(Relationship)
        .filter(
            Relationship.status == "accepted",
            or_(
                and_(Relationship.inviter_id == user_a, Relationship.invitee_id == user_b),
                and_(Relationship.inviter_id == user_b, Relationship.invitee_id == user_a),
            ),
        )
        .count()
    )


def test_concurrent_verify_single_success(factory):
    """Test qu'un même lien magique vérifié en parallèle ne réussit qu'une fois."""
    with factory() as db:
        token = magic_links.issue_magic_link(db, "alice@mail.fr").token

    results = _run_concurrently(
        factory, THREADS, lambda db, i: magic_links.verify_magic_link(db, token).user.id
    )

    assert [r[0] for r in results].count("ok") == 1
    assert sorted(r for r in results if r[0] != "ok") == [("error", "already_used")] * (THREADS - 1)
    with factory() as db:
        assert db.query(User).count() == 1
        assert db.query(MagicLink).filter(MagicLink.used.is_(True)).count() == 1


def test_concurrent_accept_same_token(factory, pair):
    """Test qu'un double clic simultané sur une invitation ne crée qu'une relation et une notification."""
    alice_id, bob_id = pair
    with factory() as db:
        token = relationships.create_invitation(db, alice_id).invitation_token

    results = _run_concurrently(
        factory, THREADS, lambda db, i: relationships.accept_invitation(db, token, bob_id)[1]
    )

    assert all(status == "ok" for status, _ in results)
    # Un seul appel a réellement accepté, les autres sont idempotents
    assert [already for _, already in results].count(False) == 1
    with factory() as db:
        assert _accepted_between(db, alice_id, bob_id) == 1
        assert db.query(Notification).filter(Notification.user_id == alice_id).count() == 1


def test_concurrent_accept_two_invitations_same_pair(factory, pair):
    """Test que deux invitations d'Alice acceptées en même temps par Bob ne donnent qu'une relation."""
    alice_id, bob_id = pair
    with factory() as db:
        tokens = [relationships.create_invitation(db, alice_id).invitation_token for _ in range(2)]

    results = _run_concurrently(
        factory, 2, lambda db, i: relationships.accept_invitation(db, tokens[i], bob_id)[1]
    )

    assert sorted(results) == [("error", "conflict"), ("ok", False)]
    with factory() as db:
        assert _accepted_between(db, alice_id, bob_id) == 1
        assert db.query(Relationship).filter(Relationship.status == "pending").count() == 1


def test_concurrent_upsert_choices_single_row(factory, accepted):
    """Test qu'une même limite acceptée en parallèle ne produit qu'une ligne."""
    update = [matching.ChoiceUpdate(limit_id=accepted["limit"], is_accepted=True)]

    results = _run_concurrently(
        factory,
        THREADS,
        lambda db, i: len(matching.upsert_choices(db, accepted["alice"], accepted["relationship"], update)),
    )

    assert results == [("ok", 1)] * THREADS
    with factory() as db:
        rows = db.query(UserLimit).filter(UserLimit.user_id == accepted["alice"]).all()
        assert len(rows) == 1
        assert rows[0].is_accepted is True


def test_concurrent_note_writes_single_row(factory, accepted):
    """Test que des notes écrites en parallèle sur une nouvelle limite ne lèvent pas d'erreur d'intégrité."""
    notes = [f"note {i}" for i in range(THREADS)]

    results = _run_concurrently(
        factory,
        THREADS,
        lambda db, i: matching.upsert_note(
            db, accepted["bob"], accepted["relationship"], accepted["limit"], notes[i]
        ).note,
    )

    assert all(status == "ok" for status, _ in results)
    with factory() as db:
        rows = db.query(UserLimit).filter(UserLimit.user_id == accepted["bob"]).all()
        assert len(rows) == 1
        assert rows[0].note in notes
        assert rows[0].is_accepted is False
