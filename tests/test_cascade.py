import pytest
from sqlalchemy.orm import Session

from marketplace.core.exceptions import InternalError, ItemNotFound, UserNotFound
from marketplace.models.item import Item
from marketplace.models.user import User
from marketplace.services import cascade
from marketplace.services.review_ledger import ReviewLedger


def _user(db: Session, username: str) -> User:
    return db.query(User).filter(User.username == username).one()


def _seed_shared_reviews(db: Session, make_user, make_item):
    """Three users review one item; one of them also reviews a second item."""
    target = make_item("Kind of Blue")
    other = make_item("Blue Train")
    for name in ("ann", "bob", "cat"):
        make_user(name)
    ReviewLedger.submit(db, target.id, "ann", 9)
    ReviewLedger.submit(db, target.id, "bob", 3)
    ReviewLedger.submit(db, target.id, "cat", 6)
    ReviewLedger.submit(db, other.id, "ann", 5)
    return target, other


def test_delete_item_detaches_reviews_from_every_user(db_session: Session, make_user, make_item, monkeypatch):
    target, other = _seed_shared_reviews(db_session, make_user, make_item)
    target_id = target.id

    recomputed = []
    real = ReviewLedger.reaggregate_user

    def spy(db, username):
        recomputed.append(username)
        return real(db, username)

    monkeypatch.setattr(ReviewLedger, "reaggregate_user", staticmethod(spy))

    affected = cascade.delete_item(db_session, target_id)

    assert affected == {"ann", "bob", "cat"}
    assert sorted(recomputed) == ["ann", "bob", "cat"]

    db_session.expire_all()
    assert db_session.get(Item, target_id) is None

    ann = _user(db_session, "ann")
    assert [entry["item_id"] for entry in ann.reviews] == [other.id]
    assert ann.review_count == 1
    assert ann.average_rating == 5.0

    for name in ("bob", "cat"):
        user = _user(db_session, name)
        assert user.reviews == []
        assert user.review_count == 0
        assert user.average_rating == 0

    assert other.review_count == 1


def test_delete_user_detaches_reviews_from_every_item(db_session: Session, make_user, make_item, monkeypatch):
    target, other = _seed_shared_reviews(db_session, make_user, make_item)

    recomputed = []
    real = ReviewLedger.reaggregate_item

    def spy(db, item_id):
        recomputed.append(item_id)
        return real(db, item_id)

    monkeypatch.setattr(ReviewLedger, "reaggregate_item", staticmethod(spy))

    affected = cascade.delete_user(db_session, "ann")

    assert affected == {target.id, other.id}
    assert sorted(recomputed) == sorted([target.id, other.id])

    db_session.expire_all()
    assert db_session.query(User).filter(User.username == "ann").first() is None
    assert sorted(entry["username"] for entry in target.reviews) == ["bob", "cat"]
    assert target.review_count == 2
    assert target.rating == 4.5
    assert other.reviews == []
    assert other.review_count == 0
    assert other.rating == 0


def test_delete_item_without_reviews(db_session: Session, make_item):
    item = make_item()

    assert cascade.delete_item(db_session, item.id) == set()
    assert db_session.query(Item).count() == 0


def test_delete_unknown_records(db_session: Session):
    with pytest.raises(ItemNotFound):
        cascade.delete_item(db_session, 404)
    with pytest.raises(UserNotFound):
        cascade.delete_user(db_session, "nobody")


def test_failed_item_removal_keeps_detached_mirrors(db_session: Session, make_user, make_item, monkeypatch):
    target, _ = _seed_shared_reviews(db_session, make_user, make_item)
    target_id = target.id

    def failing_delete(db, document, message):
        raise InternalError(message)

    monkeypatch.setattr(cascade, "delete_document", failing_delete)

    with pytest.raises(InternalError):
        cascade.delete_item(db_session, target_id)

    db_session.expire_all()
    assert db_session.get(Item, target_id) is not None
    for name in ("bob", "cat"):
        assert _user(db_session, name).reviews == []
    assert len(_user(db_session, "ann").reviews) == 1


def test_delete_all_items_clears_every_user(db_session: Session, make_user, make_item):
    _seed_shared_reviews(db_session, make_user, make_item)

    assert cascade.delete_all_items(db_session) == 2

    db_session.expire_all()
    assert db_session.query(Item).count() == 0
    for user in db_session.query(User).all():
        assert user.reviews == []
        assert user.review_count == 0
        assert user.average_rating == 0


def test_delete_all_users_clears_every_item(db_session: Session, make_user, make_item):
    target, other = _seed_shared_reviews(db_session, make_user, make_item)

    assert cascade.delete_all_users(db_session) == 3

    db_session.expire_all()
    assert db_session.query(User).count() == 0
    assert target.reviews == [] and other.reviews == []
    assert target.rating == 0 and other.rating == 0
