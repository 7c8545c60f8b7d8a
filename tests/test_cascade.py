"""
Tests for destroy and recover cascading to dependents.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from paranoid_toolkit.soft_delete import (
    CascadeEngine,
    HookAbortedError,
    UnknownEntityTypeError,
    only_deleted,
    with_deleted,
)
from paranoid_toolkit.soft_delete.predicate import utc_now

from .models import Comment, Gallery, Image, Post, Tag

pytestmark = pytest.mark.cascade


def ids(session, stmt):
    return {row.id for row in session.scalars(stmt)}


@pytest.fixture
def post(db_session):
    """Post with two comments (destroy) and two tags (delete_all)."""
    post = Post(id=1, title="Hello", comments_count=2)
    post.comments = [Comment(id=1, body="first"), Comment(id=2, body="second")]
    post.tags = [Tag(id=1, name="python"), Tag(id=2, name="orm")]
    db_session.add(post)
    db_session.commit()
    return post


class TestDependencies:
    """Dependency discovery."""

    def test_relationship_and_polymorphic_dependencies(self, service):
        engine = CascadeEngine(service)

        post_deps = {(d.name, d.policy.value) for d in engine.dependencies(Post)}
        assert post_deps == {("comments", "destroy"), ("tags", "delete_all")}

        gallery_deps = [d.name for d in engine.dependencies(Gallery)]
        assert gallery_deps == ["cover"]

        assert engine.dependencies(Comment) == []


class TestDestroyCascade:
    """Destroying a parent reaches its dependents."""

    def test_destroy_dependents_are_removed(self, db_session, service, post):
        comments = list(post.comments)

        assert service.destroy(post) is True

        assert ids(db_session, with_deleted(Comment)) == set()
        assert all(not service.is_persisted(c) for c in comments)

    def test_delete_all_dependents_are_marked(self, db_session, service, post):
        service.destroy(post)

        assert ids(db_session, select(Tag)) == set()
        assert ids(db_session, only_deleted(Tag)) == {1, 2}

    def test_cascading_association_counter_untouched(self, db_session, service, post):
        service.destroy(post)

        count = db_session.scalars(
            select(Post.comments_count).execution_options(include_deleted=True)
        ).one()
        assert count == 2

    def test_hard_destroy_removes_delete_all_dependents(self, db_session, service, post):
        service.destroy_fully(post)

        assert ids(db_session, with_deleted(Tag)) == set()
        assert ids(db_session, with_deleted(Post)) == set()

    def test_collections_reload_after_cascade(self, db_session, service, post):
        service.destroy(post)
        service.recover(post)

        assert post.comments == []
        assert {t.name for t in post.tags} == {"python", "orm"}


class TestPostCommentScenario:
    """Comments destroyed with their post are gone for good."""

    def test_recover_post_restores_only_recoverable_dependents(
        self, db_session, service, post
    ):
        service.destroy(post)
        assert ids(db_session, select(Post)) == set()

        assert service.recover(post) is True

        assert ids(db_session, select(Post)) == {1}
        assert ids(db_session, with_deleted(Comment)) == set()
        assert ids(db_session, select(Tag)) == {1, 2}


class TestRecoveryWindow:
    """Only dependents deleted alongside the parent come back."""

    @pytest.fixture
    def old_tag(self, db_session, service, post):
        tag = post.tags[0]
        service.destroy(tag)
        tag_deleted_at = utc_now() - timedelta(hours=1)
        db_session.execute(
            Tag.__table__.update()
            .where(Tag.__table__.c.id == tag.id)
            .values(deleted_at=tag_deleted_at)
        )
        db_session.commit()
        db_session.expire_all()
        return tag

    def test_earlier_deletion_stays_deleted(self, db_session, service, post, old_tag):
        service.destroy(post)
        service.recover(post)

        assert ids(db_session, select(Tag)) == {2}
        assert ids(db_session, only_deleted(Tag)) == {old_tag.id}

    def test_zero_window_recovers_no_dependents(self, db_session, service, post):
        service.destroy(post)
        service.recover(post, recovery_window=timedelta(0))

        assert ids(db_session, select(Post)) == {1}
        assert ids(db_session, select(Tag)) == set()

    def test_wide_window_recovers_earlier_deletion(
        self, db_session, service, post, old_tag
    ):
        service.destroy(post)
        service.recover(post, recovery_window=timedelta(days=1))

        assert ids(db_session, select(Tag)) == {1, 2}

    def test_non_recursive_recover(self, db_session, service, post):
        service.destroy(post)
        service.recover(post, recursive=False)

        assert ids(db_session, select(Post)) == {1}
        assert ids(db_session, select(Tag)) == set()


class TestAtomicity:
    """A vetoed cascade leaves nothing behind."""

    def test_hook_failure_during_cascade_rolls_back(
        self, db_session, service, post, hooks
    ):
        first, second = post.comments
        hooks.register(Comment, "before_destroy", lambda c: c.body != "second")

        assert service.destroy(post) is False

        assert isinstance(service.last_error, HookAbortedError)
        assert service.last_error.event == "before_destroy"
        assert post.deleted_at is None
        assert ids(db_session, with_deleted(Comment)) == {1, 2}
        assert ids(db_session, select(Tag)) == {1, 2}
        assert service.is_persisted(first)
        first.body = "still editable"

    def test_hook_failure_during_recover_rolls_back(
        self, db_session, service, post, hooks
    ):
        service.destroy(post)

        @hooks.before_recover(Tag)
        def refuse(tag):
            raise RuntimeError("index unavailable")

        assert service.recover(post) is False
        assert "index unavailable" in str(service.last_error)
        assert post.deleted_at is not None
        assert ids(db_session, select(Post)) == set()
        assert ids(db_session, only_deleted(Tag)) == {1, 2}


class TestPolymorphicDependency:
    """Dependencies whose target type is read from the record."""

    @pytest.fixture
    def gallery(self, db_session):
        gallery = Gallery(id=1, name="trip", cover_type="Image", cover_id=7)
        db_session.add_all([gallery, Image(id=7, url="a.png"), Image(id=8, url="b.png")])
        db_session.commit()
        return gallery

    def test_destroy_reaches_target(self, db_session, service, gallery):
        service.destroy(gallery)

        assert ids(db_session, with_deleted(Image)) == {8}
        assert ids(db_session, only_deleted(Gallery)) == {1}

    def test_missing_discriminator_skipped(self, db_session, service, gallery):
        gallery.cover_type = None
        db_session.commit()

        assert service.destroy(gallery) is True
        assert ids(db_session, with_deleted(Image)) == {7, 8}

    def test_unknown_type_is_a_configuration_error(self, db_session, service, gallery):
        gallery.cover_type = "Video"
        db_session.commit()

        with pytest.raises(UnknownEntityTypeError):
            service.destroy(gallery)

        assert gallery.deleted_at is None
        assert ids(db_session, select(Gallery)) == {1}
