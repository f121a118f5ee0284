import pytest

from app.core.config import settings
from app.core.errors import AlreadyOwned, InsufficientBalance, InvalidArgument, InvalidState, NotAuthorized, NotFound
from app.database.models import CoursePurchase, CourseProgress, CourseVideo, Transaction, User
from app.services import courses, storage


def _balance(db, user_id):
    return db.query(User.points_balance).filter(User.id == user_id).scalar()


@pytest.fixture
def course(db, admin, as_actor):
    return courses.create_course(db, as_actor(admin), "SQL basics", "Joins and indexes", "data", price=120)


def test_purchase_with_insufficient_balance(db, course, make_user, as_actor):
    intern = make_user("intern", balance=50)

    with pytest.raises(InsufficientBalance):
        courses.purchase_course(db, as_actor(intern), course.id)

    assert _balance(db, intern.id) == 50
    assert db.query(CoursePurchase).count() == 0
    assert db.query(Transaction).count() == 0


def test_purchase_once(db, course, make_user, as_actor):
    intern = make_user("intern", balance=300)

    purchase = courses.purchase_course(db, as_actor(intern), course.id)
    assert purchase.price_paid == 120
    with pytest.raises(AlreadyOwned):
        courses.purchase_course(db, as_actor(intern), course.id)

    assert db.query(CoursePurchase).filter(CoursePurchase.user_id == intern.id).count() == 1
    spends = db.query(Transaction).filter(Transaction.user_id == intern.id).all()
    assert [(t.type, t.amount, t.course_id) for t in spends] == [("spend", 120, course.id)]
    assert _balance(db, intern.id) == 180
    assert courses.owns_course(db, intern.id, course.id)


def test_purchase_guards(db, admin, make_user, as_actor):
    intern = make_user("intern", balance=500)
    free = courses.create_course(db, as_actor(admin), "Free", "Intro", "misc")
    pending = courses.submit_course(db, as_actor(make_user("intern")), "Mine", "Stuff", "misc", price=10)

    with pytest.raises(InvalidArgument):
        courses.purchase_course(db, as_actor(intern), free.id)
    with pytest.raises(InvalidState):
        courses.purchase_course(db, as_actor(intern), pending.id)
    with pytest.raises(NotFound):
        courses.purchase_course(db, as_actor(intern), 4040)
    with pytest.raises(NotAuthorized):
        courses.purchase_course(db, as_actor(admin), free.id)
    assert _balance(db, intern.id) == 500


def test_submission_needs_approval(db, admin, make_user, as_actor):
    author = make_user("intern")
    reader = make_user("intern")
    submitted = courses.submit_course(db, as_actor(author), "Git tricks", "Rebase", "tools")
    assert submitted.is_approved is False

    assert [c.id for c in courses.list_courses(db, as_actor(reader))] == []
    assert [c.id for c in courses.list_courses(db, as_actor(author))] == [submitted.id]
    assert [c.id for c in courses.list_pending(db, as_actor(admin))] == [submitted.id]
    with pytest.raises(NotFound):
        courses.get_course(db, as_actor(reader), submitted.id)

    courses.approve(db, as_actor(admin), submitted.id)
    courses.approve(db, as_actor(admin), submitted.id)  # no-op the second time
    assert [c.id for c in courses.list_courses(db, as_actor(reader))] == [submitted.id]
    assert courses.list_pending(db, as_actor(admin)) == []


def test_companies_cannot_browse_courses(db, course, company, as_actor):
    with pytest.raises(NotAuthorized):
        courses.list_courses(db, as_actor(company))


def test_video_access_requires_ownership(db, course, admin, make_user, as_actor):
    intern = make_user("intern", balance=200)
    courses.add_video(db, as_actor(admin), course.id, "Lesson 1", video_url="https://videos.example.com/1")
    courses.add_video(db, as_actor(admin), course.id, "Lesson 2", video_url="https://videos.example.com/2")

    with pytest.raises(NotAuthorized):
        courses.list_videos(db, as_actor(intern), course.id)

    courses.purchase_course(db, as_actor(intern), course.id)
    videos = courses.list_videos(db, as_actor(intern), course.id)
    assert [v["title"] for v in videos] == ["Lesson 1", "Lesson 2"]
    assert [v["order"] for v in videos] == [0, 1]
    assert len(courses.list_videos(db, as_actor(admin), course.id)) == 2


def test_video_contribution_rules(db, course, admin, make_user, as_actor):
    author = make_user("intern")
    other = make_user("intern", balance=500)
    own = courses.submit_course(db, as_actor(author), "Docker", "Containers", "tools", price=30)

    courses.add_video(db, as_actor(author), own.id, "Intro", video_url="https://v.example.com/a")
    with pytest.raises(NotAuthorized):
        courses.add_video(db, as_actor(other), own.id, "Hijack", video_url="https://v.example.com/b")

    # owning a course does not make the buyer a contributor
    courses.purchase_course(db, as_actor(other), course.id)
    with pytest.raises(NotAuthorized):
        courses.add_video(db, as_actor(other), course.id, "Extra", video_url="https://v.example.com/c")

    assert db.query(CourseVideo).count() == 1


def test_video_needs_exactly_one_source(db, course, admin, as_actor):
    with pytest.raises(InvalidArgument):
        courses.add_video(db, as_actor(admin), course.id, "Nothing")
    with pytest.raises(InvalidArgument):
        courses.add_video(db, as_actor(admin), course.id, "Both", video_url="https://x", file_id="abc")
    with pytest.raises(NotFound):
        courses.add_video(db, as_actor(admin), course.id, "Ghost file", file_id="missing")


def test_uploaded_video_gets_signed_url(db, course, admin, as_actor, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    url = courses.generate_video_upload_url(db, as_actor(admin), course.id)
    token = url.split("token=", 1)[1]
    stored = storage.save_upload(db, token, "lesson.mp4", "video/mp4", b"\x00\x01")

    courses.add_video(db, as_actor(admin), course.id, "Uploaded", file_id=stored.id)
    [video] = courses.list_videos(db, as_actor(admin), course.id)
    assert video["file_id"] == stored.id
    assert video["file_url"].startswith(f"/api/v1/storage/files/{stored.id}?token=")


def test_progress_upsert_without_ownership(db, course, intern, as_actor):
    courses.update_progress(db, as_actor(intern), course.id, 40, False)
    courses.update_progress(db, as_actor(intern), course.id, 100, True)

    rows = db.query(CourseProgress).all()
    assert len(rows) == 1
    assert (rows[0].progress, rows[0].completed) == (100, True)
    with pytest.raises(InvalidArgument):
        courses.update_progress(db, as_actor(intern), course.id, 101, False)


def test_remove_course_keeps_ledger(db, course, admin, make_user, as_actor):
    intern = make_user("intern", balance=200)
    courses.purchase_course(db, as_actor(intern), course.id)
    courses.update_progress(db, as_actor(intern), course.id, 10, False)

    courses.remove(db, as_actor(admin), course.id)

    assert db.query(CoursePurchase).count() == 0
    assert db.query(CourseProgress).count() == 0
    spend = db.query(Transaction).filter(Transaction.user_id == intern.id).one()
    assert (spend.amount, spend.course_id) == (120, None)
    assert _balance(db, intern.id) == 80


def test_priced_course_shows_up_as_owned(db, admin, make_user, as_actor):
    intern = make_user("intern", balance=40)
    course = courses.create_course(db, as_actor(admin), "Regex", "Patterns", "tools")

    with pytest.raises(InvalidArgument):
        courses.set_price(db, as_actor(admin), course.id, -1)
    with pytest.raises(NotAuthorized):
        courses.set_price(db, as_actor(intern), course.id, 10)
    courses.set_price(db, as_actor(admin), course.id, 25)

    assert courses.list_owned(db, as_actor(intern)) == []
    courses.purchase_course(db, as_actor(intern), course.id)
    assert [c.id for c in courses.list_owned(db, as_actor(intern))] == [course.id]
    assert _balance(db, intern.id) == 15


def test_course_can_point_at_uploaded_video(db, admin, as_actor, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    token = storage.generate_upload_url(as_actor(admin)).split("token=", 1)[1]
    stored = storage.save_upload(db, token, "trailer.mp4", "video/mp4", b"\x00\x00")

    course = courses.create_course(db, as_actor(admin), "Trailer", "Preview", "misc", video_file_id=stored.id)
    assert course.video_file_id == stored.id
    with pytest.raises(NotFound):
        courses.create_course(db, as_actor(admin), "Broken", "Preview", "misc", video_file_id="nope")
