import pytest

from app.core.errors import CascadeDeleteError, InsufficientBalance, InvalidArgument, InvalidState, NotAuthorized
from app.database.models import Application, Course, Project, StoredFile, Transaction, User
from app.services import admin as admin_service
from app.services import applications, courses, projects


def _balance(db, user_id):
    return db.query(User.points_balance).filter(User.id == user_id).scalar()


def test_adjust_below_zero_is_refused(db, admin, make_user, as_actor):
    intern = make_user("intern", balance=50)

    with pytest.raises(InsufficientBalance):
        admin_service.adjust_user_points(db, as_actor(admin), intern.id, -9999, "oops")

    assert _balance(db, intern.id) == 50
    assert db.query(Transaction).count() == 0


def test_adjust_records_reason(db, admin, intern, as_actor):
    user = admin_service.adjust_user_points(db, as_actor(admin), intern.id, 75, "hackathon prize")
    assert user.points_balance == 75
    tx = db.query(Transaction).one()
    assert (tx.type, tx.amount, tx.description) == ("earn", 75, "Admin adjustment: hackathon prize")


def test_moderation_is_admin_only(db, company, intern, as_actor):
    with pytest.raises(NotAuthorized):
        admin_service.adjust_user_points(db, as_actor(company), intern.id, 10)
    with pytest.raises(NotAuthorized):
        admin_service.set_user_ban(db, as_actor(company), intern.id, True)
    with pytest.raises(NotAuthorized):
        admin_service.list_users(db, as_actor(intern))


def test_ban_and_unban(db, admin, intern, as_actor):
    admin_service.set_user_ban(db, as_actor(admin), intern.id, True)
    db.refresh(intern)
    assert intern.is_banned is True
    with pytest.raises(NotAuthorized):
        courses.update_progress(db, as_actor(intern), 1, 10, False)

    admin_service.set_user_ban(db, as_actor(admin), intern.id, False)
    db.refresh(intern)
    assert intern.is_banned is False

    with pytest.raises(InvalidArgument):
        admin_service.set_user_ban(db, as_actor(admin), admin.id, True)


def test_update_role(db, admin, intern, as_actor):
    admin_service.update_user_role(db, as_actor(admin), intern.id, "company")
    db.refresh(intern)
    assert intern.role == "company"
    with pytest.raises(InvalidArgument):
        admin_service.update_user_role(db, as_actor(admin), intern.id, "superuser")


def test_list_users_by_role(db, admin, company, intern, as_actor):
    assert [u.id for u in admin_service.list_users(db, as_actor(admin), role="intern")] == [intern.id]
    assert len(admin_service.list_users(db, as_actor(admin))) == 3


def test_stats(db, admin, company, intern, as_actor):
    project = projects.create_project(db, as_actor(company), "T", "D", 100)
    projects.create_project(db, as_actor(company), "Other", "D", 10)
    a = applications.apply(db, as_actor(intern), project.id, "hi")
    applications.update_status(db, as_actor(company), a.id, "accepted")
    projects.request_completion(db, as_actor(intern), project.id)
    projects.approve_completion(db, as_actor(company), project.id)
    courses.submit_course(db, as_actor(intern), "C", "D", "misc")

    stats = admin_service.get_stats(db, as_actor(admin))
    assert stats["total_users"] == 3
    assert stats["total_companies"] == 1
    assert stats["total_interns"] == 1
    assert stats["total_projects"] == 2
    assert stats["active_projects"] == 1
    assert stats["completed_projects"] == 1
    assert stats["total_transactions"] == 2
    assert (stats["total_courses"], stats["pending_courses"]) == (1, 1)


def test_delete_company_cascades(db, admin, company, intern, as_actor):
    paid = projects.create_project(db, as_actor(company), "Paid", "D", 100)
    a = applications.apply(db, as_actor(intern), paid.id, "hi")
    applications.update_status(db, as_actor(company), a.id, "accepted")
    projects.request_completion(db, as_actor(intern), paid.id)
    projects.approve_completion(db, as_actor(company), paid.id)
    open_project = projects.create_project(db, as_actor(company), "Open", "D", 10)
    applications.apply(db, as_actor(intern), open_project.id, "me")

    done = admin_service.delete_user(db, as_actor(admin), company.id)

    assert done[-1] == "user"
    assert db.query(User).filter(User.id == company.id).count() == 0
    assert db.query(Project).count() == 0
    assert db.query(Application).count() == 0
    # the intern keeps the points and the ledger row that explains them
    earn = db.query(Transaction).one()
    assert (earn.user_id, earn.amount, earn.project_id) == (intern.id, 100, None)
    assert _balance(db, intern.id) == 100


def test_delete_assigned_intern_reopens_project(db, admin, company, intern, as_actor):
    project = projects.create_project(db, as_actor(company), "T", "D", 10)
    a = applications.apply(db, as_actor(intern), project.id, "hi")
    applications.update_status(db, as_actor(company), a.id, "accepted")
    projects.request_completion(db, as_actor(intern), project.id, "done")
    course = courses.submit_course(db, as_actor(intern), "Mine", "D", "misc")

    admin_service.delete_user(db, as_actor(admin), intern.id)

    project = db.query(Project).one()
    assert project.status == "open"
    assert project.assigned_intern_id is None
    assert project.completion_requested is False
    assert db.query(Application).count() == 0
    assert db.query(Course).filter(Course.id == course.id).count() == 0


def test_delete_self_is_refused(db, admin, as_actor):
    with pytest.raises(InvalidState):
        admin_service.delete_user(db, as_actor(admin), admin.id)


def test_failed_step_reports_progress(db, admin, intern, as_actor, monkeypatch):
    courses.submit_course(db, as_actor(intern), "Mine", "D", "misc")

    def boom(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(admin_service, "detach_course_backlinks", boom)

    with pytest.raises(CascadeDeleteError) as info:
        admin_service.delete_user(db, as_actor(admin), intern.id)

    assert info.value.step == "courses"
    assert info.value.completed == [
        "project_applications",
        "projects",
        "assigned_projects",
        "applications",
        "transactions",
        "course_purchases",
    ]
    # the account itself is still there so the delete can be rerun
    assert db.query(User).filter(User.id == intern.id).count() == 1

    monkeypatch.undo()
    admin_service.delete_user(db, as_actor(admin), intern.id)
    assert db.query(User).filter(User.id == intern.id).count() == 0
    assert db.query(StoredFile).count() == 0
