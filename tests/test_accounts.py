import pytest

from recipe_catalog import accounts, catalog, crud, models, schemas
from recipe_catalog.exceptions import (
    ConflictError, ImageStorageError, InvalidArgumentError, UnauthorizedError, UserNotFoundError,
)


@pytest.fixture()
def alice(make_user):
    return make_user("alice@example.com", password="Secret123")


@pytest.fixture()
def bob(make_user):
    return make_user("bob@example.com")


@pytest.fixture()
def admin(make_user):
    return make_user("admin@example.com", role="USER,ADMIN")


# --- profile ---

def test_update_profile(db, alice):
    updated = accounts.update_profile(
        db, alice.id, alice.id, schemas.ProfileUpdate(username="  Alice  ", description="I bake.")
    )
    assert updated.username == "Alice"
    assert updated.description == "I bake."


def test_blank_username_is_ignored(db, alice):
    accounts.update_profile(db, alice.id, alice.id, schemas.ProfileUpdate(username="Alice"))
    updated = accounts.update_profile(db, alice.id, alice.id, schemas.ProfileUpdate(username="   "))
    assert updated.username == "Alice"


def test_cannot_update_someone_elses_profile(db, alice, bob):
    with pytest.raises(UnauthorizedError):
        accounts.update_profile(db, alice.id, bob.id, schemas.ProfileUpdate(username="Mallory"))


def test_profile_of_unknown_user(db):
    with pytest.raises(UserNotFoundError):
        accounts.get_profile(db, 999)


# --- email ---

def test_update_email(db, alice):
    changes = schemas.EmailUpdate(new_email="Alice.New@Example.com", password="Secret123")
    updated = accounts.update_email(db, alice.id, alice.id, changes)
    assert updated.email == "alice.new@example.com"


def test_update_email_needs_password(db, alice):
    changes = schemas.EmailUpdate(new_email="other@example.com", password="wrong")
    with pytest.raises(InvalidArgumentError):
        accounts.update_email(db, alice.id, alice.id, changes)


def test_update_email_to_taken_address(db, alice, bob):
    changes = schemas.EmailUpdate(new_email="bob@example.com", password="Secret123")
    with pytest.raises(ConflictError):
        accounts.update_email(db, alice.id, alice.id, changes)


def test_update_email_to_same_address(db, alice):
    changes = schemas.EmailUpdate(new_email="alice@example.com", password="Secret123")
    assert accounts.update_email(db, alice.id, alice.id, changes).email == "alice@example.com"


# --- password ---

def test_update_password(db, alice):
    changes = schemas.PasswordUpdate(current_password="Secret123", new_password="Better456")
    updated = accounts.update_password(db, alice.id, alice.id, changes)
    assert crud.verify_password("Better456", updated.hashed_password)


@pytest.mark.parametrize("new_password", ["Short1", "nouppercase1", "NoDigitsHere", "Secret123"])
def test_update_password_rejects(db, alice, new_password):
    changes = schemas.PasswordUpdate(current_password="Secret123", new_password=new_password)
    with pytest.raises(InvalidArgumentError):
        accounts.update_password(db, alice.id, alice.id, changes)


def test_update_password_needs_current_password(db, alice):
    changes = schemas.PasswordUpdate(current_password="guess", new_password="Better456")
    with pytest.raises(InvalidArgumentError) as exc:
        accounts.update_password(db, alice.id, alice.id, changes)
    assert exc.value.detail == "Current password is incorrect"


def test_cannot_change_someone_elses_password(db, alice, admin):
    changes = schemas.PasswordUpdate(current_password="Secret123", new_password="Better456")
    with pytest.raises(UnauthorizedError):
        accounts.update_password(db, alice.id, admin.id, changes)


# --- pictures ---

def test_profile_picture_replaces_previous_one(db, alice, storage):
    first = accounts.update_picture(db, alice.id, alice.id, b"one", models.ImageType.PROFILE_PICTURE, storage)
    second = accounts.update_picture(db, alice.id, alice.id, b"two", models.ImageType.PROFILE_PICTURE, storage)

    assert first.url == "/media/img-1.jpg"
    assert second.url == "/media/img-2.jpg"
    assert storage.deleted == ["img-1"]
    assert db.query(models.Image).filter_by(user_id=alice.id).count() == 1

    profile = accounts.get_profile(db, alice.id)
    assert profile.photo_url == "/media/img-2.jpg"
    assert profile.background_url is None


def test_profile_and_background_pictures_are_independent(db, alice, storage):
    accounts.update_picture(db, alice.id, alice.id, b"face", models.ImageType.PROFILE_PICTURE, storage)
    accounts.update_picture(db, alice.id, alice.id, b"view", models.ImageType.BACKGROUND_PICTURE, storage)

    profile = accounts.get_profile(db, alice.id)
    assert profile.photo_url == "/media/img-1.jpg"
    assert profile.background_url == "/media/img-2.jpg"
    assert storage.deleted == []


def test_failed_picture_upload_keeps_old_picture(db, alice, storage):
    accounts.update_picture(db, alice.id, alice.id, b"face", models.ImageType.PROFILE_PICTURE, storage)
    storage.fail_upload_at = 2

    with pytest.raises(ImageStorageError):
        accounts.update_picture(db, alice.id, alice.id, b"new", models.ImageType.PROFILE_PICTURE, storage)

    assert accounts.get_profile(db, alice.id).photo_url == "/media/img-1.jpg"
    assert storage.deleted == []


def test_cannot_set_someone_elses_picture(db, alice, bob, storage):
    with pytest.raises(UnauthorizedError):
        accounts.update_picture(db, alice.id, bob.id, b"x", models.ImageType.PROFILE_PICTURE, storage)
    assert storage.uploads == 0


def test_recipe_photo_type_is_rejected_for_users(db, alice, storage):
    with pytest.raises(InvalidArgumentError):
        accounts.update_picture(db, alice.id, alice.id, b"x", models.ImageType.RECIPE, storage)


# --- administration ---

def test_update_user_role_and_fields(db, bob):
    changes = schemas.UserAdminUpdate(role="user, admin", email="Robert@example.com", username="Robert")
    updated = accounts.update_user(db, bob.id, changes)

    assert updated.role == "USER,ADMIN"
    assert updated.roles == {"USER", "ADMIN"}
    assert updated.email == "robert@example.com"
    assert updated.username == "Robert"


def test_update_user_leaves_missing_fields(db, bob):
    updated = accounts.update_user(db, bob.id, schemas.UserAdminUpdate(role=" "))
    assert updated.role == "USER"
    assert updated.email == "bob@example.com"


def test_update_user_rejects_unknown_role(db, bob):
    with pytest.raises(InvalidArgumentError):
        accounts.update_user(db, bob.id, schemas.UserAdminUpdate(role="USER,ROOT"))


def test_update_user_email_conflict(db, alice, bob):
    with pytest.raises(ConflictError):
        accounts.update_user(db, bob.id, schemas.UserAdminUpdate(email="alice@example.com"))


def test_stats(db, alice, bob, admin, recipe_draft, storage):
    catalog.create_recipe(db, alice.id, recipe_draft(is_public=True), storage=storage)
    catalog.create_recipe(db, alice.id, recipe_draft(is_public=False), storage=storage)
    catalog.create_recipe(db, bob.id, recipe_draft(is_public=True), storage=storage)

    assert accounts.get_stats(db) == schemas.AdminStats(
        total_users=3,
        admin_users=1,
        regular_users=2,
        total_recipes=3,
        public_recipes=2,
        private_recipes=1,
    )


def test_list_users(db, alice, bob):
    assert [u.email for u in accounts.list_users(db)] == ["alice@example.com", "bob@example.com"]


# --- deletion ---

def test_delete_user_removes_everything_they_own(db, alice, bob, recipe_draft, storage):
    alices = catalog.create_recipe(db, alice.id, recipe_draft(), photos=[b"dish"], storage=storage)
    bobs = catalog.create_recipe(db, bob.id, recipe_draft(name="Bob's stew"), storage=storage)
    accounts.update_picture(db, alice.id, alice.id, b"face", models.ImageType.PROFILE_PICTURE, storage)
    catalog.add_favourite(db, alices.id, bob.id)
    catalog.add_favourite(db, bobs.id, alice.id)
    catalog.rate_recipe(db, alices.id, bob.id, 4)
    catalog.rate_recipe(db, bobs.id, alice.id, 2)
    alices_id, bobs_id, alice_id = alices.id, bobs.id, alice.id

    accounts.delete_user(db, alice_id, alice_id, {"USER"}, storage=storage)

    db.expire_all()
    assert crud.get_user(db, alice_id) is None
    assert crud.get_recipe(db, alices_id) is None
    assert crud.get_recipe(db, bobs_id).ratings == []
    assert catalog.get_user_favourites(db, bob.id) == []
    assert db.query(models.Image).count() == 0
    assert db.query(models.Rating).count() == 0
    assert sorted(storage.deleted) == ["img-1", "img-2"]


def test_admin_can_delete_any_user(db, bob, admin, storage):
    accounts.delete_user(db, bob.id, admin.id, {"USER", "ADMIN"}, storage=storage)
    assert crud.get_user_by_email(db, "bob@example.com") is None


def test_user_cannot_delete_someone_else(db, alice, bob, storage):
    with pytest.raises(UnauthorizedError):
        accounts.delete_user(db, alice.id, bob.id, {"USER"}, storage=storage)


def test_delete_unknown_user(db, admin, storage):
    with pytest.raises(UserNotFoundError):
        accounts.delete_user(db, 999, admin.id, {"ADMIN"}, storage=storage)
