import pytest

from schemas.profile import ProfileCreate, ProfileUpdate
from services.errors import ConflictError, InputValidationError, NotFoundError
from services.profiles import ProfileService, validate_display_name

class TestDisplayNameRules:

    @pytest.mark.parametrize("name", ["ab", "street_shooter", "f1.8-lover", "摄影师", "a" * 20])
    def test_valid_names(self, name):
        assert validate_display_name(name) == (True, None)

    @pytest.mark.parametrize("name", ["", "   ", "a", "a" * 21, "has space", "emoji😀", "<script>"])
    def test_invalid_names(self, name):
        valid, message = validate_display_name(name)
        assert valid is False
        assert message

class TestProfileService:

    async def test_create_and_get(self, db_session, utils):
        user = await utils.create_user(db_session, "u@example.com")
        service = ProfileService(db_session)

        created = await service.create_profile(user, ProfileCreate(display_name="lens_lady", bio="hi"))
        fetched = await service.get_profile(user)

        assert created.display_name == fetched.display_name == "lens_lady"
        assert fetched.bio == "hi"

    async def test_missing_profile(self, db_session):
        with pytest.raises(NotFoundError):
            await ProfileService(db_session).get_profile(9999)

    async def test_name_taken(self, db_session, utils):
        await utils.create_user(db_session, "a@example.com", "taken_name")
        other = await utils.create_user(db_session, "b@example.com")
        service = ProfileService(db_session)

        with pytest.raises(ConflictError) as exc_info:
            await service.create_profile(other, ProfileCreate(display_name="taken_name"))
        assert exc_info.value.code == "name_taken"

        availability = await service.check_display_name("taken_name")
        assert availability.valid and not availability.available

    async def test_second_profile_conflicts(self, db_session, utils):
        user = await utils.create_user(db_session, "a@example.com", "first_name")

        with pytest.raises(ConflictError) as exc_info:
            await ProfileService(db_session).create_profile(user, ProfileCreate(display_name="other"))
        assert exc_info.value.code == "profile_exists"

    async def test_display_name_is_immutable(self, db_session, utils):
        user = await utils.create_user(db_session, "a@example.com", "original")
        service = ProfileService(db_session)

        with pytest.raises(InputValidationError):
            await service.update_profile(user, ProfileUpdate(display_name="renamed"))

        updated = await service.update_profile(user, ProfileUpdate(display_name="original",
                                                                   bio="new bio"))
        assert updated.display_name == "original"
        assert updated.bio == "new bio"

    async def test_update_creates_missing_profile(self, db_session, utils):
        user = await utils.create_user(db_session, "a@example.com")

        profile = await ProfileService(db_session).update_profile(
            user, ProfileUpdate(display_name="late_joiner", favorite_camera="X100V")
        )

        assert profile.display_name == "late_joiner"
        assert profile.favorite_camera == "X100V"

    async def test_invalid_name_on_create(self, db_session, utils):
        user = await utils.create_user(db_session, "a@example.com")
        with pytest.raises(InputValidationError):
            await ProfileService(db_session).create_profile(user, ProfileCreate(display_name="x"))
