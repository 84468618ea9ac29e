from typing import Dict, Iterable
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from models.profile import Profile
from schemas.photo import OwnerProfile

class ProfileDAO:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: int):
        return await self.db.get(Profile, user_id)

    async def get_by_display_name(self, display_name: str):
        result = await self.db.execute(select(Profile).where(Profile.display_name == display_name))
        return result.scalars().first()

    async def owner_profiles(self, user_ids: Iterable[int]) -> Dict[int, OwnerProfile]:
        """Denormalized author info for every id; users without a profile get an empty one."""
        ids = set(user_ids)
        if not ids:
            return {}
        result = await self.db.execute(
            select(Profile.user_id, Profile.display_name, Profile.avatar_url)
            .where(Profile.user_id.in_(ids))
        )
        profiles = {
            row.user_id: OwnerProfile(user_id=row.user_id, display_name=row.display_name,
                                      avatar_url=row.avatar_url)
            for row in result
        }
        for user_id in ids - profiles.keys():
            profiles[user_id] = OwnerProfile(user_id=user_id)
        return profiles
