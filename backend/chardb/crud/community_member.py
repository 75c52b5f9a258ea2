import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.community import CommunityMember, CommunityRole


class CommunityMemberRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user_roles_in_community(
        self, user_id: uuid.UUID, community_id: uuid.UUID
    ) -> list[CommunityRole]:
        result = await self.session.execute(
            select(CommunityRole)
            .join(CommunityMember, CommunityMember.role_id == CommunityRole.id)
            .where(CommunityMember.user_id == user_id)
            .where(CommunityRole.community_id == community_id)
        )
        return list(result.scalars().all())
