"""AI credit balance.

Deduction is a single conditional ``UPDATE ... WHERE ai_credits >= n`` so
concurrent requests can never drive a balance negative.
"""

import logging

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from canvasvault.core.errors import InsufficientCreditsError, NotFoundError
from canvasvault.models.base import utc_now
from canvasvault.models.user import User

logger = logging.getLogger(__name__)


class CreditsService:
    """Read and change a user's AI credit balance.

    Attributes:
        session: Database session
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_credits(self, user_id: int) -> int:
        """Return the user's balance.

        Raises:
            NotFoundError: Unknown user
        """
        result = await self.session.execute(select(User.ai_credits).where(User.id == user_id))
        credits = result.scalar_one_or_none()
        if credits is None:
            raise NotFoundError("User not found")
        return credits

    async def has_credits(self, user_id: int, required: int) -> bool:
        return await self.get_credits(user_id) >= required

    async def deduct_credits(self, user_id: int, amount: int) -> int:
        """Atomically subtract ``amount`` from the balance.

        Args:
            user_id: Owning user
            amount: Credits to subtract

        Returns:
            Remaining balance

        Raises:
            InsufficientCreditsError: Balance is below ``amount``
        """
        result = await self.session.execute(
            update(User)
            .where(User.id == user_id, User.ai_credits >= amount)
            .values(ai_credits=User.ai_credits - amount, updated_at=utc_now())
            .execution_options(synchronize_session=False)
            .returning(User.ai_credits)
        )
        remaining = result.scalar_one_or_none()
        if remaining is None:
            await self.session.rollback()
            raise InsufficientCreditsError(amount, await self.get_credits(user_id))

        await self.session.commit()
        logger.info(f"Deducted {amount} credit(s) from user {user_id}; {remaining} left")
        return remaining

    async def add_credits(self, user_id: int, amount: int) -> int:
        """Add ``amount`` to the balance and return the new balance.

        Raises:
            NotFoundError: Unknown user
        """
        result = await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(ai_credits=User.ai_credits + amount, updated_at=utc_now())
            .execution_options(synchronize_session=False)
            .returning(User.ai_credits)
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            await self.session.rollback()
            raise NotFoundError("User not found")

        await self.session.commit()
        logger.info(f"Added {amount} credit(s) to user {user_id}; balance {balance}")
        return balance
