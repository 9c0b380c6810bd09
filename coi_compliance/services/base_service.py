from typing import Optional, Any
from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.core.exceptions import AppError
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService(ABC):
    """Base class for application services.

    Provides a standardized execution flow with validation, error handling
    and a single transaction per call: commit on success, rollback on any
    failure.
    """

    def __init__(self, session: Optional[AsyncSession] = None):
        """Initialize the service.

        Args:
            session: Database session whose transaction the service owns
        """
        self.session = session
        self.logger = LOGGER

    async def execute(self, *args, **kwargs) -> Any:
        """Execute the service logic.

        This template method handles:
        1. Input validation
        2. Core logic execution
        3. Commit or rollback
        4. Standardized error handling

        Raises:
            AppError: If execution fails
        """
        try:
            self.validate(*args, **kwargs)

            result = await self.run(*args, **kwargs)

            if self.session is not None:
                await self.session.commit()
            return result

        except AppError:
            await self._rollback()
            raise

        except Exception as e:
            await self._rollback()
            self.logger.error(
                f"Service execution failed: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__}
            )
            raise AppError(f"Service execution failed: {str(e)}", original_error=e)

    async def _rollback(self) -> None:
        if self.session is not None:
            await self.session.rollback()

    def validate(self, *args, **kwargs):
        """Validate service input.

        Override this method to implement custom validation logic.

        Raises:
            ValidationError: If input is invalid
        """
        pass

    @abstractmethod
    async def run(self, *args, **kwargs) -> Any:
        """Run the core service logic.

        Must be implemented by subclasses.
        """
        pass
