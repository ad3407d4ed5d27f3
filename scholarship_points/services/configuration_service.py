"""
Configuration store service.
Keeps an append-only history of rule snapshots; activation swaps which single
version is active.
"""
import logging
from typing import List, Tuple, Union
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scholarship_points.exceptions import ValidationError, NotFoundError, ConflictError
from scholarship_points.models import PointConfiguration
from scholarship_points.repositories.configuration_repository import ConfigurationRepository
from scholarship_points.schemas import ConfigurationCreate, ActivityPointsRules, LimitRules
from scholarship_points.services.date_service import utcnow

logger = logging.getLogger("scholarship_points.configuration")


def _first_error(error: SchemaValidationError) -> ValidationError:
    """Convert a pydantic error into the engine's ValidationError"""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "configuration"
    return ValidationError(field, first.get("msg", "invalid value"))


class ConfigurationService:
    """Service for versioned point configuration"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ConfigurationRepository()

    def create(
        self,
        payload: Union[ConfigurationCreate, dict, None] = None,
        created_by: str = "system"
    ) -> PointConfiguration:
        """
        Create a new configuration version.

        The new version is inactive unless it is the very first configuration,
        which becomes active so the engine has rules to start from.

        Args:
            payload: Rule payload; omitted sections take default rules
            created_by: Who created this version

        Returns:
            The persisted configuration

        Raises:
            ValidationError: If any rule value is malformed (nothing is written)
        """
        if not isinstance(payload, ConfigurationCreate):
            try:
                payload = ConfigurationCreate.model_validate(payload or {})
            except SchemaValidationError as e:
                error = _first_error(e)
                logger.warning(f"Rejected configuration: {error}")
                raise error

        try:
            is_first = self.repo.count(self.db) == 0
            config = PointConfiguration(
                version=self.repo.get_max_version(self.db) + 1,
                is_active=is_first,
                activity_points=payload.activity_points.model_dump(),
                limits=payload.limits.model_dump(),
                created_by=payload.created_by or created_by,
                created_at=utcnow(),
            )
            self.repo.add(self.db, config)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning("Configuration create lost a race with a concurrent create")
            raise ConflictError("Another configuration was created concurrently, retry", "configuration")
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(config)
        logger.info(
            f"Created configuration version {config.version}"
            f"{' (active, first version)' if config.is_active else ''}"
        )
        return config

    def activate(self, version: int, activated_by: str = "system") -> PointConfiguration:
        """
        Activate a version and deactivate every other one in one transaction.

        All configuration rows are locked first, so concurrent activations
        apply one after the other and exactly one version ends up active.

        Raises:
            NotFoundError: If the version does not exist
            ConflictError: If the version is already active
        """
        now = utcnow()
        try:
            self.repo.lock_all(self.db)
            config = self.repo.get_by_version(self.db, version)
            if not config:
                raise NotFoundError("Configuration version", version)
            if config.is_active:
                raise ConflictError(f"Configuration version {version} is already active", "configuration")

            deactivated = self.repo.deactivate_all_except(self.db, version, activated_by, now)
            config.is_active = True
            config.updated_by = activated_by
            config.updated_at = now
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Activation of version {version} lost a race with a concurrent activation")
            raise ConflictError("Another configuration was activated concurrently, retry", "configuration")
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(config)
        logger.info(f"Activated configuration version {version} ({deactivated} deactivated)")
        return config

    def get_active(self) -> PointConfiguration:
        """
        Get the active configuration.

        Raises:
            NotFoundError: If no configuration has been created yet
        """
        config = self.repo.get_active(self.db)
        if not config:
            raise NotFoundError("Active configuration", None)
        return config

    def get_version(self, version: int) -> PointConfiguration:
        config = self.repo.get_by_version(self.db, version)
        if not config:
            raise NotFoundError("Configuration version", version)
        return config

    def list_history(self, page: int = 1, limit: int = 10) -> Tuple[List[PointConfiguration], int]:
        """Get one page of configuration history, newest version first"""
        skip = (page - 1) * limit
        return self.repo.get_history(self.db, skip, limit), self.repo.count(self.db)

    @staticmethod
    def rules(config: PointConfiguration) -> Tuple[ActivityPointsRules, LimitRules]:
        """Parse a stored snapshot into typed rule objects"""
        return (
            ActivityPointsRules.model_validate(config.activity_points),
            LimitRules.model_validate(config.limits),
        )
