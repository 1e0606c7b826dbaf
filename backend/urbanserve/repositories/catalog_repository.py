# backend/urbanserve/repositories/catalog_repository.py
"""
Catalog Repository.

Read-only access to services and professional offerings.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.service_catalog import ProfessionalService, Service
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CatalogRepository(BaseRepository[Service]):
    def __init__(self, db: Session):
        super().__init__(db, Service)

    def get_service(self, service_id: str) -> Optional[Service]:
        return self.get_by_id(service_id, load_relationships=False)

    def get_professional_offering(
        self, professional_id: str, service_id: str
    ) -> Optional[ProfessionalService]:
        try:
            return (
                self.db.query(ProfessionalService)
                .filter(
                    ProfessionalService.professional_id == professional_id,
                    ProfessionalService.service_id == service_id,
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error loading offering for {professional_id}/{service_id}: {str(e)}"
            )
            raise RepositoryException(f"Failed to load professional offering: {str(e)}")
