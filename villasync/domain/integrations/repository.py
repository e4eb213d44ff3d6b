"""Integration repository - Database operations for platform integrations"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models_sync import Integration


class IntegrationRepository:
    """Repository for integration database operations"""

    @staticmethod
    def get_integration(db: Session, integration_id: int, tenant_id: Optional[str] = None) -> Optional[Integration]:
        query = db.query(Integration).filter(Integration.id == integration_id)
        if tenant_id is not None:
            query = query.filter(Integration.tenant_id == tenant_id)
        return query.first()

    @staticmethod
    def get_integrations(db: Session, tenant_id: str) -> list[Integration]:
        return (
            db.query(Integration)
            .filter(Integration.tenant_id == tenant_id)
            .order_by(Integration.created_at.desc(), Integration.id.desc())
            .all()
        )

    @staticmethod
    def get_tenant_active_integrations(
        db: Session,
        tenant_id: str,
        platform: Optional[str] = None,
        villa_id: Optional[int] = None,
    ) -> list[Integration]:
        query = db.query(Integration).filter(
            Integration.tenant_id == tenant_id, Integration.status == "active"
        )
        if platform:
            query = query.filter(Integration.platform == platform)
        if villa_id is not None:
            query = query.filter(Integration.villa_id == villa_id)
        return query.order_by(Integration.id).all()

    @staticmethod
    def get_active_integrations(db: Session, auto_sync_only: bool = True) -> list[Integration]:
        """Active integrations across all tenants"""
        query = db.query(Integration).filter(Integration.status == "active")
        if auto_sync_only:
            query = query.filter(Integration.auto_sync.is_(True))
        return query.order_by(Integration.id).all()

    @staticmethod
    def get_quick_sync_candidates(db: Session, cutoff: datetime) -> list[Integration]:
        """Active auto-sync integrations never synced or last synced before cutoff"""
        return (
            db.query(Integration)
            .filter(
                Integration.status == "active",
                Integration.auto_sync.is_(True),
                or_(Integration.last_sync.is_(None), Integration.last_sync <= cutoff),
            )
            .order_by(Integration.id)
            .all()
        )

    @staticmethod
    def get_health_check_candidates(db: Session, cutoff: datetime) -> list[Integration]:
        """Active integrations with no successful sync since cutoff"""
        return (
            db.query(Integration)
            .filter(
                Integration.status == "active",
                or_(Integration.last_sync.is_(None), Integration.last_sync < cutoff),
            )
            .order_by(Integration.id)
            .all()
        )

    @staticmethod
    def deactivate_stale_error_integrations(db: Session, cutoff: datetime) -> int:
        """Move integrations stuck in error since before cutoff to inactive"""
        count = (
            db.query(Integration)
            .filter(
                Integration.status == "error",
                or_(Integration.last_sync.is_(None), Integration.last_sync < cutoff),
                Integration.updated_at < cutoff,
            )
            .update({Integration.status: "inactive"}, synchronize_session=False)
        )
        db.commit()
        return count

    @staticmethod
    def create_integration(db: Session, tenant_id: str, **integration_data) -> Integration:
        integration = Integration(tenant_id=tenant_id, **integration_data)
        db.add(integration)
        db.commit()
        db.refresh(integration)
        return integration

    @staticmethod
    def update_integration(db: Session, integration: Integration, **updates) -> Integration:
        for key, value in updates.items():
            if hasattr(integration, key):
                setattr(integration, key, value)
        db.commit()
        db.refresh(integration)
        return integration
