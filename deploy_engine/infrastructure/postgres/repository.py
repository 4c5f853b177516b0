#deploy_engine\infrastructure\postgres\repository.py

"""SQL repository implementation using SQLAlchemy."""

import logging
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import update as sql_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from deploy_engine.core.errors import (
    ApplicationAlreadyExists,
    ApplicationConflictError,
    ApplicationNotFound,
    PersistenceError,
)
from deploy_engine.core.models import (
    Application, CanaryState, Cname, DeploymentSlot, Env, ExposedPort, Framework,
    IngressController, IngressSpec, MetadataRule, MetadataTarget, ProcessSpec,
    ResourceRequirements, Volume, VolumeMount,
)
from deploy_engine.core.repository import ApplicationRepository, FrameworkRepository
from deploy_engine.infrastructure.postgres.database import get_session_factory
from deploy_engine.infrastructure.postgres.models import ApplicationORM, FrameworkORM

logger = logging.getLogger(__name__)


# ============================================
# Mapping Functions
# ============================================

def _dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _rule_to_dict(rule: MetadataRule) -> Dict[str, Any]:
    return {
        "apply": dict(rule.apply),
        "target": {"api_version": rule.target.api_version, "kind": rule.target.kind},
        "deployment_version": rule.deployment_version,
        "process_name": rule.process_name,
    }


def _rule_from_dict(data: Dict[str, Any]) -> MetadataRule:
    return MetadataRule(
        apply=dict(data["apply"]),
        target=MetadataTarget(**data["target"]),
        deployment_version=data.get("deployment_version"),
        process_name=data.get("process_name"),
    )


def _process_from_dict(data: Dict[str, Any]) -> ProcessSpec:
    resources = data.get("resources")
    return ProcessSpec(
        name=data["name"],
        cmd=list(data.get("cmd", [])),
        units=data.get("units"),
        env=[Env(**e) for e in data.get("env", [])],
        resources=ResourceRequirements(**resources) if resources else None,
        volumes=[Volume(**v) for v in data.get("volumes", [])],
        volume_mounts=[VolumeMount(**m) for m in data.get("volume_mounts", [])],
    )


def _slot_from_dict(data: Dict[str, Any]) -> DeploymentSlot:
    return DeploymentSlot(
        image=data["image"],
        version=data["version"],
        processes=[_process_from_dict(p) for p in data.get("processes", [])],
        routing_weight=data.get("routing_weight", 0),
        exposed_ports=[ExposedPort(**p) for p in data.get("exposed_ports", [])],
        process_config=data.get("process_config"),
    )


def application_to_spec(app: Application) -> Dict[str, Any]:
    """Everything but name, framework, timestamps and version."""
    canary = None
    if app.canary is not None:
        canary = {
            "steps": app.canary.steps,
            "step_weight": app.canary.step_weight,
            "step_interval_seconds": app.canary.step_interval.total_seconds(),
            "current_step": app.canary.current_step,
            "active": app.canary.active,
            "next_scheduled_time": _dt(app.canary.next_scheduled_time),
            "started_at": _dt(app.canary.started_at),
        }

    return {
        "deployments": [asdict(d) for d in app.deployments],
        "deployments_count": app.deployments_count,
        "canary": canary,
        "ingress": asdict(app.ingress),
        "secret_names": list(app.secret_names),
        "env": [asdict(e) for e in app.env],
        "docker_registry_secret": app.docker_registry_secret,
        "description": app.description,
        "builder": app.builder,
        "build_packs": list(app.build_packs),
        "labels": [_rule_to_dict(r) for r in app.labels],
        "annotations": [_rule_to_dict(r) for r in app.annotations],
    }


def orm_to_application(orm: ApplicationORM) -> Application:
    """Convert ORM row to domain model."""
    spec = orm.spec
    canary = None
    if spec.get("canary"):
        c = spec["canary"]
        canary = CanaryState(
            steps=c["steps"],
            step_weight=c["step_weight"],
            step_interval=timedelta(seconds=c["step_interval_seconds"]),
            current_step=c["current_step"],
            active=c["active"],
            next_scheduled_time=_parse_dt(c.get("next_scheduled_time")),
            started_at=_parse_dt(c.get("started_at")),
        )

    ingress = spec.get("ingress") or {}
    return Application(
        name=orm.name,
        framework=orm.framework,
        deployments=[_slot_from_dict(d) for d in spec.get("deployments", [])],
        deployments_count=spec.get("deployments_count", 0),
        canary=canary,
        ingress=IngressSpec(
            generate_default_cname=ingress.get("generate_default_cname", False),
            cnames=[Cname(**c) for c in ingress.get("cnames", [])],
        ),
        secret_names=list(spec.get("secret_names", [])),
        env=[Env(**e) for e in spec.get("env", [])],
        docker_registry_secret=spec.get("docker_registry_secret", ""),
        description=spec.get("description", ""),
        builder=spec.get("builder", ""),
        build_packs=list(spec.get("build_packs", [])),
        labels=[_rule_from_dict(r) for r in spec.get("labels", [])],
        annotations=[_rule_from_dict(r) for r in spec.get("annotations", [])],
        created_at=_aware(orm.created_at),
        updated_at=_aware(orm.updated_at),
        resource_version=orm.version,
    )


def orm_to_framework(orm: FrameworkORM) -> Framework:
    return Framework(
        name=orm.name,
        namespace_name=orm.namespace_name,
        app_quota_limit=orm.app_quota_limit,
        ingress_controller=IngressController(**orm.ingress_controller),
    )


# ============================================
# Repository Implementation
# ============================================

class SqlApplicationRepository(ApplicationRepository):
    """SQLAlchemy implementation with dependency injection."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        """
        Args:
            session_factory: SQLAlchemy session factory. If None, uses the default production factory.
        """
        self._session_factory = session_factory

    def _get_session(self) -> Session:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory()

    # -------------------------
    # CREATE
    # -------------------------

    def create(self, application: Application) -> Application:
        session = self._get_session()
        try:
            orm = ApplicationORM(
                name=application.name,
                framework=application.framework,
                spec=application_to_spec(application),
                created_at=application.created_at,
                updated_at=application.updated_at,
                version=1,
            )
            session.add(orm)
            session.commit()
            logger.debug(f"[sql] create {application.name} -> done")
            return orm_to_application(orm)
        except IntegrityError as e:
            session.rollback()
            raise ApplicationAlreadyExists(f"app {application.name!r} already exists") from e
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"failed to create app {application.name!r}: {e}") from e
        finally:
            session.close()

    # -------------------------
    # READ
    # -------------------------

    def get(self, name: str) -> Optional[Application]:
        session = self._get_session()
        try:
            orm = session.get(ApplicationORM, name)
            if orm is None:
                logger.debug(f"[sql] get {name} -> not found")
                return None
            return orm_to_application(orm)
        finally:
            session.close()

    def list_by_framework(self, framework: str) -> List[Application]:
        session = self._get_session()
        try:
            rows = (
                session.query(ApplicationORM)
                .filter(ApplicationORM.framework == framework)
                .order_by(ApplicationORM.name.asc())
                .all()
            )
            return [orm_to_application(r) for r in rows]
        finally:
            session.close()

    # -------------------------
    # UPDATE (optimistic)
    # -------------------------

    def update(self, application: Application) -> Application:
        session = self._get_session()
        try:
            result = session.execute(
                sql_update(ApplicationORM)
                .where(
                    ApplicationORM.name == application.name,
                    ApplicationORM.version == application.resource_version,
                )
                .values(
                    framework=application.framework,
                    spec=application_to_spec(application),
                    updated_at=application.updated_at,
                    version=ApplicationORM.version + 1,
                )
            )

            if result.rowcount == 0:
                session.rollback()
                if session.get(ApplicationORM, application.name) is None:
                    raise ApplicationNotFound(f"app {application.name!r} not found")
                raise ApplicationConflictError(
                    f"app {application.name!r} was modified since version {application.resource_version}"
                )

            session.commit()
            logger.debug(f"[sql] update {application.name} -> version {application.resource_version + 1}")

            orm = session.get(ApplicationORM, application.name)
            return orm_to_application(orm)
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"failed to update app {application.name!r}: {e}") from e
        finally:
            session.close()


class SqlFrameworkRepository(FrameworkRepository):
    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory

    def _get_session(self) -> Session:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory()

    def create(self, framework: Framework) -> None:
        session = self._get_session()
        try:
            session.add(FrameworkORM(
                name=framework.name,
                namespace_name=framework.namespace_name,
                app_quota_limit=framework.app_quota_limit,
                ingress_controller=asdict(framework.ingress_controller),
            ))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"failed to create framework {framework.name!r}: {e}") from e
        finally:
            session.close()

    def get(self, name: str) -> Optional[Framework]:
        session = self._get_session()
        try:
            orm = session.get(FrameworkORM, name)
            return orm_to_framework(orm) if orm else None
        finally:
            session.close()
