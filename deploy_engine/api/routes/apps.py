import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from deploy_engine.api.container import get_services
from deploy_engine.api.schemas.deploy import (
    AppOverlayResponse,
    ApplicationResponse,
    BuilderSchema,
    DeployRequest,
    FrameworkCreateRequest,
    FrameworkResponse,
    RoutingRequest,
)
from deploy_engine.core.errors import (
    ApplicationConflictError,
    ApplicationNotFound,
    DeployEngineError,
    FrameworkNotFound,
    RetryLimitExceeded,
    UpstreamError,
    ValidationError,
)
from deploy_engine.core.models import Framework, IngressController
from deploy_engine.deploy.builders import list_builders
from deploy_engine.deploy.routing import update_routing
from deploy_engine.deploy.runner import Runner
from deploy_engine.render.overlay import build_app_overlay

logger = logging.getLogger(__name__)

router = APIRouter(tags=["apps"])


def _http_error(e: DeployEngineError) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, (ApplicationNotFound, FrameworkNotFound)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (ApplicationConflictError, RetryLimitExceeded)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, UpstreamError):
        return HTTPException(status_code=502, detail=str(e))
    logger.error(f"[api] unexpected engine error: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=str(e))


# ============================================
# APPS
# ============================================

@router.post("/apps/{name}/deploy", response_model=ApplicationResponse)
def deploy_app(
    name: str,
    request: DeployRequest,
    services=Depends(get_services),
):
    try:
        changeset = request.to_changeset(name)
        application = Runner(changeset).run(services)
    except DeployEngineError as e:
        raise _http_error(e)
    return ApplicationResponse.model_validate(application)


@router.get("/apps/{name}", response_model=ApplicationResponse)
def get_app(name: str, services=Depends(get_services)):
    application = services.app_repo.get(name)
    if not application:
        raise HTTPException(status_code=404, detail="App not found")
    return ApplicationResponse.model_validate(application)


@router.patch("/apps/{name}/routing", response_model=ApplicationResponse)
def update_app_routing(
    name: str,
    request: RoutingRequest,
    services=Depends(get_services),
):
    try:
        application = update_routing(services.app_repo, services.framework_repo, name, request.to_change())
    except DeployEngineError as e:
        raise _http_error(e)
    return ApplicationResponse.model_validate(application)


@router.get("/apps/{name}/overlay", response_model=AppOverlayResponse)
def get_app_overlay(name: str, services=Depends(get_services)):
    application = services.app_repo.get(name)
    if not application:
        raise HTTPException(status_code=404, detail="App not found")

    framework = services.framework_repo.get(application.framework)
    if not framework:
        raise HTTPException(status_code=404, detail=f"Framework {application.framework} not found")

    try:
        overlay = build_app_overlay(application, framework)
    except DeployEngineError as e:
        raise _http_error(e)
    return AppOverlayResponse.model_validate(overlay)


# ============================================
# FRAMEWORKS / BUILDERS
# ============================================

@router.post("/frameworks", response_model=FrameworkResponse, status_code=201)
def create_framework(request: FrameworkCreateRequest, services=Depends(get_services)):
    if services.framework_repo.get(request.name):
        raise HTTPException(status_code=409, detail=f"Framework {request.name} already exists")

    framework = Framework(
        name=request.name,
        namespace_name=request.namespace_name,
        app_quota_limit=request.app_quota_limit,
        ingress_controller=IngressController(**request.ingress_controller.model_dump()),
    )
    try:
        services.framework_repo.create(framework)
    except DeployEngineError as e:
        raise _http_error(e)
    return FrameworkResponse.model_validate(framework)


@router.get("/builders", response_model=List[BuilderSchema])
def get_builders():
    return [BuilderSchema.model_validate(b) for b in list_builders()]
