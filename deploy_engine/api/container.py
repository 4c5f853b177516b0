#deploy_engine\api\container.py
from typing import Optional

from deploy_engine.deploy.runner import Services

_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        from deploy_engine.container import build_services
        _services = build_services()
    return _services
