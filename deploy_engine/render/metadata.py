#deploy_engine\render\metadata.py
"""Select labels/annotations for one rendered resource."""

from typing import Dict, Iterable, Optional

from deploy_engine.core.models import MetadataRule, MetadataTarget


def rule_matches(
    rule: MetadataRule,
    target: MetadataTarget,
    deployment_version: Optional[int],
    process_name: Optional[str],
) -> bool:
    if rule.target != target:
        return False
    if rule.deployment_version is not None and rule.deployment_version != deployment_version:
        return False
    if rule.process_name is not None and rule.process_name != process_name:
        return False
    return True


def select_metadata(
    rules: Iterable[MetadataRule],
    target: MetadataTarget,
    deployment_version: Optional[int] = None,
    process_name: Optional[str] = None,
) -> Dict[str, str]:
    """
    Merge key/values of every rule matching the resource.

    A rule without a version or process filter matches all of them. Later
    rules override earlier ones on the same key.
    """
    merged: Dict[str, str] = {}
    for rule in rules:
        if rule_matches(rule, target, deployment_version, process_name):
            merged.update(rule.apply)
    return merged
