"""Test application reconciliation under optimistic concurrency."""

from datetime import timedelta

import pytest

from deploy_engine.core.errors import (
    ApplicationConflictError,
    FrameworkChangeError,
    FrameworkNotFound,
    RetryLimitExceeded,
    ValidationError,
)
from deploy_engine.core.models import (
    Application, CanaryState, DeploymentSlot, Framework, MetadataRule, MetadataTarget,
)
from deploy_engine.deploy.changeset import ChangeSet
from deploy_engine.deploy.reconciler import reconcile_application
from deploy_engine.deploy.validation import resolve_source_path
from deploy_engine.infrastructure.memory.repository import InMemoryApplicationRepository


# ============================================
# Repository wrappers
# ============================================

class CountingRepository:
    """Delegates to an in-memory store and counts calls."""

    def __init__(self, inner: InMemoryApplicationRepository):
        self.inner = inner
        self.gets = 0
        self.creates = 0
        self.updates = 0

    def get(self, name):
        self.gets += 1
        return self.inner.get(name)

    def create(self, application):
        self.creates += 1
        return self.inner.create(application)

    def update(self, application):
        self.updates += 1
        return self.inner.update(application)

    def list_by_framework(self, framework):
        return self.inner.list_by_framework(framework)


class ConflictOnceRepository(CountingRepository):
    """Another writer bumps the stored record right before the first update."""

    def update(self, application):
        if self.updates == 0:
            other = self.inner.get(application.name)
            other.labels.append(
                MetadataRule(apply={"team": "core"}, target=MetadataTarget("v1", "Service"))
            )
            self.inner.update(other)
        return super().update(application)


class AlwaysConflictRepository(CountingRepository):
    def update(self, application):
        self.updates += 1
        raise ApplicationConflictError("stale")


class RacingCreateRepository(CountingRepository):
    """Another writer creates the app between our read and our create."""

    def create(self, application):
        if self.creates == 0:
            self.inner.create(Application(name=application.name, framework="framework"))
        return super().create(application)


class CountingChangeSet(ChangeSet):
    description_reads = 0

    def get_description(self):
        self.description_reads += 1
        return super().get_description()


@pytest.fixture
def stored_app(app_repo):
    return app_repo.create(
        Application(name="dashboard", framework="framework", description="old")
    )


# ============================================
# Tests
# ============================================

class TestCreate:
    """Applications that don't exist yet."""

    def test_creates_application(self, app_repo, framework_repo, no_sleep):
        changeset = ChangeSet(
            app_name="dashboard",
            image="shipasoftware/go-app:v1",
            framework="framework",
            description="my app",
            environment=["FOO=bar", "EMPTY="],
            docker_registry_secret="registry-creds",
        )

        app = reconcile_application(changeset, app_repo, framework_repo, **no_sleep)

        assert app.resource_version == 1
        assert app.framework == "framework"
        assert app.description == "my app"
        assert [(e.name, e.value) for e in app.env] == [("FOO", "bar"), ("EMPTY", "")]
        assert app.docker_registry_secret == "registry-creds"
        assert app.ingress.generate_default_cname is True
        assert app.deployments == []
        assert app_repo.get("dashboard") is not None

    def test_framework_required(self, app_repo, framework_repo, no_sleep):
        with pytest.raises(ValidationError):
            reconcile_application(ChangeSet(app_name="dashboard", image="img"), app_repo, framework_repo, **no_sleep)

    def test_unknown_framework(self, app_repo, framework_repo, no_sleep):
        changeset = ChangeSet(app_name="dashboard", image="img", framework="nope")
        with pytest.raises(FrameworkNotFound):
            reconcile_application(changeset, app_repo, framework_repo, **no_sleep)

    @pytest.mark.parametrize("name", ["Dashboard", "1app", "app_name", "app-", "a" * 41])
    def test_invalid_name(self, app_repo, framework_repo, no_sleep, name):
        changeset = ChangeSet(app_name=name, image="img", framework="framework")
        with pytest.raises(ValidationError):
            reconcile_application(changeset, app_repo, framework_repo, **no_sleep)

    def test_quota(self, app_repo, framework_repo, no_sleep):
        framework_repo.create(Framework(name="small", namespace_name="small-ns", app_quota_limit=1))
        reconcile_application(
            ChangeSet(app_name="first", image="img", framework="small"), app_repo, framework_repo, **no_sleep
        )

        with pytest.raises(ValidationError, match="quota"):
            reconcile_application(
                ChangeSet(app_name="second", image="img", framework="small"), app_repo, framework_repo, **no_sleep
            )
        assert app_repo.get("second") is None

    def test_concurrent_create_becomes_update(self, app_repo, framework_repo, no_sleep):
        repo = RacingCreateRepository(app_repo)
        changeset = ChangeSet(app_name="dashboard", image="img", framework="framework", description="mine")

        app = reconcile_application(changeset, repo, framework_repo, **no_sleep)

        assert repo.creates == 1
        assert repo.updates == 1
        assert app.description == "mine"
        assert app.resource_version == 2


class TestUpdate:
    """Existing applications."""

    def test_only_supplied_fields_change(self, app_repo, framework_repo, stored_app, no_sleep):
        changeset = ChangeSet(app_name="dashboard", image="img", description="new")

        app = reconcile_application(changeset, app_repo, framework_repo, **no_sleep)

        assert app.description == "new"
        assert app.framework == "framework"
        assert app.env == []
        assert app.resource_version == 2

    def test_no_change_skips_write(self, app_repo, framework_repo, stored_app, no_sleep):
        repo = CountingRepository(app_repo)
        changeset = ChangeSet(app_name="dashboard", image="img", framework="framework", description="old")

        app = reconcile_application(changeset, repo, framework_repo, **no_sleep)

        assert repo.updates == 0
        assert app.resource_version == 1

    def test_framework_change_rejected(self, app_repo, framework_repo, stored_app, no_sleep):
        framework_repo.create(Framework(name="other", namespace_name="other-ns"))
        changeset = ChangeSet(app_name="dashboard", image="img", framework="other")

        with pytest.raises(FrameworkChangeError):
            reconcile_application(changeset, app_repo, framework_repo, **no_sleep)
        assert app_repo.get("dashboard").framework == "framework"

    def test_framework_change_to_unknown_rejected(self, app_repo, framework_repo, stored_app, no_sleep):
        changeset = ChangeSet(app_name="dashboard", image="img", framework="nope")
        with pytest.raises(FrameworkChangeError):
            reconcile_application(changeset, app_repo, framework_repo, **no_sleep)

    def test_bad_env_rejected(self, app_repo, framework_repo, stored_app, no_sleep):
        changeset = ChangeSet(app_name="dashboard", image="img", environment=["NOVALUE"])
        with pytest.raises(ValidationError):
            reconcile_application(changeset, app_repo, framework_repo, **no_sleep)

    def test_missing_image(self, app_repo, framework_repo, stored_app, no_sleep):
        with pytest.raises(ValidationError):
            reconcile_application(ChangeSet(app_name="dashboard"), app_repo, framework_repo, **no_sleep)


class TestConflictRetry:
    """A conflicting write restarts the whole cycle from the read."""

    def test_retries_after_conflict(self, app_repo, framework_repo, stored_app, no_sleep):
        repo = ConflictOnceRepository(app_repo)
        changeset = CountingChangeSet(app_name="dashboard", image="img", description="new")

        app = reconcile_application(changeset, repo, framework_repo, **no_sleep)

        assert repo.gets == 2
        assert repo.updates == 2
        assert changeset.description_reads == 2
        assert app.description == "new"
        # the other writer's change survives
        assert [rule.apply for rule in app.labels] == [{"team": "core"}]
        assert app.resource_version == 3

    def test_gives_up(self, app_repo, framework_repo, stored_app, no_sleep):
        repo = AlwaysConflictRepository(app_repo)
        changeset = ChangeSet(app_name="dashboard", image="img", description="new")

        with pytest.raises(RetryLimitExceeded) as exc_info:
            reconcile_application(changeset, repo, framework_repo, max_attempts=3, **no_sleep)

        assert repo.updates == 3
        assert isinstance(exc_info.value.__cause__, ApplicationConflictError)
        assert app_repo.get("dashboard").description == "old"


class TestCanaryValidation:

    @pytest.fixture
    def deployed_app(self, app_repo):
        return app_repo.create(
            Application(
                name="dashboard",
                framework="framework",
                deployments=[DeploymentSlot(image="img:v1", version=1)],
                deployments_count=1,
            )
        )

    def canary(self, **overrides):
        values = dict(app_name="dashboard", image="img:v2", steps=4, step_interval=timedelta(minutes=1))
        values.update(overrides)
        return ChangeSet(**values)

    def test_valid_canary(self, app_repo, framework_repo, deployed_app, no_sleep):
        reconcile_application(self.canary(), app_repo, framework_repo, **no_sleep)

    @pytest.mark.parametrize("steps", [1, 101, -2])
    def test_steps_out_of_range(self, app_repo, framework_repo, deployed_app, no_sleep, steps):
        with pytest.raises(ValidationError, match="steps"):
            reconcile_application(self.canary(steps=steps), app_repo, framework_repo, **no_sleep)

    @pytest.mark.parametrize("weight", [0, 101])
    def test_step_weight_out_of_range(self, app_repo, framework_repo, deployed_app, no_sleep, weight):
        with pytest.raises(ValidationError, match="weight"):
            reconcile_application(self.canary(step_weight=weight), app_repo, framework_repo, **no_sleep)

    def test_interval_required(self, app_repo, framework_repo, deployed_app, no_sleep):
        with pytest.raises(ValidationError, match="interval"):
            reconcile_application(self.canary(step_interval=None), app_repo, framework_repo, **no_sleep)

    def test_needs_one_deployment(self, app_repo, framework_repo, no_sleep):
        app_repo.create(Application(name="dashboard", framework="framework"))
        with pytest.raises(ValidationError, match="exactly one"):
            reconcile_application(self.canary(), app_repo, framework_repo, **no_sleep)

    def test_active_canary_blocks_deploys(self, app_repo, framework_repo, no_sleep):
        app_repo.create(
            Application(
                name="dashboard",
                framework="framework",
                deployments=[DeploymentSlot(image="a", version=1), DeploymentSlot(image="b", version=2, routing_weight=0)],
                canary=CanaryState(steps=2, step_weight=50, step_interval=timedelta(minutes=1)),
            )
        )
        with pytest.raises(ValidationError, match="still active"):
            reconcile_application(ChangeSet(app_name="dashboard", image="c"), app_repo, framework_repo, **no_sleep)

    def test_negative_units(self, app_repo, framework_repo, deployed_app, no_sleep):
        changeset = ChangeSet(app_name="dashboard", image="img", units=-1)
        with pytest.raises(ValidationError, match="units"):
            reconcile_application(changeset, app_repo, framework_repo, **no_sleep)


class TestSourcePath:
    """Client supplied source paths stay under the configured root."""

    def test_relative_path(self, tmp_path):
        (tmp_path / "dashboard").mkdir()
        assert resolve_source_path(str(tmp_path), "dashboard") == str((tmp_path / "dashboard").resolve())

    def test_no_root_configured(self):
        with pytest.raises(ValidationError, match="no source root"):
            resolve_source_path(None, "dashboard")

    @pytest.mark.parametrize("requested", ["../dashboard", "a/../../dashboard", "/etc"])
    def test_escape_rejected(self, tmp_path, requested):
        root = tmp_path / "sources"
        root.mkdir()
        with pytest.raises(ValidationError, match="outside"):
            resolve_source_path(str(root), requested)

    def test_symlink_escape_rejected(self, tmp_path):
        root = tmp_path / "sources"
        root.mkdir()
        (root / "link").symlink_to(tmp_path)
        with pytest.raises(ValidationError, match="outside"):
            resolve_source_path(str(root), "link")
