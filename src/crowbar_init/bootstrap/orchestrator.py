"""Bootstrap orchestration.

Drives the Init and Reset transitions:

Init:  provision database -> start crowbar -> link apache to rails ->
       reload apache -> wait for the installer
Reset: stop crowbar -> clean up database -> link apache to sinatra ->
       reload apache

Steps run strictly in order and the first failure ends the transition.
Nothing is rolled back. Only one transition (or database provisioning) may
run at a time; a concurrent request is rejected with Busy.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

from ..config import InitConfig
from ..errors import (
    BootstrapError,
    Busy,
    DatabaseError,
    ProxyError,
    ReadinessError,
    ReloadInconsistent,
    ServiceError,
)
from .health import ReadinessPoller
from .process import ProcessRunner
from .provisioner import Provisioner
from .proxy import ProxyRouter
from .service import ServiceController
from .state import (
    BootstrapAttempt,
    DatabaseAttributes,
    DatabaseMode,
    OrchestratorState,
    Outcome,
    ServiceAction,
    ServiceBackend,
    StepResult,
    Transition,
)

# Step names
STEP_PROVISION = "provision-database"
STEP_CLEANUP = "cleanup-database"
STEP_START_SERVICE = "start-service"
STEP_STOP_SERVICE = "stop-service"
STEP_SWITCH_PROXY = "switch-proxy"
STEP_RELOAD_PROXY = "reload-proxy"
STEP_AWAIT_READINESS = "await-readiness"

# Where callers go after a successful transition
LANDING_PAGE = "/"


@dataclass
class _Step:
    """One step of a transition."""

    name: str
    run: Callable[[], bool] | Callable[[], Awaitable[bool]]
    error: Callable[[], BootstrapError]
    blocking: bool = True  # Run in a worker thread


class BootstrapOrchestrator:
    """Run bootstrap transitions against the local Crowbar installation."""

    def __init__(
        self,
        config: InitConfig,
        provisioner: Provisioner,
        services: ServiceController,
        router: ProxyRouter,
        poller: ReadinessPoller,
        logger: Any | None = None,
    ):
        """Initialize orchestrator.

        Args:
            config: Endpoints, service names and poll timings.
            provisioner: Database provisioning.
            services: System service control.
            router: Apache backend switching.
            poller: Installer readiness polling.
            logger: structlog logger (default: module logger).
        """
        self.config = config
        self.provisioner = provisioner
        self.services = services
        self.router = router
        self.poller = poller
        self.logger = logger or structlog.get_logger(__name__)

        self._slot = threading.Lock()
        self._state = OrchestratorState.IDLE
        self._holder: str | None = None
        self._worker: asyncio.Future | None = None
        self._current: BootstrapAttempt | None = None
        self._last_attempt: BootstrapAttempt | None = None

    @classmethod
    def from_config(cls, config: InitConfig, logger: Any | None = None) -> BootstrapOrchestrator:
        """Build an orchestrator and its components from configuration."""
        runner = ProcessRunner(use_sudo=config.use_sudo)
        services = ServiceController(runner)
        return cls(
            config=config,
            provisioner=Provisioner(
                runner,
                chef_config=config.chef_config_path,
                framework_dir=config.framework_dir,
            ),
            services=services,
            router=ProxyRouter(
                config.apache_conf_dir,
                runner,
                services,
                proxy_service=config.proxy_service,
            ),
            poller=ReadinessPoller(),
            logger=logger,
        )

    @property
    def state(self) -> OrchestratorState:
        """Current orchestrator state."""
        return self._state

    @property
    def is_busy(self) -> bool:
        """Whether a run currently holds the run slot."""
        return self._slot.locked()

    @property
    def current_attempt(self) -> BootstrapAttempt | None:
        """Attempt of the running transition, if any."""
        return self._current

    @property
    def last_attempt(self) -> BootstrapAttempt | None:
        """Most recently finished attempt."""
        return self._last_attempt

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def init(
        self,
        attrs: DatabaseAttributes | None = None,
        cancel_event: asyncio.Event | None = None,
        on_attempt: Callable[[int, str, str | None], None] | None = None,
    ) -> BootstrapAttempt:
        """Bring the installed system up.

        Args:
            attrs: Database configuration to provision. Without attributes the
                   database is assumed configured and its schema is prepared.
            cancel_event: Aborts the readiness wait when set.
            on_attempt: Progress callback for each readiness poll, called with
                        (attempt, phase, error).

        Returns:
            Finished attempt; on success ``redirect_to`` is the installer entry.

        Raises:
            Busy: If another run is in progress.
        """
        config = self.config

        def provision() -> bool:
            if attrs is not None:
                return self.provisioner.provision(attrs)
            return self.provisioner.cleanup()

        async def await_readiness() -> bool:
            return await self.poller.wait_until_ready(
                config.installer_url,
                config.readiness_marker,
                poll_interval=config.poll_interval,
                settle_delay=config.settle_delay,
                timeout=config.readiness_timeout,
                cancel_event=cancel_event,
                on_attempt=on_attempt,
            )

        def readiness_error() -> BootstrapError:
            if cancel_event is not None and cancel_event.is_set():
                reason = "wait was cancelled"
            else:
                reason = f"no readiness within {config.readiness_timeout}s"
            return ReadinessError(
                message=f"Crowbar did not become available ({reason})",
                data={"url": config.status_url},
            )

        steps = [
            _Step(
                STEP_PROVISION,
                provision,
                lambda: DatabaseError(
                    message=f"Database setup failed. Please have a look at {config.chef_log}",
                    data={"log": str(config.chef_log)},
                ),
            ),
            _Step(
                STEP_START_SERVICE,
                lambda: self.services.apply(config.installer_service, ServiceAction.START),
                lambda: ServiceError(message=f"Could not start {config.installer_service}"),
            ),
            *self._proxy_steps(ServiceBackend.INSTALLED),
            _Step(STEP_AWAIT_READINESS, await_readiness, readiness_error, blocking=False),
        ]
        return await self._execute(Transition.INIT, steps, redirect_to=config.installer_entry)

    async def reset(self) -> BootstrapAttempt:
        """Tear the installed system down to the pre-install state.

        Returns:
            Finished attempt; on success ``redirect_to`` is the landing page.

        Raises:
            Busy: If another run is in progress.
        """
        config = self.config
        steps = [
            _Step(
                STEP_STOP_SERVICE,
                lambda: self.services.apply(config.installer_service, ServiceAction.STOP),
                lambda: ServiceError(message=f"Could not stop {config.installer_service}"),
            ),
            _Step(
                STEP_CLEANUP,
                self.provisioner.cleanup,
                lambda: DatabaseError(
                    message=f"Database cleanup failed. Please have a look at {config.chef_log}",
                    data={"log": str(config.chef_log)},
                ),
            ),
            *self._proxy_steps(ServiceBackend.PRE_INSTALL),
        ]
        return await self._execute(Transition.RESET, steps, redirect_to=LANDING_PAGE)

    async def provision_database(self, attrs: DatabaseAttributes) -> StepResult:
        """Provision the database outside of a transition.

        Holds the run slot like a transition does.

        Args:
            attrs: Database configuration.

        Returns:
            Successful step result.

        Raises:
            Busy: If another run is in progress.
            DatabaseError: If provisioning failed.
        """
        self._acquire("provision")
        try:
            if attrs.mode == DatabaseMode.CREATE:
                self.logger.debug("Creating Crowbar database")
            else:
                self.logger.debug("Connecting Crowbar to external database", host=attrs.host)
            try:
                ok = await self._in_worker(self.provisioner.provision, attrs)
            except Exception:
                self.logger.exception("Database provisioning raised", mode=attrs.mode.value)
                ok = False
        finally:
            self._release()

        if not ok:
            action = "create" if attrs.mode == DatabaseMode.CREATE else "connect to"
            raise DatabaseError(
                message=(
                    f"Could not {action} database. "
                    f"Please have a look at {self.config.chef_log}"
                ),
                step=STEP_PROVISION,
                data={"log": str(self.config.chef_log)},
            )
        return StepResult(STEP_PROVISION, True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _proxy_steps(self, backend: ServiceBackend) -> list[_Step]:
        link = str(self.router.link_path)
        return [
            _Step(
                STEP_SWITCH_PROXY,
                lambda: self.router.switch_to(backend),
                lambda: ProxyError(
                    message=f"Could not link {link} to {backend.partial_name}",
                    data={"backend": backend.value},
                ),
            ),
            _Step(
                STEP_RELOAD_PROXY,
                self.router.reload,
                lambda: ReloadInconsistent(data={"backend": backend.value, "link": link}),
            ),
        ]

    def _acquire(self, name: str) -> None:
        if not self._slot.acquire(blocking=False):
            running = self._holder or "another run"
            self.logger.warning("Rejecting concurrent run", requested=name, running=running)
            raise Busy(
                message=f"Cannot run {name}: {running} is already in progress",
                data={"running": running},
            )
        self._holder = name

    def _release(self) -> None:
        """Give up the run slot once no worker thread is left running.

        A cancelled await does not stop its worker thread, so the slot stays
        taken until that thread returns.
        """
        worker, self._worker = self._worker, None
        if worker is None or worker.done():
            self._free_slot()
            return

        self.logger.warning("Run cancelled; holding run slot until the running step returns")
        worker.add_done_callback(self._on_worker_done)

    def _on_worker_done(self, worker: asyncio.Future) -> None:
        if not worker.cancelled() and worker.exception() is not None:
            self.logger.error("Abandoned step raised", error=str(worker.exception()))
        self._free_slot()

    def _free_slot(self) -> None:
        self._holder = None
        self._slot.release()

    async def _in_worker(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking call in a worker thread.

        The call is shielded from cancellation of the awaiting task and kept
        in ``_worker`` so ``_release`` can wait for it.
        """
        worker = asyncio.ensure_future(asyncio.to_thread(func, *args))
        self._worker = worker
        result = await asyncio.shield(worker)
        self._worker = None
        return result

    async def _execute(
        self,
        transition: Transition,
        steps: list[_Step],
        redirect_to: str,
    ) -> BootstrapAttempt:
        self._acquire(transition.value)
        attempt = BootstrapAttempt(transition=transition)
        log = self.logger.bind(transition=transition.value)
        self._current = attempt
        self._state = OrchestratorState.RUNNING
        log.info("Transition started")

        try:
            for step in steps:
                if not await self._run_step(attempt, step, log):
                    break
            else:
                attempt.outcome = Outcome.SUCCESS
                attempt.redirect_to = redirect_to
        finally:
            if attempt.outcome is None:
                # Interrupted (e.g. task cancelled) before reaching an outcome
                attempt.outcome = Outcome.FAILED
            attempt.finished_at = datetime.now(timezone.utc)
            self._state = (
                OrchestratorState.SUCCEEDED
                if attempt.outcome == Outcome.SUCCESS
                else OrchestratorState.FAILED
            )
            self._last_attempt = attempt
            self._current = None
            self._release()

        if attempt.succeeded:
            log.info("Transition succeeded", elapsed_seconds=attempt.elapsed_seconds)
        else:
            log.error(
                "Transition failed",
                step=attempt.failed_step.name if attempt.failed_step else None,
                error=str(attempt.error) if attempt.error else None,
            )
        return attempt

    async def _run_step(self, attempt: BootstrapAttempt, step: _Step, log: Any) -> bool:
        log.debug("Running step", step=step.name)
        try:
            if step.blocking:
                ok = await self._in_worker(step.run)
            else:
                ok = await step.run()
        except Exception as e:
            log.exception("Step raised", step=step.name)
            error = step.error()
            error.step = step.name
            error.data = {**error.data, "exception": str(e)}
            self._fail(attempt, StepResult(step.name, False, str(e)), error)
            return False

        if ok:
            attempt.record(StepResult(step.name, True))
            return True

        error = step.error()
        error.step = step.name
        self._fail(attempt, StepResult(step.name, False, error.message), error)
        return False

    @staticmethod
    def _fail(attempt: BootstrapAttempt, result: StepResult, error: BootstrapError) -> None:
        attempt.record(result)
        attempt.error = error
        attempt.outcome = Outcome.FAILED
