"""Connection lifecycle supervisor: resolve, launch, monitor, reconnect."""

from threading import Event
from typing import Callable, Optional

from ..config.credentials import CredentialSource
from ..config.models import AppConfig, AuthType
from ..core.backoff import ExponentialBackoff
from ..core.health import HealthMonitor
from ..core.keys import KeyMaterialResolver, ResolvedKey
from ..core.state import ConnectionState, FailureReason
from ..core.status import ExpirationStatus, StatusReporter
from ..core.tunnel import TunnelProcess, TunnelSession
from ..utils.exceptions import (
    ConfigurationError, FetchError, KeyMaterialError, LaunchError, ParseError
)
from ..utils.logging import get_logger

logger = get_logger("core.supervisor")


class Supervisor:
    """Keeps one SSH SOCKS5 tunnel alive, reconnecting with backoff."""

    def __init__(
            self,
            config: AppConfig,
            credential_source: Optional[CredentialSource] = None,
            key_resolver: Optional[KeyMaterialResolver] = None,
            tunnel: Optional[TunnelProcess] = None,
            monitor: Optional[HealthMonitor] = None,
            backoff: Optional[ExponentialBackoff] = None,
            reporter: Optional[StatusReporter] = None,
            on_state: Optional[Callable[[ConnectionState], None]] = None
    ):
        self.config = config
        self.credential_source = credential_source or CredentialSource(config)
        self.key_resolver = key_resolver or KeyMaterialResolver()
        self.tunnel = tunnel or TunnelProcess(config)
        self.monitor = monitor or HealthMonitor(
            connect_timeout=config.connect_timeout,
            poll_interval=config.poll_interval
        )
        self.backoff = backoff or ExponentialBackoff(
            config.backoff_initial, config.backoff_max, config.backoff_factor
        )
        self.reporter = reporter or StatusReporter()
        self.on_state = on_state

        self.state = ConnectionState.idle()
        self.last_error: Optional[ConnectionState] = None
        self.last_expiration: Optional[ExpirationStatus] = None
        self._stop_event = Event()

    def stop(self) -> None:
        """Request the loop to finish after tearing down the current session."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self, max_cycles: Optional[int] = None) -> None:
        """
        Run connection cycles until stopped.

        Args:
            max_cycles: Optional limit on the number of cycles

        Raises:
            ConfigurationError: On unrecoverable configuration or credential
                schema errors
        """
        cycles = 0

        try:
            while not self.stopped:
                state = self.run_cycle()
                cycles += 1

                if self.stopped or (max_cycles is not None and cycles >= max_cycles):
                    break

                if state.is_terminal:
                    delay = self.backoff.next_delay()
                    self.reporter.retrying(delay, state)
                    logger.info(f"Reconnecting in {delay:g} seconds...")
                    self._stop_event.wait(delay)
        finally:
            self._set_state(ConnectionState.idle())

    def run_cycle(self) -> ConnectionState:
        """
        Perform one resolve, launch and monitor cycle.

        Teardown always happens before this returns or raises.
        """
        session: Optional[TunnelSession] = None
        key: Optional[ResolvedKey] = None

        try:
            self._set_state(ConnectionState.connecting())

            credential = self.credential_source.resolve()

            if credential.auth_type is AuthType.KEY:
                key = self.key_resolver.resolve(credential.private_key)

            session = self.tunnel.start(credential, key)
            state = self.monitor.wait_for_connection(session, self._stop_event)
            self._set_state(state)

            if state.is_connected:
                self.backoff.reset()
                self.last_expiration = self.reporter.connected(
                    credential, session.local_host, session.local_port
                )
                state = self.monitor.watch(session, self._stop_event)
                self._set_state(state)

        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            self._set_state(ConnectionState.failed(FailureReason.CREDENTIAL_UNAVAILABLE, str(e)))
            raise
        except (FetchError, ParseError) as e:
            state = self._cycle_error(ConnectionState.disconnected(FailureReason.CREDENTIAL_UNAVAILABLE, str(e)))
        except KeyMaterialError as e:
            state = self._cycle_error(ConnectionState.failed(FailureReason.KEY_MATERIAL, str(e)))
        except LaunchError as e:
            state = self._cycle_error(ConnectionState.failed(FailureReason.LAUNCH_FAILED, str(e)))
        finally:
            self._teardown(session, key)

        return state

    def _cycle_error(self, state: ConnectionState) -> ConnectionState:
        logger.error(f"Session ended: {state}")
        self._set_state(state)
        return state

    def _teardown(self, session: Optional[TunnelSession], key: Optional[ResolvedKey]) -> None:
        try:
            if session is not None:
                if self.tunnel.is_alive(session):
                    logger.info(f"Stopping SSH process {session.pid}")
                else:
                    logger.debug(f"SSH process {session.pid} already exited (code {session.returncode()})")
                self.tunnel.terminate(session)
        finally:
            if key is not None:
                key.release()

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return

        self.state = state
        if state.is_terminal:
            self.last_error = state

        logger.debug(f"State: {state}")
        self.reporter.state_changed(state)
        if self.on_state:
            self.on_state(state)
