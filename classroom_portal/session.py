"""
Session store and bootstrap.

AppState is the one owned, explicit application-state object. SessionBootstrap
is the only thing that mutates its session fields, through start/retry, login,
register, logout and pushed auth events.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, Optional

from .classroom import Classroom
from .client import PortalClient
from .config import CONFIG_REMEDIATION, ClientConfig, LocalSettings
from .entities import User
from .errors import (AuthenticationError, ConfigurationError, Conflict, InvalidRequest,
                     PermissionDenied, PortalConnectionError, PortalError)
from .quiz import AttemptGate

logger = logging.getLogger(__name__)

MAX_NOTICES = 20


class SessionPhase(str, Enum):
    CONFIG_ERROR = 'CONFIG_ERROR'
    LOADING = 'LOADING'
    CONNECTION_FAILED = 'CONNECTION_FAILED'
    LOGGED_OUT = 'LOGGED_OUT'
    AUTHENTICATED = 'AUTHENTICATED'


@dataclass
class AppState:
    phase: SessionPhase = SessionPhase.LOADING
    user: Optional[User] = None
    error: Optional[str] = None
    auth_error: Optional[str] = None
    service_config: Dict[str, Any] = field(default_factory=dict)
    classroom: Optional[Classroom] = None
    notices: Deque[str] = field(default_factory=lambda: deque(maxlen=MAX_NOTICES))

    def notify(self, text: str) -> None:
        logger.info(f"Notice: {text}")
        self.notices.append(text)

    def clear_session(self) -> None:
        self.user = None
        self.classroom = None
        self.service_config = {}
        self.auth_error = None
        self.notices.clear()


class SessionBootstrap:
    def __init__(self, config: ClientConfig, settings: Optional[LocalSettings] = None,
                 client_factory: Callable[..., PortalClient] = PortalClient,
                 state: Optional[AppState] = None):
        self.config = config
        self.settings = settings or LocalSettings(config.settings_path)
        self.client_factory = client_factory
        self.state = state or AppState()
        self.client: Optional[PortalClient] = None
        self._teardown_lock = threading.Lock()

    # ------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------
    def start(self) -> AppState:
        self._teardown()
        self.state.error = None
        if not self.config.is_configured:
            self.state.phase = SessionPhase.CONFIG_ERROR
            self.state.error = CONFIG_REMEDIATION
            return self.state

        token = self.settings.token
        if not token:
            self.state.phase = SessionPhase.LOGGED_OUT
            return self.state

        self.state.phase = SessionPhase.LOADING
        client = self._new_client(token)
        if client is None:
            return self.state
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(client.resolve_session)
        try:
            resolved = future.result(timeout=self.config.bootstrap_timeout)
        except FutureTimeoutError:
            logger.error(f"Session resolution timed out after {self.config.bootstrap_timeout}s")
            self._fail('Connection timed out (slow connection). Try again.')
            return self.state
        except PortalConnectionError as e:
            logger.error(f"Session resolution failed: {e}")
            self._fail(e.message)
            return self.state
        except PortalError as e:
            logger.error(f"Session resolution failed: {e}")
            self._fail(f'Could not connect to the portal: {e.message}')
            return self.state
        finally:
            executor.shutdown(wait=False)

        if resolved is None:
            logger.info("Stored session no longer resolves; signing out locally")
            self.settings.clear_token()
            self.state.phase = SessionPhase.LOGGED_OUT
            return self.state

        user, service_config = resolved
        self._enter(client, user, service_config)
        return self.state

    retry = start

    # ------------------------------------------------------------
    # Explicit transitions
    # ------------------------------------------------------------
    def login(self, email: str, password: str) -> bool:
        client = self._new_client()
        if client is None:
            return False
        return self._authenticate(client, lambda: client.login(email.strip(), password))

    def register(self, email: str, password: str, name: str, code: str = '') -> bool:
        client = self._new_client()
        if client is None:
            return False
        if not name.strip():
            self.state.auth_error = 'Name is required.'
            return False
        return self._authenticate(client, lambda: client.register(email.strip(), password, name.strip(), code.strip()))

    def logout(self) -> None:
        client = self.client
        if client is not None:
            try:
                client.logout()
            except PortalError as e:
                logger.warning(f"Server sign-out failed, clearing local session anyway: {e}")
        self._sign_out_locally()

    def handle_auth_event(self, payload: Dict[str, Any]) -> None:
        """Pushed by the service on the user's room; SIGNED_OUT ends this session."""
        if payload.get('event') == 'SIGNED_OUT' and self.state.phase is SessionPhase.AUTHENTICATED:
            logger.info("Session signed out by the service")
            client = self.client
            if client is not None:
                client.token = None
            self._sign_out_locally()

    # ------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------
    def _new_client(self, token: Optional[str] = None) -> Optional[PortalClient]:
        try:
            return self.client_factory(self.config.base_url, token=token, timeout=self.config.request_timeout)
        except ConfigurationError as e:
            logger.error(f"Portal client is not configured: {e}")
            self.state.phase = SessionPhase.CONFIG_ERROR
            self.state.error = CONFIG_REMEDIATION
            return None

    def _authenticate(self, client, call) -> bool:
        self.state.auth_error = None
        try:
            user = call()
        except (AuthenticationError, InvalidRequest, PermissionDenied, Conflict) as e:
            self.state.auth_error = e.message
            return False
        except PortalError as e:
            logger.error(f"Authentication request failed: {e}")
            self.state.auth_error = f'Could not reach the portal: {e.message}'
            return False
        self.settings.save_token(client.token)
        try:
            resolved = client.resolve_session()
        except PortalError as e:
            logger.warning(f"Could not load service config after sign-in: {e}")
            resolved = None
        service_config = resolved[1] if resolved else {}
        self._enter(client, user, service_config)
        return True

    def _enter(self, client, user, service_config) -> None:
        self._teardown()
        self.client = client
        self.state.user = user
        self.state.service_config = dict(service_config or {})
        self.state.auth_error = None
        self.state.error = None
        gate = AttemptGate.parse(self.state.service_config.get('quiz_attempt_gate'))
        client.realtime.add_auth_listener(self.handle_auth_event)
        classroom = Classroom(client, user, gate=gate, notify=self.state.notify)
        self.state.classroom = classroom
        self.state.phase = SessionPhase.AUTHENTICATED
        classroom.open()
        logger.info(f"Signed in as {user.email} ({user.role.value})")

    def _fail(self, message) -> None:
        self.state.phase = SessionPhase.CONNECTION_FAILED
        self.state.error = message

    def _teardown(self) -> None:
        # Also reached from the Socket.IO thread via handle_auth_event.
        with self._teardown_lock:
            classroom, client = self.state.classroom, self.client
            self.client = None
            self.state.clear_session()
        if classroom is not None:
            classroom.close()
        if client is not None:
            client.close()

    def _sign_out_locally(self) -> None:
        self.settings.clear_token()
        self._teardown()
        self.state.phase = SessionPhase.LOGGED_OUT
