"""
HTTP + Socket.IO client for the portal service.

PortalClient raises PortalError subclasses for every failed call except the two
AI helpers, which keep the gateway contract (None / [] instead of raising).
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import requests
import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from .entities import QuizResult, User
from .errors import ConfigurationError, PortalConnectionError, PortalError, error_for_status
from .sync import ChangeEvent, CollectionSource, ConnectionStatus, Subscription

logger = logging.getLogger(__name__)

COLLECTIONS = ('messages', 'announcements', 'schedule')


class PortalClient:
    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0,
                 http=None, sio_factory: Optional[Callable[[], Any]] = None):
        if not base_url or not base_url.strip():
            raise ConfigurationError('No portal service URL configured.')
        self.base_url = base_url.strip().rstrip('/')
        self.token = token
        self.timeout = timeout
        self.http = http if http is not None else requests.Session()
        self._sio_factory = sio_factory
        self._realtime: Optional[RealtimeChannel] = None

    # ------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------
    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        try:
            response = self.http.request(method, self.base_url + path, json=payload,
                                         headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise PortalConnectionError(f'Could not reach the portal service: {e}') from e
        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.status_code >= 400:
            message = (data or {}).get('error') or f'Request failed ({response.status_code}).'
            raise error_for_status(response.status_code, message)
        return data or {}

    # ------------------------------------------------------------
    # Session
    # ------------------------------------------------------------
    def resolve_session(self) -> Optional[Tuple[User, Dict[str, Any]]]:
        """Current user and service config for the held token; None if the token no longer resolves."""
        if not self.token:
            return None
        try:
            data = self._request('GET', '/api/session')
        except PortalError as e:
            if e.status_code in (401, 404):
                return None
            raise
        return User.from_dict(data['user']), data.get('config', {})

    def login(self, email: str, password: str) -> User:
        data = self._request('POST', '/api/login', {'email': email, 'password': password})
        self.token = data['token']
        return User.from_dict(data['user'])

    def register(self, email: str, password: str, name: str, code: str = '') -> User:
        data = self._request('POST', '/api/signup', {
            'email': email, 'password': password, 'name': name, 'code': code,
        })
        self.token = data['token']
        return User.from_dict(data['user'])

    def logout(self) -> None:
        try:
            if self.token:
                self._request('POST', '/api/logout')
        finally:
            self.token = None
            self.close()

    # ------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------
    def list_items(self, collection: str) -> List[Dict[str, Any]]:
        return self._request('GET', f'/api/{collection}').get(collection, [])

    def get_item(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self._request('GET', f'/api/{collection}/{record_id}').get('item')
        except PortalError as e:
            if e.status_code == 404:
                return None
            raise

    def collection(self, name: str) -> 'RemoteCollection':
        if name not in COLLECTIONS:
            raise ValueError(f'Unknown collection: {name}')
        return RemoteCollection(self, name)

    def send_message(self, content: str) -> Dict[str, Any]:
        return self._request('POST', '/api/messages', {'content': content})['item']

    def post_announcement(self, title: str, content: str, priority: str = 'NORMAL') -> Dict[str, Any]:
        return self._request('POST', '/api/announcements', {
            'title': title, 'content': content, 'priority': priority,
        })['item']

    def delete_announcement(self, record_id: str) -> None:
        self._request('DELETE', f'/api/announcements/{record_id}')

    def add_schedule_item(self, day: str, time: str, subject: str, room: str) -> Dict[str, Any]:
        return self._request('POST', '/api/schedule', {
            'day': day, 'time': time, 'subject': subject, 'room': room,
        })['item']

    def delete_schedule_item(self, record_id: str) -> None:
        self._request('DELETE', f'/api/schedule/{record_id}')

    # ------------------------------------------------------------
    # Quiz results
    # ------------------------------------------------------------
    def latest_quiz_result(self, question_set: Optional[str] = None) -> Optional[QuizResult]:
        query = f'?{urlencode({"question_set": question_set})}' if question_set else ''
        data = self._request('GET', f'/api/quiz/result{query}')
        return QuizResult.from_dict(data['result']) if data.get('result') else None

    def submit_quiz_result(self, score: int, total: int, question_set: str = 'default') -> QuizResult:
        data = self._request('POST', '/api/quiz/results', {
            'score': score, 'total': total, 'question_set': question_set,
        })
        return QuizResult.from_dict(data['result'])

    # ------------------------------------------------------------
    # AI helpers (never raise)
    # ------------------------------------------------------------
    def translate(self, text: str) -> Optional[Dict[str, str]]:
        if not text or not text.strip():
            return None
        try:
            return self._request('POST', '/api/ai/translate', {'text': text}).get('translation')
        except PortalError as e:
            logger.warning(f"Translation unavailable: {e}")
            return None

    def generate_quiz(self, context: str, objective: str) -> List[Dict[str, Any]]:
        try:
            data = self._request('POST', '/api/ai/quiz', {'context': context, 'objective': objective})
        except PortalError as e:
            logger.warning(f"Quiz generation unavailable: {e}")
            return []
        questions = data.get('questions')
        return questions if isinstance(questions, list) else []

    # ------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------
    @property
    def realtime(self) -> 'RealtimeChannel':
        if self._realtime is None:
            self._realtime = RealtimeChannel(self)
        return self._realtime

    def close(self) -> None:
        if self._realtime is not None:
            self._realtime.disconnect()
            self._realtime = None


class RemoteCollection(CollectionSource):
    def __init__(self, client: PortalClient, name: str):
        self.client = client
        self.name = name

    def fetch(self):
        return self.client.list_items(self.name)

    def fetch_one(self, record_id):
        return self.client.get_item(self.name, record_id)

    def subscribe(self, on_event, on_status):
        return self.client.realtime.subscribe(self.name, on_event, on_status)


class ChannelSubscription(Subscription):
    def __init__(self, channel: 'RealtimeChannel', topic: str, on_event, on_status):
        self.channel = channel
        self.topic = topic
        self.on_event = on_event
        self.on_status = on_status
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.channel._remove(self)


class RealtimeChannel:
    """
    One Socket.IO connection shared by every subscription of a client.

    Connects on the first subscription, disconnects when the last one closes.
    Reconnection after a dropped connection is left to the Socket.IO client; a
    failed initial connect is retried by the next subscribe().
    """

    def __init__(self, client: PortalClient):
        self.client = client
        self._lock = threading.Lock()
        self._subscriptions: List[ChannelSubscription] = []
        self._auth_listeners: List[Callable[[Dict[str, Any]], None]] = []
        self._sio = None
        self.status = ConnectionStatus.OFFLINE

    def _make_sio(self):
        if self.client._sio_factory is not None:
            sio = self.client._sio_factory()
        else:
            sio = socketio.Client(reconnection=True)
        sio.on('connect', self._on_connect)
        sio.on('disconnect', self._on_disconnect)
        sio.on('connect_error', self._on_connect_error)
        sio.on('auth', self._on_auth)
        for topic in COLLECTIONS:
            sio.on(topic, self._dispatcher(topic))
        return sio

    def _connect(self):
        self._sio = self._make_sio()
        self._broadcast_status(ConnectionStatus.CONNECTING)
        try:
            self._sio.connect(self.client.base_url, auth={'token': self.client.token},
                              wait_timeout=self.client.timeout)
        except SocketConnectionError as e:
            logger.error(f"Realtime connection failed: {e}")
            self._sio = None
            self._broadcast_status(ConnectionStatus.OFFLINE)

    def subscribe(self, topic, on_event, on_status) -> ChannelSubscription:
        subscription = ChannelSubscription(self, topic, on_event, on_status)
        with self._lock:
            self._subscriptions.append(subscription)
        if self._sio is None:
            self._connect()
        else:
            on_status(self.status)
        return subscription

    def add_auth_listener(self, listener: Callable[[Dict[str, Any]], None]) -> None:
        self._auth_listeners.append(listener)

    def _remove(self, subscription):
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
            empty = not self._subscriptions
        if empty:
            self.disconnect()

    def disconnect(self):
        sio, self._sio = self._sio, None
        self.status = ConnectionStatus.OFFLINE
        if sio is not None and sio.connected:
            sio.disconnect()

    # ------------------------------------------------------------
    # Socket.IO handlers
    # ------------------------------------------------------------
    def _dispatcher(self, topic):
        def handler(payload):
            event = ChangeEvent.from_payload(payload or {})
            with self._lock:
                targets = [s for s in self._subscriptions if s.topic == topic]
            for subscription in targets:
                subscription.on_event(event)
        return handler

    def _on_connect(self):
        self._broadcast_status(ConnectionStatus.LIVE)

    def _on_disconnect(self, *args):
        self._broadcast_status(ConnectionStatus.OFFLINE)

    def _on_connect_error(self, data=None):
        logger.warning(f"Realtime connection error: {data}")
        self._broadcast_status(ConnectionStatus.OFFLINE)

    def _on_auth(self, payload):
        for listener in list(self._auth_listeners):
            listener(payload or {})

    def _broadcast_status(self, status):
        self.status = status
        with self._lock:
            targets = list(self._subscriptions)
        for subscription in targets:
            subscription.on_status(status)
