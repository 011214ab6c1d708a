import pytest
import requests

from classroom_portal.classroom import Classroom
from classroom_portal.client import PortalClient
from classroom_portal.entities import Role, User
from classroom_portal.errors import (ConfigurationError, NotFound, PermissionDenied, PortalConnectionError,
                                     PortalError)
from classroom_portal.sync import CollectionSource, ConnectionStatus, Subscription

ADMIN = User(id="t1", email="li@example.com", name="Teacher Li", role=Role.ADMIN)
STUDENT = User(id="u1", email="mei@example.com", name="Mei", role=Role.STUDENT)


class NullSubscription(Subscription):
    def close(self):
        pass


class Source(CollectionSource):
    def __init__(self, name, fail=False):
        self.name = name
        self.fail = fail

    def fetch(self):
        if self.fail:
            raise PortalConnectionError("down")
        return []

    def fetch_one(self, record_id):
        return None

    def subscribe(self, on_event, on_status):
        on_status(ConnectionStatus.LIVE)
        return NullSubscription()


class FakeClient:
    def __init__(self, error=None, failing=(), translation=None):
        self.error = error
        self.failing = set(failing)
        self.translation = translation
        self.calls = []

    def collection(self, name):
        return Source(name, fail=name in self.failing)

    def latest_quiz_result(self, question_set=None):
        return None

    def translate(self, text):
        return self.translation

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if self.error:
            raise self.error
        return {"id": "x"}

    def send_message(self, content):
        return self._call("send_message", content)

    def post_announcement(self, title, content, priority="NORMAL"):
        return self._call("post_announcement", title, content, priority)

    def delete_announcement(self, record_id):
        return self._call("delete_announcement", record_id)

    def add_schedule_item(self, day, time, subject, room):
        return self._call("add_schedule_item", day, time, subject, room)

    def delete_schedule_item(self, record_id):
        return self._call("delete_schedule_item", record_id)


def classroom_for(client, user=ADMIN):
    notices = []
    return Classroom(client, user, notify=notices.append), notices


def test_failed_mutation_becomes_notice():
    classroom, notices = classroom_for(FakeClient(error=PermissionDenied("Admin access required.", 403)))
    assert classroom.send_message("Hello") is False
    assert notices == ["Could not send message: Admin access required."]


def test_unreachable_service_on_delete_becomes_notice():
    classroom, notices = classroom_for(FakeClient(error=PortalConnectionError("offline")))
    assert classroom.delete_schedule_item("s1") is False
    assert notices == ["Could not delete schedule item: offline"]


def test_blank_message_is_not_sent():
    client = FakeClient()
    classroom, _ = classroom_for(client)
    assert classroom.send_message("   ") is False
    assert client.calls == []
    assert classroom.send_message(" Hi ")
    assert client.calls == [("send_message", "Hi")]


def test_priority_is_normalized_and_validated():
    client = FakeClient()
    classroom, notices = classroom_for(client)
    assert classroom.post_announcement("Title", "Body", "urgent")
    assert client.calls == [("post_announcement", "Title", "Body", "URGENT")]
    assert classroom.post_announcement("Title", "Body", "low") is False
    assert len(client.calls) == 1
    assert notices == ["Unknown priority 'low'; use NORMAL or URGENT."]


def test_students_get_notice_for_admin_actions():
    client = FakeClient()
    classroom, notices = classroom_for(client, user=STUDENT)
    assert classroom.add_schedule_item("Monday", "09:00", "Tones", "B2") is False
    assert client.calls == []
    assert notices == ["Only teachers can do that."]


def test_schedule_item_day_must_be_known():
    client = FakeClient()
    classroom, _ = classroom_for(client)
    assert classroom.add_schedule_item("Sunday", "09:00", "Tones", "B2") is False
    assert client.calls == []


def test_open_reports_lists_that_failed_to_load():
    classroom, notices = classroom_for(FakeClient(failing={"announcements"}))
    classroom.open()
    assert notices == ["Could not load announcements; the list may be out of date."]
    assert classroom.announcements.status is ConnectionStatus.LIVE
    classroom.close()
    assert all(s.status is ConnectionStatus.OFFLINE for s in classroom.synchronizers)


def test_translate_formats_or_leaves_input_alone():
    classroom, notices = classroom_for(FakeClient(translation={"hanzi": "你好", "pinyin": "nǐ hǎo"}))
    assert classroom.translate("hello") == "你好 (nǐ hǎo)"
    classroom, notices = classroom_for(FakeClient(translation=None))
    assert classroom.translate("hello") is None
    assert notices == ["Translation is unavailable right now."]


# --- PortalClient transport --------------------------------------------------

class StubResponse:
    def __init__(self, status_code, data):
        self.status_code = status_code
        self._data = data

    def json(self):
        return self._data


class StubHTTP:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.requests.append((method, url, json, headers))
        if self.error:
            raise self.error
        return self.response


def test_transport_errors_become_connection_errors():
    client = PortalClient("http://portal.test", token="t", http=StubHTTP(error=requests.ConnectionError("refused")))
    with pytest.raises(PortalConnectionError):
        client.list_items("messages")


def test_ai_helpers_never_raise_on_transport_failure():
    client = PortalClient("http://portal.test", token="t", http=StubHTTP(error=requests.ConnectionError("refused")))
    assert client.translate("hello") is None
    assert client.generate_quiz("food", "order") == []


def test_error_statuses_map_to_portal_errors():
    http = StubHTTP(StubResponse(404, {"error": "Not found."}))
    client = PortalClient("http://portal.test/", token="t", http=http)
    assert client.get_item("messages", "gone") is None
    with pytest.raises(NotFound) as excinfo:
        client.delete_announcement("gone")
    assert excinfo.value.status_code == 404
    assert http.requests[0][1] == "http://portal.test/api/messages/gone"
    assert http.requests[0][3]["Authorization"] == "Bearer t"


def test_stale_session_resolves_to_none():
    client = PortalClient("http://portal.test", token="old", http=StubHTTP(StubResponse(401, {"error": "Session expired."})))
    assert client.resolve_session() is None


def test_client_needs_a_service_url():
    with pytest.raises(ConfigurationError):
        PortalClient("  ")
    assert issubclass(ConfigurationError, PortalError)
