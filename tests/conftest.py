import copy
import os
import re
from datetime import datetime, timezone

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-sessions-0123456789")
os.environ.setdefault("ENV", "test")

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from matching_api.infra import postgres
from matching_api.infra import sms as sms_transport
from matching_api.main import app
from matching_api.settings import settings


class FakeDatabase:
	"""In-memory stand-in for the tables the services touch.

	Every statement is recorded in `statements` (first words, upper-cased) so
	tests can assert which writes happened. `fail_on` holds statement prefixes
	that raise OSError, which the services treat as a store failure.
	"""

	def __init__(self) -> None:
		self.users: dict[str, dict] = {}
		self.profiles: dict[str, dict] = {}
		self.preferences: dict[str, dict] = {}
		self.notifications: list[dict] = []
		self.statements: list[str] = []
		self.fail_on: set[str] = set()
		self.connections = 0

	def _record(self, query: str) -> str:
		normalized = " ".join(query.split()).upper()
		self.statements.append(normalized)
		for prefix in self.fail_on:
			if normalized.startswith(prefix.upper()):
				raise OSError(f"simulated failure: {prefix}")
		return normalized

	def count(self, prefix: str) -> int:
		return sum(1 for stmt in self.statements if stmt.startswith(prefix.upper()))

	def snapshot(self) -> tuple:
		return copy.deepcopy((self.users, self.profiles, self.preferences, self.notifications))

	def restore(self, state: tuple) -> None:
		self.users, self.profiles, self.preferences, self.notifications = state

	def add_user(self, user_id: str, phone: str, profile_completed: bool = False) -> dict:
		row = {
			"id": user_id,
			"phone_number": phone,
			"profile_completed": profile_completed,
			"created_at": datetime.now(timezone.utc),
		}
		self.users[user_id] = row
		return row

	def user_by_phone(self, phone: str):
		for row in self.users.values():
			if row["phone_number"] == phone:
				return row
		return None


class FakeConnection:
	def __init__(self, db: FakeDatabase) -> None:
		self.db = db

	async def fetchrow(self, query: str, *params):
		q = self.db._record(query)
		if q.startswith("SELECT ID, PHONE_NUMBER, PROFILE_COMPLETED, CREATED_AT FROM USERS WHERE ID"):
			row = self.db.users.get(params[0])
			return dict(row) if row else None
		if q.startswith("SELECT ID, PHONE_NUMBER, PROFILE_COMPLETED, CREATED_AT FROM USERS WHERE PHONE_NUMBER"):
			row = self.db.user_by_phone(params[0])
			return dict(row) if row else None
		if q.startswith("INSERT INTO USERS") and "ON CONFLICT (PHONE_NUMBER) DO NOTHING" in q:
			user_id, phone = params[0], params[1]
			if self.db.user_by_phone(phone) is not None:
				return None
			return dict(self.db.add_user(user_id, phone))
		if q.startswith("SELECT * FROM NOTIFICATION_PREFERENCES"):
			row = self.db.preferences.get(params[0])
			return dict(row) if row else None
		if q.startswith("INSERT INTO NOTIFICATION_PREFERENCES"):
			user_id = params[0]
			if user_id in self.db.preferences:
				return None
			now = datetime.now(timezone.utc)
			columns = (
				"user_id",
				"sms_enabled",
				"new_matches",
				"profile_views",
				"messages",
				"activity_reminders",
				"quiet_hours_start",
				"quiet_hours_end",
				"timezone",
			)
			row = dict(zip(columns, params))
			row.update(created_at=now, updated_at=now)
			self.db.preferences[user_id] = row
			return dict(row)
		raise AssertionError(f"unexpected fetchrow: {q}")

	async def fetch(self, query: str, *params):
		q = self.db._record(query)
		if q.startswith("SELECT ID, USER_ID, TYPE, PHONE_NUMBER, MESSAGE_BODY, STATUS, SENT_AT, DATA FROM NOTIFICATIONS"):
			user_id, limit = params
			rows = [dict(row) for row in self.db.notifications if row["user_id"] == user_id]
			rows.sort(key=lambda row: (row["sent_at"], row["id"]), reverse=True)
			return rows[:limit]
		raise AssertionError(f"unexpected fetch: {q}")

	async def execute(self, query: str, *params):
		q = self.db._record(query)
		if q.startswith("SELECT PG_ADVISORY_XACT_LOCK") or q == "SELECT 1":
			return "SELECT 1"
		if q.startswith("INSERT INTO USERS"):
			user_id, phone = params[0], params[1]
			if user_id in self.db.users or (phone and self.db.user_by_phone(phone)):
				raise AssertionError("duplicate user insert")
			self.db.add_user(user_id, phone, profile_completed=True)
			return "INSERT 0 1"
		if q.startswith("UPDATE USERS SET PROFILE_COMPLETED = TRUE"):
			row = self.db.users.get(params[0])
			if row is None:
				return "UPDATE 0"
			row["profile_completed"] = True
			return "UPDATE 1"
		if q.startswith("INSERT INTO PROFILES"):
			user_id, photo_url, questionnaire = params
			self.db.profiles[user_id] = {
				"user_id": user_id,
				"photo_url": photo_url,
				"questionnaire_data": questionnaire,
				"ai_analysis": None,
			}
			return "INSERT 0 1"
		if q.startswith("UPDATE NOTIFICATION_PREFERENCES SET"):
			row = self.db.preferences.get(params[0])
			if row is None:
				return "UPDATE 0"
			for column, index in re.findall(r"(\w+) = \$(\d+)", query):
				row[column] = params[int(index) - 1]
			row["updated_at"] = datetime.now(timezone.utc)
			return "UPDATE 1"
		if q.startswith("INSERT INTO NOTIFICATIONS"):
			user_id, kind, phone, body, status, data = params
			self.db.notifications.append(
				{
					"id": len(self.db.notifications) + 1,
					"user_id": user_id,
					"type": kind,
					"phone_number": phone,
					"message_body": body,
					"status": status,
					"sent_at": datetime.now(timezone.utc),
					"data": data,
				}
			)
			return "INSERT 0 1"
		raise AssertionError(f"unexpected execute: {q}")

	def transaction(self):
		db = self.db

		class _Txn:
			async def __aenter__(self_inner):
				self_inner.state = db.snapshot()
				return self_inner

			async def __aexit__(self_inner, exc_type, exc, tb):
				if exc_type is not None:
					db.restore(self_inner.state)
				return False

		return _Txn()


class FakePool:
	def __init__(self, db: FakeDatabase) -> None:
		self.db = db

	def acquire(self):
		db = self.db

		class _Ctx:
			async def __aenter__(self_inner):
				db.connections += 1
				return FakeConnection(db)

			async def __aexit__(self_inner, exc_type, exc, tb):
				return False

		return _Ctx()

	async def close(self):
		return None


class RecordingTransport:
	def __init__(self) -> None:
		self.sent: list[tuple[str, str]] = []
		self.accept = True
		self.error = "rejected by provider"

	async def send(self, to: str, body: str) -> sms_transport.SendReceipt:
		self.sent.append((to, body))
		if not self.accept:
			return sms_transport.SendReceipt(accepted=False, error=self.error)
		return sms_transport.SendReceipt(accepted=True, sid=f"SMtest{len(self.sent)}")


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from matching_api.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		await client.flushall()
		set_redis_client(original)


@pytest.fixture(autouse=True)
def fake_db(monkeypatch):
	db = FakeDatabase()

	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)
	postgres.set_pool(FakePool(db))
	try:
		yield db
	finally:
		postgres.set_pool(None)


@pytest.fixture(autouse=True)
def sms_outbox():
	transport = RecordingTransport()
	sms_transport.set_transport(transport)
	try:
		yield transport
	finally:
		sms_transport.set_transport(None)


@pytest.fixture(autouse=True)
def force_test_settings(monkeypatch):
	monkeypatch.setattr(settings, "environment", "test")
	monkeypatch.setattr(settings, "otp_send_per_hour", 6)
	monkeypatch.setattr(settings, "notifications_log_suppressed", False)
	monkeypatch.setattr(settings, "debug_endpoints_enabled", False)


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
