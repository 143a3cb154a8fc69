import copy
import threading
from datetime import datetime
from typing import Union

from models.snapshot_model import find_snapshot


# One document per identity in `users`:
# { email, name, image, data, lastSync, createdAt, snapshots: [{savedAt, transactionsCount, investmentsCount, data}] }
class UserStore:
    def find_user(self, email: str) -> Union[dict, None]:
        raise NotImplementedError

    def find_sync_state(self, email: str) -> Union[dict, None]:
        """Same as find_user but snapshot entries come without their `data`."""
        raise NotImplementedError

    def find_last_sync(self, email: str) -> Union[datetime, None]:
        raise NotImplementedError

    def find_snapshot(self, email: str, saved_at: datetime) -> Union[dict, None]:
        raise NotImplementedError

    def save_data(self, email: str, profile: dict, data: dict, snapshot: dict, now: datetime, limit: int):
        raise NotImplementedError

    def restore_data(self, email: str, data: dict, now: datetime) -> bool:
        raise NotImplementedError


class MongoUserStore(UserStore):
    def __init__(self, collection):
        self.users = collection

    def find_user(self, email):
        return self.users.find_one({"email": email})

    def find_sync_state(self, email):
        return self.users.find_one({"email": email}, {"snapshots.data": 0})

    def find_last_sync(self, email):
        doc = self.users.find_one({"email": email}, {"lastSync": 1})
        return doc.get("lastSync") if doc else None

    def find_snapshot(self, email, saved_at):
        doc = self.users.find_one(
            {"email": email},
            {"snapshots": {"$elemMatch": {"savedAt": saved_at}}},
        )
        if not doc or not doc.get("snapshots"):
            return None
        return doc["snapshots"][0]

    def save_data(self, email, profile, data, snapshot, now, limit):
        # $push with $slice appends and trims in the same document write
        return self.users.update_one(
            {"email": email},
            {
                "$set": {
                    "email": email,
                    "name": profile.get("name"),
                    "image": profile.get("image"),
                    "data": data,
                    "lastSync": now,
                },
                "$setOnInsert": {"createdAt": now},
                "$push": {"snapshots": {"$each": [snapshot], "$slice": -limit}},
            },
            upsert=True,
        )

    def restore_data(self, email, data, now):
        res = self.users.update_one(
            {"email": email},
            {"$set": {"data": data, "lastSync": now}},
        )
        return res.matched_count > 0


class InMemoryUserStore(UserStore):
    def __init__(self):
        self._users: dict[str, dict] = {}
        self._lock = threading.Lock()

    def find_user(self, email):
        with self._lock:
            doc = self._users.get(email)
            return copy.deepcopy(doc) if doc else None

    def find_sync_state(self, email):
        doc = self.find_user(email)
        if doc:
            for snap in doc.get("snapshots", []):
                snap.pop("data", None)
        return doc

    def find_last_sync(self, email):
        with self._lock:
            doc = self._users.get(email)
            return doc.get("lastSync") if doc else None

    def find_snapshot(self, email, saved_at):
        doc = self.find_user(email)
        if not doc:
            return None
        return find_snapshot(doc.get("snapshots", []), saved_at)

    def save_data(self, email, profile, data, snapshot, now, limit):
        with self._lock:
            doc = self._users.get(email)
            if doc is None:
                doc = {"email": email, "createdAt": now, "snapshots": []}
                self._users[email] = doc
            doc.update({
                "name": profile.get("name"),
                "image": profile.get("image"),
                "data": copy.deepcopy(data),
                "lastSync": now,
            })
            doc["snapshots"] = (doc["snapshots"] + [copy.deepcopy(snapshot)])[-limit:]

    def restore_data(self, email, data, now):
        with self._lock:
            doc = self._users.get(email)
            if doc is None:
                return False
            doc["data"] = copy.deepcopy(data)
            doc["lastSync"] = now
            return True
