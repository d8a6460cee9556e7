import json
from pathlib import Path
from typing import Optional

from .models import Credentials, ResourceIdentity


class StateStore:
    """JSON registry of managed clusters keyed by cluster name."""

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> dict:
        if self.path.exists():
            with open(self.path, "r") as f:
                return json.load(f)
        return {}

    def save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(data, f, indent=2)

    def get_identity(self, name: str) -> ResourceIdentity:
        entry = self.load().get(name, {})
        return ResourceIdentity(
            cluster_id=entry.get("cluster_id", ""),
            companion_id=entry.get("companion_id", ""),
        )

    def get_credentials(self, name: str) -> Optional[Credentials]:
        entry = self.load().get(name, {}).get("credentials")
        if not entry:
            return None
        return Credentials(username=entry.get("username", ""), password=entry.get("password", ""))

    def put(self, name: str, identity: ResourceIdentity, credentials: Optional[Credentials] = None) -> None:
        """Record an identity; an empty identity removes the entry."""
        data = self.load()
        if not identity.exists:
            data.pop(name, None)
            self.save(data)
            return

        entry = data.get(name, {})
        entry["cluster_id"] = identity.cluster_id
        entry["companion_id"] = identity.companion_id
        # Credentials are only returned once, keep the ones already stored.
        if credentials is not None:
            entry["credentials"] = {"username": credentials.username, "password": credentials.password}
        data[name] = entry
        self.save(data)
