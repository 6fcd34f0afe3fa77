import copy
import logging
from typing import Callable

from .config import (
    ACTIVITY_LOG_KEY,
    BASE_SCORE,
    CHARACTER_SHEET_KEY,
    COLOR_PRESETS,
    DEFAULT_CATEGORIES,
    ICON_OPTIONS,
    MAX_ACTIVITY_POINTS,
    MIN_ACTIVITY_POINTS,
)
from .storage import KeyValueStore
from .utils import now_utc, to_iso

Listener = Callable[[str, object], None]

EDITABLE_ACTIVITY_FIELDS = ("activity", "category", "stat", "points", "date")
EDITABLE_CATEGORY_FIELDS = ("name", "description", "icon", "gradient", "score", "stats")


def default_character_sheet() -> dict:
    categories = {}
    for category_id, defaults in DEFAULT_CATEGORIES.items():
        category = {
            "id": category_id,
            "name": defaults["name"],
            "description": defaults["description"],
            "icon": defaults["icon"],
            "gradient": list(defaults["gradient"]),
            "score": BASE_SCORE,
            "stats": [{"name": name, "value": 0} for name in defaults["stats"]],
        }
        categories[category_id] = category
    return {"categories": categories}


def compute_score(stats: list[dict]) -> int:
    return BASE_SCORE + sum(int(s.get("value", 0)) for s in stats)


def stat_names(stat) -> list[str]:
    """Normalise an entry's ``stat`` field (a name or a list of names) to a list."""
    if stat is None:
        return []
    if isinstance(stat, (list, tuple)):
        return [str(s) for s in stat]
    return [str(stat)]


def _stat_field(names: list[str]):
    return names[0] if len(names) == 1 else list(names)


def _clean_stats(stats) -> list[dict]:
    cleaned: list[dict] = []
    seen: set[str] = set()
    for s in stats or []:
        if isinstance(s, dict):
            name = s.get("name")
            value = s.get("value", 0)
        else:
            name, value = s, 0
        if not isinstance(name, str) or not name.strip() or name in seen:
            continue
        try:
            value = int(value)
        except (TypeError, ValueError):
            value = 0
        seen.add(name)
        cleaned.append({"name": name, "value": value})
    return cleaned


def _clean_entry(raw) -> dict | None:
    if not isinstance(raw, dict):
        return None
    try:
        names = stat_names(raw["stat"])
        entry = {
            "id": str(raw["id"]),
            "date": str(raw["date"]),
            "activity": str(raw.get("activity", "")),
            "category": str(raw["category"]),
            "stat": _stat_field(names),
            "points": int(raw["points"]),
        }
    except (KeyError, TypeError, ValueError):
        return None
    if not names:
        return None
    return entry


def validate_activity_input(description: str, stats, points) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not (description or "").strip():
        errors["activity"] = "Please describe your activity"
    if not stat_names(stats):
        errors["stat"] = "Please select at least one stat to modify"
    try:
        magnitude = abs(int(points))
    except (TypeError, ValueError):
        magnitude = 0
    if magnitude < MIN_ACTIVITY_POINTS or magnitude > MAX_ACTIVITY_POINTS:
        errors["points"] = f"Points must be between {MIN_ACTIVITY_POINTS} and {MAX_ACTIVITY_POINTS}"
    return errors


class CharacterStore:
    """Owns the character sheet and the activity log.

    Every mutation goes through this class: the attribute value changes, the
    category score is recomputed, both documents are written back and the
    listeners are told what happened. Lookups that miss are no-ops.
    """

    def __init__(self, storage: KeyValueStore, logger: logging.Logger, clock=now_utc):
        self._storage = storage
        self._logger = logger
        self._clock = clock

        self._sheet = default_character_sheet()
        self._log: list[dict] = []
        self._listeners: list[Listener] = []
        self._loading = True
        self._last_id = 0

    # Persistence
    @property
    def is_loading(self) -> bool:
        return self._loading

    def load(self) -> None:
        sheet = self._storage.get(CHARACTER_SHEET_KEY)
        if isinstance(sheet, dict) and isinstance(sheet.get("categories"), dict):
            categories = {}
            for index, (category_id, raw) in enumerate(sheet["categories"].items()):
                if not isinstance(raw, dict):
                    continue
                category = {k: raw[k] for k in EDITABLE_CATEGORY_FIELDS if k in raw}
                category["id"] = str(category_id)
                category.setdefault("name", str(category_id))
                category.setdefault("description", "")
                if not category.get("icon"):
                    category["icon"] = ICON_OPTIONS[index % len(ICON_OPTIONS)]
                if not isinstance(category.get("gradient"), list) or len(category["gradient"]) < 2:
                    category["gradient"] = list(COLOR_PRESETS[index % len(COLOR_PRESETS)])
                category["stats"] = _clean_stats(raw.get("stats"))
                category["score"] = compute_score(category["stats"])
                categories[str(category_id)] = category
            self._sheet = {"categories": categories}
        elif sheet is not None:
            self._logger.warning("STORE character sheet malformed, keeping defaults")

        log = self._storage.get(ACTIVITY_LOG_KEY)
        if isinstance(log, list):
            entries = [_clean_entry(e) for e in log]
            self._log = [e for e in entries if e is not None]
            dropped = len(log) - len(self._log)
            if dropped:
                self._logger.warning(f"STORE dropped {dropped} malformed activity entries")
        elif log is not None:
            self._logger.warning("STORE activity log malformed, starting empty")

        for entry in self._log:
            if entry["id"].isdigit():
                self._last_id = max(self._last_id, int(entry["id"]))

        self._loading = False
        self._logger.info(
            f"STORE loaded categories={len(self._sheet['categories'])} activities={len(self._log)}"
        )

    def save(self) -> None:
        if self._loading:
            return
        self._storage.set(CHARACTER_SHEET_KEY, self._sheet)
        self._storage.set(ACTIVITY_LOG_KEY, self._log)

    # Observers
    def add_listener(self, callback: Listener) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _commit(self, event: str, payload=None) -> None:
        self.save()
        for callback in list(self._listeners):
            try:
                callback(event, payload)
            except Exception:
                self._logger.exception(f"STORE listener failed event={event}")

    def _next_id(self) -> str:
        stamp = int(self._clock().timestamp() * 1000)
        if stamp <= self._last_id:
            stamp = self._last_id + 1
        self._last_id = stamp
        return str(stamp)

    # Queries
    @property
    def character_sheet(self) -> dict:
        return copy.deepcopy(self._sheet)

    @property
    def activity_log(self) -> list[dict]:
        return copy.deepcopy(self._log)

    def snapshot(self) -> dict:
        """Deep copies of both documents, keyed as they are stored."""
        return {
            CHARACTER_SHEET_KEY: copy.deepcopy(self._sheet),
            ACTIVITY_LOG_KEY: copy.deepcopy(self._log),
        }

    def category_ids(self) -> list[str]:
        return list(self._sheet["categories"])

    def get_category(self, category_id: str) -> dict | None:
        category = self._sheet["categories"].get(category_id)
        return copy.deepcopy(category) if category is not None else None

    def category_name(self, category_id: str) -> str | None:
        category = self._sheet["categories"].get(category_id)
        if category is None:
            return None
        return category.get("name") or None

    def stat_exists(self, category_id: str, stat_name: str) -> bool:
        category = self._sheet["categories"].get(category_id)
        if category is None:
            return False
        return any(s["name"] == stat_name for s in category["stats"])

    def get_activity(self, entry_id: str) -> dict | None:
        entry = self._find_entry(entry_id)
        return dict(entry) if entry is not None else None

    def activities_for(self, category_id: str | None = None, stat_name: str | None = None) -> list[dict]:
        """Entries matching the filters, newest first."""
        matches = []
        for index, entry in enumerate(self._log):
            if category_id is not None and entry["category"] != category_id:
                continue
            if stat_name is not None and stat_name not in stat_names(entry["stat"]):
                continue
            matches.append((entry["date"], index, entry))
        matches.sort(key=lambda m: (m[0], m[1]), reverse=True)
        return [dict(m[2]) for m in matches]

    def _find_entry(self, entry_id: str) -> dict | None:
        for entry in self._log:
            if entry["id"] == entry_id:
                return entry
        return None

    # Score arithmetic
    def _apply_delta(self, category_id: str, stat_name: str, points: int) -> bool:
        category = self._sheet["categories"].get(category_id)
        if category is None:
            return False
        for stat in category["stats"]:
            if stat["name"] == stat_name:
                stat["value"] = int(stat["value"]) + int(points)
                category["score"] = compute_score(category["stats"])
                return True
        return False

    def update_stat(self, category_id: str, stat_name: str, points: int) -> bool:
        if not self._apply_delta(category_id, stat_name, points):
            return False
        self._commit("stat", {"category": category_id, "stat": stat_name, "points": int(points)})
        return True

    # Activity log
    def log_activity(self, description: str, category_id: str, stats, points: int) -> str | None:
        names = stat_names(stats)
        if not names:
            self._logger.warning(f"ACTIVITY not logged, no stats category={category_id}")
            return None
        entry = {
            "id": self._next_id(),
            "date": to_iso(self._clock()),
            "activity": description,
            "category": category_id,
            "stat": _stat_field(names),
            "points": int(points),
        }
        self._log.append(entry)
        # Each stat gets the full amount.
        for name in names:
            self._apply_delta(category_id, name, entry["points"])
        self._logger.info(
            f"ACTIVITY logged id={entry['id']} category={category_id} stats={names} points={entry['points']}"
        )
        self._commit("activity", dict(entry))
        return entry["id"]

    def edit_activity(self, entry_id: str, updates: dict) -> bool:
        entry = self._find_entry(entry_id)
        if entry is None:
            return False

        merged = dict(entry)
        merged.update({k: v for k, v in updates.items() if k in EDITABLE_ACTIVITY_FIELDS})
        new_names = stat_names(merged["stat"])
        if not new_names:
            self._logger.warning(f"ACTIVITY edit rejected, no stats id={entry_id}")
            return False
        merged["stat"] = _stat_field(new_names)
        merged["points"] = int(merged["points"])

        for name in stat_names(entry["stat"]):
            self._apply_delta(entry["category"], name, -int(entry["points"]))
        for name in new_names:
            self._apply_delta(merged["category"], name, merged["points"])

        entry.update(merged)
        self._logger.info(f"ACTIVITY edited id={entry_id} stats={new_names} points={merged['points']}")
        self._commit("activity_edited", dict(entry))
        return True

    def delete_activity(self, entry_id: str) -> bool:
        """Remove an entry from the log.

        The points it contributed stay on the attributes: attribute values are
        a running ledger, the log is history.
        """
        entry = self._find_entry(entry_id)
        if entry is None:
            return False
        self._log.remove(entry)
        self._logger.info(f"ACTIVITY deleted id={entry_id}")
        self._commit("activity_deleted", dict(entry))
        return True

    # Categories
    def add_category(self, category: dict) -> str:
        categories = self._sheet["categories"]
        category_id = self._next_id()
        while category_id in categories:
            category_id = self._next_id()

        index = len(categories)
        stats = _clean_stats(category.get("stats"))
        categories[category_id] = {
            "id": category_id,
            "name": category.get("name", ""),
            "description": category.get("description", ""),
            "icon": category.get("icon") or ICON_OPTIONS[index % len(ICON_OPTIONS)],
            "gradient": list(category.get("gradient") or COLOR_PRESETS[index % len(COLOR_PRESETS)]),
            "score": compute_score(stats),
            "stats": stats,
        }
        self._logger.info(f"CATEGORY added id={category_id} name={category.get('name', '')}")
        self._commit("categories", {"category": category_id})
        return category_id

    def update_category(self, category_id: str, updates: dict) -> bool:
        category = self._sheet["categories"].get(category_id)
        if category is None:
            return False
        for key in EDITABLE_CATEGORY_FIELDS:
            if key in updates:
                category[key] = copy.deepcopy(updates[key])
        if "gradient" in updates:
            category["gradient"] = list(category["gradient"])
        category["stats"] = _clean_stats(category.get("stats"))
        category["score"] = compute_score(category["stats"])
        self._commit("categories", {"category": category_id})
        return True

    def delete_category(self, category_id: str) -> bool:
        if self._sheet["categories"].pop(category_id, None) is None:
            return False
        self._logger.info(f"CATEGORY deleted id={category_id}")
        self._commit("categories", {"category": category_id})
        return True

    # Attributes
    def add_stat(self, category_id: str, stat_name: str, value: int = 0) -> bool:
        category = self._sheet["categories"].get(category_id)
        if category is None or not stat_name.strip() or self.stat_exists(category_id, stat_name):
            return False
        stats = category["stats"] + [{"name": stat_name, "value": int(value)}]
        return self.update_category(category_id, {"stats": stats})

    def rename_stat(self, category_id: str, old_name: str, new_name: str) -> bool:
        # Decay settings are keyed by name and are not carried over.
        category = self._sheet["categories"].get(category_id)
        if category is None or not new_name.strip():
            return False
        if not self.stat_exists(category_id, old_name) or self.stat_exists(category_id, new_name):
            return False
        stats = [
            {"name": new_name if s["name"] == old_name else s["name"], "value": s["value"]}
            for s in category["stats"]
        ]
        return self.update_category(category_id, {"stats": stats})

    def remove_stat(self, category_id: str, stat_name: str) -> bool:
        if not self.stat_exists(category_id, stat_name):
            return False
        category = self._sheet["categories"][category_id]
        stats = [s for s in category["stats"] if s["name"] != stat_name]
        return self.update_category(category_id, {"stats": stats})
