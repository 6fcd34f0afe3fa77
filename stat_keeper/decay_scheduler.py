import math
import datetime
import logging
import dataclasses
from dataclasses import dataclass

from .config import (
    DECAY_MAX_INTERVAL_DAYS,
    DECAY_MAX_TICK_MS,
    DECAY_MIN_TICK_MS,
    DECAY_NOTIFICATION_TITLE,
    DECAY_SETTINGS_KEY,
    UNIT_MS,
)
from .character_store import CharacterStore, stat_names
from .storage import KeyValueStore
from .utils import format_category_name, now_utc, parse_iso, split_duration_ms, to_iso


class InvalidDecaySetting(ValueError):
    pass


EDITABLE_SETTING_FIELDS = ("points", "time_value", "time_unit", "enabled")
# Persisted camelCase spellings.
SETTING_FIELD_ALIASES = {"timeValue": "time_value", "timeUnit": "time_unit"}


def get_setting_key(category_id: str, stat_name: str) -> str:
    return f"{category_id}-{stat_name}"


def _trim_ms(dt: datetime.datetime) -> datetime.datetime:
    return dt.replace(microsecond=dt.microsecond // 1000 * 1000)


def _checked(points, time_value, time_unit) -> tuple[int, int | float, str]:
    if isinstance(time_value, bool):
        raise InvalidDecaySetting(f"invalid time value: {time_value!r}")
    try:
        value = float(time_value)
    except (TypeError, ValueError):
        raise InvalidDecaySetting(f"invalid time value: {time_value!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidDecaySetting(f"time value must be a positive number, got {time_value!r}")
    if time_unit not in UNIT_MS:
        raise InvalidDecaySetting(f"unknown time unit: {time_unit!r}")
    if isinstance(points, bool):
        raise InvalidDecaySetting(f"invalid points: {points!r}")
    try:
        pts = int(points)
    except (TypeError, ValueError):
        raise InvalidDecaySetting(f"invalid points: {points!r}") from None
    if pts <= 0:
        raise InvalidDecaySetting(f"points must be positive, got {points!r}")
    try:
        interval = datetime.timedelta(milliseconds=value * UNIT_MS[time_unit])
    except OverflowError:
        interval = None
    if interval is None or interval > datetime.timedelta(days=DECAY_MAX_INTERVAL_DAYS):
        raise InvalidDecaySetting(f"interval too long: {time_value!r} {time_unit}")
    # Intervals shorter than the driver's shortest tick can never be honoured.
    if interval < datetime.timedelta(milliseconds=DECAY_MIN_TICK_MS):
        raise InvalidDecaySetting(f"interval too short: {time_value!r} {time_unit}")
    return pts, int(value) if value.is_integer() else value, time_unit


@dataclass
class DecaySetting:
    category_id: str
    stat_name: str
    points: int
    time_value: int | float
    time_unit: str
    last_update: datetime.datetime
    enabled: bool = True

    @property
    def key(self) -> str:
        return get_setting_key(self.category_id, self.stat_name)

    @property
    def interval(self) -> datetime.timedelta:
        return datetime.timedelta(milliseconds=self.time_value * UNIT_MS[self.time_unit])

    def next_due(self) -> datetime.datetime:
        return self.last_update + self.interval

    def cycles_elapsed(self, now: datetime.datetime) -> int:
        elapsed = now - self.last_update
        if elapsed <= datetime.timedelta(0):
            return 0
        return elapsed // self.interval

    def to_dict(self) -> dict:
        return {
            "categoryId": self.category_id,
            "statName": self.stat_name,
            "points": self.points,
            "timeValue": self.time_value,
            "timeUnit": self.time_unit,
            "lastUpdate": to_iso(self.last_update),
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "DecaySetting":
        points, time_value, time_unit = _checked(raw["points"], raw["timeValue"], raw["timeUnit"])
        category_id = raw["categoryId"]
        stat_name = raw["statName"]
        if not isinstance(category_id, str) or not isinstance(stat_name, str):
            raise TypeError("categoryId and statName must be strings")
        return cls(
            category_id=category_id,
            stat_name=stat_name,
            points=points,
            time_value=time_value,
            time_unit=time_unit,
            last_update=parse_iso(raw["lastUpdate"]),
            enabled=bool(raw.get("enabled", True)),
        )


class DecayScheduler:
    """Deducts points from attributes that have gone too long without activity.

    Each enabled setting has one pending wake-up (its next due time). A single
    driver callback, scheduled on the host event loop with ``after``, wakes at
    the soonest one and processes every setting that is due. Processing a
    setting re-checks that its attribute still exists, deducts all whole cycles
    elapsed in one ``update_stat`` call, advances ``last_update`` by exactly
    those cycles, saves, notifies and re-arms, with no suspension in between.
    """

    def __init__(
        self,
        store: CharacterStore,
        storage: KeyValueStore,
        logger: logging.Logger,
        notifier=None,
        clock=now_utc,
    ):
        self._store = store
        self._storage = storage
        self._logger = logger
        self._notifier = notifier
        self._clock = clock

        self._settings: dict[str, DecaySetting] = {}
        self._wakeups: dict[str, datetime.datetime] = {}
        self._loading = True

        self._root = None
        self._after_id = None

        store.add_listener(self._on_store_event)

    def _now(self) -> datetime.datetime:
        return _trim_ms(self._clock())

    # Persistence
    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def decay_settings(self) -> dict[str, dict]:
        return {key: s.to_dict() for key, s in self._settings.items()}

    @property
    def pending_wakeups(self) -> dict[str, datetime.datetime]:
        return dict(self._wakeups)

    def load(self) -> None:
        if self._store.is_loading:
            raise RuntimeError("DecayScheduler.load() called before the character store finished loading")

        raw = self._storage.get(DECAY_SETTINGS_KEY)
        settings: dict[str, DecaySetting] = {}
        if isinstance(raw, dict):
            for key, value in raw.items():
                try:
                    setting = DecaySetting.from_dict(value)
                except (KeyError, TypeError, ValueError, AttributeError):
                    self._logger.warning(f"DECAY dropped malformed setting key={key}")
                    continue
                settings[setting.key] = setting
        elif raw is not None:
            self._logger.warning("DECAY settings document malformed, starting empty")

        self._settings = settings
        self._loading = False
        self._logger.info(f"DECAY loaded settings={len(settings)}")
        self.reconcile()

    def save(self) -> None:
        if self._loading:
            return
        self._storage.set(DECAY_SETTINGS_KEY, self.decay_settings)

    # Driver
    def start(self, root) -> None:
        """Attach to a host loop exposing Tk's ``after`` / ``after_cancel``."""
        if self._loading:
            raise RuntimeError("DecayScheduler.start() called before load()")
        self._root = root
        self.reconcile()

    def stop(self) -> None:
        if self._root is not None and self._after_id is not None:
            self._root.after_cancel(self._after_id)
        self._after_id = None
        self._root = None

    def _rearm_driver(self, now: datetime.datetime | None = None) -> None:
        if self._root is None:
            return
        if self._after_id is not None:
            self._root.after_cancel(self._after_id)
            self._after_id = None

        delay = DECAY_MAX_TICK_MS
        if self._wakeups:
            now = now or self._now()
            soonest = min(self._wakeups.values())
            until = (soonest - now).total_seconds() * 1000
            delay = int(min(max(until, DECAY_MIN_TICK_MS), DECAY_MAX_TICK_MS))
        self._after_id = self._root.after(delay, self._on_driver)

    def _on_driver(self) -> None:
        self._after_id = None
        try:
            self.tick()
        except Exception:
            self._logger.exception("DECAY tick failed")
            self._rearm_driver()

    def tick(self, now: datetime.datetime | None = None) -> int:
        """Process every setting whose wake-up is due. Returns points deducted."""
        now = now or self._now()
        due = sorted((t, key) for key, t in self._wakeups.items() if t <= now)
        deducted = 0
        for _, key in due:
            deducted += self._process(key, now)
        self._rearm_driver(now)
        return deducted

    def reconcile(self, now: datetime.datetime | None = None) -> int:
        """Prune orphaned settings, catch up on missed cycles and re-arm everything."""
        if self._loading:
            return 0
        now = now or self._now()
        deducted = 0
        for key in list(self._settings):
            deducted += self._process(key, now)
        for key in list(self._wakeups):
            if key not in self._settings:
                self._cancel(key)
        self._rearm_driver(now)
        return deducted

    def _process(self, key: str, now: datetime.datetime) -> int:
        setting = self._settings.get(key)
        if setting is None:
            self._cancel(key)
            return 0

        if not self._store.stat_exists(setting.category_id, setting.stat_name):
            self._logger.info(f"DECAY removing orphaned setting key={key}")
            self._settings.pop(key, None)
            self._cancel(key)
            self.save()
            return 0

        if not setting.enabled:
            self._cancel(key)
            return 0

        points = 0
        cycles = setting.cycles_elapsed(now)
        if cycles >= 1:
            points = setting.points * cycles
            self._store.update_stat(setting.category_id, setting.stat_name, -points)
            setting.last_update = setting.last_update + setting.interval * cycles
            self.save()
            self._logger.info(f"DECAY applied key={key} cycles={cycles} points={points}")
            self._notify(setting, points)

        self._wakeups[key] = setting.next_due()
        return points

    def _cancel(self, key: str) -> None:
        self._wakeups.pop(key, None)

    def _notify(self, setting: DecaySetting, points: int) -> None:
        if self._notifier is None:
            return
        name = self._store.category_name(setting.category_id) or format_category_name(setting.category_id)
        body = (
            f'Your "{setting.stat_name}" in the {name} category decreased by '
            f"{points} points due to inactivity."
        )
        try:
            self._notifier.notify(
                DECAY_NOTIFICATION_TITLE,
                body,
                {"categoryId": setting.category_id, "statName": setting.stat_name},
            )
        except Exception:
            self._logger.exception(f"DECAY notification failed key={setting.key}")

    def _on_store_event(self, event: str, payload) -> None:
        if self._loading:
            return
        if event == "activity":
            for name in stat_names(payload["stat"]):
                self.reset_timer(payload["category"], name, payload["points"])
        elif event == "categories":
            self.reconcile()

    # Settings
    def add_decay_setting(
        self,
        category_id: str,
        stat_name: str,
        points: int,
        time_value,
        time_unit: str = "days",
        enabled: bool = True,
    ) -> DecaySetting | None:
        points, time_value, time_unit = _checked(points, time_value, time_unit)
        if not self._store.stat_exists(category_id, stat_name):
            self._logger.error(f"DECAY cannot add setting for missing stat category={category_id} stat={stat_name}")
            return None

        setting = DecaySetting(
            category_id=category_id,
            stat_name=stat_name,
            points=points,
            time_value=time_value,
            time_unit=time_unit,
            last_update=self._now(),
            enabled=bool(enabled),
        )
        key = setting.key
        self._settings[key] = setting
        self.save()
        if setting.enabled:
            self._wakeups[key] = setting.next_due()
        else:
            self._cancel(key)
        self._rearm_driver()
        self._logger.info(f"DECAY setting added key={key} points={points} every={time_value} {time_unit}")
        return dataclasses.replace(setting)

    def update_decay_setting(self, key: str, updates: dict) -> bool:
        setting = self._settings.get(key)
        if setting is None:
            return False

        updates = {SETTING_FIELD_ALIASES.get(k, k): v for k, v in updates.items()}
        ignored = sorted(k for k in updates if k not in EDITABLE_SETTING_FIELDS)
        if ignored:
            self._logger.warning(f"DECAY ignored unknown setting fields key={key} fields={ignored}")

        points, time_value, time_unit = _checked(
            updates.get("points", setting.points),
            updates.get("time_value", setting.time_value),
            updates.get("time_unit", setting.time_unit),
        )
        was_enabled = setting.enabled
        setting.points = points
        setting.time_value = time_value
        setting.time_unit = time_unit
        if "enabled" in updates:
            setting.enabled = bool(updates["enabled"])
        if setting.enabled and not was_enabled:
            setting.last_update = self._now()

        self.save()
        if setting.enabled:
            self._wakeups[key] = setting.next_due()
        else:
            self._cancel(key)
        self._rearm_driver()
        self._logger.info(f"DECAY setting updated key={key} enabled={setting.enabled}")
        return True

    def remove_decay_setting(self, key: str) -> bool:
        self._cancel(key)
        if self._settings.pop(key, None) is None:
            return False
        self.save()
        self._rearm_driver()
        self._logger.info(f"DECAY setting removed key={key}")
        return True

    def reset_timer(self, category_id: str, stat_name: str, points_added: int) -> bool:
        key = get_setting_key(category_id, stat_name)
        setting = self._settings.get(key)
        if setting is None or not setting.enabled or not points_added:
            return False
        setting.last_update = self._now()
        self._wakeups[key] = setting.next_due()
        self.save()
        self._rearm_driver()
        self._logger.info(f"DECAY timer reset key={key}")
        return True

    # Queries
    def get_decay_setting_for_stat(self, category_id: str, stat_name: str) -> DecaySetting | None:
        setting = self._settings.get(get_setting_key(category_id, stat_name))
        return dataclasses.replace(setting) if setting is not None else None

    def next_decay_at(self, category_id: str, stat_name: str) -> datetime.datetime | None:
        setting = self._settings.get(get_setting_key(category_id, stat_name))
        if setting is None or not setting.enabled:
            return None
        return setting.next_due()

    def get_time_until_next_decay(
        self, category_id: str, stat_name: str, now: datetime.datetime | None = None
    ) -> tuple[int, int, int] | None:
        due = self.next_decay_at(category_id, stat_name)
        if due is None:
            return None
        now = now or self._now()
        if due <= now:
            return 0, 0, 0
        return split_duration_ms((due - now).total_seconds() * 1000)
