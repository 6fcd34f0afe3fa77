import os

APP_TITLE = "Stat Keeper"
APPDATA_DIR = os.path.join(os.getenv("APPDATA") or os.path.expanduser("~"), "StatKeeper")

DATA_DIR = os.path.join(APPDATA_DIR, "data")

LOG_DIR = os.path.join(APPDATA_DIR, "logs")
LOG_FILE = os.path.join(LOG_DIR, "stat_keeper.log")

# Storage keys
CHARACTER_SHEET_KEY = "characterSheet"
ACTIVITY_LOG_KEY = "activityLog"
DECAY_SETTINGS_KEY = "decaySettings"

# Scoring
BASE_SCORE = 10
MIN_ACTIVITY_POINTS = 1
MAX_ACTIVITY_POINTS = 5

# Decay
UNIT_MS = {
    "minutes": 60 * 1000,
    "hours": 60 * 60 * 1000,
    "days": 24 * 60 * 60 * 1000,
}
DECAY_MIN_TICK_MS = 1000
DECAY_MAX_TICK_MS = 60 * 1000
DECAY_MAX_INTERVAL_DAYS = 100 * 365
DECAY_NOTIFICATION_TITLE = "Skill Decay Occurred"

UI_REFRESH_MS = 30 * 1000

COLOR_PRESETS = [
    ("#6366F1", "#8B5CF6"),
    ("#3B82F6", "#06B6D4"),
    ("#EC4899", "#8B5CF6"),
    ("#10B981", "#3B82F6"),
    ("#F59E0B", "#EF4444"),
    ("#14B8A6", "#06B6D4"),
    ("#F97316", "#F59E0B"),
    ("#6366F1", "#EC4899"),
    ("#8B5CF6", "#D946EF"),
    ("#06B6D4", "#0EA5E9"),
    ("#10B981", "#34D399"),
    ("#EF4444", "#B91C1C"),
    ("#F97316", "#EA580C"),
    ("#84CC16", "#4D7C0F"),
    ("#0369A1", "#1E40AF"),
    ("#4F46E5", "#7C3AED"),
]

ICON_OPTIONS = [
    "💪", "🏃", "🧘", "🏋️", "⚡", "🥗", "💤", "🧬",
    "🧠", "📚", "🔍", "💡", "🧩", "🎓", "✏️", "🔬",
    "🎨", "🎵", "🎭", "📷", "🎬", "🎸", "🎹", "✍️",
    "❤️", "🙏", "😊", "🤝", "💬", "🌈", "✨", "😌",
    "💰", "💼", "📈", "🏆", "⏰", "💻", "🔧", "🚀",
    "🏠", "🌱", "🌍", "🌞", "⛰️", "🌊", "🌲", "🧭",
    "🔮", "💫", "⭐", "🔥", "🛡️", "🏹", "🎲", "📝",
]

DEFAULT_CATEGORIES = {
    "physical": {
        "name": "Physical",
        "description": "Body, health and energy",
        "icon": "💪",
        "gradient": ["#F97316", "#EF4444"],
        "stats": ["Strength", "Endurance", "Flexibility", "Nutrition", "Sleep Quality"],
    },
    "mind": {
        "name": "Mind",
        "description": "Learning, focus and creativity",
        "icon": "🧠",
        "gradient": ["#6366F1", "#8B5CF6"],
        "stats": ["Knowledge", "Creativity", "Problem Solving", "Focus", "Learning"],
    },
    "social": {
        "name": "Social",
        "description": "Relationships and inner life",
        "icon": "❤️",
        "gradient": ["#EC4899", "#8B5CF6"],
        "stats": ["Relationships", "Self-Awareness", "Gratitude", "Purpose", "Happiness"],
    },
}
